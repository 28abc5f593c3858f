"""
Shared fixtures for tracker tests.
"""

from collections import defaultdict

import pytest

from tracker.hub import TrackerHub


class RecordingNotifier:
    """Notifier that keeps every message per connection."""

    def __init__(self):
        self.sent = defaultdict(list)

    def send(self, connection_id, message):
        self.sent[connection_id].append(message)

    def received(self, connection_id, event=None):
        messages = self.sent.get(connection_id, [])
        if event is None:
            return list(messages)
        return [m for m in messages if m['event'] == event]

    def clear(self):
        self.sent.clear()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def hub(notifier):
    return TrackerHub(notifier)
