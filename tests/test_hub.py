"""
Unit tests for connection lifecycle, location fan-out and event dispatch.
"""

import pytest

from tracker.registry import Role


def report(lat, lon):
    return {'event': 'report-location', 'lat': lat, 'lon': lon}


REQUEST_BUS = {'event': 'request-bus-role'}
RELEASE_BUS = {'event': 'release-bus-role'}


class TestConnect:
    """Test connect-time snapshot."""

    def test_first_client_snapshot(self, hub, notifier):
        hub.connect("c1")

        assert notifier.received("c1") == [{
            'event': 'snapshot',
            'connections': [{'id': "c1", 'role': "rider", 'location': None}],
            'busId': None,
            'selfId': "c1"
        }]

    def test_late_joiner_sees_everyone_and_bus(self, hub, notifier):
        hub.connect("c1")
        hub.connect("c2")
        hub.dispatch("c1", report(18.5, 73.8))
        hub.dispatch("c2", REQUEST_BUS)

        hub.connect("c3")

        (snapshot,) = notifier.received("c3", 'snapshot')
        assert snapshot['busId'] == "c2"
        assert snapshot['selfId'] == "c3"
        assert snapshot['connections'] == [
            {'id': "c1", 'role': "rider", 'location': {'lat': 18.5, 'lon': 73.8}},
            {'id': "c2", 'role': "bus", 'location': None},
            {'id': "c3", 'role': "rider", 'location': None},
        ]

    def test_connect_sends_nothing_to_peers(self, hub, notifier):
        hub.connect("c1")
        notifier.clear()

        hub.connect("c2")

        assert notifier.received("c1") == []


class TestLocationReports:
    """Test location fan-out."""

    @pytest.fixture
    def three(self, hub, notifier):
        for cid in ("c1", "c2", "c3"):
            hub.connect(cid)
        notifier.clear()
        return hub

    def test_report_reaches_all_others(self, three, notifier):
        assert three.dispatch("c1", report(18.52, 73.85)) is True

        expected = {'event': 'location-broadcast', 'id': "c1", 'role': "rider", 'lat': 18.52, 'lon': 73.85}
        assert notifier.received("c2") == [expected]
        assert notifier.received("c3") == [expected]

    def test_no_self_echo(self, three, notifier):
        three.dispatch("c1", report(18.52, 73.85))

        assert notifier.received("c1") == []

    def test_report_updates_registry(self, three):
        three.dispatch("c2", report(10, 20))

        location = three.registry.get("c2").location
        assert (location.lat, location.lon) == (10, 20)

    def test_report_is_tagged_with_bus_role(self, three, notifier):
        three.dispatch("c1", REQUEST_BUS)
        notifier.clear()

        three.dispatch("c1", report(1.0, 2.0))

        assert notifier.received("c2")[0]['role'] == "bus"

    @pytest.mark.parametrize("frame", [
        {'event': 'report-location'},
        {'event': 'report-location', 'lat': 1.0},
        {'event': 'report-location', 'lat': "18.5", 'lon': "73.8"},
        {'event': 'report-location', 'lat': None, 'lon': 2.0},
        {'event': 'report-location', 'lat': True, 'lon': 2.0},
        {'event': 'report-location', 'lat': 91.0, 'lon': 2.0},
        {'event': 'report-location', 'lat': 1.0, 'lon': -181.0},
        {'event': 'report-location', 'lat': float('nan'), 'lon': 2.0},
    ])
    def test_malformed_report_is_dropped(self, three, notifier, frame):
        assert three.dispatch("c1", frame) is False

        assert three.registry.get("c1").location is None
        assert dict(notifier.sent) == {}

    def test_integer_coordinates_accepted(self, three, notifier):
        assert three.dispatch("c1", report(18, 73)) is True
        assert notifier.received("c2")[0]['lat'] == 18


class TestDispatch:
    """Test routing and dropping of inbound frames."""

    def test_unknown_connection_is_dropped(self, hub, notifier):
        hub.connect("c1")
        notifier.clear()

        assert hub.dispatch("ghost", report(1.0, 2.0)) is False
        assert hub.dispatch("ghost", REQUEST_BUS) is False

        assert hub.bus_id is None
        assert dict(notifier.sent) == {}

    @pytest.mark.parametrize("frame", [
        "report-location",
        ["report-location"],
        {},
        {'event': ""},
        {'event': 42},
        {'event': 'teleport'},
    ])
    def test_bad_frames_are_dropped(self, hub, notifier, frame):
        hub.connect("c1")
        hub.connect("c2")
        notifier.clear()

        assert hub.dispatch("c1", frame) is False
        assert dict(notifier.sent) == {}

    def test_ping_answers_sender_only(self, hub, notifier):
        hub.connect("c1")
        hub.connect("c2")
        notifier.clear()

        assert hub.dispatch("c1", {'event': 'ping'}) is True

        assert notifier.received("c1") == [{'event': 'pong'}]
        assert notifier.received("c2") == []

    def test_release_from_non_bus_changes_nothing(self, hub, notifier):
        hub.connect("c1")
        hub.connect("c2")
        hub.dispatch("c1", REQUEST_BUS)
        notifier.clear()

        assert hub.dispatch("c2", RELEASE_BUS) is True

        assert hub.bus_id == "c1"
        assert dict(notifier.sent) == {}


class TestDisconnect:
    """Test disconnect path."""

    def test_rider_disconnect_notifies_peers(self, hub, notifier):
        hub.connect("c1")
        hub.connect("c2")
        notifier.clear()

        hub.disconnect("c1")

        assert "c1" not in hub.registry
        assert notifier.received("c2") == [{'event': 'peer-disconnected', 'id': "c1"}]
        assert notifier.received("c1") == []

    def test_bus_disconnect_clears_bus(self, hub, notifier):
        hub.connect("c1")
        hub.connect("c2")
        hub.dispatch("c1", REQUEST_BUS)
        notifier.clear()

        hub.disconnect("c1")

        assert hub.bus_id is None
        assert notifier.received("c2") == [
            {'event': 'role-changed', 'id': None, 'role': 'rider'},
            {'event': 'peer-disconnected', 'id': "c1"},
        ]

    def test_disconnect_unknown_is_ignored(self, hub, notifier):
        hub.connect("c1")
        notifier.clear()

        hub.disconnect("ghost")

        assert dict(notifier.sent) == {}
        assert len(hub.registry) == 1

    def test_events_after_disconnect_are_dropped(self, hub, notifier):
        hub.connect("c1")
        hub.connect("c2")
        hub.disconnect("c1")
        notifier.clear()

        assert hub.dispatch("c1", report(1.0, 2.0)) is False
        assert hub.dispatch("c1", REQUEST_BUS) is False
        assert hub.bus_id is None
        assert dict(notifier.sent) == {}


class TestThreeClientScenario:
    """C1, C2, C3 connect; C1 then C2 take the bus role; C2 leaves."""

    def test_scenario(self, hub, notifier):
        for cid in ("c1", "c2", "c3"):
            hub.connect(cid)
        notifier.clear()

        hub.dispatch("c1", REQUEST_BUS)
        for cid in ("c1", "c2", "c3"):
            assert notifier.received(cid) == [{'event': 'role-changed', 'id': "c1", 'role': "bus"}]
        assert hub.registry.get("c1").role == Role.BUS
        notifier.clear()

        hub.dispatch("c2", REQUEST_BUS)
        assert notifier.received("c1") == [
            {'event': 'role-changed', 'id': "c1", 'role': "rider"},
            {'event': 'role-changed', 'id': "c2", 'role': "bus"},
        ]
        for cid in ("c2", "c3"):
            assert notifier.received(cid) == [{'event': 'role-changed', 'id': "c2", 'role': "bus"}]
        assert hub.registry.get("c1").role == Role.RIDER
        assert hub.registry.get("c2").role == Role.BUS
        notifier.clear()

        hub.disconnect("c2")
        for cid in ("c1", "c3"):
            assert notifier.received(cid) == [
                {'event': 'role-changed', 'id': None, 'role': "rider"},
                {'event': 'peer-disconnected', 'id': "c2"},
            ]
        assert notifier.received("c2") == []
        assert hub.bus_id is None
        assert hub.registry.all(role=Role.BUS) == []
