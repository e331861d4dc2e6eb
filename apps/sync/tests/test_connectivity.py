from unittest.mock import patch

import pytest

from apps.sync.exceptions import ConnectivityUnavailableError
from apps.sync.services import ConnectivityMonitor, build_monitor, get_monitor, reset_monitor


class FakeClock:

    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class ScriptedProbe:
    """Returns queued answers; raises them when they are exceptions."""

    def __init__(self, *answers):
        self.answers = list(answers)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        answer = self.answers.pop(0) if len(self.answers) > 1 else self.answers[0]
        if isinstance(answer, Exception):
            raise answer
        return answer


@pytest.fixture
def clock():
    return FakeClock()


def make_monitor(probe, clock, link=True):
    return ConnectivityMonitor(probe, link_check=lambda: link, min_interval=5, clock=clock)


class TestConnectivityMonitor:

    def test_initial_state_from_link(self, clock):
        assert make_monitor(ScriptedProbe(True), clock, link=False).reachable is False
        assert make_monitor(ScriptedProbe(True), clock, link=True).reachable is True

    def test_notifies_only_on_change(self, clock):
        monitor = make_monitor(ScriptedProbe(False, False, True), clock)
        events = []
        monitor.subscribe(events.append)

        monitor.check(force=True)
        monitor.check(force=True)
        monitor.check(force=True)

        assert events == [False, True]

    def test_listeners_called_in_order(self, clock):
        monitor = make_monitor(ScriptedProbe(False), clock)
        order = []
        monitor.subscribe(lambda reachable: order.append('first'))
        monitor.subscribe(lambda reachable: order.append('second'))

        monitor.check()

        assert order == ['first', 'second']

    def test_unsubscribe(self, clock):
        monitor = make_monitor(ScriptedProbe(False, True), clock)
        events = []
        unsubscribe = monitor.subscribe(events.append)

        monitor.check(force=True)
        unsubscribe()
        monitor.check(force=True)

        assert events == [False]

    def test_checks_are_rate_limited(self, clock):
        probe = ScriptedProbe(True)
        monitor = make_monitor(probe, clock)

        monitor.check()
        monitor.check()
        clock.now += 4
        monitor.check()
        assert probe.calls == 1

        clock.now += 2
        monitor.check()
        assert probe.calls == 2

    def test_link_down_needs_no_probe(self, clock):
        probe = ScriptedProbe(True)
        monitor = make_monitor(probe, clock)
        events = []
        monitor.subscribe(events.append)

        monitor.handle_link_down()

        assert monitor.reachable is False
        assert events == [False]
        assert probe.calls == 0

    def test_link_up_forces_probe(self, clock):
        probe = ScriptedProbe(True)
        monitor = make_monitor(probe, clock, link=False)
        monitor.check()
        assert probe.calls == 1

        assert monitor.handle_link_up() is True
        assert probe.calls == 2

    def test_link_up_without_remote_answer(self, clock):
        monitor = make_monitor(ScriptedProbe(False), clock, link=False)
        events = []
        monitor.subscribe(events.append)

        assert monitor.handle_link_up() is False
        assert events == []

    def test_probe_connectivity_error_means_unreachable(self, clock):
        monitor = make_monitor(ScriptedProbe(ConnectivityUnavailableError('dns')), clock)
        assert monitor.check() is False

    def test_report_unreachable_holds_off_checks(self, clock):
        probe = ScriptedProbe(True)
        monitor = make_monitor(probe, clock)
        changes = []
        monitor.subscribe(changes.append)

        monitor.report_unreachable()

        assert monitor.reachable is False
        assert changes == [False]
        assert monitor.check() is False
        assert probe.calls == 0

        clock.now += 5
        assert monitor.check() is True
        assert probe.calls == 1
        assert changes == [False, True]


class TestBuildMonitor:

    def test_without_remote_is_offline(self):
        monitor = build_monitor(None, min_interval=0)
        assert monitor.reachable is False
        assert monitor.check(force=True) is False

    def test_uses_remote_probe(self):
        class Remote:
            base_url = 'http://localhost'

            def probe(self):
                return True

        monitor = build_monitor(Remote(), min_interval=0)
        assert monitor.check(force=True) is True


class TestProcessMonitor:

    @pytest.fixture(autouse=True)
    def no_remote(self, settings):
        settings.REMOTE_STORE_URL = ''

    def test_shared_until_reset(self):
        first = get_monitor()

        assert get_monitor() is first
        reset_monitor()
        assert get_monitor() is not first

    def test_offline_only_is_never_reachable(self):
        assert get_monitor().check(force=True) is False

    def test_state_is_seen_by_every_reader(self):
        class Remote:
            base_url = 'http://localhost'

            def probe(self):
                return True

        with patch('apps.sync.services.remote.get_remote_store', return_value=Remote()):
            monitor = get_monitor()
        monitor.report_unreachable()

        assert get_monitor().reachable is False
