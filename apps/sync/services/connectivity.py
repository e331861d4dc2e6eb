"""
Remote store reachability.

Having a network link and being able to talk to the remote store are two
different things; the monitor starts from the raw link signal and refines it
with an HTTP probe.
"""

from urllib.parse import urlsplit
import logging
import socket
import threading
import time
from typing import Callable, List, Optional

from django.conf import settings

from . import remote as remote_module
from ..exceptions import ConnectivityUnavailableError


logger = logging.getLogger(__name__)

Listener = Callable[[bool], None]


def dns_link_check(url: str) -> Callable[[], bool]:
    """Raw link signal: can the remote host name be resolved at all."""
    host = urlsplit(url).hostname

    def check():
        if not host:
            return False
        try:
            socket.getaddrinfo(host, None)
        except OSError:
            return False
        return True

    return check


class ConnectivityMonitor:
    """
    Single source of truth for "is the remote store reachable".

    Listeners are called synchronously, in subscription order, and only when
    the state actually changes. Probes are rate limited to one per
    ``min_interval`` seconds unless forced, so a flapping link yields at most
    one notification per probe result.

    Args:
        probe: Callable returning True when the remote store answers.
        link_check: Callable giving the raw link signal used for the
            initial state. Defaults to "online".
        min_interval: Minimum seconds between two unforced probes.
        clock: Monotonic clock, injectable for tests.
    """

    def __init__(
        self,
        probe: Callable[[], bool],
        link_check: Optional[Callable[[], bool]] = None,
        min_interval: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._probe = probe
        self._link_check = link_check or (lambda: True)
        if min_interval is None:
            min_interval = getattr(settings, 'CONNECTIVITY_MIN_INTERVAL', 5)
        self._min_interval = min_interval
        self._clock = clock
        self._listeners: List[Listener] = []
        self._last_check_at = None
        self._lock = threading.Lock()
        self._reachable = bool(self._link_check())

    @property
    def reachable(self) -> bool:
        return self._reachable

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener(reachable)``; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe():
            self.unsubscribe(listener)

        return unsubscribe

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _set(self, reachable: bool) -> None:
        if reachable == self._reachable:
            return
        self._reachable = reachable
        logger.info("Remote store is now %s", 'reachable' if reachable else 'unreachable')
        for listener in list(self._listeners):
            listener(reachable)

    def check(self, force: bool = False) -> bool:
        """Probe the remote store (rate limited unless ``force``) and return the state."""
        now = self._clock()
        with self._lock:
            if (
                not force
                and self._last_check_at is not None
                and now - self._last_check_at < self._min_interval
            ):
                return self._reachable
            self._last_check_at = now

        try:
            result = bool(self._probe())
        except ConnectivityUnavailableError:
            result = False
        self._set(result)
        return self._reachable

    def handle_link_up(self) -> bool:
        """The platform reports a network link: confirm with a probe."""
        return self.check(force=True)

    def handle_link_down(self) -> None:
        """The platform reports no network link: unreachable, no probe needed."""
        self._set(False)

    def report_unreachable(self) -> None:
        """
        A remote call just failed to connect.

        Counts as a failed check, so the next unforced ``check`` waits
        ``min_interval`` before trying the remote store again.
        """
        with self._lock:
            self._last_check_at = self._clock()
        self._set(False)


def build_monitor(remote=None, **kwargs) -> ConnectivityMonitor:
    """Monitor wired to ``remote``; with no remote store it is permanently offline."""
    if remote is None:
        return ConnectivityMonitor(probe=lambda: False, link_check=lambda: False, **kwargs)
    return ConnectivityMonitor(
        probe=remote.probe,
        link_check=dns_link_check(remote.base_url),
        **kwargs,
    )


_monitor = None
_monitor_lock = threading.Lock()


def get_monitor() -> ConnectivityMonitor:
    """The process-wide monitor, built on first use from the configured remote store."""
    global _monitor
    with _monitor_lock:
        if _monitor is None:
            _monitor = build_monitor(remote_module.get_remote_store())
        return _monitor


def reset_monitor() -> None:
    """Drop the process-wide monitor; the next ``get_monitor`` builds a new one."""
    global _monitor
    with _monitor_lock:
        _monitor = None
