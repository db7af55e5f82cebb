"""Network reachability monitor.

Connectivity is derived from the operating system's interface table as
reported by ``psutil.net_if_stats()``. The monitor polls it and exposes the
result as asynchronous iterators that only yield on change.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable, Mapping
from enum import Enum
from typing import Final, Protocol

import psutil

from netlayer.core.errors import ReachabilityError, ReachabilityFailure

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL: Final[float] = 2.0

WIFI_PREFIXES: Final[tuple[str, ...]] = ("wl", "wlan", "wifi", "wi-fi", "airport")
CELLULAR_PREFIXES: Final[tuple[str, ...]] = ("wwan", "rmnet", "ppp", "ccmni", "pdp_ip", "cellular")
LOOPBACK_NAMES: Final[frozenset[str]] = frozenset({"lo", "lo0", "loopback"})


class ConnectionType(Enum):
    """Kind of network connection currently available."""

    UNAVAILABLE = "unavailable"
    WIFI = "wifi"
    CELLULAR = "cellular"
    ETHERNET = "ethernet"


class InterfaceStat(Protocol):
    """The part of ``psutil`` interface stats the monitor reads."""

    @property
    def isup(self) -> bool: ...


type InterfaceStats = Callable[[], Mapping[str, InterfaceStat]]


def classify_interface(name: str) -> ConnectionType:
    """Classify an interface by its name.

    Examples:
        >>> classify_interface("wlan0")
        <ConnectionType.WIFI: 'wifi'>
        >>> classify_interface("eth0")
        <ConnectionType.ETHERNET: 'ethernet'>
    """
    lowered = name.lower()
    if lowered.startswith(CELLULAR_PREFIXES):
        return ConnectionType.CELLULAR
    if lowered.startswith(WIFI_PREFIXES):
        return ConnectionType.WIFI
    return ConnectionType.ETHERNET


def _is_loopback(name: str, flags: str) -> bool:
    return name.lower() in LOOPBACK_NAMES or "loopback" in flags.split(",")


class Reachability:
    """Polls interface state and reports connection changes.

    When several interfaces are up, ethernet is preferred over Wi-Fi and
    Wi-Fi over cellular.

    Example:
        >>> reachability = Reachability(allows_cellular_connection=False)
        >>> async for reachable in reachability.is_reachable():
        ...     print("online" if reachable else "offline")
    """

    _PREFERENCE: Final[tuple[ConnectionType, ...]] = (
        ConnectionType.ETHERNET,
        ConnectionType.WIFI,
        ConnectionType.CELLULAR,
    )

    def __init__(
        self,
        *,
        allows_cellular_connection: bool = True,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        interface_stats: InterfaceStats | None = None,
    ) -> None:
        """Initialize Reachability.

        Args:
            allows_cellular_connection: Whether a cellular connection counts as reachable
            poll_interval: Seconds between interface table reads
            interface_stats: Interface table source (``psutil.net_if_stats`` by default)
        """
        self.allows_cellular_connection: bool = allows_cellular_connection
        self.poll_interval: float = poll_interval
        self._interface_stats: InterfaceStats = interface_stats or psutil.net_if_stats

    def current_connection(self) -> ConnectionType:
        """Read the interface table once.

        Raises:
            ReachabilityError: If the interface table cannot be read
        """
        try:
            stats = self._interface_stats()
        except (OSError, psutil.Error) as exc:
            raise ReachabilityError(ReachabilityFailure.FAILED_TO_CREATE, str(exc)) from exc

        available = {
            classify_interface(name)
            for name, stat in stats.items()
            if stat.isup and not _is_loopback(name, getattr(stat, "flags", ""))
        }
        for connection_type in self._PREFERENCE:
            if connection_type in available:
                return connection_type
        return ConnectionType.UNAVAILABLE

    def is_reachable_via(self, connection_type: ConnectionType) -> bool:
        if connection_type is ConnectionType.UNAVAILABLE:
            return False
        if connection_type is ConnectionType.CELLULAR:
            return self.allows_cellular_connection
        return True

    async def connection(self) -> AsyncIterator[ConnectionType]:
        """Yield the current connection type, then every change."""
        previous: ConnectionType | None = None
        while True:
            current = await asyncio.to_thread(self.current_connection)
            if current is not previous:
                logger.debug("Connection changed: %s -> %s", previous, current)
                previous = current
                yield current
            await asyncio.sleep(self.poll_interval)

    async def is_reachable(self) -> AsyncIterator[bool]:
        """Yield whether the network is reachable, then every change."""
        previous: bool | None = None
        async for connection_type in self.connection():
            reachable = self.is_reachable_via(connection_type)
            if reachable is not previous:
                previous = reachable
                yield reachable

    async def is_connected(self) -> AsyncIterator[None]:
        """Yield each time the network becomes reachable."""
        async for reachable in self.is_reachable():
            if reachable:
                yield None

    async def is_disconnected(self) -> AsyncIterator[None]:
        """Yield each time the network becomes unreachable."""
        async for reachable in self.is_reachable():
            if not reachable:
                yield None
