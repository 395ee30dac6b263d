"""OS reachability facility abstraction supporting both real hosts and mocking.

The facility owns reachability targets, reports their current flags and
delivers flag changes to a registered callback on a bound dispatch queue.
"""

import ipaddress
import itertools
import logging
import re
import socket
import struct
import subprocess
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

from netreach.reachability.dispatch import DispatchQueue
from netreach.reachability.flags import ReachabilityFlags, describe_flags
from netreach.reachability.radio import is_cellular_interface

logger = logging.getLogger(__name__)

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]
AddressInput = Union[str, bytes]

DEFAULT_ROUTE_ADDRESS = ipaddress.IPv4Address("0.0.0.0")

# struct sockaddr_in: family, port, address, zero padding
_SOCKADDR_IN = struct.Struct("=H2s4s8x")
# struct sockaddr_in6: family, port, flowinfo, address, scope id
_SOCKADDR_IN6 = struct.Struct("=H2s4s16s4x")
_FAMILY = struct.Struct("=H")

_HOSTNAME_LABEL = re.compile(r"^(?!-)[A-Za-z0-9-]{1,63}(?<!-)$")
_handle_ids = itertools.count(1)


class TargetKind(Enum):
    """How a target was identified."""

    HOSTNAME = "hostname"
    ADDRESS = "address"
    DEFAULT_ROUTE = "default_route"


@dataclass(frozen=True, eq=False)
class TargetHandle:
    """Opaque handle to one reachability target owned by a facility."""

    kind: TargetKind
    hostname: Optional[str] = None
    address: Optional[IPAddress] = None
    id: int = field(default_factory=lambda: next(_handle_ids))

    @property
    def description(self) -> str:
        """Readable name of the target for logs."""
        if self.kind is TargetKind.HOSTNAME:
            return str(self.hostname)
        if self.kind is TargetKind.DEFAULT_ROUTE:
            return "default route"
        return str(self.address)


ChangeCallback = Callable[[TargetHandle, ReachabilityFlags], None]


def is_valid_hostname(hostname: str) -> bool:
    """Check a hostname against RFC 1123 label rules."""
    if not hostname or len(hostname) > 253:
        return False
    labels = hostname[:-1].split(".") if hostname.endswith(".") else hostname.split(".")
    return all(_HOSTNAME_LABEL.match(label) for label in labels)


def encode_sockaddr(address: Union[str, IPAddress], port: int = 0) -> bytes:
    """Build a raw ``struct sockaddr_in`` or ``sockaddr_in6`` for an address.

    Args:
        address: IPv4 or IPv6 address
        port: Port number (host order)

    Returns:
        Socket address bytes with the family field in host byte order

    Raises:
        ValueError: If address is not a valid IP address
    """
    parsed = ipaddress.ip_address(address)
    port_bytes = struct.pack("!H", port)
    if parsed.version == 4:
        return _SOCKADDR_IN.pack(socket.AF_INET, port_bytes, parsed.packed)
    return _SOCKADDR_IN6.pack(socket.AF_INET6, port_bytes, bytes(4), parsed.packed)


# Zeroed AF_INET socket address standing for the default route
DEFAULT_ROUTE_SOCKADDR = encode_sockaddr(DEFAULT_ROUTE_ADDRESS)


def decode_sockaddr(data: bytes) -> Optional[IPAddress]:
    """Extract the address from a raw ``struct sockaddr_in`` or ``sockaddr_in6``.

    Args:
        data: Socket address bytes, family field in host byte order

    Returns:
        Address, or None for other families and truncated buffers
    """
    if len(data) < _FAMILY.size:
        return None
    (family,) = _FAMILY.unpack_from(data)
    if family == socket.AF_INET and len(data) >= _SOCKADDR_IN.size:
        _family, _port, packed = _SOCKADDR_IN.unpack_from(data)
        return ipaddress.IPv4Address(packed)
    if family == socket.AF_INET6 and len(data) >= _SOCKADDR_IN6.size:
        _family, _port, _flowinfo, packed = _SOCKADDR_IN6.unpack_from(data)
        return ipaddress.IPv6Address(packed)
    return None


def parse_address(address: AddressInput) -> Optional[IPAddress]:
    """Parse a textual IP address or raw socket address bytes.

    Returns:
        Parsed address, or None if it is malformed
    """
    if isinstance(address, (bytes, bytearray)):
        return decode_sockaddr(bytes(address))
    try:
        return ipaddress.ip_address(address)
    except ValueError:
        return None


def make_hostname_target(hostname: str) -> Optional[TargetHandle]:
    """Create a hostname target, or None if the hostname is invalid."""
    if not is_valid_hostname(hostname):
        return None
    return TargetHandle(kind=TargetKind.HOSTNAME, hostname=hostname)


def make_address_target(address: AddressInput) -> Optional[TargetHandle]:
    """Create an address target, or None if the address is malformed.

    The unspecified IPv4 address 0.0.0.0, as text or a zeroed AF_INET
    socket address, identifies the default route.
    """
    parsed = parse_address(address)
    if parsed is None:
        return None
    kind = TargetKind.DEFAULT_ROUTE if parsed == DEFAULT_ROUTE_ADDRESS else TargetKind.ADDRESS
    return TargetHandle(kind=kind, address=parsed)


class ReachabilityFacility(ABC):
    """Abstract base class for reachability facilities."""

    @abstractmethod
    def create_with_name(self, hostname: str) -> Optional[TargetHandle]:
        """Create a target for a hostname. Returns None on failure."""

    @abstractmethod
    def create_with_address(self, address: AddressInput) -> Optional[TargetHandle]:
        """Create a target for an address. Returns None on failure."""

    @abstractmethod
    def get_flags(self, handle: TargetHandle) -> Optional[ReachabilityFlags]:
        """Read the current flags. Returns None if they cannot be read."""

    @abstractmethod
    def set_callback(self, handle: TargetHandle, callback: ChangeCallback) -> bool:
        """Register the flag-change callback for a target."""

    @abstractmethod
    def set_dispatch_queue(self, handle: TargetHandle, queue: DispatchQueue) -> bool:
        """Bind the queue on which the change callback is invoked."""

    @abstractmethod
    def clear_callback(self, handle: TargetHandle) -> None:
        """Remove the flag-change callback."""

    @abstractmethod
    def clear_dispatch_queue(self, handle: TargetHandle) -> None:
        """Unbind the dispatch queue."""

    @abstractmethod
    def release(self, handle: TargetHandle) -> None:
        """Release a target. The handle must not be used afterwards."""


@dataclass
class _MockTarget:
    flags: ReachabilityFlags
    callback: Optional[ChangeCallback] = None
    queue: Optional[DispatchQueue] = None
    registrations: int = 0


class MockReachabilityFacility(ReachabilityFacility):  # pylint: disable=too-many-instance-attributes
    """In-memory facility for testing without touching the network stack."""

    def __init__(self, initial_flags: ReachabilityFlags = ReachabilityFlags.NONE) -> None:
        """Initialize mock facility.

        Args:
            initial_flags: Flags reported by newly created targets
        """
        self._initial_flags = initial_flags
        self._targets: Dict[TargetHandle, _MockTarget] = {}
        self._lock = threading.Lock()

        # Failure injection
        self.fail_create = False
        self.fail_get_flags = False
        self.fail_set_callback = False
        self.fail_set_dispatch_queue = False
        self.fail_clear = False
        logger.info("MockReachabilityFacility initialized - no network access")

    def _register(self, handle: Optional[TargetHandle]) -> Optional[TargetHandle]:
        if handle is None or self.fail_create:
            return None
        with self._lock:
            self._targets[handle] = _MockTarget(flags=self._initial_flags)
        logger.debug("Mock target created: %s", handle.description)
        return handle

    def create_with_name(self, hostname: str) -> Optional[TargetHandle]:
        return self._register(make_hostname_target(hostname))

    def create_with_address(self, address: AddressInput) -> Optional[TargetHandle]:
        return self._register(make_address_target(address))

    def get_flags(self, handle: TargetHandle) -> Optional[ReachabilityFlags]:
        with self._lock:
            target = self._targets.get(handle)
            if target is None or self.fail_get_flags:
                return None
            return target.flags

    def set_callback(self, handle: TargetHandle, callback: ChangeCallback) -> bool:
        with self._lock:
            target = self._targets.get(handle)
            if target is None or self.fail_set_callback:
                return False
            target.callback = callback
            target.registrations += 1
            return True

    def set_dispatch_queue(self, handle: TargetHandle, queue: DispatchQueue) -> bool:
        with self._lock:
            target = self._targets.get(handle)
            if target is None or self.fail_set_dispatch_queue:
                return False
            target.queue = queue
            return True

    def clear_callback(self, handle: TargetHandle) -> None:
        with self._lock:
            target = self._targets.get(handle)
            if target is not None:
                target.callback = None
        if self.fail_clear:
            raise RuntimeError("Mock failure clearing callback")

    def clear_dispatch_queue(self, handle: TargetHandle) -> None:
        with self._lock:
            target = self._targets.get(handle)
            if target is not None:
                target.queue = None
        if self.fail_clear:
            raise RuntimeError("Mock failure clearing dispatch queue")

    def release(self, handle: TargetHandle) -> None:
        with self._lock:
            self._targets.pop(handle, None)
        logger.debug("Mock target released: %s", handle.description)

    # Mock-specific methods for testing

    def set_flags(
        self,
        flags: ReachabilityFlags,
        handle: Optional[TargetHandle] = None,
        force: bool = False,
    ) -> None:
        """Change the flags of one or all targets (for testing).

        This simulates the network configuration changing. Targets with a
        callback and a bound queue are notified on that queue when their flags
        change, or always when force is True.
        """
        to_notify = []
        with self._lock:
            handles = [handle] if handle is not None else list(self._targets)
            for h in handles:
                target = self._targets.get(h)
                if target is None:
                    continue
                changed = target.flags != flags
                target.flags = flags
                if (changed or force) and target.callback and target.queue:
                    to_notify.append((target.queue, target.callback, h))

        # Post outside of lock to avoid deadlock with callbacks reading flags
        for queue, callback, h in to_notify:
            queue.post(callback, h, flags)
            logger.debug("Mock flags changed: %s -> %s", h.description, describe_flags(flags))

    def get_target_state(self, handle: TargetHandle) -> Dict[str, Any]:
        """Get the state of a target (for testing)."""
        with self._lock:
            target = self._targets.get(handle)
            if target is None:
                return {"exists": False}
            return {
                "exists": True,
                "flags": target.flags,
                "has_callback": target.callback is not None,
                "has_queue": target.queue is not None,
                "registrations": target.registrations,
            }

    @property
    def target_count(self) -> int:
        """Number of live targets."""
        with self._lock:
            return len(self._targets)


@dataclass
class _Watch:
    callback: Optional[ChangeCallback] = None
    queue: Optional[DispatchQueue] = None
    thread: Optional[threading.Thread] = None
    stop_event: threading.Event = field(default_factory=threading.Event)
    last_flags: Optional[ReachabilityFlags] = None


def route_flags(line: str) -> ReachabilityFlags:
    """Derive reachability flags from one line of ``ip -o route`` output.

    Args:
        line: e.g. "8.8.8.8 via 192.168.1.1 dev wlan0 src 192.168.1.50 uid 1000"

    Returns:
        Flags describing the route, NONE if there is no usable route
    """
    tokens = line.split()
    if not tokens or tokens[0] in ("unreachable", "prohibit", "blackhole", "throw"):
        return ReachabilityFlags.NONE

    flags = ReachabilityFlags.REACHABLE
    device = tokens[tokens.index("dev") + 1] if "dev" in tokens[:-1] else None

    if tokens[0] == "local" or device == "lo":
        flags |= ReachabilityFlags.IS_LOCAL_ADDRESS | ReachabilityFlags.IS_DIRECT
    elif "via" not in tokens:
        flags |= ReachabilityFlags.IS_DIRECT

    if device is not None and is_cellular_interface(device):
        flags |= ReachabilityFlags.IS_CELLULAR
    return flags


class SystemReachabilityFacility(ReachabilityFacility):
    """Linux facility reading the kernel routing table through iproute2.

    Hostnames are resolved by the facility. Changes are detected by polling
    each watched target and comparing against the previous snapshot.
    """

    def __init__(self, poll_interval: float = 2.0, command_timeout: float = 3.0) -> None:
        """Initialize the facility.

        Args:
            poll_interval: Seconds between flag checks of a watched target
            command_timeout: Seconds to wait for each ``ip`` invocation
        """
        self._poll_interval = poll_interval
        self._command_timeout = command_timeout
        self._watches: Dict[TargetHandle, _Watch] = {}
        self._lock = threading.Lock()
        logger.debug("SystemReachabilityFacility initialized (poll_interval=%.1fs)", poll_interval)

    def create_with_name(self, hostname: str) -> Optional[TargetHandle]:
        handle = make_hostname_target(hostname)
        if handle is not None:
            with self._lock:
                self._watches[handle] = _Watch()
        return handle

    def create_with_address(self, address: AddressInput) -> Optional[TargetHandle]:
        handle = make_address_target(address)
        if handle is not None:
            with self._lock:
                self._watches[handle] = _Watch()
        return handle

    def _ip(self, args: List[str]) -> str:
        result = subprocess.run(
            ["ip", "-o", *args],
            check=True,
            capture_output=True,
            text=True,
            timeout=self._command_timeout,
        )
        return result.stdout

    def _resolve(self, handle: TargetHandle) -> Optional[str]:
        if handle.address is not None:
            return str(handle.address)
        try:
            infos = socket.getaddrinfo(handle.hostname, None, proto=socket.IPPROTO_TCP)
        except socket.gaierror as e:
            logger.debug("Could not resolve %s: %s", handle.hostname, e)
            return None
        return str(infos[0][4][0]) if infos else None

    def get_flags(self, handle: TargetHandle) -> Optional[ReachabilityFlags]:
        try:
            if handle.kind is TargetKind.DEFAULT_ROUTE:
                output = self._ip(["route", "show", "default"])
            else:
                address = self._resolve(handle)
                if address is None:
                    return ReachabilityFlags.NONE
                output = self._ip(["route", "get", address])
        except subprocess.CalledProcessError as e:
            # "RTNETLINK answers: Network is unreachable"
            logger.debug("No route to %s: %s", handle.description, (e.stderr or "").strip())
            return ReachabilityFlags.NONE
        except (FileNotFoundError, subprocess.TimeoutExpired) as e:
            logger.debug("Failed to read flags for %s: %s", handle.description, e)
            return None

        lines = [line for line in output.splitlines() if line.strip()]
        if not lines:
            return ReachabilityFlags.NONE
        return route_flags(lines[0])

    def set_callback(self, handle: TargetHandle, callback: ChangeCallback) -> bool:
        with self._lock:
            watch = self._watches.get(handle)
            if watch is None:
                return False
            watch.callback = callback
        self._update_polling(handle)
        return True

    def set_dispatch_queue(self, handle: TargetHandle, queue: DispatchQueue) -> bool:
        with self._lock:
            watch = self._watches.get(handle)
            if watch is None:
                return False
            watch.queue = queue
        self._update_polling(handle)
        return True

    def clear_callback(self, handle: TargetHandle) -> None:
        with self._lock:
            watch = self._watches.get(handle)
            if watch is not None:
                watch.callback = None
        self._update_polling(handle)

    def clear_dispatch_queue(self, handle: TargetHandle) -> None:
        with self._lock:
            watch = self._watches.get(handle)
            if watch is not None:
                watch.queue = None
        self._update_polling(handle)

    def release(self, handle: TargetHandle) -> None:
        self.clear_callback(handle)
        self.clear_dispatch_queue(handle)
        with self._lock:
            self._watches.pop(handle, None)

    def _update_polling(self, handle: TargetHandle) -> None:
        """Start or stop the poll thread to match the registration state."""
        to_join: Optional[threading.Thread] = None
        with self._lock:
            watch = self._watches.get(handle)
            if watch is None:
                return
            active = watch.callback is not None and watch.queue is not None

            if active and watch.thread is None:
                watch.stop_event = threading.Event()
                watch.last_flags = None
                watch.thread = threading.Thread(
                    target=self._poll_loop,
                    args=(handle, watch, watch.stop_event),
                    daemon=True,
                    name=f"ReachabilityPoll-{handle.id}",
                )
                watch.thread.start()
                logger.debug("Polling started for %s", handle.description)
            elif not active and watch.thread is not None:
                watch.stop_event.set()
                to_join = watch.thread
                watch.thread = None

        # Wait for thread to finish (outside lock)
        if to_join is not None and to_join is not threading.current_thread():
            to_join.join(timeout=self._command_timeout + 1.0)
            logger.debug("Polling stopped for %s", handle.description)

    def _poll_loop(self, handle: TargetHandle, watch: _Watch, stop_event: threading.Event) -> None:
        """Background loop that reports flag changes for one target."""
        watch.last_flags = self.get_flags(handle)

        while not stop_event.wait(timeout=self._poll_interval):
            flags = self.get_flags(handle)
            if flags is None or flags == watch.last_flags:
                continue
            watch.last_flags = flags

            with self._lock:
                callback = watch.callback
                queue = watch.queue
            if stop_event.is_set() or callback is None or queue is None:
                return

            logger.debug("Flags changed for %s: %s", handle.description, describe_flags(flags))
            queue.post(callback, handle, flags)


def get_facility(mock: bool, poll_interval: float = 2.0) -> ReachabilityFacility:
    """Get the appropriate facility implementation.

    Args:
        mock: If True, use the mock facility. If False, use the system facility.
        poll_interval: Seconds between checks for the system facility

    Returns:
        ReachabilityFacility implementation
    """
    if mock:
        return MockReachabilityFacility()
    return SystemReachabilityFacility(poll_interval=poll_interval)
