#!/usr/bin/env -S python3 -B -u
"""
Data Models for fasttrace

This module provides type-safe data models using dataclasses and type hints
for the core data structures of the session runner.

Key Features:
- Immutable models for catalog entries, preferences and run configurations
- Validation of IP addresses at construction time
- JSON-friendly dictionaries for hops and results
"""

from dataclasses import dataclass, field, asdict
from typing import Dict, List, Optional, Any, Callable, Tuple
from ipaddress import ip_address
from enum import Enum

from fasttrace.core.exceptions import CatalogError, InvalidIPError, TracerouteError


# Fixed probe parameters. These are not user tunable.
BEGIN_HOP = 1
DEST_PORT = 80
MAX_HOPS = 30
NUM_MEASUREMENTS = 3
PARALLEL_REQUESTS = 18
PROBE_TIMEOUT = 1.0  # seconds
PACKET_SIZE = 32

DEFAULT_DATA_ORIGIN = "LeoMoeAPI"
DEFAULT_TABLE_PAUSE = 3.0


class TracerouteMethod(str, Enum):
    """Probe method, fixed for the whole session."""
    ICMP = "icmp"
    TCP_SYN = "tcp"


class Carrier(str, Enum):
    """Carrier networks covered by the target catalog."""
    CT163 = "CT163"
    CTCN2 = "CTCN2"
    CU169 = "CU169"
    CU9929 = "CU9929"
    CM = "CM"
    EDU = "EDU"
    CST = "CST"

    @property
    def display_name(self) -> str:
        return CARRIER_DISPLAY_NAMES[self]


CARRIER_DISPLAY_NAMES = {
    Carrier.CT163: "China Telecom 163",
    Carrier.CTCN2: "China Telecom CN2",
    Carrier.CU169: "China Unicom 169",
    Carrier.CU9929: "China Unicom 9929",
    Carrier.CM: "China Mobile",
    Carrier.EDU: "CERNET",
    Carrier.CST: "CSTNET",
}


class CarrierGroup(str, Enum):
    """Carrier groups selectable from the menu."""
    TELECOM = "China Telecom"
    UNICOM = "China Unicom"
    MOBILE = "China Mobile"
    EDUCATION = "Education Network"


@dataclass(frozen=True)
class VantagePoint:
    """
    A named traceroute destination in the target catalog.

    Immutable; the IP address is validated on construction.
    """
    location: str
    carrier: Carrier
    ip: str

    def __post_init__(self):
        try:
            ip_address(self.ip)
        except ValueError as e:
            raise CatalogError(self.location, self.carrier.value, self.ip, cause=e) from e

    @property
    def carrier_name(self) -> str:
        return self.carrier.display_name


@dataclass(frozen=True)
class Preference:
    """User preferences, read once at session start."""
    data_origin: str = DEFAULT_DATA_ORIGIN
    no_rdns: bool = False
    table_print_default: bool = False
    always_route_path: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class FastTraceConfig:
    """
    Immutable session configuration.

    Built once from the preference store and passed by reference into the
    session components.
    """
    preference: Preference = field(default_factory=Preference)
    token: str = ""
    table_pause: float = DEFAULT_TABLE_PAUSE

    def to_dict(self) -> Dict[str, Any]:
        result = self.preference.to_dict()
        result.update({'token': self.token, 'table_pause': self.table_pause})
        return result


@dataclass(frozen=True)
class GeoLocation:
    """Geographic annotation of a hop address."""
    asnumber: str = ""
    country: str = ""
    prov: str = ""
    city: str = ""
    district: str = ""
    owner: str = ""
    isp: str = ""

    @property
    def place(self) -> str:
        """Human readable location, most significant part first."""
        parts = []
        for part in (self.country, self.prov, self.city, self.district):
            if part and part not in parts:
                parts.append(part)
        return " ".join(parts)

    @property
    def operator(self) -> str:
        return self.owner or self.isp


@dataclass
class Hop:
    """
    One traceroute hop.

    ``rtts`` holds one entry per measurement; ``None`` marks a lost probe.
    """
    ttl: int
    addresses: List[str] = field(default_factory=list)
    rtts: List[Optional[float]] = field(default_factory=list)
    hostname: Optional[str] = None
    geo: Optional[GeoLocation] = None

    @property
    def ip(self) -> Optional[str]:
        return self.addresses[0] if self.addresses else None

    @property
    def timed_out(self) -> bool:
        return not self.addresses

    @property
    def avg_rtt(self) -> Optional[float]:
        samples = [rtt for rtt in self.rtts if rtt is not None]
        if not samples:
            return None
        return round(sum(samples) / len(samples), 2)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'ttl': self.ttl,
            'addresses': list(self.addresses),
            'rtts': list(self.rtts),
            'hostname': self.hostname,
            'geo': asdict(self.geo) if self.geo else None,
        }


@dataclass(frozen=True)
class ProbeResult:
    """Ordered hop records of one completed probe run."""
    dest_ip: str
    method: TracerouteMethod
    hops: Tuple[Hop, ...] = ()

    @property
    def reached(self) -> bool:
        return any(self.dest_ip in hop.addresses for hop in self.hops)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'dest_ip': self.dest_ip,
            'method': self.method.value,
            'reached': self.reached,
            'hops': [hop.to_dict() for hop in self.hops],
        }


@dataclass(frozen=True)
class ProbeRunConfig:
    """
    Fully specified configuration of a single probe run.

    Constructed fresh per target and consumed once by the probe executor.
    """
    dest_ip: str
    enable_rdns: bool
    geo_source: Any
    streaming_sink: Optional[Callable[[Hop], None]] = None
    begin_hop: int = BEGIN_HOP
    dest_port: int = DEST_PORT
    max_hops: int = MAX_HOPS
    num_measurements: int = NUM_MEASUREMENTS
    parallel_requests: int = PARALLEL_REQUESTS
    timeout: float = PROBE_TIMEOUT

    def __post_init__(self):
        if not self.dest_ip:
            raise InvalidIPError(self.dest_ip)
        try:
            ip_address(self.dest_ip)
        except ValueError as e:
            raise InvalidIPError(self.dest_ip, cause=e) from e

    @property
    def streaming(self) -> bool:
        return self.streaming_sink is not None


@dataclass(frozen=True)
class ProbeOutcome:
    """Result type of a probe run: either a result or an error."""
    result: Optional[ProbeResult] = None
    error: Optional[TracerouteError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class SessionStatus(str, Enum):
    """Terminal status of a session or group run."""
    COMPLETED = "completed"
    FAILED = "failed"
    INTERRUPTED = "interrupted"


class SessionState(str, Enum):
    """States of the session state machine."""
    IDLE = "idle"
    MENU_PROMPT = "menu_prompt"
    CONNECTION_OPEN = "connection_open"
    RUNNING = "running"
    SESSION_COMPLETE = "session_complete"
    FATAL_ABORT = "fatal_abort"


@dataclass(frozen=True)
class SessionOutcome:
    """Result type returned up through the sequencer to the driver."""
    status: SessionStatus
    runs_completed: int = 0
    error: Optional[TracerouteError] = None

    @property
    def ok(self) -> bool:
        return self.status == SessionStatus.COMPLETED

    def then(self, other: 'SessionOutcome') -> 'SessionOutcome':
        """Combine with the outcome of a following run."""
        return SessionOutcome(
            status=other.status,
            runs_completed=self.runs_completed + other.runs_completed,
            error=other.error,
        )
