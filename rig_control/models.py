"""
Canonical Rig Model
矿机统一数据模型

Vendor independent value objects shared by the whole fleet. Stat values are
carried as strings in a fixed textual form because several consumers rely on
the exact representation.
"""
import re
from dataclasses import dataclass, field
from decimal import Decimal
from types import MappingProxyType
from typing import Mapping, Optional, Tuple, Union

HASHRATE_PLACES = 4
TEMPERATURE_PLACES = 1

_MAC_SEPARATORS = re.compile(r'[:\-.]')
_HEX12 = re.compile(r'^[0-9a-f]{12}$')


def format_decimal(value: Union[Decimal, int], places: int) -> str:
    """Fixed-point text with ``places`` decimals and no separators"""
    if not isinstance(value, Decimal):
        value = Decimal(value)
    return f"{value:.{places}f}"


def format_count(value: int) -> str:
    return str(int(value))


def short_name(mac_address: str) -> str:
    """
    Stable short rig name derived from a MAC address.

    The NIC-specific half of the address (last six hex digits) is used, so the
    same rig gets the same name whichever vendor adapter reports it.
    """
    normalized = _MAC_SEPARATORS.sub('', (mac_address or '').strip().lower())
    if not _HEX12.match(normalized):
        raise ValueError(f"Invalid MAC address: {mac_address!r}")
    return normalized[-6:]


@dataclass(frozen=True)
class RigAddress:
    ip_address: str
    hostname: str
    name: str
    mac_address: str


@dataclass(frozen=True)
class RigIdentity:
    rig: RigAddress
    model: str
    manufacturer: str
    hardware_version: str
    firmware_version: str
    miner_version: str
    algorithms: Tuple[str, ...] = ()
    uptime_seconds: Optional[int] = None


@dataclass(frozen=True)
class DeviceStat:
    chips: str
    frequency: str
    temp_chip: str
    hardware_errors: str
    hashrate: str


@dataclass(frozen=True)
class PoolStat:
    url: str
    user: str
    algorithm: str
    status: str
    stratum_active: bool
    priority: int
    getworks: str
    accepted: str
    rejected: str
    discarded: str
    stale: str
    difficulty_accepted: str
    difficulty_rejected: str
    difficulty_stale: str
    last_share_difficulty: str
    last_share_time: str


@dataclass(frozen=True)
class SystemStat:
    temp_cpu: Optional[str] = None


@dataclass(frozen=True)
class RigStatSnapshot:
    mhs_5s: str
    mhs_average: str
    khs_5s: str
    khs_average: str
    accepted: str
    rejected: str
    hardware_errors: str
    utility: str
    system: SystemStat = field(default_factory=SystemStat)
    devices: Tuple[DeviceStat, ...] = ()
    pools: Tuple[PoolStat, ...] = ()


@dataclass(frozen=True)
class PoolSetting:
    url: str
    user: str
    password: str = ''
    algorithm: str = ''


@dataclass(frozen=True)
class MinerSetting:
    """Canonical miner settings; pool order is pool priority"""
    pools: Tuple[PoolSetting, ...] = ()
    options: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, 'pools', tuple(self.pools))
        object.__setattr__(self, 'options', MappingProxyType(dict(self.options)))

    def __eq__(self, other):
        if not isinstance(other, MinerSetting):
            return NotImplemented
        return self.pools == other.pools and dict(self.options) == dict(other.options)

    def __hash__(self):
        return hash((self.pools, tuple(sorted(self.options.items()))))
