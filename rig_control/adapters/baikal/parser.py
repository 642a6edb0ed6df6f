"""
Baikal Response Parser
Baikal响应解析器

Turns decoded API replies and shell output into typed vendor-native records.
A missing or mistyped required field raises MalformedResponseError; it is
never replaced by zero or an empty value.
"""
import json
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from ...errors import MalformedResponseError
from ...models import short_name
from ...rpc_codec import decode_key_values

KHS_PER_MHS = Decimal(1000)
_INTEGER = re.compile(r'^-?[0-9]+$')
MILLIDEGREES = Decimal(1000)


@dataclass(frozen=True)
class SystemInfo:
    hostname: str
    mac_address: str
    ip_address: str
    kernel_version: str
    filesystem_version: str
    product_type: str
    product_version: str
    miner_version: str
    uptime_seconds: Optional[int] = None


@dataclass(frozen=True)
class Summary:
    elapsed: int
    mhs_5s: Decimal
    mhs_av: Decimal
    khs_5s: Decimal
    khs_av: Decimal
    accepted: int
    rejected: int
    hardware_errors: int
    utility: Decimal


@dataclass(frozen=True)
class DeviceReport:
    name: str
    temperature: Decimal
    hardware_errors: int
    mhs_5s: Decimal


@dataclass(frozen=True)
class ClockReport:
    id: str
    chip_count: int
    clock: int


@dataclass(frozen=True)
class PoolReport:
    pool: int
    url: str
    user: str
    algorithm: str
    status: str
    stratum_active: bool
    priority: int
    getworks: int
    accepted: int
    rejected: int
    discarded: int
    stale: int
    difficulty_accepted: Decimal
    difficulty_rejected: Decimal
    difficulty_stale: Decimal
    last_share_difficulty: Decimal
    last_share_time: int


@dataclass(frozen=True)
class StatsReport:
    summary: Summary
    devs: Tuple[DeviceReport, ...]
    stats: Tuple[ClockReport, ...]
    pools: Tuple[PoolReport, ...]
    temp_cpu: Optional[Decimal] = None


@dataclass(frozen=True)
class MinerSettingRaw:
    """Supported subset of miner.options.json"""
    api_listen: Optional[bool] = None
    api_port: Optional[str] = None
    api_allow: Optional[str] = None
    failover_only: Optional[bool] = None
    no_pool_disable: Optional[bool] = None


@dataclass(frozen=True)
class PoolSettingRaw:
    url: str
    user: str
    password: str = ''
    algo: str = ''


# vendor document key -> MinerSettingRaw attribute
OPTION_KEYS = {
    'api-listen': 'api_listen',
    'api-port': 'api_port',
    'api-allow': 'api_allow',
    'failover-only': 'failover_only',
    'no-pool-disable': 'no_pool_disable',
}
BOOL_OPTIONS = frozenset({'api_listen', 'failover_only', 'no_pool_disable'})


def _malformed(command: str, key: str, problem: str) -> MalformedResponseError:
    return MalformedResponseError(f"{command}: field '{key}' {problem}", command=command, field=key)


def _require(record: Mapping[str, Any], key: str, command: str) -> Any:
    if not isinstance(record, Mapping):
        raise _malformed(command, key, "has no enclosing record")
    if key not in record or record[key] is None:
        raise _malformed(command, key, "is missing")
    return record[key]


def _str(record, key, command) -> str:
    value = _require(record, key, command)
    if not isinstance(value, str):
        raise _malformed(command, key, f"must be a string, got {type(value).__name__}")
    return value


def _int(record, key, command) -> int:
    value = _require(record, key, command)
    if isinstance(value, bool):
        raise _malformed(command, key, "must be an integer, got bool")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and _INTEGER.match(value.strip()):
        return int(value.strip())
    raise _malformed(command, key, f"must be an integer, got {value!r}")


def _decimal(record, key, command) -> Decimal:
    value = _require(record, key, command)
    if isinstance(value, bool):
        raise _malformed(command, key, "must be a number, got bool")
    if isinstance(value, (int, Decimal)):
        return Decimal(value)
    if isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation:
            raise _malformed(command, key, f"must be a number, got {value!r}")
        if result.is_finite():
            return result
    raise _malformed(command, key, f"must be a number, got {value!r}")


def _bool(record, key, command) -> bool:
    value = _require(record, key, command)
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ('true', 'false'):
        return value.lower() == 'true'
    raise _malformed(command, key, f"must be a boolean, got {value!r}")


def _records(response: Mapping[str, Any], section: str, command: str) -> List[Mapping[str, Any]]:
    value = _require(response, section, command)
    if not isinstance(value, list) or not all(isinstance(r, Mapping) for r in value):
        raise _malformed(command, section, "must be a list of records")
    return value


# -- system info -------------------------------------------------------------

def parse_version(response: Mapping[str, Any]) -> str:
    """Miner software version from a ``version`` reply"""
    records = _records(response, 'VERSION', 'version')
    if not records:
        raise _malformed('version', 'VERSION', "is empty")
    for key in ('SGMiner', 'CGMiner', 'BMMiner'):
        if key in records[0]:
            return _str(records[0], key, 'version')
    raise _malformed('version', 'SGMiner', "is missing")


def parse_system_info(output: str, miner_version: str) -> SystemInfo:
    """
    Build SystemInfo from the identity script output

    Args:
        output: key=value lines printed by SYSTEM_INFO_CMD
        miner_version: Result of parse_version
    """
    command = 'system_info'
    values = decode_key_values(output)

    hostname = _str(values, 'hostname', command)
    if not hostname:
        raise _malformed(command, 'hostname', "is empty")

    mac_address = _str(values, 'mac_address', command)
    try:
        short_name(mac_address)
    except ValueError:
        raise _malformed(command, 'mac_address', f"is not a MAC address: {mac_address!r}")

    uptime = _str(values, 'uptime', command)
    uptime_seconds = int(_decimal(values, 'uptime', command)) if uptime else None

    return SystemInfo(
        hostname=hostname,
        mac_address=mac_address.lower(),
        ip_address=_str(values, 'ip_address', command),
        kernel_version=_str(values, 'kernel_version', command),
        filesystem_version=_str(values, 'filesystem_version', command),
        product_type=_str(values, 'product_type', command),
        product_version=_str(values, 'product_version', command),
        miner_version=miner_version,
        uptime_seconds=uptime_seconds,
    )


# -- stats -------------------------------------------------------------------

def parse_summary(response: Mapping[str, Any]) -> Summary:
    command = 'summary'
    records = _records(response, 'SUMMARY', command)
    if len(records) != 1:
        raise _malformed(command, 'SUMMARY', f"must hold exactly one record, got {len(records)}")
    s = records[0]

    mhs_5s = _decimal(s, 'MHS 5s', command)
    mhs_av = _decimal(s, 'MHS av', command)
    # Firmware without KHS fields: convert exactly from MHS
    khs_5s = _decimal(s, 'KHS 5s', command) if 'KHS 5s' in s else mhs_5s * KHS_PER_MHS
    khs_av = _decimal(s, 'KHS av', command) if 'KHS av' in s else mhs_av * KHS_PER_MHS

    return Summary(
        elapsed=_int(s, 'Elapsed', command),
        mhs_5s=mhs_5s,
        mhs_av=mhs_av,
        khs_5s=khs_5s,
        khs_av=khs_av,
        accepted=_int(s, 'Accepted', command),
        rejected=_int(s, 'Rejected', command),
        hardware_errors=_int(s, 'Hardware Errors', command),
        utility=_decimal(s, 'Utility', command),
    )


def parse_devs(response: Mapping[str, Any]) -> Tuple[DeviceReport, ...]:
    command = 'devs'
    devices = []
    for record in _records(response, 'DEVS', command):
        devices.append(DeviceReport(
            name=str(record.get('Name', '')),
            temperature=_decimal(record, 'Temperature', command),
            hardware_errors=_int(record, 'Hardware Errors', command),
            mhs_5s=_decimal(record, 'MHS 5s', command),
        ))
    return tuple(devices)


def parse_clock_stats(response: Mapping[str, Any]) -> Tuple[ClockReport, ...]:
    command = 'stats'
    clocks = []
    for record in _records(response, 'STATS', command):
        clocks.append(ClockReport(
            id=str(record.get('ID', '')),
            chip_count=_int(record, 'Chip Count', command),
            clock=_int(record, 'Clock', command),
        ))
    return tuple(clocks)


def parse_pools(response: Mapping[str, Any]) -> Tuple[PoolReport, ...]:
    command = 'pools'
    pools = []
    for p in _records(response, 'POOLS', command):
        pools.append(PoolReport(
            pool=_int(p, 'POOL', command),
            url=_str(p, 'URL', command),
            user=_str(p, 'User', command),
            algorithm=_str(p, 'Algorithm', command),
            status=_str(p, 'Status', command),
            stratum_active=_bool(p, 'Stratum Active', command),
            priority=_int(p, 'Priority', command),
            getworks=_int(p, 'Getworks', command),
            accepted=_int(p, 'Accepted', command),
            rejected=_int(p, 'Rejected', command),
            discarded=_int(p, 'Discarded', command),
            stale=_int(p, 'Stale', command),
            difficulty_accepted=_decimal(p, 'Difficulty Accepted', command),
            difficulty_rejected=_decimal(p, 'Difficulty Rejected', command),
            difficulty_stale=_decimal(p, 'Difficulty Stale', command),
            last_share_difficulty=_decimal(p, 'Last Share Difficulty', command),
            last_share_time=_int(p, 'Last Share Time', command),
        ))
    return tuple(pools)


def parse_cpu_temperature(output: str) -> Decimal:
    """Thermal zone reading in millidegrees -> degrees Celsius"""
    return _decimal({'temp': output.strip()}, 'temp', 'cpu_temperature') / MILLIDEGREES


def parse_stats_report(sections: Mapping[str, Mapping[str, Any]],
                       temp_cpu: Optional[Decimal] = None) -> StatsReport:
    """
    Args:
        sections: command -> reply for summary, devs, stats and pools
        temp_cpu: Optional CPU temperature already parsed
    """
    for command in ('summary', 'devs', 'stats', 'pools'):
        if command not in sections:
            raise MalformedResponseError(f"stats report lacks '{command}' reply", command=command)
    return StatsReport(
        summary=parse_summary(sections['summary']),
        devs=parse_devs(sections['devs']),
        stats=parse_clock_stats(sections['stats']),
        pools=parse_pools(sections['pools']),
        temp_cpu=temp_cpu,
    )


# -- settings documents ------------------------------------------------------

def _load_document(output: str, command: str) -> Any:
    try:
        return json.loads(output)
    except json.JSONDecodeError as e:
        raise MalformedResponseError(f"{command}: invalid JSON document: {e}", command=command)


def parse_options_document(output: str) -> Dict[str, Any]:
    """Whole miner.options.json, including keys MinerSettingRaw does not model"""
    document = _load_document(output, 'miner_options')
    if not isinstance(document, dict):
        raise _malformed('miner_options', '', "must be a JSON object")
    return document


def parse_miner_setting(output: str) -> MinerSettingRaw:
    command = 'miner_options'
    document = parse_options_document(output)

    values = {}
    for key, attr in OPTION_KEYS.items():
        if key not in document:
            continue
        if attr in BOOL_OPTIONS:
            values[attr] = _bool(document, key, command)
        elif attr == 'api_port':
            values[attr] = str(_int(document, key, command))
        else:
            values[attr] = _str(document, key, command)
    return MinerSettingRaw(**values)


def parse_pool_settings(output: str) -> Tuple[PoolSettingRaw, ...]:
    command = 'miner_pools'
    document = _load_document(output, command)
    if not isinstance(document, list):
        raise _malformed(command, '', "must be a JSON list")

    pools = []
    for entry in document:
        if not isinstance(entry, dict):
            raise _malformed(command, '', "entries must be JSON objects")
        pools.append(PoolSettingRaw(
            url=_str(entry, 'url', command),
            user=_str(entry, 'user', command),
            password=_str(entry, 'pass', command) if 'pass' in entry else '',
            algo=_str(entry, 'algo', command) if 'algo' in entry else '',
        ))
    return tuple(pools)


def dump_miner_setting(setting: MinerSettingRaw,
                       current: Optional[Mapping[str, Any]] = None) -> bytes:
    """
    Serialize ``setting`` over the document currently on the rig.

    Supported keys are replaced (a None field removes the key); every other
    key of ``current`` is written back unchanged.
    """
    document: Dict[str, Any] = {k: v for k, v in (current or {}).items() if k not in OPTION_KEYS}
    for key, attr in OPTION_KEYS.items():
        value = getattr(setting, attr)
        if value is not None:
            document[key] = value
    return json.dumps(document, indent=2).encode('utf-8')


def dump_pool_settings(pools: Sequence[PoolSettingRaw]) -> bytes:
    document = [
        {'url': p.url, 'user': p.user, 'pass': p.password, 'algo': p.algo}
        for p in pools
    ]
    return json.dumps(document, indent=2).encode('utf-8')
