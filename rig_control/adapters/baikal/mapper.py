"""
Baikal Canonical Mapper
Baikal统一模型映射

Firmware families of the same vendor report identity under different field
names. Each family is described by a FieldMap lookup table instead of
conditionals at every call site.
"""
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from ...errors import InconsistentTelemetryError, MalformedResponseError, UnsupportedSettingError
from ...models import (HASHRATE_PLACES, TEMPERATURE_PLACES, DeviceStat, MinerSetting, PoolSetting,
                       PoolStat, RigAddress, RigIdentity, RigStatSnapshot, SystemStat,
                       format_count, format_decimal, short_name)
from ..base import CanonicalMapper
from .constants import MANUFACTURER, MAX_POOLS, MODEL_ALGORITHMS, SUPPORTED_ALGORITHMS
from .parser import (BOOL_OPTIONS, MinerSettingRaw, PoolSettingRaw, StatsReport, SystemInfo)


@dataclass(frozen=True)
class FieldMap:
    """Where one firmware family keeps each identity fact"""
    family: str
    firmware_version: str
    ip_from_connection: bool
    reports_cpu_temp: bool
    reports_uptime: bool


SCRIPTA_FIELDS = FieldMap(
    family='scripta',
    firmware_version='kernel_version',
    ip_from_connection=False,
    reports_cpu_temp=True,
    reports_uptime=True,
)

LEGACY_FIELDS = FieldMap(
    family='legacy',
    firmware_version='filesystem_version',
    ip_from_connection=True,
    reports_cpu_temp=False,
    reports_uptime=False,
)

FIELD_MAPS = {f.family: f for f in (SCRIPTA_FIELDS, LEGACY_FIELDS)}

# canonical option key -> MinerSettingRaw attribute
OPTION_FIELDS = {
    'api_listen': 'api_listen',
    'api_port': 'api_port',
    'api_allow': 'api_allow',
    'failover_only': 'failover_only',
    'no_pool_disable': 'no_pool_disable',
}


def algorithms_for(model: str) -> Tuple[str, ...]:
    """Algorithms a model can mine; unknown models yield an empty tuple"""
    return MODEL_ALGORITHMS.get((model or '').strip(), ())


def _hashrate(value) -> str:
    return format_decimal(value, HASHRATE_PLACES)


def _bool_text(value: bool) -> str:
    return 'true' if value else 'false'


class BaikalMapper(CanonicalMapper):

    def __init__(self, field_map: FieldMap = SCRIPTA_FIELDS):
        self.field_map = field_map

    # -- forward -----------------------------------------------------------

    def to_identity(self, system_info: SystemInfo, peer_address: str = "") -> RigIdentity:
        fields = self.field_map
        if fields.ip_from_connection:
            ip_address = peer_address
        else:
            ip_address = system_info.ip_address
        if not ip_address:
            source = 'connection' if fields.ip_from_connection else 'ip_address'
            raise MalformedResponseError(f"rig IP address unavailable from {source}",
                                         command='system_info', field=source)

        return RigIdentity(
            rig=RigAddress(
                ip_address=ip_address,
                hostname=system_info.hostname,
                name=short_name(system_info.mac_address),
                mac_address=system_info.mac_address,
            ),
            model=system_info.product_type,
            manufacturer=MANUFACTURER,
            hardware_version=system_info.product_version,
            firmware_version=getattr(system_info, fields.firmware_version),
            miner_version=system_info.miner_version,
            algorithms=algorithms_for(system_info.product_type),
            uptime_seconds=system_info.uptime_seconds if fields.reports_uptime else None,
        )

    def to_stat(self, report: StatsReport) -> RigStatSnapshot:
        if len(report.stats) != len(report.devs):
            raise InconsistentTelemetryError(devices=len(report.devs), stats=len(report.stats))

        devices = tuple(
            DeviceStat(
                chips=format_count(clock.chip_count),
                frequency=format_count(clock.clock),
                temp_chip=format_decimal(dev.temperature, TEMPERATURE_PLACES),
                hardware_errors=format_count(dev.hardware_errors),
                hashrate=_hashrate(dev.mhs_5s),
            )
            for dev, clock in zip(report.devs, report.stats)
        )

        pools = tuple(
            PoolStat(
                url=p.url,
                user=p.user,
                algorithm=p.algorithm,
                status=p.status,
                stratum_active=p.stratum_active,
                priority=p.priority,
                getworks=format_count(p.getworks),
                accepted=format_count(p.accepted),
                rejected=format_count(p.rejected),
                discarded=format_count(p.discarded),
                stale=format_count(p.stale),
                difficulty_accepted=_hashrate(p.difficulty_accepted),
                difficulty_rejected=_hashrate(p.difficulty_rejected),
                difficulty_stale=_hashrate(p.difficulty_stale),
                last_share_difficulty=_hashrate(p.last_share_difficulty),
                last_share_time=format_count(p.last_share_time),
            )
            for p in report.pools
        )

        temp_cpu = None
        if self.field_map.reports_cpu_temp and report.temp_cpu is not None:
            temp_cpu = format_decimal(report.temp_cpu, TEMPERATURE_PLACES)

        s = report.summary
        return RigStatSnapshot(
            mhs_5s=_hashrate(s.mhs_5s),
            mhs_average=_hashrate(s.mhs_av),
            khs_5s=_hashrate(s.khs_5s),
            khs_average=_hashrate(s.khs_av),
            accepted=format_count(s.accepted),
            rejected=format_count(s.rejected),
            hardware_errors=format_count(s.hardware_errors),
            utility=_hashrate(s.utility),
            system=SystemStat(temp_cpu=temp_cpu),
            devices=devices,
            pools=pools,
        )

    def to_setting(self, miner_setting: MinerSettingRaw,
                   pools: Sequence[PoolSettingRaw]) -> MinerSetting:
        options = {}
        for key, attr in OPTION_FIELDS.items():
            value = getattr(miner_setting, attr)
            if value is None:
                continue
            options[key] = _bool_text(value) if attr in BOOL_OPTIONS else value

        return MinerSetting(
            pools=tuple(
                PoolSetting(url=p.url, user=p.user, password=p.password, algorithm=p.algo)
                for p in pools
            ),
            options=options,
        )

    # -- inverse -----------------------------------------------------------

    def _option(self, key: str, value: str):
        attr = OPTION_FIELDS[key]
        if not isinstance(value, str):
            raise UnsupportedSettingError(f"Option '{key}' must be a string", field=key, value=value)
        if attr in BOOL_OPTIONS:
            if value not in ('true', 'false'):
                raise UnsupportedSettingError(f"Option '{key}' must be 'true' or 'false', got {value!r}",
                                              field=key, value=value)
            return value == 'true'
        if attr == 'api_port':
            if not (value.isascii() and value.isdigit()) or not 1 <= int(value) <= 65535:
                raise UnsupportedSettingError(f"Option '{key}' must be a port number, got {value!r}",
                                              field=key, value=value)
        return value

    def _allowed_algorithms(self, model: Optional[str]):
        known = algorithms_for(model) if model else ()
        return frozenset(known) if known else SUPPORTED_ALGORITHMS

    def to_vendor_native(self, setting: MinerSetting,
                         model: Optional[str] = None) -> Tuple[MinerSettingRaw, List[PoolSettingRaw]]:
        values = {}
        for key, value in setting.options.items():
            if key not in OPTION_FIELDS:
                raise UnsupportedSettingError(f"Option '{key}' is not supported by {MANUFACTURER} firmware",
                                              field=key, value=value)
            values[OPTION_FIELDS[key]] = self._option(key, value)

        if len(setting.pools) > MAX_POOLS:
            raise UnsupportedSettingError(
                f"{MANUFACTURER} firmware holds at most {MAX_POOLS} pools, got {len(setting.pools)}",
                field='pools', value=len(setting.pools)
            )

        allowed = self._allowed_algorithms(model)
        pools = []
        for i, pool in enumerate(setting.pools):
            if not pool.url:
                raise UnsupportedSettingError(f"Pool {i} has no URL", field=f"pools[{i}].url", value=pool.url)
            if pool.algorithm and pool.algorithm not in allowed:
                raise UnsupportedSettingError(
                    f"Algorithm '{pool.algorithm}' is not supported"
                    + (f" by model '{model}'" if model and algorithms_for(model) else ""),
                    field=f"pools[{i}].algorithm", value=pool.algorithm
                )
            pools.append(PoolSettingRaw(url=pool.url, user=pool.user,
                                        password=pool.password, algo=pool.algorithm))

        return MinerSettingRaw(**values), pools
