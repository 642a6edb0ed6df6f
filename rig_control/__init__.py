"""
Rig Control - ASIC矿机客户端适配层
ASIC Rig Client Adapter Layer

模块结构:
- transport.py: SSH传输会话 (paramiko)
- rpc_codec.py: 矿机API编解码
- command_runner.py: Shell/API命令执行 (超时与取消)
- models.py: 统一数据模型
- adapters/: 厂商适配器 (解析 + 统一映射 + 客户端)
"""

from .command_runner import CommandRunner, Deadline
from .config import Config
from .errors import (
    InconsistentTelemetryError,
    MalformedResponseError,
    PartialSettingsWriteError,
    ProtocolError,
    RigControlError,
    TransportError,
    TransportErrorKind,
    UnsupportedSettingError,
)
from .models import (
    DeviceStat,
    MinerSetting,
    PoolSetting,
    PoolStat,
    RigAddress,
    RigIdentity,
    RigStatSnapshot,
    SystemStat,
    short_name,
)
from .transport import SSHSession, TransportSession

__all__ = [
    'CommandRunner',
    'Deadline',
    'Config',
    'RigControlError',
    'TransportError',
    'TransportErrorKind',
    'ProtocolError',
    'MalformedResponseError',
    'InconsistentTelemetryError',
    'UnsupportedSettingError',
    'PartialSettingsWriteError',
    'RigAddress',
    'RigIdentity',
    'DeviceStat',
    'PoolStat',
    'SystemStat',
    'RigStatSnapshot',
    'PoolSetting',
    'MinerSetting',
    'short_name',
    'SSHSession',
    'TransportSession',
]
