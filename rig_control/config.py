"""
Rig Control Configuration
矿机控制配置

Environment:
    RIG_SSH_PORT: SSH port of rigs (default: 22)
    RIG_SSH_USER: SSH login (default: baikal)
    RIG_SSH_PASSWORD: SSH password (default: baikal)
    RIG_CONNECT_TIMEOUT: SSH connect timeout in seconds (default: 10)
    RIG_COMMAND_TIMEOUT: Default per-call deadline in seconds (default: 30)
    RIG_API_HOST: Miner API host as seen from the rig (default: 127.0.0.1)
    RIG_API_PORT: Miner API port (default: 4028)
    RIG_REBOOT_DELAY_MINUTES: Delay before an OS reboot (default: 5)
"""
import os
from dataclasses import dataclass


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got: {raw!r}")


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got: {raw!r}")


@dataclass(frozen=True)
class Config:
    ssh_port: int = 22
    ssh_user: str = 'baikal'
    ssh_password: str = 'baikal'
    connect_timeout: float = 10.0
    command_timeout: float = 30.0
    api_host: str = '127.0.0.1'
    api_port: int = 4028
    reboot_delay_minutes: int = 5

    @classmethod
    def from_env(cls) -> 'Config':
        """Snapshot the current environment"""
        return cls(
            ssh_port=_env_int('RIG_SSH_PORT', cls.ssh_port),
            ssh_user=os.environ.get('RIG_SSH_USER', cls.ssh_user),
            ssh_password=os.environ.get('RIG_SSH_PASSWORD', cls.ssh_password),
            connect_timeout=_env_float('RIG_CONNECT_TIMEOUT', cls.connect_timeout),
            command_timeout=_env_float('RIG_COMMAND_TIMEOUT', cls.command_timeout),
            api_host=os.environ.get('RIG_API_HOST', cls.api_host),
            api_port=_env_int('RIG_API_PORT', cls.api_port),
            reboot_delay_minutes=_env_int('RIG_REBOOT_DELAY_MINUTES', cls.reboot_delay_minutes),
        )
