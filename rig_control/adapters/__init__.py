"""
Rig Client Adapters
矿机客户端适配器

Provides a unified interface for controlling different firmware families.
"""
from .base import CanonicalMapper, RigClient, SettingsWrite, SettingsWriteState
from .baikal import BaikalClient

CLIENT_CLASSES = {
    BaikalClient.vendor: BaikalClient,
}


def get_client_class(vendor: str):
    """Client class for ``vendor``; raises KeyError for unknown vendors"""
    key = (vendor or '').strip().lower()
    if key not in CLIENT_CLASSES:
        raise KeyError(f"No rig client for vendor '{vendor}'. Known: {sorted(CLIENT_CLASSES)}")
    return CLIENT_CLASSES[key]


__all__ = [
    'CanonicalMapper',
    'RigClient',
    'SettingsWrite',
    'SettingsWriteState',
    'BaikalClient',
    'CLIENT_CLASSES',
    'get_client_class',
]
