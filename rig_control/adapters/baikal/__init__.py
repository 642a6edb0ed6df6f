"""
Baikal Adapter
Baikal矿机适配器 (sgminer + scripta firmware)
"""
from .client import BaikalClient
from .mapper import FIELD_MAPS, LEGACY_FIELDS, SCRIPTA_FIELDS, BaikalMapper, FieldMap, algorithms_for

__all__ = [
    'BaikalClient',
    'BaikalMapper',
    'FieldMap',
    'FIELD_MAPS',
    'SCRIPTA_FIELDS',
    'LEGACY_FIELDS',
    'algorithms_for',
]
