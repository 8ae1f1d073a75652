#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
解包目录的元数据 (sidecar)

记录重建归档所需的全部信息，并负责旧版本格式的迁移。
"""

from .schema import MetadataEntry, MetadataRecord, CURRENT_VERSION
from .migration import MetadataMigrator, migrate_v1_to_v2, migrate_v2_to_v3
from .store import load_metadata, save_metadata, default_metadata_path

__all__ = [
    "MetadataEntry",
    "MetadataRecord",
    "CURRENT_VERSION",
    "MetadataMigrator",
    "migrate_v1_to_v2",
    "migrate_v2_to_v3",
    "load_metadata",
    "save_metadata",
    "default_metadata_path",
]
