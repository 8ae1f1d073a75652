#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
afskit - AFS 归档读写库

支持解析、修改、重建 AFS 归档，以及 "目录 + 元数据" 形式的解包与打包。
"""

__version__ = "0.1.0"

# 异常类
from .exceptions import (
    AFSError,
    FormatError,
    ValidationError,
    DateRangeWarning,
    MigrationError,
    MetadataVersionError,
)

# 工具函数
from .utils import pad, sanitize_name, resolve_duplicates

# 数据结构
from .core import (
    AttributeTime,
    HeaderMagicType,
    AttributesInfoType,
    NotificationType,
    Notification,
    BatchResult,
)

# 归档
from .archive import (
    Archive,
    DataEntry,
    NullEntry,
    ArchiveReader,
    ArchiveBuilder,
    parse_archive,
    build_archive,
    allocate,
    locate_attributes,
)

# 元数据
from .metadata import MetadataRecord, MetadataMigrator, load_metadata, save_metadata

# 格式转换
from .converter import (
    extract_archive,
    create_archive,
    create_metadata_for_directory,
    describe_archive,
)

__all__ = [
    # 版本
    "__version__",
    # 异常
    "AFSError",
    "FormatError",
    "ValidationError",
    "DateRangeWarning",
    "MigrationError",
    "MetadataVersionError",
    # 工具
    "pad",
    "sanitize_name",
    "resolve_duplicates",
    # 数据结构
    "AttributeTime",
    "HeaderMagicType",
    "AttributesInfoType",
    "NotificationType",
    "Notification",
    "BatchResult",
    # 归档
    "Archive",
    "DataEntry",
    "NullEntry",
    "ArchiveReader",
    "ArchiveBuilder",
    "parse_archive",
    "build_archive",
    "allocate",
    "locate_attributes",
    # 元数据
    "MetadataRecord",
    "MetadataMigrator",
    "load_metadata",
    "save_metadata",
    # 格式转换
    "extract_archive",
    "create_archive",
    "create_metadata_for_directory",
    "describe_archive",
]
