#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
afskit 核心模块

提供二进制 I/O 封装、数据结构定义、流区间视图和进度通知。
"""

from .binary_io import BinaryReader, BinaryWriter
from .schema import (
    Header, TocRecord, AttributeRecord, AttributeTime,
    HeaderMagicType, AttributesInfoType,
)
from .substream import StreamRange
from .batch import (
    NotificationType, Notification, ProgressCallback,
    ProgressTracker, BatchResult,
)

__all__ = [
    "BinaryReader",
    "BinaryWriter",
    "Header",
    "TocRecord",
    "AttributeRecord",
    "AttributeTime",
    "HeaderMagicType",
    "AttributesInfoType",
    "StreamRange",
    # 进度通知
    "NotificationType",
    "Notification",
    "ProgressCallback",
    "ProgressTracker",
    "BatchResult",
]
