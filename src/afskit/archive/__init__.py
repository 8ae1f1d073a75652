#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
AFS 归档

提供归档模型、布局计算以及读写功能。
"""

from .entry import DataEntry, NullEntry, Entry, FileSource, BytesSource
from .model import Archive
from .layout import Layout, AttributeLocation, allocate, locate_attributes
from .reader import ArchiveReader, parse_archive
from .builder import ArchiveBuilder, build_archive

__all__ = [
    "DataEntry",
    "NullEntry",
    "Entry",
    "FileSource",
    "BytesSource",
    "Archive",
    "Layout",
    "AttributeLocation",
    "allocate",
    "locate_attributes",
    "ArchiveReader",
    "parse_archive",
    "ArchiveBuilder",
    "build_archive",
]
