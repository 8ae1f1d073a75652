#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
格式转换工具

提供归档与 "目录 + 元数据" 之间的互转功能:
- extract_archive: 归档 → 目录 + sidecar
- create_archive: 目录 + sidecar → 归档
- create_metadata_for_directory: 普通目录 → 默认 sidecar
- describe_archive: 归档信息
"""

import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional

from .archive import ArchiveBuilder, ArchiveReader, Layout
from .core.batch import BatchResult, ProgressCallback
from .core.schema import (
    HeaderMagicType, AttributesInfoType,
    DEFAULT_ALIGNMENT, DEFAULT_NAME_ENCODING,
)
from .core.substream import StreamRange
from .exceptions import ValidationError
from .metadata import (
    MetadataEntry, MetadataRecord,
    default_metadata_path, load_metadata, save_metadata,
)
from .utils import get_file_size

logger = logging.getLogger(__name__)


# ==================== 解包 / 打包 ====================


def extract_archive(
    archive_path: str,
    output_dir: str,
    metadata_path: Optional[str] = None,
    encoding: str = DEFAULT_NAME_ENCODING,
    progress_callback: Optional[ProgressCallback] = None
) -> BatchResult:
    """
    解包归档到目录，并在目录旁写入 sidecar

    Args:
        archive_path: 归档文件路径
        output_dir: 输出目录
        metadata_path: sidecar 路径 (默认 <output_dir>.json)
        encoding: 属性表名称编码
        progress_callback: 进度回调

    Returns:
        BatchResult
    """
    if not output_dir:
        raise ValidationError("输出目录不能为空", "output_dir")
    if metadata_path is None:
        metadata_path = default_metadata_path(output_dir)

    with ArchiveReader(archive_path, encoding=encoding) as reader:
        logger.debug(
            "extracting %s: %d entries, %s, %s",
            archive_path, reader.entry_count,
            reader.header_magic_type.value, reader.attributes_info_type.value
        )
        result = reader.extract_all(output_dir, progress_callback)
        record = MetadataRecord.from_archive(reader.archive)

    save_metadata(record, metadata_path)
    return result


def create_archive(
    input_dir: str,
    output_path: str,
    metadata_path: Optional[str] = None,
    encoding: str = DEFAULT_NAME_ENCODING,
    progress_callback: Optional[ProgressCallback] = None
) -> Layout:
    """
    根据目录和 sidecar 重新打包归档

    旧版本的 sidecar 会先迁移并写回。

    Args:
        input_dir: 解包目录
        output_path: 输出归档路径
        metadata_path: sidecar 路径 (默认 <input_dir>.json)
        encoding: 属性表名称编码
        progress_callback: 进度回调

    Returns:
        写入使用的 Layout

    Raises:
        FileNotFoundError: sidecar 或其引用的文件不存在
        MigrationError: sidecar 版本不受支持
    """
    if not input_dir:
        raise ValidationError("输入目录不能为空", "input_dir")
    if metadata_path is None:
        metadata_path = default_metadata_path(input_dir)
    if not os.path.isfile(metadata_path):
        raise FileNotFoundError(f"元数据文件不存在: {metadata_path}")

    record = load_metadata(metadata_path, base_dir=input_dir)
    archive = record.to_archive(input_dir, encoding)

    logger.debug("creating %s from %s (%d entries)", output_path, input_dir, archive.entry_count)
    return ArchiveBuilder(archive, progress_callback).build_to_file(output_path)


def create_metadata_for_directory(
    input_dir: str,
    metadata_path: Optional[str] = None,
    header_magic_type: HeaderMagicType = HeaderMagicType.AFS_00,
    attributes_info_type: AttributesInfoType = AttributesInfoType.INFO_AT_BEGINNING,
    entry_block_alignment: int = DEFAULT_ALIGNMENT
) -> MetadataRecord:
    """
    为普通目录生成默认 sidecar

    只收录目录第一层的文件，按文件名排序。条目名称与文件名相同，
    custom_data 为文件大小。

    Args:
        input_dir: 输入目录
        metadata_path: sidecar 路径 (默认 <input_dir>.json)
        header_magic_type: 头部类型
        attributes_info_type: 属性表位置
        entry_block_alignment: 对齐单位

    Returns:
        已保存的 MetadataRecord
    """
    if not input_dir:
        raise ValidationError("输入目录不能为空", "input_dir")
    if not os.path.isdir(input_dir):
        raise FileNotFoundError(f"目录不存在: {input_dir}")
    if metadata_path is None:
        metadata_path = default_metadata_path(input_dir)

    entries = []
    for file_name in sorted(os.listdir(input_dir)):
        file_path = os.path.join(input_dir, file_name)
        if not os.path.isfile(file_path):
            continue
        entries.append(MetadataEntry(
            name=file_name,
            file_name=file_name,
            custom_data=get_file_size(file_path),
        ))

    record = MetadataRecord(
        header_magic_type=header_magic_type,
        attributes_info_type=attributes_info_type,
        entry_block_alignment=entry_block_alignment,
        all_attributes_contain_entry_size=True,
        entries=entries,
    )
    save_metadata(record, metadata_path)
    return record


# ==================== 信息 ====================


@dataclass
class EntryInfo:
    """单个条目的描述"""
    index: int
    is_null: bool
    name: str = ''
    raw_name: str = ''
    offset: int = 0
    size: int = 0
    last_write_time: str = ''
    custom_data: int = 0


@dataclass
class ArchiveInfo:
    """归档描述"""
    path: str
    header_magic_type: HeaderMagicType
    attributes_info_type: AttributesInfoType
    entry_count: int
    file_size: int
    entries: List[EntryInfo] = field(default_factory=list)

    @property
    def null_count(self) -> int:
        return sum(1 for e in self.entries if e.is_null)

    def format_lines(self) -> List[str]:
        """格式化为可读的文本行"""
        lines = [
            f"Archive:     {self.path}",
            f"Size:        {self.file_size}",
            f"Header:      {self.header_magic_type.value}",
            f"Attributes:  {self.attributes_info_type.value}",
            f"Entries:     {self.entry_count} ({self.null_count} null)",
            "",
        ]
        for e in self.entries:
            if e.is_null:
                lines.append(f"{e.index:6d}  <null>")
                continue
            lines.append(
                f"{e.index:6d}  0x{e.offset:08x}  {e.size:10d}  "
                f"{e.last_write_time:19s}  0x{e.custom_data:08x}  {e.name}"
            )
        return lines


def describe_archive(
    archive_path: str,
    encoding: str = DEFAULT_NAME_ENCODING
) -> ArchiveInfo:
    """
    读取归档的头部与条目信息

    Args:
        archive_path: 归档文件路径
        encoding: 属性表名称编码

    Returns:
        ArchiveInfo
    """
    with ArchiveReader(archive_path, encoding=encoding) as reader:
        archive = reader.archive
        info = ArchiveInfo(
            path=archive_path,
            header_magic_type=archive.header_magic_type,
            attributes_info_type=archive.attributes_info_type,
            entry_count=archive.entry_count,
            file_size=os.path.getsize(archive_path),
        )

        for index, entry in enumerate(archive):
            if entry.is_null:
                info.entries.append(EntryInfo(index=index, is_null=True))
                continue
            offset = entry.source.offset if isinstance(entry.source, StreamRange) else 0
            info.entries.append(EntryInfo(
                index=index,
                is_null=False,
                name=entry.name,
                raw_name=entry.raw_name,
                offset=offset,
                size=entry.size,
                last_write_time=str(entry.last_write_time) if archive.contains_attributes else '',
                custom_data=entry.custom_data,
            ))

    return info
