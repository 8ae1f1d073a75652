#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
AFS 归档构建器

将内存中的 Archive 写入流。每次写入都重新生成整个文件。
"""

import logging
from typing import BinaryIO, Optional

from ..core.batch import ProgressCallback, ProgressTracker
from ..core.binary_io import BinaryWriter
from ..core.schema import (
    Header, TocRecord, AttributeRecord, AttributesInfoType,
    encode_name, MAX_ENTRY_NAME_LENGTH,
)
from ..exceptions import ValidationError
from .entry import DataEntry
from .layout import Layout, allocate
from .model import Archive

logger = logging.getLogger(__name__)


class ArchiveBuilder:
    """
    Archive 写入器

    写入顺序与偏移顺序一致:
    1. 文件头 + 目录表
    2. 属性表指针 (位置由 attributes_info_type 决定) 与零填充
    3. 条目数据
    4. 属性表
    5. 末尾零填充到对齐长度
    """

    def __init__(
        self,
        archive: Archive,
        progress_callback: Optional[ProgressCallback] = None
    ):
        """
        初始化构建器

        Args:
            archive: 要写入的归档
            progress_callback: 进度回调函数
        """
        if archive is None:
            raise ValidationError("归档不能为 None", "archive")
        self._archive = archive
        self._progress_callback = progress_callback

    @property
    def layout(self) -> Layout:
        """计算当前条目的布局 (不写入)"""
        archive = self._archive
        return allocate(
            [e.size if isinstance(e, DataEntry) else None for e in archive],
            archive.entry_block_alignment,
            with_attributes=archive.contains_attributes
        )

    def build(self, stream: BinaryIO) -> Layout:
        """
        写入归档

        Args:
            stream: 可写、可 seek 的二进制流

        Returns:
            写入时使用的 Layout

        Raises:
            ValidationError: 目标流为空，或与归档的来源流是同一个对象
        """
        if stream is None:
            raise ValidationError("输出流不能为 None", "stream")
        if stream is self._archive.source_stream:
            raise ValidationError(
                "不能写入正在读取 AFS 数据的同一个流", "stream"
            )

        archive = self._archive
        entries = archive.entries
        entry_count = len(entries)
        layout = self.layout
        tracker = ProgressTracker(total=entry_count, callback=self._progress_callback)

        tracker.info("创建 AFS 流...")
        logger.debug(
            "building %d entries, alignment=0x%x, end=0x%x",
            entry_count, archive.entry_block_alignment, layout.end_of_file
        )

        writer = BinaryWriter(stream)
        writer.seek(0)

        # ========== 1. 文件头 + 目录表 ==========
        writer.write_bytes(
            Header(archive.header_magic_type.magic, entry_count).pack()
        )
        for index, (entry, offset) in enumerate(zip(entries, layout.offsets), 1):
            tracker.info(f"写入条目信息... {index}/{entry_count}", index)
            if isinstance(entry, DataEntry):
                writer.write_bytes(TocRecord(offset, entry.size).pack())
            else:
                writer.write_bytes(TocRecord().pack())

        # ========== 2. 属性表指针 ==========
        if archive.contains_attributes:
            if archive.attributes_info_type == AttributesInfoType.INFO_AT_END:
                position = layout.attribute_info_end_position
            else:
                position = layout.attribute_info_beginning_position
            writer.fill_to(position)
            writer.write_bytes(
                TocRecord(layout.attribute_table_offset, layout.attribute_table_size).pack()
            )
        writer.fill_to(layout.first_entry_offset)

        # ========== 3. 条目数据 ==========
        for index, (entry, offset) in enumerate(zip(entries, layout.offsets), 1):
            if not isinstance(entry, DataEntry):
                tracker.info(f"空条目... {index}/{entry_count}", index)
                continue

            tracker.info(f"写入条目... {index}/{entry_count}", index)
            writer.fill_to(offset)
            written = 0
            for chunk in entry.iter_chunks():
                written += writer.write_bytes(chunk)
            if written != entry.size:
                raise ValidationError(
                    f"条目 \"{entry.name}\" 实际数据为 {written} 字节, "
                    f"与记录的大小 {entry.size} 字节不一致",
                    "entry"
                )

        # ========== 4. 属性表 ==========
        if archive.contains_attributes:
            writer.fill_to(layout.attribute_table_offset)
            for index, entry in enumerate(entries, 1):
                if not isinstance(entry, DataEntry):
                    tracker.info(f"空条目... {index}/{entry_count}", index)
                    writer.write_bytes(AttributeRecord().pack())
                    continue

                tracker.info(f"写入属性... {index}/{entry_count}", index)
                name = encode_name(entry.raw_name, archive.encoding)
                if len(name) > MAX_ENTRY_NAME_LENGTH:
                    tracker.warning(
                        f"条目名称 \"{entry.raw_name}\" 超过 {MAX_ENTRY_NAME_LENGTH} 字节, "
                        f"将被截断",
                        index
                    )
                writer.write_bytes(AttributeRecord(
                    name=name,
                    last_write_time=entry.last_write_time,
                    custom_data=entry.custom_data
                ).pack())

        # ========== 5. 末尾填充 ==========
        writer.fill_to(layout.end_of_file)
        if hasattr(stream, 'truncate'):
            stream.truncate(layout.end_of_file)

        tracker.success("AFS 流保存成功")
        return layout

    def build_to_file(self, output_path: str) -> Layout:
        """
        写入归档文件

        Args:
            output_path: 输出文件路径
        """
        if not output_path:
            raise ValidationError("输出路径不能为空", "output_path")
        with open(output_path, 'wb') as f:
            return self.build(f)


def build_archive(
    archive: Archive,
    stream: BinaryIO,
    progress_callback: Optional[ProgressCallback] = None
) -> Layout:
    """将 Archive 写入流的便捷函数"""
    return ArchiveBuilder(archive, progress_callback).build(stream)
