#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
AFS 归档读取器

将归档流解析为内存中的 Archive。条目数据不会被读入内存，
而是以 StreamRange 的形式引用原始流。
"""

import logging
from typing import BinaryIO, List, Optional

from ..core.batch import BatchResult, ProgressCallback, ProgressTracker
from ..core.binary_io import BinaryReader
from ..core.schema import (
    Header, TocRecord, AttributeRecord,
    HeaderMagicType, AttributesInfoType,
    HEADER_MAGIC_00, HEADER_MAGIC_20, DEFAULT_ALIGNMENT,
    DEFAULT_NAME_ENCODING,
)
from ..core.substream import StreamRange
from ..exceptions import FormatError, ValidationError
from .entry import DataEntry, Entry, NullEntry
from .layout import AttributeLocation, locate_attributes
from .model import Archive

logger = logging.getLogger(__name__)


def parse_archive(
    stream: BinaryIO,
    encoding: str = DEFAULT_NAME_ENCODING,
    entry_block_alignment: int = DEFAULT_ALIGNMENT,
    progress_callback: Optional[ProgressCallback] = None
) -> Archive:
    """
    解析归档流

    执行流程:
    1. 校验魔法数并读取条目数
    2. 读取目录表
    3. 探测属性表位置
    4. 读取属性表 (不存在时使用序号作为名称)
    5. 构建条目并计算唯一名称

    Args:
        stream: 可读、可 seek 的二进制流，解析后仍被条目引用
        encoding: 属性表名称编码
        entry_block_alignment: 记录在 Archive 上的对齐单位
        progress_callback: 进度回调

    Returns:
        Archive

    Raises:
        FormatError: 魔法数无效或头部/目录表被截断
    """
    if stream is None:
        raise ValidationError("归档流不能为 None", "stream")

    stream.seek(0)
    reader = BinaryReader(stream)
    file_length = reader.length

    # ========== 1. 文件头 ==========
    try:
        header = Header.unpack(reader.read_bytes(Header.SIZE))
    except EOFError as e:
        raise FormatError("流中不包含有效的 AFS 数据 (文件头不完整)") from e

    header_magic_type = HeaderMagicType.from_magic(header.magic)
    if header_magic_type is None:
        raise FormatError(
            "流中不包含有效的 AFS 数据",
            expected=f"0x{HEADER_MAGIC_00:08x} 或 0x{HEADER_MAGIC_20:08x}",
            actual=f"0x{header.magic:08x}"
        )

    # ========== 2. 目录表 ==========
    try:
        toc = [
            TocRecord.unpack(reader.read_bytes(TocRecord.SIZE))
            for _ in range(header.entry_count)
        ]
    except EOFError as e:
        raise FormatError(
            f"目录表不完整: 头部声明 {header.entry_count} 个条目"
        ) from e

    for index, record in enumerate(toc):
        if not record.is_null and record.end > file_length:
            raise FormatError(
                f"条目 {index} 的数据超出文件末尾",
                expected=f"<= 0x{file_length:x}",
                actual=f"0x{record.end:x}"
            )

    # ========== 3. 属性表位置 ==========
    location = locate_attributes(reader, toc, file_length)
    logger.debug(
        "header=%s entries=%d attributes=%s",
        header_magic_type.value, header.entry_count, location.info_type.value
    )

    # ========== 4. 属性表 ==========
    attributes = _read_attributes(reader, toc, location)

    # ========== 5. 条目 ==========
    tracker = ProgressTracker(total=len(toc), callback=progress_callback)
    entries: List[Entry] = []
    for index, record in enumerate(toc):
        tracker.info(f"读取条目... {index + 1}/{len(toc)}", index + 1)
        if record.is_null:
            entries.append(NullEntry())
            continue

        attribute = attributes[index]
        if attribute is None:
            entry = DataEntry(
                raw_name=f"{index:08d}",
                size=record.size,
                source=StreamRange(stream, record.offset, record.size),
            )
        else:
            entry = DataEntry(
                raw_name=attribute.decode_name(encoding),
                size=record.size,
                last_write_time=attribute.last_write_time,
                custom_data=attribute.custom_data,
                source=StreamRange(stream, record.offset, record.size),
            )
        entries.append(entry)

    tracker.success("归档解析完成")
    return Archive(
        entries,
        header_magic_type=header_magic_type,
        attributes_info_type=location.info_type,
        entry_block_alignment=entry_block_alignment,
        encoding=encoding,
        source_stream=stream,
    )


def _read_attributes(
    reader: BinaryReader,
    toc: List[TocRecord],
    location: AttributeLocation
) -> List[Optional[AttributeRecord]]:
    """按目录表顺序读取属性记录，空条目跳过对应槽位"""
    if not location.found:
        return [None] * len(toc)

    reader.seek(location.offset)
    records: List[Optional[AttributeRecord]] = []
    for record in toc:
        if record.is_null:
            reader.skip(AttributeRecord.SIZE)
            records.append(None)
        else:
            records.append(AttributeRecord.unpack(reader.read_bytes(AttributeRecord.SIZE)))
    return records


class ArchiveReader:
    """
    AFS 归档文件读取器

    打开并独占一个归档文件，关闭时释放文件句柄。
    关闭后条目数据不可再读取。
    """

    def __init__(
        self,
        file_path: str,
        encoding: str = DEFAULT_NAME_ENCODING,
        entry_block_alignment: int = DEFAULT_ALIGNMENT
    ):
        """
        初始化读取器

        Args:
            file_path: 归档文件路径
            encoding: 属性表名称编码
            entry_block_alignment: 记录在 Archive 上的对齐单位
        """
        if not file_path:
            raise ValidationError("归档路径不能为空", "file_path")

        self._file_path = file_path
        self._file: Optional[BinaryIO] = open(file_path, 'rb')
        try:
            self._archive = parse_archive(
                self._file, encoding, entry_block_alignment
            )
        except Exception:
            self._file.close()
            self._file = None
            raise

    @property
    def archive(self) -> Archive:
        return self._archive

    @property
    def file_path(self) -> str:
        return self._file_path

    @property
    def entry_count(self) -> int:
        return self._archive.entry_count

    @property
    def header_magic_type(self) -> HeaderMagicType:
        return self._archive.header_magic_type

    @property
    def attributes_info_type(self) -> AttributesInfoType:
        return self._archive.attributes_info_type

    def list_all(self) -> List[str]:
        """列出所有非空条目的唯一名称"""
        return [e.name for e in self._archive.data_entries()]

    def exists(self, name: str) -> bool:
        return self._archive.find(name) is not None

    def read(self, name: str) -> bytes:
        """
        读取条目内容

        Raises:
            FileNotFoundError: 名称不存在
        """
        entry = self._archive.find(name)
        if entry is None:
            raise FileNotFoundError(f"条目不存在: {name}")
        return entry.read()

    def extract_all(
        self,
        output_dir: str,
        progress_callback: Optional[ProgressCallback] = None
    ) -> BatchResult:
        """解包所有条目到指定目录"""
        return self._archive.extract_all_entries(output_dir, progress_callback)

    def close(self) -> None:
        """关闭文件"""
        if self._file:
            self._file.close()
            self._file = None

    def __enter__(self) -> 'ArchiveReader':
        return self

    def __exit__(self, *args) -> None:
        self.close()
