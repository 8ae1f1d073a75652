#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
归档布局计算

- allocate: 写入时计算每个条目的偏移、属性表位置和文件总长度
- locate_attributes: 读取时探测属性表指针所在位置

两者都是确定性的: 相同输入总是得到相同结果。
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from ..core.binary_io import BinaryReader
from ..core.schema import (
    TocRecord, AttributesInfoType,
    HEADER_SIZE, TOC_ELEMENT_SIZE, ATTRIBUTE_INFO_SIZE,
    ATTRIBUTE_ELEMENT_SIZE, DEFAULT_ALIGNMENT,
)
from ..utils import pad


# ==================== 写入布局 ====================

@dataclass
class Layout:
    """
    打包后的字节布局

    offsets 与条目一一对应，空条目的偏移为 0。
    """
    offsets: List[int] = field(default_factory=list)
    first_entry_offset: int = 0
    attribute_table_offset: int = 0
    attribute_table_size: int = 0
    end_of_file: int = 0

    @property
    def attribute_info_beginning_position(self) -> int:
        """属性表指针位于目录表之后时的位置"""
        return HEADER_SIZE + len(self.offsets) * TOC_ELEMENT_SIZE

    @property
    def attribute_info_end_position(self) -> int:
        """属性表指针位于第一个条目数据之前时的位置"""
        return self.first_entry_offset - ATTRIBUTE_INFO_SIZE


def first_entry_offset(entry_count: int, alignment: int = DEFAULT_ALIGNMENT) -> int:
    """文件头 + 目录表 + 属性表指针之后第一个对齐位置"""
    return pad(
        HEADER_SIZE + entry_count * TOC_ELEMENT_SIZE + ATTRIBUTE_INFO_SIZE,
        alignment
    )


def allocate(
    sizes: Sequence[Optional[int]],
    alignment: int = DEFAULT_ALIGNMENT,
    with_attributes: bool = True
) -> Layout:
    """
    计算条目偏移

    Args:
        sizes: 每个条目的大小，None 表示空条目
        alignment: 对齐单位
        with_attributes: 是否写入属性表

    Returns:
        Layout

    Examples:
        >>> allocate([10, None, 20]).offsets
        [2048, 0, 4096]
    """
    if alignment <= 0:
        raise ValueError(f"对齐单位必须大于 0: {alignment}")

    entry_count = len(sizes)
    first = first_entry_offset(entry_count, alignment)
    running = first
    offsets = []

    for size in sizes:
        if size is None:
            offsets.append(0)
            continue
        offsets.append(running)
        running = pad(running + size, alignment)

    table_size = entry_count * ATTRIBUTE_ELEMENT_SIZE if with_attributes else 0

    return Layout(
        offsets=offsets,
        first_entry_offset=first,
        attribute_table_offset=running,
        attribute_table_size=table_size,
        end_of_file=pad(running + table_size, alignment),
    )


# ==================== 属性表探测 ====================

@dataclass
class AttributeLocation:
    """属性表探测结果"""
    info_type: AttributesInfoType = AttributesInfoType.NO_ATTRIBUTES
    offset: int = 0
    size: int = 0

    @property
    def found(self) -> bool:
        return self.info_type != AttributesInfoType.NO_ATTRIBUTES


def data_block_bounds(toc: Sequence[TocRecord]) -> Tuple[int, int]:
    """
    计算数据块范围

    Returns:
        (第一个非空条目的偏移, 所有非空条目的最大结束位置)，
        没有非空条目时返回 (0, 0)。偏移为 0 的记录不指向数据块，不参与计算。
    """
    records = [r for r in toc if r.offset != 0]
    if not records:
        return 0, 0
    return min(r.offset for r in records), max(r.end for r in records)


def is_attribute_info_valid(
    offset: int,
    size: int,
    file_length: int,
    data_block_end: int,
    entry_count: int
) -> bool:
    """
    校验候选的属性表指针

    该 8 字节槽位在不含属性表的归档中可能是无关的填充或垃圾数据，
    因此必须满足全部数值边界才视为有效。全零表示"不存在"。
    """
    if offset == 0 or size == 0:
        return False
    if size > file_length - data_block_end:
        return False
    if size < entry_count * ATTRIBUTE_ELEMENT_SIZE:
        return False
    if offset < data_block_end:
        return False
    if offset > file_length - size:
        return False
    return True


def _read_candidate(reader: BinaryReader, position: int) -> TocRecord:
    reader.seek(position)
    return TocRecord.unpack(reader.read_bytes(ATTRIBUTE_INFO_SIZE))


def locate_attributes(
    reader: BinaryReader,
    toc: Sequence[TocRecord],
    file_length: int
) -> AttributeLocation:
    """
    探测属性表位置

    依次尝试两个固定位置:
    1. 紧跟在文件头和目录表之后
    2. 第一个非空条目数据之前的 8 字节

    两种已知的打包工具对指针位置有不同的约定，
    都不合法时视为不含属性表。

    Args:
        reader: 归档读取器
        toc: 目录表
        file_length: 归档总长度

    Returns:
        AttributeLocation
    """
    entry_count = len(toc)
    data_start, data_end = data_block_bounds(toc)
    toc_end = HEADER_SIZE + entry_count * TOC_ELEMENT_SIZE

    candidates = [(AttributesInfoType.INFO_AT_BEGINNING, toc_end)]
    if data_start:
        candidates.append(
            (AttributesInfoType.INFO_AT_END, data_start - ATTRIBUTE_INFO_SIZE)
        )

    for info_type, position in candidates:
        if position < toc_end or position + ATTRIBUTE_INFO_SIZE > file_length:
            continue
        candidate = _read_candidate(reader, position)
        if is_attribute_info_valid(
            candidate.offset, candidate.size,
            file_length, data_end, entry_count
        ):
            return AttributeLocation(info_type, candidate.offset, candidate.size)

    return AttributeLocation()
