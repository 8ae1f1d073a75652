#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
归档条目

条目是两种情况之一:
- NullEntry: 保留槽位，目录表中为 (0, 0)，没有名称、时间和数据
- DataEntry: 带数据的条目，数据来源可以是已解析归档中的一段区间、
  磁盘文件或内存字节
"""

import os
from dataclasses import dataclass, field
from typing import Iterator, Optional, Union, TYPE_CHECKING

from ..core.schema import (
    AttributeTime, encode_name,
    MAX_ENTRY_NAME_LENGTH, DEFAULT_NAME_ENCODING,
)
from ..core.substream import StreamRange
from ..exceptions import ValidationError
from ..utils import find_invalid_chars

if TYPE_CHECKING:
    from .model import Archive


# ==================== 数据来源 ====================

class FileSource:
    """磁盘文件数据来源"""

    def __init__(self, file_path: str):
        self.file_path = file_path

    def iter_chunks(self, chunk_size: int = 0x10000) -> Iterator[bytes]:
        with open(self.file_path, 'rb') as f:
            while True:
                chunk = f.read(chunk_size)
                if not chunk:
                    break
                yield chunk

    def __repr__(self) -> str:
        return f"FileSource({self.file_path!r})"


class BytesSource:
    """内存字节数据来源"""

    def __init__(self, data: bytes):
        self.data = bytes(data)

    def iter_chunks(self, chunk_size: int = 0x10000) -> Iterator[bytes]:
        for start in range(0, len(self.data), chunk_size):
            yield self.data[start:start + chunk_size]

    def __repr__(self) -> str:
        return f"BytesSource({len(self.data)} bytes)"


EntrySource = Union[StreamRange, FileSource, BytesSource]


# ==================== 条目 ====================

@dataclass(eq=False)
class NullEntry:
    """空条目 (保留槽位)"""

    @property
    def is_null(self) -> bool:
        return True

    def __repr__(self) -> str:
        return "NullEntry()"


@dataclass(eq=False)
class DataEntry:
    """
    带数据的条目

    Attributes:
        raw_name: 属性表中的原始名称 (可能为空或是路径)
        size: 数据大小
        last_write_time: 最后修改时间 (原始字段，可能越界)
        custom_data: 32 位自定义字段，有的工具写入文件大小，
            有的写入游戏自定义值，往返时原样保留
        source: 数据来源
        name: 清理并去重后的名称，由所属 Archive 维护
    """
    raw_name: str
    size: int
    last_write_time: AttributeTime = field(default_factory=AttributeTime)
    custom_data: int = 0
    source: Optional[EntrySource] = field(default=None, repr=False)
    name: str = ''
    _archive: Optional['Archive'] = field(default=None, repr=False, compare=False)

    @property
    def is_null(self) -> bool:
        return False

    def iter_chunks(self, chunk_size: int = 0x10000) -> Iterator[bytes]:
        """按块读取条目数据"""
        if self.source is None:
            raise ValidationError(f"条目 '{self.name}' 没有数据来源", "source")
        return self.source.iter_chunks(chunk_size)

    def read(self) -> bytes:
        """读取全部条目数据"""
        return b''.join(self.iter_chunks())

    def rename(self, new_name: str) -> None:
        """
        修改原始名称并刷新所属归档的唯一名称

        Raises:
            ValidationError: 名称为空、超长或包含非法字符
        """
        encoding = self._archive.encoding if self._archive else DEFAULT_NAME_ENCODING
        validate_entry_name(new_name, encoding)
        self.raw_name = new_name
        if self._archive is not None:
            self._archive.update_entry_names()


Entry = Union[NullEntry, DataEntry]


def validate_entry_name(name: str, encoding: str = DEFAULT_NAME_ENCODING) -> None:
    """
    校验可写入属性表的条目名称

    Raises:
        ValidationError: 名称为空、编码后超过 32 字节或包含非法字符
    """
    if not name:
        raise ValidationError("条目名称不能为空", "name")

    encoded = encode_name(name, encoding)
    if len(encoded) > MAX_ENTRY_NAME_LENGTH:
        raise ValidationError(
            f"条目名称不能超过 {MAX_ENTRY_NAME_LENGTH} 字节: \"{name}\" "
            f"({len(encoded)} 字节)",
            "name"
        )

    invalid = find_invalid_chars(name)
    if invalid:
        raise ValidationError(
            f"条目名称包含非法字符 {invalid!r}: \"{name}\"",
            "name"
        )


def entry_from_file(
    file_path: str,
    entry_name: Optional[str] = None
) -> DataEntry:
    """
    从磁盘文件创建条目

    大小、最后修改时间来自文件本身，custom_data 默认为文件大小。

    Raises:
        ValidationError: 路径为空
        FileNotFoundError: 文件不存在
    """
    if not file_path:
        raise ValidationError("文件路径不能为空", "file_path")
    if not os.path.isfile(file_path):
        raise FileNotFoundError(f"文件不存在: {file_path}")

    stat = os.stat(file_path)
    if entry_name is None:
        entry_name = os.path.basename(file_path)

    return DataEntry(
        raw_name=entry_name,
        size=stat.st_size,
        last_write_time=AttributeTime.from_timestamp(stat.st_mtime),
        custom_data=stat.st_size,
        source=FileSource(file_path),
    )
