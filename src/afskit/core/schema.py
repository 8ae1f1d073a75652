#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
AFS 数据结构定义

定义文件头、目录表记录、属性表记录等核心数据结构及格式常量。
所有整数均为 Little-Endian。
"""

import struct
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import ClassVar, Optional

from ..exceptions import DateRangeWarning


# ==================== 常量定义 ====================

# 魔法数: "AFS\0" 与 "AFS "
HEADER_MAGIC_00 = 0x00534641
HEADER_MAGIC_20 = 0x20534641

HEADER_SIZE = 0x8             # magic + entry_count
TOC_ELEMENT_SIZE = 0x8        # offset + size
ATTRIBUTE_INFO_SIZE = 0x8     # 属性表 offset + size
ATTRIBUTE_ELEMENT_SIZE = 0x30
MAX_ENTRY_NAME_LENGTH = 0x20
MAX_U32 = 0xFFFFFFFF

DEFAULT_ALIGNMENT = 0x800

# 属性表中的名称编码; surrogateescape 保证任意字节都能原样往返
DEFAULT_NAME_ENCODING = 'utf-8'
NAME_ENCODING_ERRORS = 'surrogateescape'

DUMMY_ENTRY_NAME = "_NO_NAME"


# ==================== 枚举 ====================

class HeaderMagicType(Enum):
    """文件头魔法数类型"""
    AFS_00 = "AFS_00"   # 'AFS' + 0x00
    AFS_20 = "AFS_20"   # 'AFS' + 0x20

    @property
    def magic(self) -> int:
        return HEADER_MAGIC_20 if self is HeaderMagicType.AFS_20 else HEADER_MAGIC_00

    @classmethod
    def from_magic(cls, magic: int) -> Optional['HeaderMagicType']:
        """根据魔法数返回类型，未知时返回 None"""
        if magic == HEADER_MAGIC_00:
            return cls.AFS_00
        if magic == HEADER_MAGIC_20:
            return cls.AFS_20
        return None


class AttributesInfoType(Enum):
    """
    属性表信息位置

    - NO_ATTRIBUTES: 不含属性表
    - INFO_AT_BEGINNING: 属性表指针紧跟在目录表之后
    - INFO_AT_END: 属性表指针位于第一个条目数据之前的 8 字节
    """
    NO_ATTRIBUTES = "NoAttributes"
    INFO_AT_BEGINNING = "InfoAtBeginning"
    INFO_AT_END = "InfoAtEnd"


# ==================== 文件头 ====================

@dataclass
class Header:
    """
    文件头 (8 bytes)

    位于文件开头。
    """
    FORMAT: ClassVar[str] = '<II'
    SIZE: ClassVar[int] = HEADER_SIZE

    magic: int = HEADER_MAGIC_00
    entry_count: int = 0

    def pack(self) -> bytes:
        """序列化为字节"""
        return struct.pack(self.FORMAT, self.magic, self.entry_count)

    @classmethod
    def unpack(cls, data: bytes) -> 'Header':
        """从字节反序列化"""
        magic, entry_count = struct.unpack(cls.FORMAT, data)
        return cls(magic=magic, entry_count=entry_count)


# ==================== 目录表记录 ====================

@dataclass
class TocRecord:
    """
    目录表记录 (8 bytes)

    (offset, size) 对，两者都为 0 表示空条目。
    属性表指针使用相同的结构。
    """
    FORMAT: ClassVar[str] = '<II'
    SIZE: ClassVar[int] = TOC_ELEMENT_SIZE

    offset: int = 0
    size: int = 0

    @property
    def is_null(self) -> bool:
        return self.offset == 0 and self.size == 0

    @property
    def end(self) -> int:
        return self.offset + self.size

    def pack(self) -> bytes:
        """序列化为字节"""
        return struct.pack(self.FORMAT, self.offset, self.size)

    @classmethod
    def unpack(cls, data: bytes) -> 'TocRecord':
        """从字节反序列化"""
        offset, size = struct.unpack(cls.FORMAT, data)
        return cls(offset=offset, size=size)


# ==================== 时间戳 ====================

@dataclass(frozen=True)
class AttributeTime:
    """
    属性表中的最后修改时间

    六个 16 位字段原样保存，读取时可能出现越界值，
    只有在真正需要 datetime 时才做校验。
    """
    year: int = 0
    month: int = 0
    day: int = 0
    hour: int = 0
    minute: int = 0
    second: int = 0

    @property
    def fields(self) -> tuple:
        return (self.year, self.month, self.day,
                self.hour, self.minute, self.second)

    def to_datetime(self) -> datetime:
        """
        转换为 datetime

        Raises:
            DateRangeWarning: 字段无法组成合法日期
        """
        try:
            return datetime(*self.fields)
        except ValueError as e:
            raise DateRangeWarning(self.fields) from e

    def to_timestamp(self) -> float:
        """转换为本地时间的 POSIX 时间戳"""
        try:
            return self.to_datetime().timestamp()
        except (OverflowError, OSError) as e:
            raise DateRangeWarning(self.fields) from e

    @classmethod
    def from_datetime(cls, dt: datetime) -> 'AttributeTime':
        return cls(dt.year, dt.month, dt.day, dt.hour, dt.minute, dt.second)

    @classmethod
    def from_timestamp(cls, timestamp: float) -> 'AttributeTime':
        """从 POSIX 时间戳 (本地时间) 创建"""
        return cls.from_datetime(datetime.fromtimestamp(timestamp))

    def __str__(self) -> str:
        return (f"{self.year:04d}-{self.month:02d}-{self.day:02d} "
                f"{self.hour:02d}:{self.minute:02d}:{self.second:02d}")


# ==================== 属性表记录 ====================

@dataclass
class AttributeRecord:
    """
    属性表记录 (48 bytes)

    32 字节名称 (末尾补零/截断) + 六个 u16 日期字段 + u32 自定义数据。
    空条目同样占用一条 (通常全零的) 记录。
    """
    FORMAT: ClassVar[str] = '<32s6HI'
    SIZE: ClassVar[int] = ATTRIBUTE_ELEMENT_SIZE

    name: bytes = b''
    last_write_time: AttributeTime = AttributeTime()
    custom_data: int = 0

    def pack(self) -> bytes:
        """序列化为字节 (struct 的 32s 会自动补零或截断名称)"""
        return struct.pack(
            self.FORMAT,
            self.name,
            *self.last_write_time.fields,
            self.custom_data
        )

    @classmethod
    def unpack(cls, data: bytes) -> 'AttributeRecord':
        """从字节反序列化，名称去掉末尾的零填充"""
        values = struct.unpack(cls.FORMAT, data)
        return cls(
            name=values[0].rstrip(b'\x00'),
            last_write_time=AttributeTime(*values[1:7]),
            custom_data=values[7]
        )

    def decode_name(self, encoding: str = DEFAULT_NAME_ENCODING) -> str:
        return self.name.decode(encoding, NAME_ENCODING_ERRORS)


def encode_name(name: str, encoding: str = DEFAULT_NAME_ENCODING) -> bytes:
    """按属性表编码将名称转换为字节"""
    return name.encode(encoding, NAME_ENCODING_ERRORS)
