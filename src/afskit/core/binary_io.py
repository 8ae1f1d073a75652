#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
二进制 I/O 封装

BinaryWriter 负责顺序写入和零填充，BinaryReader 负责定长读取和定位。
结构体的打包与解包由 core.schema 中的记录类型完成。
"""

import io
from typing import BinaryIO


# 零填充时单次写入的最大块
_ZERO_CHUNK = b'\x00' * 0x10000


class BinaryWriter:
    """
    顺序写入器

    记录当前写入位置，使 fill_to() 可以把空隙补零到任意对齐边界。
    """

    def __init__(self, stream: BinaryIO):
        """
        Args:
            stream: 可写、可 seek 的二进制流
        """
        self._stream = stream
        self._position = stream.tell()

    @property
    def position(self) -> int:
        """当前写入位置"""
        return self._position

    def write_bytes(self, data: bytes) -> int:
        """写入原始字节，返回写入的字节数"""
        written = self._stream.write(data)
        if written is None:
            written = len(data)
        self._position += written
        return written

    # ==================== 填充与定位 ====================

    def write_zeros(self, count: int) -> int:
        """
        写入 count 个零字节

        Args:
            count: 字节数，小于等于 0 时不写入

        Returns:
            写入的字节数
        """
        total = 0
        while count > 0:
            written = self.write_bytes(_ZERO_CHUNK[:min(count, len(_ZERO_CHUNK))])
            total += written
            count -= written
        return total

    def fill_to(self, position: int) -> int:
        """补零直到 position，已越过时不写入"""
        return self.write_zeros(position - self._position)

    def seek(self, position: int) -> None:
        self._stream.seek(position)
        self._position = position


class BinaryReader:
    """
    定长读取器

    读取不足时抛出 EOFError，由解析器转换为 FormatError。
    """

    def __init__(self, stream: BinaryIO):
        """
        Args:
            stream: 可读、可 seek 的二进制流
        """
        self._stream = stream
        self._position = stream.tell()

    @property
    def position(self) -> int:
        """当前读取位置"""
        return self._position

    @property
    def length(self) -> int:
        """流的总长度 (不改变当前位置)"""
        current = self._stream.tell()
        end = self._stream.seek(0, io.SEEK_END)
        self._stream.seek(current)
        return end

    def read_bytes(self, size: int) -> bytes:
        """
        读取 size 个字节

        Raises:
            EOFError: 流中剩余字节不足
        """
        data = self._stream.read(size)
        if len(data) < size:
            raise EOFError(
                f"流结束: 期望读取 {size} 字节，实际只有 {len(data)} 字节"
            )
        self._position += size
        return data

    # ==================== 定位 ====================

    def seek(self, position: int) -> None:
        self._stream.seek(position)
        self._position = position

    def skip(self, size: int) -> None:
        """跳过 size 个字节"""
        self.seek(self._position + size)
