#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
流区间视图

StreamRange 描述共享底层流中的一段只读区间 (起始偏移 + 长度)，
不复制数据。每次读取都会重新 seek 底层流，因此同一底层流上
不能交错使用多个视图或其他 seek 操作。
"""

import io
from typing import BinaryIO, Iterator


class StreamRange:
    """底层流上的只读区间"""

    def __init__(self, base: BinaryIO, offset: int, size: int):
        if offset < 0:
            raise ValueError(f"offset 不能为负数: {offset}")
        if size < 0:
            raise ValueError(f"size 不能为负数: {size}")
        self._base = base
        self._offset = offset
        self._size = size

    @property
    def base(self) -> BinaryIO:
        return self._base

    @property
    def offset(self) -> int:
        return self._offset

    @property
    def size(self) -> int:
        return self._size

    def iter_chunks(self, chunk_size: int = 0x10000) -> Iterator[bytes]:
        """
        按块读取区间内容

        Raises:
            EOFError: 底层流在区间结束前耗尽
        """
        position = self._offset
        remaining = self._size
        while remaining > 0:
            self._base.seek(position)
            chunk = self._base.read(min(chunk_size, remaining))
            if not chunk:
                raise EOFError(
                    f"区间 [{self._offset:#x}, {self._offset + self._size:#x}) "
                    f"在 {position:#x} 处提前结束"
                )
            position += len(chunk)
            remaining -= len(chunk)
            yield chunk

    def read(self) -> bytes:
        """读取整个区间"""
        return b''.join(self.iter_chunks())

    def open(self) -> io.BytesIO:
        """以文件对象方式打开 (读取到内存)"""
        return io.BytesIO(self.read())

    def __len__(self) -> int:
        return self._size

    def __repr__(self) -> str:
        return f"StreamRange(offset={self._offset:#x}, size={self._size:#x})"
