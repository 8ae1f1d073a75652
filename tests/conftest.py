#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
pytest 全局配置

提供共享 fixtures 和在内存中手工拼装 AFS 字节的工具。
手工拼装不经过 afskit 的布局代码，用来独立验证读写结果。
"""

import io
import struct
from pathlib import Path
from typing import List, Optional, Tuple

import pytest


# ==================== 路径常量 ====================

# 项目根目录
PROJECT_ROOT = Path(__file__).parent.parent


# ==================== 格式常量 ====================

MAGIC_00 = 0x00534641
MAGIC_20 = 0x20534641
ALIGN = 0x800

# (名称字节, 数据, 六个日期字段, 自定义数据)，None 表示空条目
RawEntry = Optional[Tuple[bytes, bytes, Tuple[int, ...], int]]


def _pad(value: int, unit: int = ALIGN) -> int:
    return (value + unit - 1) // unit * unit


def make_afs(
    entries: List[RawEntry],
    info: Optional[str] = 'beginning',
    magic: int = MAGIC_00,
    pointer_override: Optional[Tuple[int, int]] = None
) -> bytes:
    """
    手工拼装 AFS 字节

    Args:
        entries: 条目列表
        info: 'beginning' / 'end' / None (不含属性表)
        magic: 头部魔法数
        pointer_override: 写入 8 字节槽位 (目录表之后) 的任意值，
            用来模拟不含属性表但槽位有垃圾数据的归档
    """
    count = len(entries)
    toc_end = 8 + 8 * count
    first = _pad(toc_end + 8)

    offsets = []
    running = first
    for e in entries:
        if e is None:
            offsets.append((0, 0))
            continue
        offsets.append((running, len(e[1])))
        running = _pad(running + len(e[1]))

    table_offset = running
    table_size = count * 0x30 if info else 0
    end = _pad(running + table_size)

    buf = bytearray(end)
    struct.pack_into('<II', buf, 0, magic, count)
    for i, (offset, size) in enumerate(offsets):
        struct.pack_into('<II', buf, 8 + 8 * i, offset, size)

    if info == 'beginning':
        struct.pack_into('<II', buf, toc_end, table_offset, table_size)
    elif info == 'end':
        struct.pack_into('<II', buf, first - 8, table_offset, table_size)
    elif pointer_override is not None:
        struct.pack_into('<II', buf, toc_end, *pointer_override)

    for e, (offset, size) in zip(entries, offsets):
        if e is not None:
            buf[offset:offset + size] = e[1]

    if info:
        for i, e in enumerate(entries):
            if e is None:
                continue
            name, _, time_fields, custom = e
            struct.pack_into(
                '<32s6HI', buf, table_offset + 0x30 * i, name, *time_fields, custom
            )

    return bytes(buf)


def entry(name: str, data: bytes, time_fields=(2020, 5, 17, 12, 34, 56), custom=None) -> RawEntry:
    """构造一个 RawEntry，custom 默认为数据长度"""
    return (
        name.encode('utf-8'),
        data,
        tuple(time_fields),
        len(data) if custom is None else custom,
    )


# ==================== 基础 Fixtures ====================

@pytest.fixture
def afs_factory():
    """返回 make_afs 拼装函数"""
    return make_afs


@pytest.fixture
def entry_factory():
    """返回 entry 构造函数"""
    return entry


@pytest.fixture
def sample_entries() -> List[RawEntry]:
    """
    典型条目集

    包含空条目、重名条目和一个不对齐的大条目。
    """
    return [
        entry("hero.bin", b"Hero data content"),
        None,
        entry("config.json", b'{"name": "test", "value": 123}'),
        entry("hero.bin", b"\x00\x01\x02\x03" * 700, custom=0xDEADBEEF),
        entry("stage01.dat", bytes(range(256)) * 9),
    ]


@pytest.fixture
def sample_afs(sample_entries) -> bytes:
    """属性表指针位于开头的典型归档"""
    return make_afs(sample_entries, info='beginning')


@pytest.fixture
def sample_stream(sample_afs) -> io.BytesIO:
    """典型归档的内存流"""
    return io.BytesIO(sample_afs)


@pytest.fixture
def sample_afs_file(tmp_path, sample_afs) -> Path:
    """写入磁盘的典型归档"""
    path = tmp_path / "sample.afs"
    path.write_bytes(sample_afs)
    return path


@pytest.fixture
def sample_files(tmp_path) -> tuple:
    """
    创建测试文件集 (单层目录)

    Returns:
        (目录路径, 文件内容字典)
    """
    src_dir = tmp_path / "files"
    files = {
        "hero.txt": b"Hero data content",
        "config.json": b'{"name": "test", "value": 123}',
        "data.bin": bytes(range(256)) * 10,
        "中文文件.txt": "这是中文内容测试".encode("utf-8"),
    }

    src_dir.mkdir()
    for name, content in files.items():
        (src_dir / name).write_bytes(content)

    return src_dir, files


@pytest.fixture
def notifications():
    """收集进度通知的回调，返回 (回调, 通知列表)"""
    received = []
    return received.append, received
