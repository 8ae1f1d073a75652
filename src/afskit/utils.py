#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
afskit 工具函数

提供对齐计算、条目名称清理与重名处理等通用功能。
"""

import os
from typing import Dict, List, Optional, Sequence, Tuple

from .core.schema import DUMMY_ENTRY_NAME


# 与 .NET Path.GetInvalidPathChars() 一致: 控制字符 + "<>|
INVALID_PATH_CHARS = frozenset(
    [chr(c) for c in range(0x20)] + ['"', '<', '>', '|']
)


def pad(value: int, unit: int) -> int:
    """
    向上对齐到 unit 的整数倍

    Args:
        value: 原始值
        unit: 对齐单位 (必须大于 0)

    Returns:
        对齐后的值，已对齐时原样返回

    Examples:
        >>> pad(0x800, 0x800)
        2048
        >>> pad(0x801, 0x800)
        4096
    """
    remainder = value % unit
    if remainder:
        return value + (unit - remainder)
    return value


def sanitize_name(raw_name: str) -> str:
    """
    清理条目名称，使其可以作为文件名使用

    1. 空名称或纯空白 → DUMMY_ENTRY_NAME
       (部分游戏的属性表中存在名称为空的有效条目)
    2. 移除所有非法路径字符
    3. 移除所有冒号 (部分归档把带盘符的完整路径当作名称)

    不改变大小写、扩展名或长度，永不抛出异常。

    Examples:
        >>> sanitize_name("   ")
        '_NO_NAME'
        >>> sanitize_name("C:DATA|hero.bin")
        'CDATAhero.bin'
    """
    if not raw_name or raw_name.isspace():
        return DUMMY_ENTRY_NAME

    cleaned = ''.join(c for c in raw_name if c not in INVALID_PATH_CHARS)
    return cleaned.replace(':', '')


def split_name(name: str) -> Tuple[str, str]:
    """
    拆分名称为 (主干, 扩展名)，扩展名包含点号

    Examples:
        >>> split_name("archive.tar.gz")
        ('archive.tar', '.gz')
        >>> split_name("README")
        ('README', '')
    """
    return os.path.splitext(name)


def resolve_duplicates(names: Sequence[Optional[str]]) -> List[Optional[str]]:
    """
    为重名条目生成唯一名称

    按顺序遍历，第一次出现的名称保持不变，之后的重复
    重命名为 "{主干} ({N}){扩展名}"，N 从 1 递增，跳过
    已生成的名称和序列中原本就存在的名称。None (空条目)
    原样保留，且不参与计数。

    Args:
        names: 已清理的名称序列

    Returns:
        与输入等长、互不相同的名称列表

    Examples:
        >>> resolve_duplicates(["a.txt", None, "a.txt", "a.txt"])
        ['a.txt', None, 'a (1).txt', 'a (2).txt']
        >>> resolve_duplicates(["a (1).txt", "a.txt", "a.txt"])
        ['a (1).txt', 'a.txt', 'a (2).txt']
    """
    originals = {name for name in names if name is not None}
    counters: Dict[str, int] = {}
    used = set()
    result: List[Optional[str]] = []

    for name in names:
        if name is None:
            result.append(None)
            continue

        if name not in counters:
            counters[name] = 0
            used.add(name)
            result.append(name)
            continue

        stem, ext = split_name(name)
        count = counters[name]
        while True:
            count += 1
            candidate = f"{stem} ({count}){ext}"
            if candidate not in originals and candidate not in used:
                break
        counters[name] = count
        used.add(candidate)
        result.append(candidate)

    return result


def find_invalid_chars(name: str) -> List[str]:
    """返回名称中出现的非法字符 (含冒号)，按出现顺序去重"""
    found = []
    for c in name:
        if (c in INVALID_PATH_CHARS or c == ':') and c not in found:
            found.append(c)
    return found


def get_file_size(file_path: str) -> int:
    """读取磁盘文件大小"""
    return os.path.getsize(file_path)
