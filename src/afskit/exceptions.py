#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
afskit 异常定义

所有异常均继承自 AFSError，便于统一捕获。
"""

from typing import List, Optional


class AFSError(Exception):
    """afskit 基础异常"""
    pass


class FormatError(AFSError, ValueError):
    """
    文件格式无效异常

    当魔法数不匹配两种已知头部，或头部/目录表被截断时抛出。
    属于不可恢复错误，会中止整个读取过程。
    """
    def __init__(self, message: str, expected: str = None, actual: str = None):
        self.expected = expected
        self.actual = actual
        if expected and actual:
            message = f"{message}: 期望 {expected}, 实际 {actual}"
        super().__init__(message)


class ValidationError(AFSError, ValueError):
    """
    参数无效异常

    调用方传入了非法参数: 空路径、超长名称、名称包含非法字符、
    或试图写入正在读取的同一个流。
    """
    def __init__(self, message: str, argument: Optional[str] = None):
        self.argument = argument
        super().__init__(message)


class DateRangeWarning(AFSError):
    """
    时间戳越界

    属性表中的日期字段无法组成合法日期 (数据损坏或被有意留空)。
    解包时只跳过时间戳设置并发出警告通知，不会中止整个操作。
    """
    def __init__(self, fields: tuple):
        self.fields = fields
        super().__init__(
            "无效的时间戳 "
            f"{fields[0]:04d}-{fields[1]:02d}-{fields[2]:02d} "
            f"{fields[3]:02d}:{fields[4]:02d}:{fields[5]:02d}"
        )


class MigrationError(AFSError):
    """
    元数据迁移异常

    迁移步骤无法完成时抛出，例如回填 CustomData 时找不到对应的磁盘文件。
    """
    pass


class MetadataVersionError(MigrationError):
    """
    元数据版本不受支持

    当 sidecar 的版本号缺失、无效或高于当前库版本时抛出。
    """
    def __init__(self, file_version, supported_versions: List[int]):
        self.file_version = file_version
        self.supported_versions = supported_versions
        super().__init__(
            f"不支持的元数据版本 {file_version!r}, "
            f"支持的版本: {supported_versions}"
        )
