#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
元数据版本迁移

每个版本都有一个从 N 到 N+1 的迁移函数，按顺序传递应用。
迁移函数不修改输入字典，返回新的字典。

v2 → v3 需要读取磁盘文件大小来回填 CustomData，
这一能力通过 file_size 参数注入，而不是直接访问文件系统。
"""

import copy
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..core.schema import HeaderMagicType, AttributesInfoType, DEFAULT_ALIGNMENT
from ..exceptions import MigrationError, MetadataVersionError
from .schema import CURRENT_VERSION

logger = logging.getLogger(__name__)


# 文件名 -> 文件大小
FileSizeFunc = Callable[[str], int]

# 旧版打包工具在文件列表中标记空条目的占位名
LEGACY_NULL_FILE_NAME = "#NULL#"

# .NET 序列化枚举时使用的整数值顺序
_HEADER_MAGIC_ORDER = [HeaderMagicType.AFS_00, HeaderMagicType.AFS_20]
_ATTRIBUTES_INFO_ORDER = [
    AttributesInfoType.NO_ATTRIBUTES,
    AttributesInfoType.INFO_AT_BEGINNING,
    AttributesInfoType.INFO_AT_END,
]


def _normalize_enum(value: Any, order: list, default):
    """将整数或名称形式的枚举值统一为名称"""
    if value is None:
        return default.value
    if isinstance(value, bool):
        raise MigrationError(f"无效的枚举值: {value!r}")
    if isinstance(value, int):
        if 0 <= value < len(order):
            return order[value].value
        raise MigrationError(f"无效的枚举值: {value!r}")
    for member in order:
        if value == member.value:
            return member.value
    raise MigrationError(f"无效的枚举值: {value!r}")


# ==================== 版本迁移实现 ====================

def migrate_v1_to_v2(data: dict, file_size: Optional[FileSizeFunc] = None) -> dict:
    """
    v1 -> v2 迁移

    变更:
    - 引入显式空条目 (IsNull) 和 EntryBlockAlignment
    - 条目字段 Name (显示名) 重命名为 FileName, RawName (原始名) 重命名为 Name
    - 枚举统一为名称形式
    - 兼容更早的目录列表格式 (FileNames / HeaderType / AttributesType)
    """
    data = copy.deepcopy(data)

    if 'FileNames' in data:
        legacy_entries = [
            {'RawName': name, 'Name': name} for name in data.pop('FileNames') or []
        ]
        data.setdefault('HeaderMagicType', data.pop('HeaderType', None))
        data.setdefault('AttributesInfoType', data.pop('AttributesType', None))
        data['Entries'] = legacy_entries

    entries = []
    for entry in data.get('Entries') or []:
        file_name = entry.get('Name') or ''
        raw_name = entry.get('RawName')
        if raw_name is None:
            raw_name = file_name

        if file_name == LEGACY_NULL_FILE_NAME:
            entries.append({
                'IsNull': True,
                'Name': '',
                'FileName': '',
                'HasUnknownAttribute': False,
                'UnknownAttribute': 0,
            })
            continue

        entries.append({
            'IsNull': False,
            'Name': raw_name,
            'FileName': file_name,
            'HasUnknownAttribute': False,
            'UnknownAttribute': 0,
        })

    return {
        'MetadataVersion': 2,
        'HeaderMagicType': _normalize_enum(
            data.get('HeaderMagicType'), _HEADER_MAGIC_ORDER, HeaderMagicType.AFS_00
        ),
        'AttributesInfoType': _normalize_enum(
            data.get('AttributesInfoType'), _ATTRIBUTES_INFO_ORDER,
            AttributesInfoType.INFO_AT_BEGINNING
        ),
        'EntryBlockAlignment': DEFAULT_ALIGNMENT,
        'Entries': entries,
    }


def migrate_v2_to_v3(data: dict, file_size: Optional[FileSizeFunc] = None) -> dict:
    """
    v2 -> v3 迁移

    变更:
    - UnknownAttribute 重命名为 CustomData
    - 没有自定义值的条目用磁盘文件大小回填 CustomData
    - 新增 AllAttributesContainEntrySize: 所有非空条目的 CustomData
      都等于其文件大小时为真

    Raises:
        MigrationError: 需要回填但找不到对应的磁盘文件
    """
    data = copy.deepcopy(data)

    entries = []
    all_contain_size = True

    for entry in data.get('Entries') or []:
        is_null = bool(entry.get('IsNull', False))
        name = entry.get('Name') or ''
        file_name = entry.get('FileName') or ''

        if is_null:
            entries.append({
                'IsNull': True, 'Name': name, 'FileName': file_name, 'CustomData': 0,
            })
            continue

        if entry.get('HasUnknownAttribute', False):
            custom_data = int(entry.get('UnknownAttribute', 0))
            if custom_data != _try_file_size(file_size, file_name):
                all_contain_size = False
        else:
            custom_data = _require_file_size(file_size, file_name)

        entries.append({
            'IsNull': False, 'Name': name, 'FileName': file_name, 'CustomData': custom_data,
        })

    data['MetadataVersion'] = 3
    data['AllAttributesContainEntrySize'] = all_contain_size
    data['Entries'] = entries
    data.setdefault('EntryBlockAlignment', DEFAULT_ALIGNMENT)
    return data


def _require_file_size(file_size: Optional[FileSizeFunc], file_name: str) -> int:
    if file_size is None:
        raise MigrationError(
            f"回填 CustomData 需要读取文件 \"{file_name}\" 的大小, 但未提供文件访问能力"
        )
    try:
        return file_size(file_name)
    except OSError as e:
        raise MigrationError(
            f"回填 CustomData 失败: 找不到文件 \"{file_name}\""
        ) from e


def _try_file_size(file_size: Optional[FileSizeFunc], file_name: str) -> Optional[int]:
    if file_size is None:
        return None
    try:
        return file_size(file_name)
    except OSError:
        return None


# ==================== 迁移器 ====================

class MetadataMigrator:
    """
    元数据版本迁移器

    MIGRATIONS 中的第 i 项把版本 i+1 迁移到 i+2。
    """

    CURRENT_VERSION = CURRENT_VERSION
    SUPPORTED_VERSIONS = [1, 2, 3]

    MIGRATIONS: List[Callable[[dict, Optional[FileSizeFunc]], dict]] = [
        migrate_v1_to_v2,
        migrate_v2_to_v3,
    ]

    @classmethod
    def get_version(cls, data: Dict[str, Any]) -> int:
        """
        读取并校验版本号

        Raises:
            MetadataVersionError: 版本缺失、无效或不受支持
        """
        version = data.get('MetadataVersion') if isinstance(data, dict) else None
        if isinstance(version, bool) or not isinstance(version, int):
            raise MetadataVersionError(version, cls.get_supported_versions())
        if version not in cls.SUPPORTED_VERSIONS:
            raise MetadataVersionError(version, cls.get_supported_versions())
        return version

    @classmethod
    def migrate(
        cls,
        data: Dict[str, Any],
        file_size: Optional[FileSizeFunc] = None,
        target_version: int = CURRENT_VERSION
    ) -> Tuple[Dict[str, Any], bool]:
        """
        将元数据字典迁移到目标版本

        Args:
            data: 从 sidecar 读取的字典 (不会被修改)
            file_size: 根据文件名返回磁盘文件大小的函数
            target_version: 目标版本号

        Returns:
            (迁移后的字典, 是否发生了迁移)

        Raises:
            MetadataVersionError: 版本不受支持
            MigrationError: 迁移步骤失败
        """
        if target_version not in cls.SUPPORTED_VERSIONS:
            raise MetadataVersionError(target_version, cls.get_supported_versions())

        version = cls.get_version(data)
        if version > target_version:
            raise MigrationError(f"无法从版本 {version} 降级到 {target_version}")

        changed = False
        while version < target_version:
            step = cls.MIGRATIONS[version - 1]
            logger.debug("migrating metadata v%d -> v%d", version, version + 1)
            data = step(data, file_size)
            version += 1
            changed = True

        return data, changed

    @classmethod
    def get_supported_versions(cls) -> List[int]:
        """获取支持的版本列表"""
        return cls.SUPPORTED_VERSIONS.copy()

    @classmethod
    def can_migrate(cls, source_version: int, target_version: int) -> bool:
        """检查是否支持指定的版本迁移"""
        return (
            source_version in cls.SUPPORTED_VERSIONS and
            target_version in cls.SUPPORTED_VERSIONS and
            source_version <= target_version
        )
