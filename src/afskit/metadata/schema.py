#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
元数据 (sidecar) 数据结构

描述如何从一个解包目录重建等价的归档。JSON 键名沿用
原打包工具的 PascalCase 写法，以兼容已有的 sidecar 文件。

当前版本 (v3) 的 JSON 格式:
{
    "MetadataVersion": 3,
    "HeaderMagicType": "AFS_00",
    "AttributesInfoType": "InfoAtBeginning",
    "EntryBlockAlignment": 2048,
    "AllAttributesContainEntrySize": true,
    "Entries": [
        {"IsNull": false, "Name": "hero.bin", "FileName": "hero.bin", "CustomData": 1024},
        {"IsNull": true, "Name": "", "FileName": "", "CustomData": 0}
    ]
}
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List

from ..archive.entry import entry_from_file
from ..archive.model import Archive
from ..core.schema import (
    HeaderMagicType, AttributesInfoType,
    DEFAULT_ALIGNMENT, DEFAULT_NAME_ENCODING, MAX_U32,
)
from ..exceptions import ValidationError


CURRENT_VERSION = 3


@dataclass
class MetadataEntry:
    """
    元数据条目

    name 为归档内的原始名称，file_name 为磁盘上保存该条目数据的文件名。
    """
    is_null: bool = False
    name: str = ''
    file_name: str = ''
    custom_data: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'IsNull': self.is_null,
            'Name': self.name,
            'FileName': self.file_name,
            'CustomData': self.custom_data,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MetadataEntry':
        return cls(
            is_null=bool(data.get('IsNull', False)),
            name=data.get('Name') or '',
            file_name=data.get('FileName') or '',
            custom_data=_parse_custom_data(data.get('CustomData', 0)),
        )


def _parse_custom_data(value: Any) -> int:
    # 属性表中为 u32
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"CustomData 必须是整数: {value!r}", "CustomData")
    if not 0 <= value <= MAX_U32:
        raise ValidationError(
            f"CustomData 超出 32 位无符号整数范围: {value}", "CustomData"
        )
    return value


@dataclass
class MetadataRecord:
    """当前版本的元数据记录"""
    header_magic_type: HeaderMagicType = HeaderMagicType.AFS_00
    attributes_info_type: AttributesInfoType = AttributesInfoType.INFO_AT_BEGINNING
    entry_block_alignment: int = DEFAULT_ALIGNMENT
    all_attributes_contain_entry_size: bool = False
    entries: List[MetadataEntry] = field(default_factory=list)
    metadata_version: int = CURRENT_VERSION

    @property
    def entry_count(self) -> int:
        return len(self.entries)

    @property
    def contains_attributes(self) -> bool:
        return self.attributes_info_type != AttributesInfoType.NO_ATTRIBUTES

    # ==================== 序列化 ====================

    def to_dict(self) -> Dict[str, Any]:
        return {
            'MetadataVersion': self.metadata_version,
            'HeaderMagicType': self.header_magic_type.value,
            'AttributesInfoType': self.attributes_info_type.value,
            'EntryBlockAlignment': self.entry_block_alignment,
            'AllAttributesContainEntrySize': self.all_attributes_contain_entry_size,
            'Entries': [e.to_dict() for e in self.entries],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MetadataRecord':
        """
        从当前版本的字典创建记录

        Raises:
            ValidationError: 版本不是当前版本或字段值无效
        """
        version = data.get('MetadataVersion')
        if version != CURRENT_VERSION:
            raise ValidationError(
                f"元数据需要先迁移到版本 {CURRENT_VERSION}, 当前为 {version!r}",
                "MetadataVersion"
            )

        try:
            header_magic_type = HeaderMagicType(data.get('HeaderMagicType', 'AFS_00'))
            attributes_info_type = AttributesInfoType(
                data.get('AttributesInfoType', 'InfoAtBeginning')
            )
        except ValueError as e:
            raise ValidationError(f"元数据字段值无效: {e}") from e

        alignment = int(data.get('EntryBlockAlignment', DEFAULT_ALIGNMENT))
        if alignment <= 0:
            raise ValidationError(
                f"EntryBlockAlignment 必须大于 0: {alignment}", "EntryBlockAlignment"
            )

        return cls(
            header_magic_type=header_magic_type,
            attributes_info_type=attributes_info_type,
            entry_block_alignment=alignment,
            all_attributes_contain_entry_size=bool(
                data.get('AllAttributesContainEntrySize', False)
            ),
            entries=[MetadataEntry.from_dict(e) for e in data.get('Entries') or []],
            metadata_version=version,
        )

    # ==================== 与 Archive 互转 ====================

    @classmethod
    def from_archive(cls, archive: Archive) -> 'MetadataRecord':
        """
        从解析得到的归档生成元数据

        file_name 使用条目的唯一名称 (即解包时的文件名)。
        """
        entries = []
        all_contain_size = True

        for entry in archive:
            if entry.is_null:
                entries.append(MetadataEntry(is_null=True))
                continue
            entries.append(MetadataEntry(
                name=entry.raw_name,
                file_name=entry.name,
                custom_data=entry.custom_data,
            ))
            if entry.custom_data != entry.size:
                all_contain_size = False

        return cls(
            header_magic_type=archive.header_magic_type,
            attributes_info_type=archive.attributes_info_type,
            entry_block_alignment=archive.entry_block_alignment,
            all_attributes_contain_entry_size=all_contain_size,
            entries=entries,
        )

    def to_archive(
        self,
        directory: str,
        encoding: str = DEFAULT_NAME_ENCODING
    ) -> Archive:
        """
        根据元数据和目录中的文件构建归档

        all_attributes_contain_entry_size 为真时 custom_data 由源文件大小重新生成，
        否则原样使用记录中的值。

        Raises:
            FileNotFoundError: 引用的文件不存在
        """
        archive = Archive(
            header_magic_type=self.header_magic_type,
            attributes_info_type=self.attributes_info_type,
            entry_block_alignment=self.entry_block_alignment,
            encoding=encoding,
        )

        for meta in self.entries:
            if meta.is_null:
                archive.add_null_entry()
                continue
            entry = entry_from_file(os.path.join(directory, meta.file_name), meta.name)
            if not self.all_attributes_contain_entry_size:
                entry.custom_data = meta.custom_data
            archive.add_entry(entry)

        return archive
