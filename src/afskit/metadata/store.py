#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
元数据文件读写

sidecar 默认保存在解包目录旁边: <目录>.json
"""

import json
import logging
import os
from typing import Optional

from ..exceptions import MigrationError
from ..utils import get_file_size
from .migration import MetadataMigrator
from .schema import MetadataRecord

logger = logging.getLogger(__name__)


# 名称中可能含有无法解码的原始字节，用 surrogateescape 原样保存
_JSON_ENCODING = 'utf-8'
_JSON_ERRORS = 'surrogateescape'


def default_metadata_path(directory: str) -> str:
    """返回目录对应的 sidecar 路径"""
    return directory.rstrip('/\\' + os.sep) + '.json'


def _write_json(data: dict, path: str, indent: int = 2) -> None:
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(path, 'w', encoding=_JSON_ENCODING, errors=_JSON_ERRORS) as f:
        json.dump(data, f, indent=indent, ensure_ascii=False)


def save_metadata(record: MetadataRecord, path: str, indent: int = 2) -> None:
    """
    保存元数据

    Args:
        record: 元数据记录
        path: 输出 JSON 路径
        indent: JSON 缩进
    """
    _write_json(record.to_dict(), path, indent)
    logger.debug("saved metadata: %s (%d entries)", path, record.entry_count)


def load_metadata(
    path: str,
    base_dir: Optional[str] = None,
    write_back: bool = True
) -> MetadataRecord:
    """
    读取元数据，必要时迁移到当前版本

    迁移发生时，若 write_back 为真则把迁移后的内容写回原文件。

    Args:
        path: sidecar JSON 路径
        base_dir: FileName 相对的目录 (默认为去掉 .json 后缀的路径)
        write_back: 迁移后是否写回

    Returns:
        MetadataRecord

    Raises:
        FileNotFoundError: 文件不存在
        MigrationError: 版本不受支持或迁移失败
    """
    if base_dir is None:
        base_dir = path[:-len('.json')] if path.lower().endswith('.json') else path

    with open(path, 'r', encoding=_JSON_ENCODING, errors=_JSON_ERRORS) as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise MigrationError(f"元数据不是有效的 JSON: {path} ({e})") from e

    def file_size(file_name: str) -> int:
        return get_file_size(os.path.join(base_dir, file_name))

    data, changed = MetadataMigrator.migrate(data, file_size)

    if changed:
        logger.info("metadata migrated to v%d: %s", MetadataMigrator.CURRENT_VERSION, path)
        if write_back:
            _write_json(data, path)

    return MetadataRecord.from_dict(data)
