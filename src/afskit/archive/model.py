#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
内存中的 AFS 归档

Archive 独占其条目序列，条目顺序即磁盘上的目录表顺序。
任何条目增删或原始名称变化后都会重新计算唯一名称。
"""

import logging
import os
from typing import BinaryIO, List, Optional, Sequence, Union

from ..core.batch import BatchResult, ProgressCallback, ProgressTracker
from ..core.schema import (
    AttributeTime, HeaderMagicType, AttributesInfoType,
    DEFAULT_ALIGNMENT, DEFAULT_NAME_ENCODING,
)
from ..exceptions import DateRangeWarning, ValidationError
from ..utils import resolve_duplicates, sanitize_name
from .entry import (
    BytesSource, DataEntry, Entry, NullEntry,
    entry_from_file, validate_entry_name,
)

logger = logging.getLogger(__name__)


class Archive:
    """
    AFS 归档

    新建的归档默认使用 AFS_00 头部、属性表指针位于开头、0x800 对齐。
    """

    def __init__(
        self,
        entries: Optional[Sequence[Entry]] = None,
        header_magic_type: HeaderMagicType = HeaderMagicType.AFS_00,
        attributes_info_type: AttributesInfoType = AttributesInfoType.INFO_AT_BEGINNING,
        entry_block_alignment: int = DEFAULT_ALIGNMENT,
        encoding: str = DEFAULT_NAME_ENCODING,
        source_stream: Optional[BinaryIO] = None
    ):
        """
        初始化归档

        Args:
            entries: 初始条目
            header_magic_type: 头部魔法数类型
            attributes_info_type: 属性表指针位置 (或不含属性表)
            entry_block_alignment: 条目对齐单位
            encoding: 属性表名称编码
            source_stream: 解析来源流 (写入时禁止写回同一个流)
        """
        if entry_block_alignment <= 0:
            raise ValidationError(
                f"对齐单位必须大于 0: {entry_block_alignment}",
                "entry_block_alignment"
            )

        self.header_magic_type = header_magic_type
        self.attributes_info_type = attributes_info_type
        self.entry_block_alignment = entry_block_alignment
        self.encoding = encoding
        self._source_stream = source_stream
        self._entries: List[Entry] = []

        for entry in entries or ():
            self._attach(entry)
        self.update_entry_names()

    # ==================== 属性 ====================

    @property
    def entries(self) -> tuple:
        """只读的条目序列"""
        return tuple(self._entries)

    @property
    def entry_count(self) -> int:
        return len(self._entries)

    @property
    def contains_attributes(self) -> bool:
        return self.attributes_info_type != AttributesInfoType.NO_ATTRIBUTES

    @property
    def source_stream(self) -> Optional[BinaryIO]:
        return self._source_stream

    def data_entries(self) -> List[DataEntry]:
        return [e for e in self._entries if isinstance(e, DataEntry)]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)

    def __getitem__(self, index: int) -> Entry:
        return self._entries[index]

    def find(self, name: str) -> Optional[DataEntry]:
        """按唯一名称查找条目"""
        for entry in self._entries:
            if isinstance(entry, DataEntry) and entry.name == name:
                return entry
        return None

    # ==================== 名称维护 ====================

    def update_entry_names(self) -> None:
        """清理所有原始名称并为重名条目生成唯一名称"""
        sanitized = [
            sanitize_name(e.raw_name) if isinstance(e, DataEntry) else None
            for e in self._entries
        ]
        for entry, name in zip(self._entries, resolve_duplicates(sanitized)):
            if isinstance(entry, DataEntry):
                entry.name = name

    def _attach(self, entry: Entry) -> None:
        if not isinstance(entry, (DataEntry, NullEntry)):
            raise ValidationError(f"无效的条目类型: {type(entry).__name__}", "entry")
        if isinstance(entry, DataEntry):
            if entry._archive is not None:
                raise ValidationError("条目已属于某个归档，请先从原归档移除", "entry")
            entry._archive = self
        elif any(e is entry for e in self._entries):
            raise ValidationError("空条目已在该归档中", "entry")
        self._entries.append(entry)

    # ==================== 增删改 ====================

    def add_entry(self, entry: Entry) -> Entry:
        """追加一个已构造的条目"""
        self._attach(entry)
        self.update_entry_names()
        return entry

    def add_entry_from_file(
        self,
        file_path: str,
        entry_name: Optional[str] = None
    ) -> DataEntry:
        """
        从磁盘文件添加条目

        Args:
            file_path: 本地文件路径
            entry_name: 属性表中的名称 (默认使用文件名)

        Raises:
            ValidationError: 路径为空
            FileNotFoundError: 文件不存在
        """
        entry = entry_from_file(file_path, entry_name)
        self.add_entry(entry)
        return entry

    def add_entry_from_bytes(
        self,
        data: bytes,
        entry_name: str,
        last_write_time: Optional[AttributeTime] = None,
        custom_data: Optional[int] = None
    ) -> DataEntry:
        """
        从内存字节添加条目

        custom_data 未指定时使用数据长度。
        """
        if entry_name is None:
            raise ValidationError("条目名称不能为 None", "entry_name")
        entry = DataEntry(
            raw_name=entry_name,
            size=len(data),
            last_write_time=last_write_time or AttributeTime(),
            custom_data=len(data) if custom_data is None else custom_data,
            source=BytesSource(data),
        )
        self.add_entry(entry)
        return entry

    def add_null_entry(self) -> NullEntry:
        """追加一个空条目"""
        entry = NullEntry()
        self.add_entry(entry)
        return entry

    def remove_entry(self, entry: Entry) -> None:
        """
        移除条目

        Raises:
            ValidationError: 条目不属于该归档
        """
        for index, existing in enumerate(self._entries):
            if existing is entry:
                del self._entries[index]
                if isinstance(entry, DataEntry):
                    entry._archive = None
                self.update_entry_names()
                return
        raise ValidationError("条目不属于该归档", "entry")

    def rename_entry(self, entry: DataEntry, new_name: str) -> None:
        """
        重命名条目

        Raises:
            ValidationError: 条目不属于该归档，或名称无效
        """
        if not isinstance(entry, DataEntry) or entry._archive is not self:
            raise ValidationError("条目不属于该归档", "entry")
        validate_entry_name(new_name, self.encoding)
        entry.raw_name = new_name
        self.update_entry_names()

    # ==================== 解包 ====================

    def extract_entry(
        self,
        entry: DataEntry,
        output: Union[str, os.PathLike, BinaryIO],
        progress_callback: Optional[ProgressCallback] = None
    ) -> int:
        """
        解包单个条目

        Args:
            entry: 要解包的条目
            output: 目标文件路径 (自动创建目录)，或可写的二进制流
            progress_callback: 进度回调 (用于报告时间戳警告)

        Returns:
            写入的字节数
        """
        if not isinstance(entry, DataEntry):
            raise ValidationError("空条目没有可解包的数据", "entry")
        if output is None or output == '':
            raise ValidationError("输出路径不能为空", "output")

        if not isinstance(output, (str, os.PathLike)):
            return _copy_entry(entry, output)

        output_path = os.fspath(output)
        directory = os.path.dirname(output_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        with open(output_path, 'wb') as f:
            written = _copy_entry(entry, f)

        if self.contains_attributes:
            try:
                timestamp = entry.last_write_time.to_timestamp()
            except DateRangeWarning as e:
                logger.debug("skip timestamp for %s: %s", output_path, e)
                ProgressTracker(callback=progress_callback).warning(
                    f"条目 \"{entry.name}\" 的时间戳无效 ({e.fields}), 跳过设置修改时间"
                )
            else:
                os.utime(output_path, (timestamp, timestamp))

        return written

    def extract_all_entries(
        self,
        output_dir: str,
        progress_callback: Optional[ProgressCallback] = None
    ) -> BatchResult:
        """
        解包所有条目到目录

        空条目跳过并发出警告; 已存在的文件会被覆盖并发出警告;
        名称指向输出目录之外的条目记为失败。

        Returns:
            BatchResult
        """
        if not output_dir:
            raise ValidationError("输出目录不能为空", "output_dir")

        os.makedirs(output_dir, exist_ok=True)
        tracker = ProgressTracker(total=self.entry_count, callback=progress_callback)
        result = BatchResult()

        def on_entry_warning(notification):
            result.warnings.append(notification.message)
            if progress_callback:
                progress_callback(notification)

        for index, entry in enumerate(self._entries, 1):
            if isinstance(entry, NullEntry):
                tracker.warning(f"空条目，跳过... {index}/{self.entry_count}", index)
                result.skipped_count += 1
                result.skipped_files.append(f"{index - 1:08d}")
                continue

            tracker.info(f"解包条目... {index}/{self.entry_count}", index)

            output_path = os.path.join(output_dir, entry.name)
            if not _is_within(output_dir, output_path):
                error = ValidationError(f"条目名称指向输出目录之外: \"{entry.name}\"", "name")
                tracker.error(str(error), index)
                result.failed_count += 1
                result.failed_files.append((entry.name, error))
                continue

            if os.path.exists(output_path):
                tracker.warning(f"文件 \"{output_path}\" 已存在, 覆盖...", index)

            result.total_bytes += self.extract_entry(entry, output_path, on_entry_warning)
            result.success_count += 1

        result.elapsed_time = tracker.finish()
        tracker.success("所有条目解包完成")
        return result


def _is_within(directory: str, path: str) -> bool:
    # 名称可能是 "../x" 形式的路径
    root = os.path.abspath(directory)
    target = os.path.abspath(path)
    return os.path.commonpath([root, target]) == root and target != root


def _copy_entry(entry: DataEntry, sink: BinaryIO) -> int:
    written = 0
    for chunk in entry.iter_chunks():
        sink.write(chunk)
        written += len(chunk)
    return written
