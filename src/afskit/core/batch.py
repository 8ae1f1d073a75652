#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
进度通知与批量结果

编解码过程通过显式传入的回调函数报告进度，
不存在进程级的全局订阅列表。回调在调用线程上同步执行，
不能阻塞，也不能重入编解码器。
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional, List, Tuple
import time


class NotificationType(Enum):
    """通知级别"""
    INFO = "Info"
    WARNING = "Warning"
    SUCCESS = "Success"
    ERROR = "Error"


@dataclass
class Notification:
    """
    进度通知

    传递给进度回调函数的数据结构。
    """
    type: NotificationType
    message: str
    current: int = 0          # 当前条目序号 (从 1 开始, 0 表示无)
    total: int = 0            # 条目总数

    @property
    def progress(self) -> float:
        """进度百分比 (0.0 - 1.0)"""
        if self.total == 0:
            return 0.0
        return self.current / self.total

    def __str__(self) -> str:
        return f"[{self.type.value}] {self.message}"


# 进度回调函数类型
ProgressCallback = Callable[[Notification], None]


@dataclass
class BatchResult:
    """
    批量操作结果

    包含成功/失败/跳过统计和详细信息。
    """
    success_count: int = 0
    failed_count: int = 0
    skipped_count: int = 0
    total_bytes: int = 0
    elapsed_time: float = 0.0
    failed_files: List[Tuple[str, Exception]] = field(default_factory=list)
    skipped_files: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def total_count(self) -> int:
        return self.success_count + self.failed_count + self.skipped_count

    @property
    def success_rate(self) -> float:
        if self.total_count == 0:
            return 0.0
        return self.success_count / self.total_count


class ProgressTracker:
    """
    进度跟踪器

    封装通知构造和回调调用逻辑。未提供回调时所有通知被丢弃。
    """

    def __init__(
        self,
        total: int = 0,
        callback: Optional[ProgressCallback] = None
    ):
        self._total = total
        self._callback = callback
        self._start_time = time.time()

    @property
    def total(self) -> int:
        return self._total

    def notify(
        self,
        type: NotificationType,
        message: str,
        current: int = 0
    ) -> None:
        if self._callback:
            self._callback(Notification(type, message, current, self._total))

    def info(self, message: str, current: int = 0) -> None:
        self.notify(NotificationType.INFO, message, current)

    def warning(self, message: str, current: int = 0) -> None:
        self.notify(NotificationType.WARNING, message, current)

    def success(self, message: str) -> None:
        self.notify(NotificationType.SUCCESS, message)

    def error(self, message: str, current: int = 0) -> None:
        self.notify(NotificationType.ERROR, message, current)

    def finish(self) -> float:
        """完成并返回总耗时"""
        return time.time() - self._start_time
