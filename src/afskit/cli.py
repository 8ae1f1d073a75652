#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
afskit 命令行

    afskit extract ARCHIVE OUTPUT_DIR [--metadata PATH]
    afskit create INPUT_DIR OUTPUT_ARCHIVE [--metadata PATH]
    afskit info ARCHIVE
    afskit init INPUT_DIR [--metadata PATH] [--no-attributes] [--header AFS_00|AFS_20]
"""

import argparse
import logging
import sys
from typing import List, Optional

from . import __version__
from .converter import (
    create_archive, create_metadata_for_directory,
    describe_archive, extract_archive,
)
from .core.batch import Notification, NotificationType
from .core.schema import HeaderMagicType, AttributesInfoType, DEFAULT_NAME_ENCODING
from .exceptions import AFSError

logger = logging.getLogger("afskit")


_LEVELS = {
    NotificationType.INFO: logging.INFO,
    NotificationType.SUCCESS: logging.INFO,
    NotificationType.WARNING: logging.WARNING,
    NotificationType.ERROR: logging.ERROR,
}


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s | %(levelname)-8s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stderr)],
    )


def _log_notification(notification: Notification) -> None:
    """把进度通知转发到日志; 逐条目的 INFO 只在 DEBUG 级别输出"""
    if notification.type == NotificationType.SUCCESS:
        logger.info("[Success] %s", notification.message)
    elif notification.type == NotificationType.INFO and notification.current:
        logger.debug(notification.message)
    else:
        logger.log(_LEVELS[notification.type], notification.message)


# ==================== 子命令 ====================


def cmd_extract(args: argparse.Namespace) -> None:
    result = extract_archive(
        args.archive, args.output_dir,
        metadata_path=args.metadata,
        encoding=args.encoding,
        progress_callback=_log_notification,
    )
    logger.info(
        "extracted %d entries (%d null, %d failed, %d bytes) in %.2fs",
        result.success_count, result.skipped_count, result.failed_count,
        result.total_bytes, result.elapsed_time
    )


def cmd_create(args: argparse.Namespace) -> None:
    layout = create_archive(
        args.input_dir, args.output,
        metadata_path=args.metadata,
        encoding=args.encoding,
        progress_callback=_log_notification,
    )
    logger.info("wrote %s (%d bytes)", args.output, layout.end_of_file)


def cmd_info(args: argparse.Namespace) -> None:
    info = describe_archive(args.archive, encoding=args.encoding)
    for line in info.format_lines():
        print(line)


def cmd_init(args: argparse.Namespace) -> None:
    if args.no_attributes:
        attributes_info_type = AttributesInfoType.NO_ATTRIBUTES
    else:
        attributes_info_type = AttributesInfoType.INFO_AT_BEGINNING

    record = create_metadata_for_directory(
        args.input_dir,
        metadata_path=args.metadata,
        header_magic_type=HeaderMagicType(args.header),
        attributes_info_type=attributes_info_type,
    )
    logger.info("metadata created for %d files", record.entry_count)


# ==================== 入口 ====================


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="afskit",
        description="AFS archive tool",
    )
    ap.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    ap.add_argument("-v", "--verbose", action="store_true", help="Show per-entry progress")
    ap.add_argument(
        "--encoding",
        default=DEFAULT_NAME_ENCODING,
        help=f"Encoding of entry names in the attribute table (default: {DEFAULT_NAME_ENCODING})",
    )
    sub = ap.add_subparsers(dest="cmd", required=True)

    ap_extract = sub.add_parser("extract", help="Extract archive into a directory")
    ap_extract.add_argument("archive", help="Archive path")
    ap_extract.add_argument("output_dir", help="Output directory")
    ap_extract.add_argument("--metadata", help="Metadata path (default: <output_dir>.json)")
    ap_extract.set_defaults(func=cmd_extract)

    ap_create = sub.add_parser("create", help="Create archive from an extracted directory")
    ap_create.add_argument("input_dir", help="Input directory")
    ap_create.add_argument("output", help="Output archive path")
    ap_create.add_argument("--metadata", help="Metadata path (default: <input_dir>.json)")
    ap_create.set_defaults(func=cmd_create)

    ap_info = sub.add_parser("info", help="Show archive information")
    ap_info.add_argument("archive", help="Archive path")
    ap_info.set_defaults(func=cmd_info)

    ap_init = sub.add_parser("init", help="Create default metadata for a plain directory")
    ap_init.add_argument("input_dir", help="Input directory")
    ap_init.add_argument("--metadata", help="Metadata path (default: <input_dir>.json)")
    ap_init.add_argument("--no-attributes", action="store_true", help="Do not write an attribute table")
    ap_init.add_argument(
        "--header",
        choices=[t.value for t in HeaderMagicType],
        default=HeaderMagicType.AFS_00.value,
        help="Header magic (default: AFS_00)",
    )
    ap_init.set_defaults(func=cmd_init)

    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose)

    try:
        args.func(args)
    except (AFSError, OSError) as e:
        logger.error("%s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
