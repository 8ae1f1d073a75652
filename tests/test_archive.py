#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Archive 模块测试

测试解析、写入、条目增删改和解包。
"""

import io
import os
import struct
from datetime import datetime

import pytest

from afskit import (
    Archive,
    ArchiveBuilder,
    ArchiveReader,
    DataEntry,
    NullEntry,
    parse_archive,
    build_archive,
)
from afskit.core.batch import NotificationType
from afskit.core.schema import AttributeTime, AttributesInfoType, HeaderMagicType
from afskit.exceptions import FormatError, ValidationError


# ==================== 解析测试 ====================

class TestParseArchive:
    """parse_archive 测试"""

    def test_basic(self, sample_stream):
        """典型归档"""
        archive = parse_archive(sample_stream)

        assert archive.entry_count == 5
        assert archive.header_magic_type == HeaderMagicType.AFS_00
        assert archive.attributes_info_type == AttributesInfoType.INFO_AT_BEGINNING
        assert archive.entry_block_alignment == 0x800
        assert archive.source_stream is sample_stream

    def test_entry_names(self, sample_stream):
        """重名条目获得唯一名称，空条目没有名称"""
        archive = parse_archive(sample_stream)
        names = [None if e.is_null else e.name for e in archive]

        assert names == ["hero.bin", None, "config.json", "hero (1).bin", "stage01.dat"]
        assert archive[3].raw_name == "hero.bin"

    def test_entry_data(self, sample_stream, sample_entries):
        archive = parse_archive(sample_stream)

        for entry, raw in zip(archive, sample_entries):
            if raw is None:
                assert isinstance(entry, NullEntry)
                continue
            assert entry.read() == raw[1]
            assert entry.size == len(raw[1])
            assert entry.custom_data == raw[3]
            assert entry.last_write_time == AttributeTime(*raw[2])

    def test_custom_data_preserved(self, sample_stream):
        """custom_data 不一定等于大小"""
        archive = parse_archive(sample_stream)
        assert archive[3].custom_data == 0xDEADBEEF

    def test_notifications(self, sample_stream, notifications):
        """每个目录表槽位一条 INFO，最后一条 SUCCESS"""
        callback, received = notifications
        parse_archive(sample_stream, progress_callback=callback)

        infos = [n for n in received if n.type == NotificationType.INFO]
        assert [n.current for n in infos] == [1, 2, 3, 4, 5]
        assert received[-1].type == NotificationType.SUCCESS

    def test_afs_20(self, afs_factory, sample_entries):
        archive = parse_archive(io.BytesIO(afs_factory(sample_entries, magic=0x20534641)))
        assert archive.header_magic_type == HeaderMagicType.AFS_20

    def test_info_at_end(self, afs_factory, sample_entries):
        archive = parse_archive(io.BytesIO(afs_factory(sample_entries, info='end')))

        assert archive.attributes_info_type == AttributesInfoType.INFO_AT_END
        assert archive[0].name == "hero.bin"

    def test_no_attributes(self, afs_factory, sample_entries):
        """不含属性表时用序号作为名称"""
        archive = parse_archive(io.BytesIO(afs_factory(sample_entries, info=None)))

        assert archive.attributes_info_type == AttributesInfoType.NO_ATTRIBUTES
        assert [e.name for e in archive.data_entries()] == [
            "00000000", "00000002", "00000003", "00000004"
        ]
        assert archive[0].last_write_time == AttributeTime()

    def test_sanitized_names(self, afs_factory, entry_factory):
        """空名称和带冒号的名称"""
        data = afs_factory([
            entry_factory("", b"a"),
            entry_factory("", b"b"),
            entry_factory("C:data|x.bin", b"c"),
        ])
        archive = parse_archive(io.BytesIO(data))

        assert [e.name for e in archive] == ["_NO_NAME", "_NO_NAME (1)", "Cdatax.bin"]
        assert archive[2].raw_name == "C:data|x.bin"

    def test_shift_jis(self, afs_factory):
        data = afs_factory([("テスト.bin".encode('shift_jis'), b"x", (2020, 1, 1, 0, 0, 0), 1)])
        archive = parse_archive(io.BytesIO(data), encoding='shift_jis')
        assert archive[0].name == "テスト.bin"

    def test_empty_archive(self, afs_factory):
        archive = parse_archive(io.BytesIO(afs_factory([], info=None)))
        assert archive.entry_count == 0

    def test_invalid_magic(self):
        """魔法数无效"""
        data = struct.pack('<II', 0x12345678, 0) + b"\x00" * 0x800

        with pytest.raises(FormatError) as exc_info:
            parse_archive(io.BytesIO(data))

        assert exc_info.value.actual == "0x12345678"
        assert isinstance(exc_info.value, ValueError)

    def test_truncated_header(self):
        with pytest.raises(FormatError):
            parse_archive(io.BytesIO(b"AFS"))

    def test_truncated_toc(self):
        """头部声明的条目数超过实际目录表"""
        data = struct.pack('<II', 0x00534641, 5) + struct.pack('<II', 0x800, 4)

        with pytest.raises(FormatError):
            parse_archive(io.BytesIO(data))

    def test_entry_past_end(self, afs_factory, entry_factory):
        data = bytearray(afs_factory([entry_factory("a.bin", b"abc")], info=None))
        struct.pack_into('<II', data, 8, 0x800, 0x10000)

        with pytest.raises(FormatError):
            parse_archive(io.BytesIO(bytes(data)))

    def test_none_stream(self):
        with pytest.raises(ValidationError):
            parse_archive(None)


# ==================== 写入测试 ====================

class TestBuildArchive:
    """ArchiveBuilder 测试"""

    @pytest.mark.parametrize("info", ['beginning', 'end', None])
    def test_round_trip_identity(self, afs_factory, sample_entries, info):
        """解析后原样写入，字节完全一致"""
        original = afs_factory(sample_entries, info=info)
        archive = parse_archive(io.BytesIO(original))

        output = io.BytesIO()
        build_archive(archive, output)

        assert output.getvalue() == original

    def test_round_trip_afs_20(self, afs_factory, sample_entries):
        original = afs_factory(sample_entries, magic=0x20534641)

        output = io.BytesIO()
        build_archive(parse_archive(io.BytesIO(original)), output)

        assert output.getvalue() == original

    def test_new_archive(self):
        """从零创建"""
        archive = Archive()
        archive.add_entry_from_bytes(b"a" * 10, "a.bin", AttributeTime(2021, 1, 2, 3, 4, 5))
        archive.add_null_entry()
        archive.add_entry_from_bytes(b"b" * 20, "b.bin")

        output = io.BytesIO()
        layout = build_archive(archive, output)

        assert layout.offsets == [0x800, 0, 0x1000]
        assert len(output.getvalue()) == layout.end_of_file == 0x2000

        parsed = parse_archive(output)
        assert parsed.attributes_info_type == AttributesInfoType.INFO_AT_BEGINNING
        assert isinstance(parsed[1], NullEntry)
        assert parsed[0].read() == b"a" * 10
        assert parsed[0].last_write_time == AttributeTime(2021, 1, 2, 3, 4, 5)
        assert parsed[2].name == "b.bin"
        assert parsed[2].custom_data == 20

    def test_null_entry_toc(self):
        """空条目在目录表中为 (0, 0)，属性记录全零"""
        archive = Archive()
        archive.add_entry_from_bytes(b"x", "x.bin")
        archive.add_null_entry()

        output = io.BytesIO()
        layout = build_archive(archive, output)
        data = output.getvalue()

        assert struct.unpack_from('<II', data, 16) == (0, 0)
        record = data[layout.attribute_table_offset + 0x30:layout.attribute_table_offset + 0x60]
        assert record == b"\x00" * 0x30

    @pytest.mark.parametrize("info_type", [
        AttributesInfoType.INFO_AT_BEGINNING,
        AttributesInfoType.INFO_AT_END,
    ])
    @pytest.mark.parametrize("order", [("abc.bin", "empty.bin"), ("empty.bin", "abc.bin")])
    def test_zero_length_entry(self, info_type, order):
        """零长度条目保留名称，重新写入后字节一致"""
        contents = {"abc.bin": b"abc", "empty.bin": b""}
        archive = Archive(attributes_info_type=info_type)
        for name in order:
            archive.add_entry_from_bytes(contents[name], name)

        first = io.BytesIO()
        layout = build_archive(archive, first)
        assert layout.offsets[order.index("empty.bin")] != 0

        parsed = parse_archive(io.BytesIO(first.getvalue()))
        assert parsed.attributes_info_type == info_type
        assert [e.name for e in parsed] == list(order)
        assert parsed.find("empty.bin").size == 0
        assert parsed.find("empty.bin").read() == b""

        second = io.BytesIO()
        build_archive(parsed, second)
        assert second.getvalue() == first.getvalue()

    def test_info_at_end_pointer(self):
        archive = Archive(attributes_info_type=AttributesInfoType.INFO_AT_END)
        archive.add_entry_from_bytes(b"x", "x.bin")

        output = io.BytesIO()
        layout = build_archive(archive, output)
        data = output.getvalue()

        assert struct.unpack_from('<II', data, 16) == (0, 0)
        assert struct.unpack_from('<II', data, 0x800 - 8) == (
            layout.attribute_table_offset, 0x30
        )
        assert parse_archive(output).attributes_info_type == AttributesInfoType.INFO_AT_END

    def test_same_stream_rejected(self, sample_stream):
        """禁止写回正在读取的流"""
        archive = parse_archive(sample_stream)

        with pytest.raises(ValidationError):
            build_archive(archive, sample_stream)

    def test_none_stream_rejected(self):
        with pytest.raises(ValidationError):
            build_archive(Archive(), None)

    def test_long_name_warning(self, notifications):
        """超长名称截断并发出警告"""
        callback, received = notifications
        archive = Archive()
        archive.add_entry_from_bytes(b"x", "n" * 40 + ".bin")

        output = io.BytesIO()
        build_archive(archive, output, callback)

        warnings = [n for n in received if n.type == NotificationType.WARNING]
        assert len(warnings) == 1
        assert parse_archive(output)[0].raw_name == "n" * 32

    def test_notifications(self, sample_stream, notifications):
        callback, received = notifications
        output = io.BytesIO()
        build_archive(parse_archive(sample_stream), output, callback)

        assert received[0].type == NotificationType.INFO
        assert received[-1].type == NotificationType.SUCCESS
        assert all(n.total == 5 for n in received)

    def test_overwrites_longer_stream(self):
        """写入比原内容短的流时截断多余数据"""
        output = io.BytesIO(b"\xff" * 0x10000)
        archive = Archive()
        archive.add_entry_from_bytes(b"x", "x.bin")
        layout = build_archive(archive, output)

        assert len(output.getvalue()) == layout.end_of_file

    def test_build_to_file(self, tmp_path, sample_stream, sample_afs):
        path = tmp_path / "out.afs"
        ArchiveBuilder(parse_archive(sample_stream)).build_to_file(str(path))

        assert path.read_bytes() == sample_afs

    def test_layout_preview(self, sample_stream):
        builder = ArchiveBuilder(parse_archive(sample_stream))
        assert builder.layout.offsets[1] == 0


# ==================== 条目增删改测试 ====================

class TestArchiveMutation:
    """Archive 增删改测试"""

    def test_remove_updates_names(self, sample_stream):
        """删除条目后重新计算唯一名称"""
        archive = parse_archive(sample_stream)
        archive.remove_entry(archive[0])

        assert archive.entry_count == 4
        assert archive[2].name == "hero.bin"

    def test_remove_foreign_entry(self, sample_stream):
        archive = parse_archive(sample_stream)
        with pytest.raises(ValidationError):
            archive.remove_entry(NullEntry())

    def test_remove_null_entry(self, sample_stream):
        archive = parse_archive(sample_stream)
        archive.remove_entry(archive[1])

        assert all(not e.is_null for e in archive)

    def test_rename(self, sample_stream):
        archive = parse_archive(sample_stream)
        archive.rename_entry(archive[0], "villain.bin")

        assert archive[0].name == "villain.bin"
        assert archive[3].name == "hero.bin"

    def test_rename_via_entry(self, sample_stream):
        archive = parse_archive(sample_stream)
        archive[2].rename("hero.bin")

        assert archive[2].name == "hero (1).bin"
        assert archive[3].name == "hero (2).bin"

    @pytest.mark.parametrize("new_name", [
        "",
        "x" * 33,
        "a:b.bin",
        "a|b.bin",
        "a\x00b",
        "中" * 11,   # 33 字节
    ])
    def test_rename_invalid(self, sample_stream, new_name):
        archive = parse_archive(sample_stream)

        with pytest.raises(ValidationError):
            archive.rename_entry(archive[0], new_name)
        assert archive[0].raw_name == "hero.bin"

    def test_rename_foreign_entry(self, sample_stream):
        archive = parse_archive(sample_stream)
        entry = DataEntry(raw_name="x", size=0)

        with pytest.raises(ValidationError):
            archive.rename_entry(entry, "y")

    def test_add_entry_from_file(self, tmp_path):
        path = tmp_path / "hero.bin"
        path.write_bytes(b"hero" * 10)
        archive = Archive()

        entry = archive.add_entry_from_file(str(path))

        assert entry.name == "hero.bin"
        assert entry.size == 40
        assert entry.custom_data == 40
        assert entry.read() == b"hero" * 10

    def test_add_entry_from_file_custom_name(self, tmp_path):
        path = tmp_path / "hero.bin"
        path.write_bytes(b"x")
        archive = Archive()

        entry = archive.add_entry_from_file(str(path), "data/hero.bin")
        assert entry.raw_name == "data/hero.bin"

    def test_add_entry_from_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            Archive().add_entry_from_file(str(tmp_path / "missing.bin"))

    def test_add_entry_from_empty_path(self):
        with pytest.raises(ValidationError):
            Archive().add_entry_from_file("")

    def test_add_duplicate(self):
        archive = Archive()
        archive.add_entry_from_bytes(b"a", "a.txt")
        archive.add_null_entry()
        archive.add_entry_from_bytes(b"b", "a.txt")

        assert [e.name for e in archive.data_entries()] == ["a.txt", "a (1).txt"]
        assert archive.entry_count == 3

    def test_add_entry_owned_by_other_archive(self, sample_stream):
        """已属于其他归档的条目不能直接加入"""
        source = parse_archive(sample_stream)
        target = Archive()

        with pytest.raises(ValidationError):
            target.add_entry(source[0])
        assert target.entry_count == 0
        assert source.find("hero.bin") is source[0]

        entry = source[0]
        source.remove_entry(entry)
        target.add_entry(entry)
        assert target.find("hero.bin") is entry

    def test_add_same_entry_twice(self):
        archive = Archive()
        entry = archive.add_entry_from_bytes(b"a", "a.txt")
        null = archive.add_null_entry()

        with pytest.raises(ValidationError):
            archive.add_entry(entry)
        with pytest.raises(ValidationError):
            archive.add_entry(null)
        assert archive.entry_count == 2

    def test_find(self, sample_stream):
        archive = parse_archive(sample_stream)

        assert archive.find("hero (1).bin") is archive[3]
        assert archive.find("missing") is None

    def test_invalid_alignment(self):
        with pytest.raises(ValidationError):
            Archive(entry_block_alignment=0)

    def test_modified_round_trip(self, sample_stream):
        """修改后的归档可以重新解析"""
        archive = parse_archive(sample_stream)
        archive.remove_entry(archive[1])
        archive.add_entry_from_bytes(b"new", "new.bin")

        output = io.BytesIO()
        build_archive(archive, output)
        parsed = parse_archive(output)

        assert [e.name for e in parsed] == [
            "hero.bin", "config.json", "hero (1).bin", "stage01.dat", "new.bin"
        ]
        assert parsed[4].read() == b"new"


# ==================== 解包测试 ====================

class TestExtract:
    """解包测试"""

    def test_extract_all(self, tmp_path, sample_stream, sample_entries):
        archive = parse_archive(sample_stream)
        out_dir = tmp_path / "out"

        result = archive.extract_all_entries(str(out_dir))

        assert result.success_count == 4
        assert result.skipped_count == 1
        assert (out_dir / "hero.bin").read_bytes() == sample_entries[0][1]
        assert (out_dir / "hero (1).bin").read_bytes() == sample_entries[3][1]
        assert sorted(os.listdir(out_dir)) == [
            "config.json", "hero (1).bin", "hero.bin", "stage01.dat"
        ]

    def test_extract_sets_mtime(self, tmp_path, sample_stream):
        archive = parse_archive(sample_stream)
        archive.extract_all_entries(str(tmp_path))

        expected = datetime(2020, 5, 17, 12, 34, 56).timestamp()
        assert os.path.getmtime(tmp_path / "hero.bin") == expected

    def test_invalid_date_warning(self, tmp_path, afs_factory, entry_factory, notifications):
        """非法时间戳只产生警告，文件照常写出"""
        callback, received = notifications
        data = afs_factory([entry_factory("a.bin", b"abc", time_fields=(0, 0, 0, 0, 0, 0))])
        archive = parse_archive(io.BytesIO(data))

        result = archive.extract_all_entries(str(tmp_path), callback)

        assert (tmp_path / "a.bin").read_bytes() == b"abc"
        assert result.success_count == 1
        assert len(result.warnings) == 1
        assert any(n.type == NotificationType.WARNING for n in received)
        assert received[-1].type == NotificationType.SUCCESS

    def test_null_entry_warning(self, tmp_path, sample_stream, notifications):
        callback, received = notifications
        parse_archive(sample_stream).extract_all_entries(str(tmp_path), callback)

        warnings = [n for n in received if n.type == NotificationType.WARNING]
        assert len(warnings) == 1
        assert warnings[0].current == 2

    def test_overwrite_warning(self, tmp_path, sample_stream, notifications):
        callback, received = notifications
        archive = parse_archive(sample_stream)
        archive.extract_all_entries(str(tmp_path))
        archive.extract_all_entries(str(tmp_path), callback)

        warnings = [n for n in received if n.type == NotificationType.WARNING]
        assert len(warnings) == 5   # 1 个空条目 + 4 个已存在的文件

    def test_extract_entry_to_stream(self, sample_stream):
        archive = parse_archive(sample_stream)
        sink = io.BytesIO()

        written = archive.extract_entry(archive[2], sink)

        assert written == len(sink.getvalue())
        assert sink.getvalue() == b'{"name": "test", "value": 123}'

    def test_extract_null_entry(self, tmp_path, sample_stream):
        archive = parse_archive(sample_stream)
        with pytest.raises(ValidationError):
            archive.extract_entry(archive[1], str(tmp_path / "null"))

    def test_extract_without_attributes(self, tmp_path, afs_factory, sample_entries, notifications):
        """不含属性表时不设置修改时间，也不产生时间戳警告"""
        callback, received = notifications
        archive = parse_archive(io.BytesIO(afs_factory(sample_entries, info=None)))

        result = archive.extract_all_entries(str(tmp_path), callback)

        assert result.warnings == []
        assert (tmp_path / "00000000").exists()

    def test_empty_output_dir(self, sample_stream):
        with pytest.raises(ValidationError):
            parse_archive(sample_stream).extract_all_entries("")

    def test_path_like_names(self, tmp_path, afs_factory, entry_factory):
        """子目录名称正常解包，指向目录之外的名称记为失败"""
        data = afs_factory([
            entry_factory("data/a.bin", b"a"),
            entry_factory("../evil.bin", b"b"),
        ])
        out_dir = tmp_path / "out"

        result = parse_archive(io.BytesIO(data)).extract_all_entries(str(out_dir))

        assert (out_dir / "data" / "a.bin").read_bytes() == b"a"
        assert result.success_count == 1
        assert result.failed_count == 1
        assert result.failed_files[0][0] == "../evil.bin"
        assert not (tmp_path / "evil.bin").exists()

    def test_generated_name_collision(self, tmp_path, afs_factory, entry_factory):
        """原始名称与生成的重名名称相同时，每个条目写入各自的文件"""
        data = afs_factory([
            entry_factory("a (1).txt", b"first"),
            entry_factory("a.txt", b"second"),
            entry_factory("a.txt", b"third"),
        ])
        out_dir = tmp_path / "out"
        archive = parse_archive(io.BytesIO(data))

        result = archive.extract_all_entries(str(out_dir))

        assert [e.name for e in archive] == ["a (1).txt", "a.txt", "a (2).txt"]
        assert result.success_count == 3
        assert (out_dir / "a (1).txt").read_bytes() == b"first"
        assert (out_dir / "a.txt").read_bytes() == b"second"
        assert (out_dir / "a (2).txt").read_bytes() == b"third"


# ==================== ArchiveReader 测试 ====================

class TestArchiveReader:
    """ArchiveReader 测试"""

    def test_context_manager(self, sample_afs_file):
        with ArchiveReader(str(sample_afs_file)) as reader:
            assert reader.entry_count == 5
            assert reader.list_all() == [
                "hero.bin", "config.json", "hero (1).bin", "stage01.dat"
            ]
            assert reader.exists("config.json")
            assert not reader.exists("missing")
            assert reader.read("config.json") == b'{"name": "test", "value": 123}'

    def test_read_missing(self, sample_afs_file):
        with ArchiveReader(str(sample_afs_file)) as reader:
            with pytest.raises(FileNotFoundError):
                reader.read("missing.bin")

    def test_closed_after_exit(self, sample_afs_file):
        with ArchiveReader(str(sample_afs_file)) as reader:
            archive = reader.archive

        with pytest.raises(ValueError):
            archive[0].read()

    def test_extract_all(self, tmp_path, sample_afs_file):
        with ArchiveReader(str(sample_afs_file)) as reader:
            result = reader.extract_all(str(tmp_path / "out"))

        assert result.success_count == 4

    def test_invalid_file(self, tmp_path):
        path = tmp_path / "bad.afs"
        path.write_bytes(b"NOTANAFSFILE" * 10)

        with pytest.raises(FormatError):
            ArchiveReader(str(path))

    def test_empty_path(self):
        with pytest.raises(ValidationError):
            ArchiveReader("")
