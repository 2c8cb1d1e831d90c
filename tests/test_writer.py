#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
写入器测试

测试记录写入、索引一致性、属性表维护和追加模式。
"""

import io
import logging
import struct

import pytest

from shapescroll import (
    Reader, Writer, ShapeType, Box, Null, Point, PointZ, PolyLine, Polygon, MultiPoint,
    string_field, number_field,
)
from shapescroll.core.schema import HEADER_SIZE
from shapescroll.exceptions import (
    CloseError, FieldOverflowError, FieldsAlreadySetError, FieldsNotSetError, SchemaError,
    ShapeTypeMismatchError, UnsupportedShapeTypeError,
)


class FlakyStream(io.BytesIO):
    """可以让写入或关闭失败的内存流"""

    def __init__(self, fail_close=False):
        super().__init__()
        self.fail_writes = False
        self.fail_close = fail_close

    def write(self, data):
        if self.fail_writes:
            raise OSError("write failed")
        return super().write(data)

    def close(self):
        if self.fail_close and not self.closed:
            super().close()
            raise OSError("close failed")
        super().close()


def index_entries(shx_bytes: bytes) -> list:
    body = shx_bytes[HEADER_SIZE:]
    return [struct.unpack('>2i', body[i:i + 8]) for i in range(0, len(body), 8)]


def dbf_layout(dbf_bytes: bytes) -> tuple:
    """(record_count, header_length, record_length)"""
    return struct.unpack('<IHH', dbf_bytes[4:12])


# ==================== 几何写入测试 ====================

class TestWrite:
    """几何写入测试"""

    def test_index_points_at_records(self, tmp_path):
        """索引条目 i 指向的记录类型标签等于写入时的几何类型"""
        path = tmp_path / "multi.shp"
        shapes = [
            MultiPoint([(0, 0), (1, 1)]),
            Null(),
            MultiPoint([(5, 5), (6, 7), (8, 9)]),
        ]
        with Writer.create(str(path), ShapeType.MULTIPOINT) as w:
            for shape in shapes:
                w.write(shape)

        shp = path.read_bytes()
        entries = index_entries(path.with_suffix('.shx').read_bytes())
        assert len(entries) == len(shapes)

        for i, (offset, length) in enumerate(entries):
            number, content_length = struct.unpack('>2i', shp[offset * 2:offset * 2 + 8])
            tag = struct.unpack('<i', shp[offset * 2 + 8:offset * 2 + 12])[0]
            assert number == i + 1
            assert content_length == length
            assert tag == shapes[i].shape_type

    def test_content_length_in_words(self, tmp_path):
        path = tmp_path / "p.shp"
        with Writer.create(str(path), ShapeType.POINT) as w:
            w.write(Point(1, 2))

        shp = path.read_bytes()
        assert struct.unpack('>2i', shp[100:108]) == (1, 10)
        assert len(shp) == 128

    def test_headers_after_close(self, tmp_path):
        """文件长度取实际大小，包围盒覆盖所有非空几何"""
        path = tmp_path / "lines.shp"
        with Writer.create(str(path), ShapeType.POLYLINE) as w:
            w.write(PolyLine.from_lines([[(1, 1), (2, 2)]]))
            w.write(Null())
            w.write(PolyLine.from_lines([[(-5, 3), (0, 10)]]))
            assert w.bbox == Box(-5, 1, 2, 10)

        for ext in ('.shp', '.shx'):
            data = path.with_suffix(ext).read_bytes()
            assert struct.unpack('>i', data[0:4])[0] == 9994
            assert struct.unpack('>i', data[24:28])[0] * 2 == len(data)
            assert struct.unpack('<2i', data[28:36]) == (1000, ShapeType.POLYLINE)
            assert struct.unpack('<4d', data[36:68]) == (-5.0, 1.0, 2.0, 10.0)

    def test_first_shape_initializes_bbox(self, tmp_path):
        """包围盒不包含原点，除非几何本身包含"""
        path = tmp_path / "far.shp"
        with Writer.create(str(path), ShapeType.POINT) as w:
            w.write(Point(100, 200))
            w.write(Point(110, 190))

        with Reader(str(path)) as reader:
            assert reader.bbox == Box(100, 190, 110, 200)

    def test_shape_type_mismatch(self, tmp_path):
        with Writer.create(str(tmp_path / "p.shp"), ShapeType.POINT) as w:
            with pytest.raises(ShapeTypeMismatchError):
                w.write(PointZ(1, 2, 3, 4))
            assert w.record_count == 0

    def test_unsupported_shape_type(self, tmp_path):
        with pytest.raises(UnsupportedShapeTypeError):
            Writer.create(str(tmp_path / "x.shp"), 42)
        assert not (tmp_path / "x.shp").exists()

    def test_failed_encode_leaves_file_intact(self, tmp_path):
        """编码失败的几何不会在文件中留下任何字节"""
        path = tmp_path / "p.shp"
        with Writer.create(str(path), ShapeType.POINT) as w:
            w.write(Point(1, 2))
            with pytest.raises(struct.error):
                w.write(Point("bad", 2))
            assert w.record_count == 1
            assert w.write(Point(3, 4)) == 1

        assert len(path.read_bytes()) == HEADER_SIZE + 2 * 28
        assert len(index_entries(path.with_suffix('.shx').read_bytes())) == 2
        with Reader(str(path)) as reader:
            assert [shape for _, shape in reader] == [Point(1, 2), Point(3, 4)]
            assert reader.bbox == Box(1, 2, 3, 4)

    def test_write_returns_index(self, tmp_path):
        with Writer.create(str(tmp_path / "p.shp"), ShapeType.POINT) as w:
            assert [w.write(Point(i, i)) for i in range(3)] == [0, 1, 2]
            assert w.record_count == 3

    def test_in_memory_streams(self):
        shp, shx, dbf = io.BytesIO(), io.BytesIO(), io.BytesIO()
        w = Writer(shp, shx, dbf, shape_type=ShapeType.POLYGON)
        w.write(Polygon.from_lines([[(0, 0), (0, 1), (1, 1), (0, 0)]]))
        w.finalize()

        assert len(shp.getvalue()) == 100 + 8 + 4 + 44 + 4 * 16
        assert len(shx.getvalue()) == 108
        w.close()
        assert shp.closed


# ==================== 属性表测试 ====================

class TestAttributes:
    """属性表维护测试"""

    def test_rows_follow_records(self, tmp_path):
        """设置字段后，每条记录立即获得一行"""
        path = tmp_path / "a.shp"
        with Writer.create(str(path), ShapeType.POINT) as w:
            w.set_fields([string_field("NAME", 10), number_field("N", 4)])
            for i in range(5):
                w.write(Point(i, i))

        dbf = path.with_suffix('.dbf').read_bytes()
        count, header_length, record_length = dbf_layout(dbf)
        assert (count, header_length, record_length) == (5, 33 + 64, 15)
        assert len(dbf) == header_length + 5 * record_length

    def test_set_fields_backfills_rows(self, tmp_path):
        path = tmp_path / "late.shp"
        with Writer.create(str(path), ShapeType.POINT) as w:
            w.write(Point(0, 0))
            w.write(Point(1, 1))
            w.set_fields([string_field("NAME", 10)])
            w.write_attribute(1, 0, "second")
            w.write(Point(2, 2))

        with Reader(str(path)) as reader:
            assert [reader.attribute(0) for _ in reader] == ["", "second", ""]

    def test_set_fields_once(self, tmp_path):
        with Writer.create(str(tmp_path / "a.shp"), ShapeType.POINT) as w:
            w.set_fields([string_field("A", 1)])
            with pytest.raises(FieldsAlreadySetError):
                w.set_fields([string_field("B", 1)])

    def test_duplicate_field_names(self, tmp_path):
        with Writer.create(str(tmp_path / "a.shp"), ShapeType.POINT) as w:
            with pytest.raises(SchemaError):
                w.set_fields([string_field("NAME", 1), string_field("name", 2)])

    def test_attribute_before_fields(self, tmp_path):
        with Writer.create(str(tmp_path / "a.shp"), ShapeType.POINT) as w:
            w.write(Point(0, 0))
            with pytest.raises(FieldsNotSetError):
                w.write_attribute(0, 0, "x")

    def test_attribute_row_out_of_range(self, tmp_path):
        with Writer.create(str(tmp_path / "a.shp"), ShapeType.POINT) as w:
            w.set_fields([string_field("A", 5)])
            w.write(Point(0, 0))
            with pytest.raises(IndexError):
                w.write_attribute(1, 0, "x")

    def test_overflow_leaves_cell_unchanged(self, tmp_path):
        """超宽的值报错，单元格原有字节不变"""
        path = tmp_path / "w.shp"
        w = Writer.create(str(path), ShapeType.POINT)
        w.set_fields([string_field("CODE", 4), number_field("N", 3)])
        w.write(Point(0, 0))
        w.write_record(0, ["ab", 7])
        w.finalize()
        before = path.with_suffix('.dbf').read_bytes()

        with pytest.raises(FieldOverflowError):
            w.write_attribute(0, 0, "toolong")
        with pytest.raises(FieldOverflowError):
            w.write_record(0, ["ok", 12345])
        w.close()

        after = path.with_suffix('.dbf').read_bytes()
        assert after[-8:] == before[-8:] == b' ab    7'

    def test_write_record_length_mismatch(self, tmp_path):
        with Writer.create(str(tmp_path / "a.shp"), ShapeType.POINT) as w:
            w.set_fields([string_field("A", 5), string_field("B", 5)])
            w.write(Point(0, 0))
            with pytest.raises(ValueError):
                w.write_record(0, ["only one"])

    def test_no_schema_writes_empty_table(self, point_shp):
        """没有字段定义时写入空表结构，行数仍与记录数一致"""
        dbf = point_shp.with_suffix('.dbf').read_bytes()

        assert dbf_layout(dbf) == (4, 33, 1)
        assert dbf[32] == 0x0D
        assert dbf[33:] == b' ' * 4

        with Reader(str(point_shp)) as reader:
            assert reader.fields == []
            assert reader.record_count == 4

    def test_close_is_idempotent(self, tmp_path):
        w = Writer.create(str(tmp_path / "a.shp"), ShapeType.POINT)
        w.close()
        w.close()

    def test_finalize_failure_still_closes(self):
        """回写失败时所有数据流仍被关闭，回写错误照常抛出"""
        shp, shx = FlakyStream(), io.BytesIO()
        w = Writer(shp, shx, shape_type=ShapeType.POINT)
        w.write(Point(1, 2))
        shp.fail_writes = True

        with pytest.raises(OSError, match="write failed"):
            w.close()
        assert shp.closed and shx.closed

    def test_finalize_and_close_failures_are_chained(self):
        shp, shx = FlakyStream(fail_close=True), io.BytesIO()
        w = Writer(shp, shx, shape_type=ShapeType.POINT)
        shp.fail_writes = True

        with pytest.raises(CloseError) as exc_info:
            w.close()
        assert len(exc_info.value.errors) == 1
        assert isinstance(exc_info.value.__cause__, OSError)
        assert str(exc_info.value.__cause__) == "write failed"
        assert shx.closed


# ==================== 追加模式测试 ====================

class TestAppend:
    """追加模式测试"""

    def test_append_resumes(self, tmp_path):
        """3 条记录 + 追加 2 条 = 5 条，新记录号为 4 和 5"""
        path = tmp_path / "grow.shp"
        with Writer.create(str(path), ShapeType.POINT) as w:
            w.set_fields([number_field("ID", 4)])
            for i in range(3):
                w.write_attribute(w.write(Point(i, i)), 0, i)
        original = path.read_bytes()

        with Writer.append(str(path)) as w:
            assert w.shape_type == ShapeType.POINT
            assert w.record_count == 3
            assert w.bbox == Box(0, 0, 2, 2)
            assert [f.name for f in w.fields] == ["ID"]
            for i in range(3, 5):
                row = w.write(Point(i * 10, -i))
                w.write_attribute(row, 0, i)

        appended = path.read_bytes()
        assert appended[HEADER_SIZE:len(original)] == original[HEADER_SIZE:]

        with Reader(str(path)) as reader:
            records = []
            for index, shape in reader:
                records.append((index, reader.record_number, shape, reader.attribute(0)))
            assert reader.bbox == Box(0, -4, 40, 2)

        assert [r[1] for r in records] == [1, 2, 3, 4, 5]
        assert [r[2] for r in records[:3]] == [Point(0, 0), Point(1, 1), Point(2, 2)]
        assert [r[3] for r in records] == ["0", "1", "2", "3", "4"]
        assert len(index_entries(path.with_suffix('.shx').read_bytes())) == 5

    def test_append_to_empty_fileset(self, tmp_path):
        path = tmp_path / "empty.shp"
        Writer.create(str(path), ShapeType.POINT).close()

        with Writer.append(str(path)) as w:
            assert w.record_count == 0
            w.write(Point(50, 60))

        with Reader(str(path)) as reader:
            assert reader.bbox == Box(50, 60, 50, 60)
            assert [r for r in reader][0] == (0, Point(50, 60))

    def test_append_without_schema_then_set_fields(self, point_shp):
        """空表结构在追加时视为尚未设置字段"""
        with Writer.append(str(point_shp)) as w:
            assert w.fields == []
            w.set_fields([string_field("TAG", 3)])
            w.write_attribute(3, 0, "end")

        with Reader(str(point_shp)) as reader:
            assert [reader.attribute(0) for _ in reader] == ["", "", "", "end"]

    def test_missing_shx(self, point_shp):
        point_shp.with_suffix('.shx').unlink()

        with pytest.raises(FileNotFoundError):
            Writer.append(str(point_shp))

    def test_missing_dbf(self, point_shp, caplog):
        point_shp.with_suffix('.dbf').unlink()

        with caplog.at_level(logging.WARNING, logger="shapescroll"):
            with Writer.append(str(point_shp)) as w:
                w.write(Point(9, 9))
                with pytest.raises(FieldsNotSetError):
                    w.set_fields([string_field("A", 1)])
        assert "不存在" in caplog.text

        with Reader(str(point_shp)) as reader:
            assert len(list(reader)) == 5

    def test_row_count_mismatch_warns(self, road_shp, caplog):
        dbf = road_shp.with_suffix('.dbf')
        data = bytearray(dbf.read_bytes())
        data[4:8] = struct.pack('<I', 2)
        dbf.write_bytes(bytes(data))

        with caplog.at_level(logging.WARNING, logger="shapescroll"):
            Writer.append(str(road_shp)).close()
        assert "不一致" in caplog.text
