#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
顺序读取器测试

测试不可 seek 的数据流上的读取、与随机读取器的一致性和错误记录。
"""

import io
import logging
import struct

import pytest

from shapescroll import Reader, SequentialReader, Writer, ShapeType, Point
from shapescroll.core.schema import HEADER_SIZE
from shapescroll.exceptions import (
    CloseError, InvalidFormatError, OverReadError, TruncatedReadError, UnsupportedShapeTypeError,
)


class ForwardOnly(io.RawIOBase):
    """只能向前读取的数据流，调用 seek 会直接失败"""

    def __init__(self, data: bytes):
        self._buf = io.BytesIO(data)

    def readable(self):
        return True

    def seekable(self):
        return False

    def read(self, size=-1):
        return self._buf.read(size)

    def seek(self, *args):
        raise io.UnsupportedOperation("seek")


class BrokenClose(ForwardOnly):
    """关闭时报错的数据流 (只报错一次)"""

    def close(self):
        if not self.closed:
            super().close()
            raise OSError("close failed")


def open_sequential(shp_path, with_dbf=True) -> SequentialReader:
    shp = ForwardOnly(shp_path.read_bytes())
    dbf = ForwardOnly(shp_path.with_suffix('.dbf').read_bytes()) if with_dbf else None
    return SequentialReader(shp, dbf)


# ==================== 读取测试 ====================

class TestSequentialRead:
    """顺序读取测试"""

    def test_read_all(self, road_shp, road_data):
        lines, rows, _ = road_data
        reader = open_sequential(road_shp)

        count = 0
        while reader.advance():
            index, shape = reader.current()
            assert index == count
            assert reader.attribute(0) == rows[index][0]
            assert reader.attribute(1) == str(rows[index][1])
            count += 1

        assert count == 3
        assert reader.error is None
        assert reader.shape_type == ShapeType.POLYLINE

    def test_matches_random_access(self, road_shp, polygon_shp):
        """两种读取器得到相同的包围盒和属性序列"""
        for path in (road_shp, polygon_shp):
            with Reader(str(path)) as random_reader:
                expected = [(shape.bbox(), random_reader.attributes()) for _, shape in random_reader]

            sequential = open_sequential(path)
            actual = [(shape.bbox(), sequential.attributes()) for _, shape in sequential]

            assert actual == expected
            assert len(actual) > 0

    def test_without_dbf(self, point_shp):
        reader = open_sequential(point_shp, with_dbf=False)

        shapes = [shape for _, shape in reader]
        assert shapes == [Point(i, i * 2) for i in range(4)]
        assert reader.fields == []
        with pytest.raises(IndexError):
            reader.attribute(0)

    def test_record_padding_is_discarded(self, tmp_path):
        """声明长度大于内容时，多余字节通过读取丢弃"""
        path = tmp_path / "padded.shp"
        with Writer.create(str(path), ShapeType.POINT) as w:
            w.write(Point(1, 2))
            w.write(Point(3, 4))

        data = bytearray(path.read_bytes())
        first = data[HEADER_SIZE:HEADER_SIZE + 28]
        first[4:8] = struct.pack('>i', 12)
        data = data[:HEADER_SIZE] + first + b'\xff' * 4 + data[HEADER_SIZE + 28:]
        data[24:28] = struct.pack('>i', len(data) // 2)
        path.write_bytes(bytes(data))

        reader = open_sequential(path)
        shapes = [shape for _, shape in reader]
        assert shapes == [Point(1, 2), Point(3, 4)]

    def test_stream_shorter_than_declared(self, point_shp, caplog):
        """在记录边界提前结束视为正常结束"""
        data = bytearray(point_shp.read_bytes())
        data[24:28] = struct.pack('>i', (len(data) + 100) // 2)
        point_shp.write_bytes(bytes(data))

        with caplog.at_level(logging.WARNING, logger="shapescroll"):
            reader = open_sequential(point_shp)
            assert len(list(reader)) == 4
        assert reader.error is None
        assert not reader.advance()
        assert caplog.text.count("早于文件头声明") == 1


# ==================== 错误处理测试 ====================

class TestSequentialErrors:
    """错误处理测试"""

    def test_header_error_is_stored(self):
        reader = SequentialReader(ForwardOnly(b'\x00' * 100))

        assert isinstance(reader.error, InvalidFormatError)
        assert not reader.advance()

    def test_over_read(self, point_shp):
        """内容长度声明过小时报告读取过多"""
        data = bytearray(point_shp.read_bytes())
        data[HEADER_SIZE + 4:HEADER_SIZE + 8] = struct.pack('>i', 4)
        point_shp.write_bytes(bytes(data))

        reader = open_sequential(point_shp)
        assert not reader.advance()
        assert isinstance(reader.error, OverReadError)
        assert reader.error.declared == 16
        assert reader.error.consumed == 28

    def test_truncated_record(self, point_shp):
        data = point_shp.read_bytes()
        point_shp.write_bytes(data[:-5])

        reader = open_sequential(point_shp)
        with pytest.raises(TruncatedReadError):
            list(reader)

    def test_unknown_shape_type(self, point_shp):
        data = bytearray(point_shp.read_bytes())
        data[HEADER_SIZE + 8:HEADER_SIZE + 12] = struct.pack('<i', 2)
        point_shp.write_bytes(bytes(data))

        reader = open_sequential(point_shp)
        assert not reader.advance()
        assert isinstance(reader.error, UnsupportedShapeTypeError)

    def test_bad_deletion_marker(self, road_shp):
        dbf = road_shp.with_suffix('.dbf')
        data = bytearray(dbf.read_bytes())
        header_length, record_length = struct.unpack('<HH', data[8:12])
        data[header_length + record_length] = ord('?')
        dbf.write_bytes(bytes(data))

        reader = open_sequential(road_shp)
        assert reader.advance()
        assert not reader.advance()
        assert isinstance(reader.error, InvalidFormatError)

    def test_bad_dbf_terminator(self, road_shp):
        dbf = road_shp.with_suffix('.dbf')
        data = bytearray(dbf.read_bytes())
        header_length = struct.unpack('<H', data[8:10])[0]
        data[header_length - 1] = 0
        dbf.write_bytes(bytes(data))

        reader = open_sequential(road_shp)
        assert isinstance(reader.error, InvalidFormatError)
        assert not reader.advance()

    def test_zero_record_length_is_stored(self, road_shp):
        """行长度为 0 的表头记录为错误，而不是在读取行时失败"""
        dbf = road_shp.with_suffix('.dbf')
        data = bytearray(dbf.read_bytes())
        data[10:12] = struct.pack('<H', 0)
        dbf.write_bytes(bytes(data))

        reader = open_sequential(road_shp)
        assert isinstance(reader.error, InvalidFormatError)
        assert not reader.advance()

    def test_close_aggregates_errors(self, point_shp):
        data = point_shp.read_bytes()
        reader = SequentialReader(BrokenClose(data), BrokenClose(data))

        with pytest.raises(CloseError) as exc_info:
            reader.close()
        assert len(exc_info.value.errors) == 2
