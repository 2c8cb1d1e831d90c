#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Shapefile 写入器

逐条写入几何记录并同步维护 .shx 索引和 .dbf 属性表。
文件头在 finalize() / close() 时统一回写。

支持追加模式: 从已有文件集恢复几何类型、包围盒、记录号和字段定义，
之后的写入与新建文件集完全一致。
"""

import io
import logging
from datetime import date
from typing import Any, BinaryIO, List, Optional, Sequence

from ..core.binary_io import BinaryReader, BinaryWriter
from ..core.dbf import (
    blank_row, cell_offset, format_value, read_dbf_header, validate_field, write_dbf_header,
)
from ..core.schema import (
    DbfHeader, Field, FileHeader, IndexEntry, RecordHeader, HEADER_SIZE,
)
from ..core.shapes import Box, Shape, ShapeType, get_shape_class
from ..exceptions import (
    CloseError, FieldsAlreadySetError, FieldsNotSetError, SchemaError, ShapeTypeMismatchError,
)
from ..utils import close_streams, fileset_paths

logger = logging.getLogger(__name__)


class Writer:
    """
    Shapefile 写入器

    三个数据流都必须可读写且可 seek (磁盘文件或 io.BytesIO)。
    写入器独占这些数据流，close() 时统一关闭。

    Example:
        >>> with Writer.create("roads.shp", ShapeType.POLYLINE) as w:
        ...     w.set_fields([string_field("NAME", 20)])
        ...     row = w.write(PolyLine.from_lines([[(0, 0), (5, 5)]]))
        ...     w.write_attribute(row, 0, "Main St")
    """

    def __init__(
        self,
        shp: BinaryIO,
        shx: BinaryIO,
        dbf: Optional[BinaryIO] = None,
        shape_type: int = ShapeType.NULL,
        encoding: str = 'utf-8',
        resume: bool = False
    ):
        """
        初始化写入器

        Args:
            shp: .shp 数据流
            shx: .shx 数据流
            dbf: .dbf 数据流，None 表示不写属性表
            shape_type: 文件集的几何类型 (resume=True 时从文件头读取)
            encoding: 属性文本编码
            resume: True 表示数据流已包含文件集，从末尾继续写入

        Raises:
            UnsupportedShapeTypeError: shape_type 未注册
        """
        self._shp = shp
        self._shx = shx
        self._dbf = dbf
        self._encoding = encoding

        # 文件集状态
        self._shape_type = int(shape_type)
        self._num = 0
        self._bbox: Optional[Box] = None
        self._fields: Optional[List[Field]] = None
        self._dbf_header: Optional[DbfHeader] = None
        self._closed = False

        self._shp_writer = BinaryWriter(shp)
        self._shx_writer = BinaryWriter(shx)
        self._dbf_writer = BinaryWriter(dbf) if dbf is not None else None

        if resume:
            self._resume()
        else:
            get_shape_class(self._shape_type)
            self._shp_writer.reserve(FileHeader.SIZE)
            self._shx_writer.reserve(FileHeader.SIZE)

    # ==================== 打开 ====================

    @classmethod
    def create(cls, path: str, shape_type: int, encoding: str = 'utf-8') -> 'Writer':
        """
        新建文件集 (已存在的文件会被覆盖)

        Args:
            path: .shp 文件路径 (或不带扩展名的基础名)
            shape_type: 几何类型
            encoding: 属性文本编码
        """
        get_shape_class(shape_type)
        paths = fileset_paths(path)
        streams = []
        try:
            for p in paths:
                streams.append(open(p, 'w+b'))
        except OSError:
            close_streams(*streams)
            raise
        logger.debug("创建文件集 %s: 几何类型 %d", paths.shp, shape_type)
        return cls(*streams, shape_type=shape_type, encoding=encoding)

    @classmethod
    def append(cls, path: str, encoding: str = 'utf-8') -> 'Writer':
        """
        以追加模式打开已有文件集

        .dbf 不存在时仍可写入几何，但属性操作不可用。

        Raises:
            FileNotFoundError: .shp 或 .shx 不存在
            InvalidFormatError: 文件头无效
        """
        paths = fileset_paths(path)
        shp = open(paths.shp, 'r+b')
        try:
            shx = open(paths.shx, 'r+b')
        except OSError:
            shp.close()
            raise
        try:
            dbf = open(paths.dbf, 'r+b')
        except FileNotFoundError:
            logger.warning("%s 不存在，属性操作不可用", paths.dbf)
            dbf = None

        try:
            writer = cls(shp, shx, dbf, encoding=encoding, resume=True)
        except Exception:
            close_streams(shp, shx, dbf)
            raise
        logger.debug(
            "追加文件集 %s: 几何类型 %d, 已有 %d 条记录",
            paths.shp, writer.shape_type, writer.record_count
        )
        return writer

    def _resume(self) -> None:
        """从已有文件集恢复状态，并将所有数据流定位到末尾"""
        # 1. 几何类型和包围盒
        shp_reader = BinaryReader(self._shp)
        header = FileHeader.read(shp_reader)
        self._shape_type = header.shape_type

        # 2. 由最后一个索引条目找到最后一条记录，读取其记录号
        shx_size = self._shx.seek(0, 2)
        if shx_size - HEADER_SIZE >= IndexEntry.SIZE:
            shx_reader = BinaryReader(self._shx)
            shx_reader.seek(shx_size - IndexEntry.SIZE)
            entry = IndexEntry.read(shx_reader)
            shp_reader.seek(entry.offset * 2)
            self._num = RecordHeader.read(shp_reader).record_number
            self._bbox = header.bbox

        # 3. 字段定义
        if self._dbf is not None:
            self._dbf.seek(0)
            dbf_header, fields = read_dbf_header(BinaryReader(self._dbf))
            if fields:
                self._fields = fields
                self._dbf_header = dbf_header
            if dbf_header.record_count != self._num:
                logger.warning(
                    "属性表行数 %d 与几何记录数 %d 不一致",
                    dbf_header.record_count, self._num
                )
            self._dbf_writer.seek_end()

        self._shp_writer.seek_end()
        self._shx_writer.seek_end()

    # ==================== 几何 ====================

    def write(self, shape: Shape) -> int:
        """
        写入一条几何记录

        Args:
            shape: 几何对象，类型必须与文件集一致 (Null 除外)

        Returns:
            记录下标 (从 0 开始)，可用于 write_attribute()

        Raises:
            ShapeTypeMismatchError: 几何类型与文件集不一致
        """
        # 1. 检查几何类型
        is_null = shape.shape_type == ShapeType.NULL
        if not is_null and shape.shape_type != self._shape_type:
            raise ShapeTypeMismatchError(self._shape_type, shape.shape_type)

        # 2. 先在内存中编码类型标签和几何内容，编码失败时文件保持不变
        buf = io.BytesIO()
        body = BinaryWriter(buf)
        body.write_i32(shape.shape_type)
        shape.write(body)
        content = buf.getvalue()
        box = None if is_null else shape.bbox()

        # 3. 写入记录头和内容
        number = self._num + 1
        content_length = len(content) // 2
        w = self._shp_writer
        record_start = w.position
        w.write_bytes(RecordHeader(number, content_length).pack())
        w.write_bytes(content)

        # 4. 索引条目指向记录头
        self._shx_writer.write_bytes(IndexEntry(record_start // 2, content_length).pack())

        # 5. 更新状态
        self._num = number
        if box is not None:
            if self._bbox is None:
                self._bbox = Box(*box.as_tuple())
            else:
                self._bbox.extend(box)

        # 6. 已有字段定义时同步追加空白行
        if self._fields is not None:
            self._write_row(number - 1, blank_row(self._dbf_header.record_length))

        return number - 1

    # ==================== 属性 ====================

    def set_fields(self, fields: Sequence[Field]) -> None:
        """
        设置属性表字段 (只能调用一次)

        已写入的几何记录会立即获得空白属性行。

        Raises:
            FieldsAlreadySetError: 字段定义已设置
            FieldsNotSetError: 没有属性表数据流
            SchemaError: 字段定义无效或字段名重复
        """
        if self._fields is not None:
            raise FieldsAlreadySetError()
        if self._dbf is None:
            raise FieldsNotSetError("没有属性表文件，无法设置字段")

        fields = list(fields)
        seen = set()
        for f in fields:
            validate_field(f)
            if f.name.upper() in seen:
                raise SchemaError(f"字段名重复: {f.name!r}")
            seen.add(f.name.upper())

        self._fields = fields
        self._dbf_header = DbfHeader.for_fields(fields, self._num)

        w = self._dbf_writer
        w.seek(0)
        write_dbf_header(w, self._dbf_header, fields)
        row = blank_row(self._dbf_header.record_length)
        for _ in range(self._num):
            w.write_bytes(row)
        w.truncate()

    def write_attribute(self, row: int, col: int, value: Any) -> None:
        """
        写入单元格

        值先格式化，格式化失败时单元格保持不变。

        Args:
            row: 行号 (即 write() 返回的记录下标)
            col: 字段下标
            value: str / int / float / bool / date / datetime

        Raises:
            FieldsNotSetError: 尚未设置字段
            IndexError: 行号或字段下标越界
            FieldOverflowError: 值超出字段宽度
        """
        self._check_row(row)
        f = self._fields[col]
        data = format_value(f, value, self._encoding)
        self._dbf_writer.seek(cell_offset(self._dbf_header, self._fields, row, col))
        self._dbf_writer.write_bytes(data)

    def write_record(self, row: int, values: Sequence[Any]) -> None:
        """
        写入一整行的全部单元格

        所有值先全部格式化，任何一个失败时整行保持不变。

        Raises:
            ValueError: 值的数量与字段数不一致
        """
        self._check_row(row)
        if len(values) != len(self._fields):
            raise ValueError(f"值的数量 {len(values)} 与字段数 {len(self._fields)} 不一致")
        cells = [format_value(f, v, self._encoding) for f, v in zip(self._fields, values)]
        self._dbf_writer.seek(cell_offset(self._dbf_header, self._fields, row, 0))
        self._dbf_writer.write_bytes(b''.join(cells))

    def _check_row(self, row: int) -> None:
        if self._fields is None:
            raise FieldsNotSetError()
        if not 0 <= row < self._num:
            raise IndexError(f"行号 {row} 超出范围 [0, {self._num})")

    def _write_row(self, row: int, data: bytes) -> None:
        w = self._dbf_writer
        w.seek(self._dbf_header.header_length + row * self._dbf_header.record_length)
        w.write_bytes(data)

    # ==================== 完成 ====================

    def finalize(self) -> None:
        """
        回写三个文件头

        文件长度取数据流的实际大小。可多次调用，不关闭数据流。
        """
        bbox = self._bbox or Box()
        for w in (self._shx_writer, self._shp_writer):
            size = w.seek_end()
            header = FileHeader(file_length=size // 2, shape_type=self._shape_type, bbox=bbox)
            w.patch_bytes(0, header.pack())

        if self._dbf_writer is not None:
            self._finalize_dbf()

        for stream in (self._shp, self._shx, self._dbf):
            if stream is not None:
                stream.flush()
        logger.debug(
            "回写文件头: 几何类型 %d, %d 条记录, 包围盒 %s",
            self._shape_type, self._num, bbox.as_tuple()
        )

    def _finalize_dbf(self) -> None:
        w = self._dbf_writer
        if self._fields is None:
            # 没有字段定义时写入空表结构，保证属性表仍然有效
            w.seek(0)
            write_dbf_header(w, DbfHeader.for_fields([], self._num), [])
            w.write_bytes(blank_row(1) * self._num)
            w.truncate()
            return

        today = date.today()
        header = self._dbf_header
        header.record_count = self._num
        header.year, header.month, header.day = today.year - 1900, today.month, today.day
        w.seek_end()
        w.patch_bytes(0, header.pack())

    def close(self) -> None:
        """
        回写文件头并关闭所有数据流 (重复调用无效果)

        回写失败时仍会关闭所有数据流。若同时有数据流关闭失败，
        抛出 CloseError，回写错误作为其 __cause__。

        Raises:
            CloseError: 有数据流关闭失败
        """
        if self._closed:
            return
        self._closed = True
        try:
            self.finalize()
        except Exception as e:
            errors = close_streams(self._shp, self._shx, self._dbf)
            if errors:
                logger.error("回写文件头失败，且 %d 个数据流关闭失败", len(errors))
                raise CloseError(errors) from e
            raise
        errors = close_streams(self._shp, self._shx, self._dbf)
        if errors:
            raise CloseError(errors)

    # ==================== 状态 ====================

    @property
    def shape_type(self) -> int:
        return self._shape_type

    @property
    def record_count(self) -> int:
        """已写入的记录数"""
        return self._num

    @property
    def bbox(self) -> Box:
        """所有非空几何的包围盒"""
        return Box(*self._bbox.as_tuple()) if self._bbox is not None else Box()

    @property
    def fields(self) -> List[Field]:
        return list(self._fields or [])

    def __enter__(self):
        return self

    def __exit__(self, *args) -> None:
        self.close()
