#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
随机读取器

基于可 seek 的文件读取 .shp / .shx / .dbf 文件集。
属性表在第一次访问属性时才打开，可按任意行号直接定位。
"""

import logging
import os
from typing import BinaryIO, List, Optional, Tuple

from .base import ShapeSource
from ..core.binary_io import BinaryReader
from ..core.dbf import cell_offset, decode_cell, read_dbf_header
from ..core.schema import (
    DbfHeader, Field, FileHeader, IndexEntry, RecordHeader,
    HEADER_SIZE, ROW_DELETED,
)
from ..core.shapes import Box, Shape, read_shape
from ..exceptions import CloseError, ShapeScrollError
from ..utils import close_streams, fileset_paths

logger = logging.getLogger(__name__)


class Reader(ShapeSource):
    """
    Shapefile 随机读取器

    Example:
        >>> with Reader("roads.shp") as reader:
        ...     for index, shape in reader:
        ...         print(index, shape.bbox(), reader.attributes())
    """

    def __init__(
        self,
        path: str,
        encoding: str = 'utf-8',
        encoding_errors: str = 'strict'
    ):
        """
        打开文件集

        Args:
            path: .shp 文件路径 (或不带扩展名的基础名)
            encoding: 属性文本编码
            encoding_errors: 解码错误处理方式

        Raises:
            FileNotFoundError: .shp 文件不存在
            InvalidFormatError: 文件头魔法数不正确
            TruncatedReadError: 文件不足 100 字节
        """
        self._paths = fileset_paths(path)
        self._encoding = encoding
        self._encoding_errors = encoding_errors

        # 内部状态
        self._shp: Optional[BinaryIO] = None
        self._shx: Optional[BinaryIO] = None
        self._dbf: Optional[BinaryIO] = None
        self._header: Optional[FileHeader] = None
        self._reader: Optional[BinaryReader] = None
        self._file_length = 0
        self._error: Optional[Exception] = None
        self._shape: Optional[Shape] = None
        self._index = -1
        self._record_number = 0
        self._dbf_header: Optional[DbfHeader] = None
        self._fields: Optional[List[Field]] = None

        self._load()

    def _load(self) -> None:
        """读取文件头并定位到第一条记录"""
        self._shp = open(self._paths.shp, 'rb')
        try:
            self._header = FileHeader.read(BinaryReader(self._shp))
            # 不信任文件头中的长度，直接取实际文件大小
            self._file_length = self._shp.seek(0, os.SEEK_END)
            self._shp.seek(HEADER_SIZE)
        except Exception:
            self._shp.close()
            self._shp = None
            raise

        declared = self._header.file_length * 2
        if declared != self._file_length:
            logger.warning(
                "%s: 文件头声明长度 %d 字节与实际大小 %d 字节不一致",
                self._paths.shp, declared, self._file_length
            )
        self._reader = BinaryReader(self._shp, position=HEADER_SIZE)
        logger.debug(
            "打开 %s: 几何类型 %d, %d 字节",
            self._paths.shp, self._header.shape_type, self._file_length
        )

    # ==================== 几何 ====================

    def advance(self) -> bool:
        """
        读取下一条几何记录

        无论解码消耗了多少字节，都按记录头声明的长度定位到下一条记录，
        以容忍记录尾部的填充字节。
        """
        if self._error is not None:
            return False
        if self._reader.position >= self._file_length:
            return False
        try:
            record = RecordHeader.read(self._reader)
            content_start = self._reader.position
            shape = read_shape(self._reader, self._reader.read_i32())
            self._reader.seek(content_start + record.content_length * 2)
        except (ShapeScrollError, OSError) as e:
            self._error = e
            self._shape = None
            return False

        self._shape = shape
        self._index += 1
        self._record_number = record.record_number
        return True

    def current(self) -> Tuple[int, Optional[Shape]]:
        return self._index, self._shape

    @property
    def record_number(self) -> int:
        """当前记录头中的记录号 (从 1 开始)"""
        return self._record_number

    def read_shape_at(self, index: int) -> Shape:
        """
        通过 .shx 索引直接读取第 index 条几何 (从 0 开始)

        不影响 advance() 的迭代位置。

        Raises:
            IndexError: index 超出索引范围
            FileNotFoundError: .shx 文件不存在
        """
        if self._shx is None:
            self._shx = open(self._paths.shx, 'rb')
        count = (self._shx.seek(0, os.SEEK_END) - HEADER_SIZE) // IndexEntry.SIZE
        if not 0 <= index < count:
            raise IndexError(f"记录下标 {index} 超出范围 [0, {count})")

        shx = BinaryReader(self._shx)
        shx.seek(HEADER_SIZE + index * IndexEntry.SIZE)
        entry = IndexEntry.read(shx)

        shp = BinaryReader(self._shp)
        try:
            shp.seek(entry.offset * 2)
            RecordHeader.read(shp)
            return read_shape(shp, shp.read_i32())
        finally:
            self._shp.seek(self._reader.position)

    # ==================== 属性 ====================

    def _open_dbf(self) -> None:
        """首次访问属性时打开 .dbf 并解析表头"""
        if self._dbf is not None:
            return
        self._dbf = open(self._paths.dbf, 'rb')
        try:
            self._dbf_header, self._fields = read_dbf_header(BinaryReader(self._dbf))
        except Exception:
            self._dbf.close()
            self._dbf = None
            raise

    @property
    def fields(self) -> List[Field]:
        self._open_dbf()
        return list(self._fields)

    @property
    def record_count(self) -> int:
        """属性表中的行数"""
        self._open_dbf()
        return self._dbf_header.record_count

    def read_attribute(self, row: int, col: int) -> str:
        """
        读取任意行的字段值

        按偏移直接定位，不要求按顺序读取。

        Args:
            row: 行号 (从 0 开始)
            col: 字段下标

        Returns:
            去除填充后的文本

        Raises:
            IndexError: 行号或字段下标越界
        """
        self._open_dbf()
        if not 0 <= row < self._dbf_header.record_count:
            raise IndexError(f"行号 {row} 超出范围 [0, {self._dbf_header.record_count})")
        f = self._fields[col]
        reader = BinaryReader(self._dbf)
        reader.seek(cell_offset(self._dbf_header, self._fields, row, col))
        return decode_cell(reader.read_bytes(f.size), self._encoding, self._encoding_errors)

    def attribute(self, col: int) -> str:
        return self.read_attribute(self._index, col)

    @property
    def deleted(self) -> bool:
        """
        当前行是否被标记为已删除

        Raises:
            IndexError: 尚未调用 advance() 或当前记录没有对应的行
        """
        self._open_dbf()
        if not 0 <= self._index < self._dbf_header.record_count:
            raise IndexError(f"当前记录 {self._index} 没有对应的属性行")
        reader = BinaryReader(self._dbf)
        reader.seek(self._dbf_header.header_length + self._index * self._dbf_header.record_length)
        return reader.read_u8() == ROW_DELETED

    # ==================== 状态 ====================

    @property
    def error(self) -> Optional[Exception]:
        return self._error

    @property
    def shape_type(self) -> int:
        return self._header.shape_type

    @property
    def bbox(self) -> Box:
        return self._header.bbox

    @property
    def header(self) -> FileHeader:
        return self._header

    def close(self) -> None:
        """
        关闭所有已打开的文件

        Raises:
            CloseError: 有文件关闭失败 (其余文件仍会被关闭)
        """
        errors = close_streams(self._shp, self._shx, self._dbf)
        self._shp = self._shx = self._dbf = None
        if errors:
            raise CloseError(errors)
