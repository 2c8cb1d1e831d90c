#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
顺序读取器

基于只能向前读取的流 (管道、归档成员) 读取文件集。
不能 seek，因此:
    - 信任文件头中声明的文件长度
    - 记录尾部的填充字节通过读取丢弃来跳过
    - 属性行必须与几何记录同步读取
"""

import logging
from typing import BinaryIO, List, Optional, Tuple

from .base import ShapeSource
from ..core.binary_io import BinaryReader
from ..core.dbf import read_dbf_header, row_cell
from ..core.schema import (
    DbfHeader, Field, FileHeader, RecordHeader,
    HEADER_SIZE, ROW_ACTIVE, ROW_DELETED,
)
from ..core.shapes import Box, Shape, read_shape
from ..exceptions import (
    CloseError, InvalidFormatError, OverReadError, ShapeScrollError, TruncatedReadError,
)
from ..utils import close_streams

logger = logging.getLogger(__name__)


class SequentialReader(ShapeSource):
    """
    Shapefile 顺序读取器

    构造时读取两个文件头；文件头错误不会抛出，而是记录到 error 中，
    advance() 随即返回 False。

    Example:
        >>> with open("roads.shp", "rb") as shp, open("roads.dbf", "rb") as dbf:
        ...     reader = SequentialReader(shp, dbf)
        ...     while reader.advance():
        ...         index, shape = reader.current()
        ...     if reader.error:
        ...         raise reader.error
    """

    def __init__(
        self,
        shp: BinaryIO,
        dbf: Optional[BinaryIO] = None,
        encoding: str = 'utf-8',
        encoding_errors: str = 'strict'
    ):
        """
        Args:
            shp: .shp 数据流 (只需支持 read)
            dbf: .dbf 数据流，None 表示没有属性表
            encoding: 属性文本编码
            encoding_errors: 解码错误处理方式
        """
        self._shp = shp
        self._dbf = dbf
        self._encoding = encoding
        self._encoding_errors = encoding_errors

        self._shp_reader = BinaryReader(shp)
        self._dbf_reader = BinaryReader(dbf) if dbf is not None else None
        self._header = FileHeader()
        self._file_length = HEADER_SIZE
        self._dbf_header: Optional[DbfHeader] = None
        self._fields: List[Field] = []

        self._error: Optional[Exception] = None
        self._shape: Optional[Shape] = None
        self._row = b''
        self._index = -1
        self._record_number = 0
        self._done = False

        self._read_headers()

    def _read_headers(self) -> None:
        try:
            self._header = FileHeader.read(self._shp_reader)
            # 无法通过 seek 验证，只能信任文件头中的长度
            self._file_length = self._header.file_length * 2
            if self._dbf_reader is not None:
                self._dbf_header, self._fields = read_dbf_header(self._dbf_reader)
        except (ShapeScrollError, OSError) as e:
            self._error = e

    # ==================== 读取 ====================

    def advance(self) -> bool:
        """
        读取下一条几何记录及对应的属性行

        Returns:
            成功返回 True；到达声明的文件末尾或出错返回 False
        """
        if self._error is not None or self._done:
            return False
        reader = self._shp_reader
        if reader.position >= self._file_length:
            return False

        start = reader.position
        try:
            try:
                record = RecordHeader.read(reader)
            except TruncatedReadError as e:
                if e.actual != 0:
                    raise
                logger.warning(
                    "数据流在 %d 字节处结束，早于文件头声明的 %d 字节",
                    start, self._file_length
                )
                self._done = True
                return False

            shape = read_shape(reader, reader.read_i32())
            declared = RecordHeader.SIZE + record.content_length * 2
            consumed = reader.position - start
            if consumed > declared:
                raise OverReadError(record.record_number, declared, consumed)
            reader.discard(declared - consumed)

            if self._dbf_reader is not None:
                self._row = self._read_row(record.record_number)
        except (ShapeScrollError, OSError) as e:
            self._error = e
            self._shape = None
            return False

        self._shape = shape
        self._index += 1
        self._record_number = record.record_number
        return True

    def _read_row(self, record_number: int) -> bytes:
        """读取一整行并校验删除标记"""
        row = self._dbf_reader.read_bytes(self._dbf_header.record_length)
        if row[0] not in (ROW_ACTIVE, ROW_DELETED):
            raise InvalidFormatError(
                f"属性行 {record_number} 的删除标记无效",
                expected=f"0x{ROW_ACTIVE:02x} 或 0x{ROW_DELETED:02x}",
                actual=f"0x{row[0]:02x}"
            )
        return row

    def current(self) -> Tuple[int, Optional[Shape]]:
        return self._index, self._shape

    @property
    def record_number(self) -> int:
        return self._record_number

    def attribute(self, col: int) -> str:
        if not self._row:
            raise IndexError("当前没有可用的属性行")
        return row_cell(self._row, self._fields, col, self._encoding, self._encoding_errors)

    @property
    def deleted(self) -> bool:
        return bool(self._row) and self._row[0] == ROW_DELETED

    # ==================== 状态 ====================

    @property
    def fields(self) -> List[Field]:
        return list(self._fields)

    @property
    def error(self) -> Optional[Exception]:
        return self._error

    @property
    def shape_type(self) -> int:
        return self._header.shape_type

    @property
    def bbox(self) -> Box:
        return self._header.bbox

    def close(self) -> None:
        """
        关闭两个数据流

        Raises:
            CloseError: 有数据流关闭失败
        """
        errors = close_streams(self._shp, self._dbf)
        if errors:
            raise CloseError(errors)
