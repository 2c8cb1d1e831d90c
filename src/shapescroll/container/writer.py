#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
ZIP 归档写入

归档成员不可 seek，无法回写记录长度和文件头。
因此三个文件先写入内存缓冲区，close() 时再一次性写入归档。
"""

import io
import logging
import os
import zipfile
from typing import Any, List, Optional, Sequence

from ..core.schema import Field
from ..core.shapes import Box, Shape
from ..shapefile.writer import Writer

logger = logging.getLogger(__name__)


class ZipWriter:
    """
    将一个文件集写入新的 ZIP 归档

    除 close() 外的接口与 Writer 相同。

    Example:
        >>> with ZipWriter.create("roads.zip", ShapeType.POINT) as w:
        ...     w.write(Point(1, 2))
    """

    def __init__(
        self,
        target: str,
        shape_type: int,
        name: Optional[str] = None,
        prj: Optional[str] = None,
        encoding: str = 'utf-8'
    ):
        """
        初始化

        Args:
            target: 输出归档路径
            shape_type: 几何类型
            name: 成员基础名 (默认取归档文件名去掉扩展名)
            prj: 投影 WKT 文本，提供时写入 .prj 成员
            encoding: 属性文本编码
        """
        self._target = target
        if name is None:
            name = os.path.splitext(os.path.basename(os.fspath(target)))[0]
        self._name = name
        self._prj = prj
        self._closed = False

        self._buffers = [io.BytesIO(), io.BytesIO(), io.BytesIO()]
        self._writer = Writer(*self._buffers, shape_type=shape_type, encoding=encoding)

    @classmethod
    def create(cls, target: str, shape_type: int, name: Optional[str] = None,
               prj: Optional[str] = None, encoding: str = 'utf-8') -> 'ZipWriter':
        return cls(target, shape_type, name=name, prj=prj, encoding=encoding)

    # ==================== 写入 ====================

    def write(self, shape: Shape) -> int:
        return self._writer.write(shape)

    def set_fields(self, fields: Sequence[Field]) -> None:
        self._writer.set_fields(fields)

    def write_attribute(self, row: int, col: int, value: Any) -> None:
        self._writer.write_attribute(row, col, value)

    def write_record(self, row: int, values: Sequence[Any]) -> None:
        self._writer.write_record(row, values)

    @property
    def shape_type(self) -> int:
        return self._writer.shape_type

    @property
    def record_count(self) -> int:
        return self._writer.record_count

    @property
    def bbox(self) -> Box:
        return self._writer.bbox

    @property
    def fields(self) -> List[Field]:
        return self._writer.fields

    @property
    def member_names(self) -> List[str]:
        """将写入归档的成员名"""
        names = [self._name + ext for ext in ('.shp', '.shx', '.dbf')]
        if self._prj is not None:
            names.append(self._name + '.prj')
        return names

    # ==================== 完成 ====================

    def close(self) -> None:
        """
        回写文件头并生成归档 (重复调用无效果)

        每个成员通过 ZipFile.open(name, 'w') 一次顺序写入。
        """
        if self._closed:
            return
        self._closed = True

        self._writer.finalize()
        contents = [buf.getvalue() for buf in self._buffers]
        if self._prj is not None:
            contents.append(self._prj.encode('utf-8'))
        self._writer.close()

        with zipfile.ZipFile(self._target, 'w', zipfile.ZIP_DEFLATED) as z:
            for member, data in zip(self.member_names, contents):
                with z.open(member, 'w') as f:
                    f.write(data)
        logger.debug("写入归档 %s: %s", self._target, self.member_names)

    def __enter__(self):
        return self

    def __exit__(self, *args) -> None:
        self.close()
