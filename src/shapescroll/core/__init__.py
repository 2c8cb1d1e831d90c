#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
ShapeScroll 核心模块

提供二进制 I/O 封装、固定布局数据结构、几何编解码和属性表编解码。
"""

from .binary_io import BinaryReader, BinaryWriter
from .shapes import (
    ShapeType, PartType, Box, Shape,
    Null, Point, PointM, PointZ,
    MultiPoint, MultiPointM, MultiPointZ,
    PolyLine, PolyLineM, PolyLineZ,
    Polygon, PolygonM, PolygonZ,
    MultiPatch,
    SHAPE_REGISTRY, get_shape_class, read_shape,
)
from .schema import FileHeader, RecordHeader, IndexEntry, DbfHeader, Field
from .dbf import (
    read_dbf_header, write_dbf_header, validate_field,
    cell_offset, blank_row, decode_cell, row_cell, format_value,
)

__all__ = [
    "BinaryReader",
    "BinaryWriter",
    # 几何
    "ShapeType",
    "PartType",
    "Box",
    "Shape",
    "Null",
    "Point",
    "PointM",
    "PointZ",
    "MultiPoint",
    "MultiPointM",
    "MultiPointZ",
    "PolyLine",
    "PolyLineM",
    "PolyLineZ",
    "Polygon",
    "PolygonM",
    "PolygonZ",
    "MultiPatch",
    "SHAPE_REGISTRY",
    "get_shape_class",
    "read_shape",
    # 数据结构
    "FileHeader",
    "RecordHeader",
    "IndexEntry",
    "DbfHeader",
    "Field",
    # 属性表
    "read_dbf_header",
    "write_dbf_header",
    "validate_field",
    "cell_offset",
    "blank_row",
    "decode_cell",
    "row_cell",
    "format_value",
]
