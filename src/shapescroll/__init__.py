#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
ShapeScroll - 轻量级零依赖 Shapefile 读写库

支持 .shp / .shx / .dbf 文件集的随机读取、顺序读取、写入与追加，
以及 ZIP 归档中的文件集。
"""

import logging

__version__ = "0.1.0"

# 异常类
from .exceptions import (
    ShapeScrollError,
    InvalidFormatError,
    UnsupportedShapeTypeError,
    TruncatedReadError,
    OverReadError,
    ShapeTypeMismatchError,
    SchemaError,
    FieldOverflowError,
    FieldsAlreadySetError,
    FieldsNotSetError,
    ContainerError,
    NoShapefileError,
    MultipleShapefilesError,
    MemberNotFoundError,
    CloseError,
)

# 几何
from .core import (
    ShapeType,
    PartType,
    Box,
    Shape,
    Null,
    Point,
    PointM,
    PointZ,
    MultiPoint,
    MultiPointM,
    MultiPointZ,
    PolyLine,
    PolyLineM,
    PolyLineZ,
    Polygon,
    PolygonM,
    PolygonZ,
    MultiPatch,
    Field,
)

# 字段构造
from .fields import string_field, number_field, float_field, date_field, logical_field

# 文件集
from .shapefile import ShapeSource, Reader, SequentialReader, Writer

# ZIP 归档
from .container import ZipReader, ZipWriter, discover_filesets, shapes_in_zip

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    # 版本
    "__version__",
    # 异常
    "ShapeScrollError",
    "InvalidFormatError",
    "UnsupportedShapeTypeError",
    "TruncatedReadError",
    "OverReadError",
    "ShapeTypeMismatchError",
    "SchemaError",
    "FieldOverflowError",
    "FieldsAlreadySetError",
    "FieldsNotSetError",
    "ContainerError",
    "NoShapefileError",
    "MultipleShapefilesError",
    "MemberNotFoundError",
    "CloseError",
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
    "Field",
    # 字段构造
    "string_field",
    "number_field",
    "float_field",
    "date_field",
    "logical_field",
    # 读写
    "ShapeSource",
    "Reader",
    "SequentialReader",
    "Writer",
    # ZIP
    "ZipReader",
    "ZipWriter",
    "discover_filesets",
    "shapes_in_zip",
]
