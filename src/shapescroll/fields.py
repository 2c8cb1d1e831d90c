#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
字段描述符构造函数

纯数据构造，不做 I/O。返回的 Field 可直接传给 Writer.set_fields()。
"""

from .core.dbf import validate_field
from .core.schema import (
    Field,
    FIELD_CHARACTER, FIELD_NUMERIC, FIELD_FLOAT, FIELD_DATE, FIELD_LOGICAL,
)


def _build(name: str, field_type: str, size: int, precision: int = 0) -> Field:
    f = Field(name=name, field_type=field_type, size=size, precision=precision)
    validate_field(f)
    return f


def string_field(name: str, size: int) -> Field:
    """字符字段 (C)"""
    return _build(name, FIELD_CHARACTER, size)


def number_field(name: str, size: int, precision: int = 0) -> Field:
    """数值字段 (N)"""
    return _build(name, FIELD_NUMERIC, size, precision)


def float_field(name: str, size: int, precision: int) -> Field:
    """浮点字段 (F)，precision 为小数位数"""
    return _build(name, FIELD_FLOAT, size, precision)


def date_field(name: str) -> Field:
    """日期字段 (D)，固定 8 字节 YYYYMMDD"""
    return _build(name, FIELD_DATE, 8)


def logical_field(name: str, size: int = 3) -> Field:
    """逻辑字段 (L)，写入 "Yes" / "No"，默认宽度 3"""
    return _build(name, FIELD_LOGICAL, size)
