#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
属性表 (DBF) 编解码

负责解析/写入表头与字段描述符、计算单元格偏移，
以及把 Python 值格式化为定宽单元格。
"""

from datetime import date, datetime
from typing import Any, List, Sequence, Tuple

from .binary_io import BinaryReader, BinaryWriter
from .schema import (
    DbfHeader, Field,
    DBF_PROLOGUE_SIZE, DBF_TERMINATOR, FIELD_DESCRIPTOR_SIZE, FIELD_NAME_MAX,
    FIELD_TYPES, FIELD_DATE, FIELD_NUMERIC, FIELD_FLOAT, ROW_ACTIVE,
    record_length_for, unpack_fields,
)
from ..exceptions import FieldOverflowError, InvalidFormatError, SchemaError


# ==================== 表头 ====================

def read_dbf_header(reader: BinaryReader) -> Tuple[DbfHeader, List[Field]]:
    """
    读取表头、字段描述符和终止符

    字段数 = (header_length - 33) / 32

    Returns:
        (表头, 字段列表)

    Raises:
        InvalidFormatError: header_length 无效、终止符不是 0x0D 或行长度与字段不符
        TruncatedReadError: 表头不完整
    """
    header = DbfHeader.unpack(reader.read_bytes(DbfHeader.SIZE))
    if header.header_length < DBF_PROLOGUE_SIZE + 1:
        raise InvalidFormatError(
            "无效的 DBF 表头长度",
            expected=f">= {DBF_PROLOGUE_SIZE + 1}",
            actual=str(header.header_length)
        )
    count = header.field_count
    fields = unpack_fields(reader.read_bytes(count * FIELD_DESCRIPTOR_SIZE), count)
    terminator = reader.read_u8()
    if terminator != DBF_TERMINATOR:
        raise InvalidFormatError(
            "未找到字段描述符终止符",
            expected=f"0x{DBF_TERMINATOR:02x}",
            actual=f"0x{terminator:02x}"
        )
    if header.record_length != record_length_for(fields):
        raise InvalidFormatError(
            "行长度与字段宽度之和不一致",
            expected=str(record_length_for(fields)),
            actual=str(header.record_length)
        )
    return header, fields


def write_dbf_header(writer: BinaryWriter, header: DbfHeader, fields: Sequence[Field]) -> None:
    """写入表头、字段描述符和终止符"""
    writer.write_bytes(header.pack())
    for f in fields:
        writer.write_bytes(f.pack())
    writer.write_bytes(bytes([DBF_TERMINATOR]))


# ==================== 字段校验 ====================

def validate_field(f: Field) -> None:
    """
    校验字段描述符

    Raises:
        SchemaError: 名称、类型、宽度或精度无效
    """
    if not f.name or len(f.name) > FIELD_NAME_MAX:
        raise SchemaError(f"字段名长度必须为 1-{FIELD_NAME_MAX}: {f.name!r}")
    if not (f.name.isascii() and f.name.isprintable()):
        raise SchemaError(f"字段名只能包含可打印 ASCII 字符: {f.name!r}")
    if f.field_type not in FIELD_TYPES:
        raise SchemaError(f"字段 '{f.name}' 类型无效: {f.field_type!r}")
    if not 1 <= f.size <= 255:
        raise SchemaError(f"字段 '{f.name}' 宽度必须为 1-255: {f.size}")
    if not 0 <= f.precision <= 255:
        raise SchemaError(f"字段 '{f.name}' 精度无效: {f.precision}")


# ==================== 行与单元格 ====================

def cell_start(fields: Sequence[Field], col: int) -> int:
    """单元格在行内的起始位置 (跳过删除标记字节)"""
    return 1 + sum(f.size for f in fields[:col])


def cell_offset(header: DbfHeader, fields: Sequence[Field], row: int, col: int) -> int:
    """
    单元格在文件中的绝对偏移

    offset = header_length + row x record_length + 1 + 前序字段宽度之和
    """
    return header.header_length + row * header.record_length + cell_start(fields, col)


def blank_row(record_length: int) -> bytes:
    """空白行: 有效标记 + 零填充的单元格"""
    return bytes([ROW_ACTIVE]) + b'\x00' * (record_length - 1)


def decode_cell(raw: bytes, encoding: str = 'utf-8', errors: str = 'strict') -> str:
    """解码单元格并去除两端的空格与 NUL 填充"""
    return raw.decode(encoding, errors).strip(' \x00')


def row_cell(row: bytes, fields: Sequence[Field], col: int,
             encoding: str = 'utf-8', errors: str = 'strict') -> str:
    """从整行字节中取出第 col 个单元格的文本"""
    start = cell_start(fields, col)
    return decode_cell(row[start:start + fields[col].size], encoding, errors)


# ==================== 值格式化 ====================

def format_value(f: Field, value: Any, encoding: str = 'utf-8') -> bytes:
    """
    将值格式化为恰好 f.size 字节的单元格

    - bool: "Yes" / "No"
    - int: 十进制文本
    - float: 按字段精度输出定点小数
    - date / datetime: YYYYMMDD
    - str: 日期字段解析 ISO 日期或日期时间，其他字段原样写入

    数值字段右对齐，其他字段左对齐，均以空格填充。

    Raises:
        FieldOverflowError: 格式化后的文本超出字段宽度 (不会截断)
        SchemaError: 日期字符串无法解析
        TypeError: 不支持的值类型
    """
    if isinstance(value, bool):
        text = "Yes" if value else "No"
    elif isinstance(value, int):
        text = str(value)
    elif isinstance(value, float):
        text = f"{value:.{f.precision}f}"
    elif isinstance(value, (date, datetime)):
        text = value.strftime('%Y%m%d')
    elif isinstance(value, str):
        text = _parse_date(value) if f.field_type == FIELD_DATE else value
    else:
        raise TypeError(f"不支持的值类型: {type(value).__name__}")

    data = text.encode(encoding)
    if len(data) > f.size:
        raise FieldOverflowError(f.name, text, f.size)
    if f.field_type in (FIELD_NUMERIC, FIELD_FLOAT):
        return data.rjust(f.size, b' ')
    return data.ljust(f.size, b' ')


def _parse_date(text: str) -> str:
    """ISO 日期 (2006-01-02) 或 ISO 日期时间 -> YYYYMMDD"""
    try:
        if len(text) == 10:
            parsed = date.fromisoformat(text)
        else:
            # fromisoformat 在 3.11 之前不接受 "Z" 后缀
            parsed = datetime.fromisoformat(text.replace('Z', '+00:00'))
    except ValueError:
        raise SchemaError(f"无效的日期值: {text!r}") from None
    return parsed.strftime('%Y%m%d')
