#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
ShapeScroll 数据结构定义

定义 FileHeader、RecordHeader、IndexEntry、DbfHeader、Field 等固定布局的数据结构。
长度字段以 16 位字 (word) 为单位，字节数 = 字数 x 2。
"""

import struct
from dataclasses import dataclass, field
from datetime import date
from typing import ClassVar, List, Optional, Sequence, Tuple

from .binary_io import BinaryReader
from .shapes import Box
from ..exceptions import InvalidFormatError


# ==================== 常量定义 ====================

# .shp / .shx 文件头
FILE_CODE = 9994
FILE_VERSION = 1000
HEADER_SIZE = 100

# .dbf 文件
DBF_VERSION = 0x03
DBF_TERMINATOR = 0x0D
DBF_PROLOGUE_SIZE = 32
FIELD_DESCRIPTOR_SIZE = 32

# 属性行删除标记
ROW_ACTIVE = 0x20
ROW_DELETED = 0x2A

# 字段类型
FIELD_CHARACTER = 'C'
FIELD_NUMERIC = 'N'
FIELD_FLOAT = 'F'
FIELD_DATE = 'D'
FIELD_LOGICAL = 'L'
FIELD_TYPES = (FIELD_CHARACTER, FIELD_NUMERIC, FIELD_FLOAT, FIELD_DATE, FIELD_LOGICAL)

# 字段名最大长度 (不含结尾的 NUL)
FIELD_NAME_MAX = 10


# ==================== 文件头 ====================

@dataclass
class FileHeader:
    """
    文件头 (100 bytes)

    .shp 与 .shx 使用相同的文件头。前 28 字节为 Big-Endian，
    其余为 Little-Endian:

        [file_code: i32 BE][reserved: 5 x i32 BE][file_length: i32 BE]
        [version: i32 LE][shape_type: i32 LE][bbox: 4 x f64 LE]
        [z_range: 2 x f64 LE][m_range: 2 x f64 LE]
    """
    FORMAT_BE: ClassVar[str] = '>7i'
    FORMAT_LE: ClassVar[str] = '<2i8d'
    SIZE: ClassVar[int] = HEADER_SIZE

    file_code: int = FILE_CODE
    file_length: int = HEADER_SIZE // 2   # 16 位字
    version: int = FILE_VERSION
    shape_type: int = 0
    bbox: Box = field(default_factory=Box)
    z_range: Tuple[float, float] = (0.0, 0.0)
    m_range: Tuple[float, float] = (0.0, 0.0)

    def pack(self) -> bytes:
        """序列化为字节"""
        return struct.pack(
            self.FORMAT_BE,
            self.file_code, 0, 0, 0, 0, 0,
            self.file_length
        ) + struct.pack(
            self.FORMAT_LE,
            self.version,
            self.shape_type,
            *self.bbox.as_tuple(),
            *self.z_range,
            *self.m_range
        )

    @classmethod
    def unpack(cls, data: bytes) -> 'FileHeader':
        """从字节反序列化"""
        be = struct.unpack(cls.FORMAT_BE, data[:28])
        le = struct.unpack(cls.FORMAT_LE, data[28:cls.SIZE])
        return cls(
            file_code=be[0],
            file_length=be[6],
            version=le[0],
            shape_type=le[1],
            bbox=Box(*le[2:6]),
            z_range=tuple(le[6:8]),
            m_range=tuple(le[8:10])
        )

    @classmethod
    def read(cls, reader: BinaryReader) -> 'FileHeader':
        """
        读取并校验文件头

        Raises:
            InvalidFormatError: 魔法数不正确
            TruncatedReadError: 文件不足 100 字节
        """
        header = cls.unpack(reader.read_bytes(cls.SIZE))
        if header.file_code != FILE_CODE:
            raise InvalidFormatError(
                "无效的文件魔法数",
                expected=str(FILE_CODE),
                actual=str(header.file_code)
            )
        return header


# ==================== 记录头 ====================

@dataclass
class RecordHeader:
    """
    记录头 (8 bytes, Big-Endian)

    record_number 从 1 开始，content_length 以 16 位字计，
    包含类型标签在内的记录内容长度。
    """
    FORMAT: ClassVar[str] = '>2i'
    SIZE: ClassVar[int] = 8

    record_number: int = 0
    content_length: int = 0

    def pack(self) -> bytes:
        return struct.pack(self.FORMAT, self.record_number, self.content_length)

    @classmethod
    def unpack(cls, data: bytes) -> 'RecordHeader':
        return cls(*struct.unpack(cls.FORMAT, data))

    @classmethod
    def read(cls, reader: BinaryReader) -> 'RecordHeader':
        return cls.unpack(reader.read_bytes(cls.SIZE))


# ==================== 索引条目 ====================

@dataclass
class IndexEntry:
    """
    .shx 索引条目 (8 bytes, Big-Endian)

    offset 为记录头在 .shp 中的位置 (16 位字)，
    content_length 与对应记录头中的值一致。
    """
    FORMAT: ClassVar[str] = '>2i'
    SIZE: ClassVar[int] = 8

    offset: int = 0
    content_length: int = 0

    def pack(self) -> bytes:
        return struct.pack(self.FORMAT, self.offset, self.content_length)

    @classmethod
    def unpack(cls, data: bytes) -> 'IndexEntry':
        return cls(*struct.unpack(cls.FORMAT, data))

    @classmethod
    def read(cls, reader: BinaryReader) -> 'IndexEntry':
        return cls.unpack(reader.read_bytes(cls.SIZE))


# ==================== DBF 文件头 ====================

@dataclass
class DbfHeader:
    """
    DBF 文件头前导区 (32 bytes, Little-Endian)

        [version: u8][year - 1900: u8][month: u8][day: u8]
        [record_count: u32][header_length: u16][record_length: u16]
        [reserved: 20 bytes]
    """
    FORMAT: ClassVar[str] = '<4BIHH20s'
    SIZE: ClassVar[int] = DBF_PROLOGUE_SIZE

    version: int = DBF_VERSION
    year: int = 0
    month: int = 1
    day: int = 1
    record_count: int = 0
    header_length: int = DBF_PROLOGUE_SIZE + 1
    record_length: int = 1
    _reserved: bytes = field(default=b'\x00' * 20, repr=False)

    @property
    def field_count(self) -> int:
        """由 header_length 推算的字段数"""
        return (self.header_length - DBF_PROLOGUE_SIZE - 1) // FIELD_DESCRIPTOR_SIZE

    def pack(self) -> bytes:
        """序列化为字节"""
        return struct.pack(
            self.FORMAT,
            self.version,
            self.year,
            self.month,
            self.day,
            self.record_count,
            self.header_length,
            self.record_length,
            self._reserved
        )

    @classmethod
    def unpack(cls, data: bytes) -> 'DbfHeader':
        """从字节反序列化"""
        values = struct.unpack(cls.FORMAT, data)
        return cls(
            version=values[0],
            year=values[1],
            month=values[2],
            day=values[3],
            record_count=values[4],
            header_length=values[5],
            record_length=values[6],
            _reserved=values[7]
        )

    @classmethod
    def for_fields(cls, fields: Sequence['Field'], record_count: int,
                   today: Optional[date] = None) -> 'DbfHeader':
        """
        按字段定义构建文件头

        header_length = 33 + 32 x 字段数
        record_length = 1 + 所有字段宽度之和
        """
        today = today or date.today()
        return cls(
            year=today.year - 1900,
            month=today.month,
            day=today.day,
            record_count=record_count,
            header_length=header_length_for(fields),
            record_length=record_length_for(fields)
        )


def header_length_for(fields: Sequence['Field']) -> int:
    return DBF_PROLOGUE_SIZE + 1 + FIELD_DESCRIPTOR_SIZE * len(fields)


def record_length_for(fields: Sequence['Field']) -> int:
    return 1 + sum(f.size for f in fields)


# ==================== 字段描述符 ====================

@dataclass
class Field:
    """
    字段描述符 (32 bytes)

        [name: 11 bytes, NUL 填充][type: 1 byte][reserved: 4 bytes]
        [size: u8][precision: u8][reserved: 14 bytes]

    建表后不可更改。
    """
    FORMAT: ClassVar[str] = '<11sc4sBB14s'
    SIZE: ClassVar[int] = FIELD_DESCRIPTOR_SIZE

    name: str = ''
    field_type: str = FIELD_CHARACTER
    size: int = 0
    precision: int = 0

    def pack(self) -> bytes:
        """序列化为字节"""
        return struct.pack(
            self.FORMAT,
            self.name.encode('ascii'),
            self.field_type.encode('ascii'),
            b'\x00' * 4,
            self.size,
            self.precision,
            b'\x00' * 14
        )

    @classmethod
    def unpack(cls, data: bytes) -> 'Field':
        """从字节反序列化"""
        values = struct.unpack(cls.FORMAT, data)
        name = values[0].split(b'\x00', 1)[0].decode('latin-1').strip()
        return cls(
            name=name,
            field_type=values[1].decode('latin-1'),
            size=values[3],
            precision=values[4]
        )

    def __str__(self) -> str:
        return self.name


def unpack_fields(data: bytes, count: int) -> List[Field]:
    """解析连续的字段描述符数组"""
    size = FIELD_DESCRIPTOR_SIZE
    return [Field.unpack(data[i * size:(i + 1) * size]) for i in range(count)]
