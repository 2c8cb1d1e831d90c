#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
ShapeScroll 异常定义

所有异常均继承自 ShapeScrollError，便于统一捕获。
"""

from typing import List, Optional


class ShapeScrollError(Exception):
    """ShapeScroll 基础异常"""
    pass


class InvalidFormatError(ShapeScrollError):
    """
    文件格式无效异常

    当魔法数、DBF 终止符、删除标记等结构不符合预期时抛出。
    """
    def __init__(self, message: str, expected: str = None, actual: str = None):
        self.expected = expected
        self.actual = actual
        if expected and actual:
            message = f"{message}: 期望 {expected}, 实际 {actual}"
        super().__init__(message)


class UnsupportedShapeTypeError(ShapeScrollError):
    """
    未知几何类型异常

    解码时遇到未注册的几何类型标签时抛出，不会静默降级为 Null。
    """
    def __init__(self, shape_type: int):
        self.shape_type = shape_type
        super().__init__(f"不支持的几何类型: {shape_type}")


class TruncatedReadError(ShapeScrollError, EOFError):
    """
    读取不完整异常

    流中剩余字节不足请求的字节数时抛出。
    actual == 0 表示在读取开始处即已到达流末尾。
    """
    def __init__(self, expected: int, actual: int, position: int):
        self.expected = expected
        self.actual = actual
        self.position = position
        super().__init__(
            f"文件结束: 在位置 {position} 期望读取 {expected} 字节，"
            f"实际只有 {actual} 字节"
        )


class OverReadError(ShapeScrollError):
    """
    记录越界读取异常

    顺序读取时几何解码消耗的字节数超过记录头声明的长度。
    """
    def __init__(self, record_number: int, declared: int, consumed: int):
        self.record_number = record_number
        self.declared = declared
        self.consumed = consumed
        super().__init__(
            f"记录 {record_number} 读取字节过多: "
            f"声明 {declared} 字节，实际读取 {consumed} 字节"
        )


class ShapeTypeMismatchError(ShapeScrollError):
    """写入的几何类型与文件集的几何类型不一致"""
    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(f"几何类型不匹配: 期望 {expected}, 实际 {actual}")


# ==================== 属性表结构 ====================

class SchemaError(ShapeScrollError):
    """属性表结构 (字段定义) 相关异常"""
    pass


class FieldOverflowError(SchemaError):
    """
    字段值超宽异常

    格式化后的值超过字段宽度时抛出，值不会被截断。
    """
    def __init__(self, field_name: str, text: str, width: int):
        self.field_name = field_name
        self.text = text
        self.width = width
        super().__init__(
            f"无法写入字段 '{field_name}': {text!r} 超出字段宽度 {width}"
        )


class FieldsAlreadySetError(SchemaError):
    """字段定义只能设置一次"""
    def __init__(self, message: str = None):
        super().__init__(message or "字段定义已设置，不能再次设置")


class FieldsNotSetError(SchemaError):
    """尚未设置字段定义或属性表不可用"""
    def __init__(self, message: str = None):
        super().__init__(message or "尚未设置字段定义，请先调用 set_fields()")


# ==================== 归档容器 ====================

class ContainerError(ShapeScrollError):
    """归档容器相关异常"""
    pass


class NoShapefileError(ContainerError):
    """归档中不包含任何 .shp 文件"""
    def __init__(self, archive: Optional[str] = None):
        self.archive = archive
        where = f" '{archive}'" if archive else ""
        super().__init__(f"归档{where}中不包含 .shp 文件")


class MultipleShapefilesError(ContainerError):
    """
    归档中包含多个 .shp 文件

    调用方需通过成员名显式指定要打开的文件集。
    """
    def __init__(self, names: List[str]):
        self.names = list(names)
        super().__init__(
            f"归档中包含多个 .shp 文件，请按名称指定: {', '.join(self.names)}"
        )


class MemberNotFoundError(ContainerError):
    """归档中不存在指定成员"""
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"归档中不存在成员: {name}")


class CloseError(ShapeScrollError):
    """
    关闭资源失败

    汇总所有关闭失败的资源，而不是在第一个失败处停止。
    """
    def __init__(self, errors: List[Exception]):
        self.errors = list(errors)
        details = "; ".join(str(e) for e in self.errors)
        super().__init__(f"关闭 {len(self.errors)} 个资源失败: {details}")
