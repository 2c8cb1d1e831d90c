#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
二进制 I/O 封装

提供 BinaryWriter 和 BinaryReader 类，封装所有底层文件操作，
使上层模块不需要直接操作文件指针。

Shapefile 混用两种字节序: 文件头与记录头中的长度字段为 Big-Endian，
几何内容为 Little-Endian，因此类型化方法均提供两种版本。
"""

import struct
from typing import BinaryIO, Tuple, Any, List, Optional

from ..exceptions import InvalidFormatError, TruncatedReadError

# 读取丢弃时的分块大小
DISCARD_CHUNK_SIZE = 64 * 1024


class BinaryWriter:
    """
    二进制写入器

    封装所有底层写操作，提供类型化的写入方法。
    上层模块只需调用 write_i32() 等方法，无需关心 struct.pack 细节。
    """

    def __init__(self, file: BinaryIO, position: int = 0):
        """
        初始化写入器

        Args:
            file: 可写的文件对象
            position: 文件对象当前所在位置 (追加模式下为文件末尾)
        """
        self._file = file
        self._position = position

    @property
    def position(self) -> int:
        """当前写入位置"""
        return self._position

    # ==================== 原始写入 ====================

    def write_bytes(self, data: bytes) -> int:
        """
        写入原始字节

        Args:
            data: 要写入的字节

        Returns:
            写入的字节数
        """
        written = self._file.write(data)
        if written is None:
            written = len(data)
        self._position += written
        return written

    def write_struct(self, fmt: str, *values: Any) -> int:
        """按 struct 格式写入"""
        data = struct.pack(fmt, *values)
        return self.write_bytes(data)

    # ==================== 类型化写入 ====================

    def write_i32(self, value: int) -> int:
        """写入有符号 32 位整数 (Little-Endian)"""
        return self.write_struct('<i', value)

    def write_i32_array(self, values: List[int]) -> int:
        """一次写入 Little-Endian int32 数组"""
        return self.write_struct(f'<{len(values)}i', *values)

    def write_f64_array(self, values: List[float]) -> int:
        """一次写入 Little-Endian float64 数组"""
        return self.write_struct(f'<{len(values)}d', *values)

    # ==================== 位置控制 ====================

    def reserve(self, size: int) -> int:
        """
        预留空间 (写入零字节)

        用于预留 Header 等固定大小区域，稍后回写。

        Args:
            size: 预留字节数

        Returns:
            预留区域的起始位置
        """
        start = self._position
        self.write_bytes(b'\x00' * size)
        return start

    def seek(self, position: int):
        """
        移动到指定位置

        Args:
            position: 目标位置
        """
        self._file.seek(position)
        self._position = position

    def seek_end(self) -> int:
        """移动到文件末尾，返回文件大小"""
        self._position = self._file.seek(0, 2)
        return self._position

    def truncate(self) -> None:
        """在当前位置截断文件"""
        self._file.truncate(self._position)

    def patch_bytes(self, position: int, data: bytes):
        """
        在指定位置回写数据

        写入后恢复到原位置。

        Args:
            position: 回写位置
            data: 要写入的数据
        """
        current = self._position
        self.seek(position)
        self.write_bytes(data)
        self.seek(current)


class BinaryReader:
    """
    二进制读取器

    封装所有底层读操作，提供类型化的读取方法。

    一旦某次读取失败，错误会被记录下来，之后对同一读取器的所有读取
    都直接抛出同一个错误而不再访问底层流。这样解码流程可以连续读取
    多个字段，调用方看到的始终是第一个错误。
    """

    def __init__(self, file: BinaryIO, position: int = 0):
        """
        初始化读取器

        Args:
            file: 可读的文件对象 (不要求可 seek)
            position: 文件对象当前所在位置
        """
        self._file = file
        self._position = position
        self._error: Optional[Exception] = None

    @property
    def position(self) -> int:
        """当前读取位置 (已消耗的字节数)"""
        return self._position

    @property
    def error(self) -> Optional[Exception]:
        """第一次读取失败时记录的错误"""
        return self._error

    # ==================== 原始读取 ====================

    def read_bytes(self, size: int) -> bytes:
        """
        读取指定字节数

        对于可能返回部分数据的流 (管道、归档成员)，会循环读取直到满足
        请求的字节数或到达流末尾。

        Args:
            size: 要读取的字节数

        Returns:
            读取的字节

        Raises:
            TruncatedReadError: 流不足请求的字节数
            OSError: 底层流读取失败
        """
        if self._error is not None:
            raise self._error
        try:
            data = self._file.read(size)
            while len(data) < size:
                chunk = self._file.read(size - len(data))
                if not chunk:
                    break
                data += chunk
        except OSError as e:
            self._error = e
            raise
        if len(data) < size:
            self._error = TruncatedReadError(size, len(data), self._position)
            self._position += len(data)
            raise self._error
        self._position += size
        return data

    def read_struct(self, fmt: str) -> Tuple[Any, ...]:
        """
        按 struct 格式读取

        Args:
            fmt: struct 格式字符串

        Returns:
            解包后的值元组
        """
        size = struct.calcsize(fmt)
        data = self.read_bytes(size)
        return struct.unpack(fmt, data)

    # ==================== 类型化读取 ====================

    def read_u8(self) -> int:
        """读取无符号 8 位整数"""
        return self.read_struct('<B')[0]

    def read_i32(self) -> int:
        """读取有符号 32 位整数 (Little-Endian)"""
        return self.read_struct('<i')[0]

    def read_i32_array(self, count: int) -> List[int]:
        """
        读取 Little-Endian int32 数组

        数组一次性连续读取 count 个元素。

        Raises:
            InvalidFormatError: count 为负数
        """
        _check_count(count)
        return list(self.read_struct(f'<{count}i'))

    def read_f64_array(self, count: int) -> List[float]:
        """读取 Little-Endian float64 数组"""
        _check_count(count)
        return list(self.read_struct(f'<{count}d'))

    # ==================== 位置控制 ====================

    def seek(self, position: int):
        """
        移动到指定位置 (要求底层流可 seek)

        Args:
            position: 目标位置
        """
        if self._error is not None:
            raise self._error
        self._file.seek(position)
        self._position = position

    def discard(self, size: int) -> None:
        """
        读取并丢弃指定字节 (不使用 seek)

        用于不可 seek 的顺序流。

        Args:
            size: 要丢弃的字节数
        """
        remaining = size
        while remaining > 0:
            chunk = min(remaining, DISCARD_CHUNK_SIZE)
            self.read_bytes(chunk)
            remaining -= chunk


def _check_count(count: int) -> None:
    if count < 0:
        raise InvalidFormatError("数组长度无效", expected=">= 0", actual=str(count))
