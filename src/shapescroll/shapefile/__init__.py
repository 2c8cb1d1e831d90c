#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
ShapeScroll 文件集读写

提供随机读取器、顺序读取器和写入器。
"""

from .base import ShapeSource
from .reader import Reader
from .sequential import SequentialReader
from .writer import Writer

__all__ = [
    "ShapeSource",
    "Reader",
    "SequentialReader",
    "Writer",
]
