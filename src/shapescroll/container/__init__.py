#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
ShapeScroll ZIP 归档支持
"""

from .reader import ZipReader, discover_filesets, find_shapefile, shapes_in_zip
from .writer import ZipWriter

__all__ = [
    "ZipReader",
    "ZipWriter",
    "discover_filesets",
    "find_shapefile",
    "shapes_in_zip",
]
