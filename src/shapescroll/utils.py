#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
ShapeScroll 工具函数

提供文件集路径推导和归档成员名处理。
"""

import os
import posixpath
from typing import List, NamedTuple, Tuple


class FileSetPaths(NamedTuple):
    """同一文件集的三个文件路径"""
    shp: str
    shx: str
    dbf: str


def normalize_path(path: str) -> str:
    """
    归档成员名规范化

    1. 反斜杠统一为正斜杠
    2. 合并连续斜杠
    3. 移除开头斜杠

    Examples:
        >>> normalize_path("data\\\\roads.shp")
        'data/roads.shp'
        >>> normalize_path("/data//roads.shp")
        'data/roads.shp'
    """
    path = path.replace("\\", "/")
    while "//" in path:
        path = path.replace("//", "/")
    return path.lstrip("/")


def split_member(name: str) -> Tuple[str, str]:
    """
    拆分归档成员名为 (不含扩展名的路径, 小写扩展名)

    Examples:
        >>> split_member("data/Roads.SHP")
        ('data/Roads', '.shp')
    """
    base, ext = posixpath.splitext(normalize_path(name))
    return base, ext.lower()


def fileset_paths(path: str) -> FileSetPaths:
    """
    由 .shp 路径 (或不带扩展名的基础名) 推导三个文件的路径

    扩展名大小写跟随输入。

    Examples:
        >>> fileset_paths("data/roads.shp").dbf
        'data/roads.dbf'
        >>> fileset_paths("data/ROADS.SHP").shx
        'data/ROADS.SHX'
        >>> fileset_paths("data/roads").shp
        'data/roads.shp'
    """
    path = os.fspath(path)
    base, ext = os.path.splitext(path)
    if ext.lower() != '.shp':
        base, ext = path, '.shp'
    if ext.isupper():
        return FileSetPaths(base + '.SHP', base + '.SHX', base + '.DBF')
    return FileSetPaths(base + '.shp', base + '.shx', base + '.dbf')


def close_streams(*streams) -> List[Exception]:
    """
    依次关闭所有流

    某个流关闭失败时继续关闭其余的流，返回全部失败的错误。
    None 会被跳过。
    """
    errors = []
    for stream in streams:
        if stream is None:
            continue
        try:
            stream.close()
        except Exception as e:
            errors.append(e)
    return errors
