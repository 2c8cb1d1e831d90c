#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
ZIP 归档读取

在归档成员中查找匹配的 .shp / .shx / .dbf 文件集，
并通过顺序读取器读取 (归档成员不可 seek)。
"""

import logging
import zipfile
from typing import Dict, Iterable, List, Optional, Tuple

from ..core.schema import Field
from ..core.shapes import Box, Shape
from ..exceptions import (
    CloseError, MemberNotFoundError, MultipleShapefilesError, NoShapefileError,
)
from ..shapefile.base import ShapeSource
from ..shapefile.sequential import SequentialReader
from ..utils import close_streams, split_member

logger = logging.getLogger(__name__)

# 识别的成员扩展名
MEMBER_KINDS = ('.shp', '.shx', '.dbf', '.prj', '.cpg')


# ==================== 成员发现 ====================

def discover_filesets(names: Iterable[str]) -> Dict[str, Dict[str, str]]:
    """
    按基础名 (去掉扩展名的路径) 对成员分组

    Args:
        names: 归档成员名列表

    Returns:
        {基础名: {扩展名: 成员名}}，只包含可识别扩展名的成员

    Example:
        >>> discover_filesets(["a.shp", "a.DBF", "readme.txt"])
        {'a': {'.shp': 'a.shp', '.dbf': 'a.DBF'}}
    """
    groups: Dict[str, Dict[str, str]] = {}
    for name in names:
        if name.endswith('/'):
            continue
        base, ext = split_member(name)
        if ext in MEMBER_KINDS:
            groups.setdefault(base, {})[ext] = name
    return groups


def find_shapefile(names: Iterable[str], archive: Optional[str] = None) -> Dict[str, str]:
    """
    找出唯一包含 .shp 成员的文件集

    Raises:
        NoShapefileError: 没有 .shp 成员
        MultipleShapefilesError: 有多个 .shp 成员，需要按名称指定
    """
    candidates = [g for g in discover_filesets(names).values() if '.shp' in g]
    if not candidates:
        raise NoShapefileError(archive)
    if len(candidates) > 1:
        raise MultipleShapefilesError(sorted(g['.shp'] for g in candidates))
    return candidates[0]


def shapes_in_zip(path: str) -> List[str]:
    """列出归档中所有 .shp 成员名"""
    with zipfile.ZipFile(path) as z:
        return [
            g['.shp'] for g in discover_filesets(z.namelist()).values()
            if '.shp' in g
        ]


# ==================== 读取器 ====================

class ZipReader(ShapeSource):
    """
    ZIP 归档中的 Shapefile 读取器

    与 SequentialReader 的读取约定相同。归档中不需要 .shx 成员，
    .dbf 成员缺失时没有属性。

    Example:
        >>> with ZipReader.open("roads.zip") as reader:
        ...     for index, shape in reader:
        ...         print(index, reader.attributes())
    """

    def __init__(self, archive: zipfile.ZipFile, members: Dict[str, str],
                 encoding: str = 'utf-8', encoding_errors: str = 'strict'):
        """
        Args:
            archive: 已打开的归档 (由读取器接管并负责关闭)
            members: {扩展名: 成员名}，至少包含 '.shp'
        """
        self._archive = archive
        self._members = dict(members)
        shp = archive.open(members['.shp'])
        try:
            dbf = archive.open(members['.dbf']) if '.dbf' in members else None
        except Exception:
            shp.close()
            raise
        self._reader = SequentialReader(shp, dbf, encoding, encoding_errors)

    @classmethod
    def open(cls, path: str, encoding: str = 'utf-8',
             encoding_errors: str = 'strict') -> 'ZipReader':
        """
        打开只包含一个文件集的归档

        Raises:
            NoShapefileError: 归档中没有 .shp 成员
            MultipleShapefilesError: 归档中有多个 .shp 成员
        """
        archive = zipfile.ZipFile(path)
        try:
            members = find_shapefile(archive.namelist(), archive=str(path))
            logger.debug("在 %s 中找到文件集: %s", path, members)
            return cls(archive, members, encoding, encoding_errors)
        except Exception:
            archive.close()
            raise

    @classmethod
    def open_member(cls, path: str, name: str, encoding: str = 'utf-8',
                    encoding_errors: str = 'strict') -> 'ZipReader':
        """
        按成员名打开文件集，跳过自动发现

        Args:
            path: 归档路径
            name: .shp 成员名 (或不带扩展名的基础名)

        Raises:
            MemberNotFoundError: 归档中没有该 .shp 成员
        """
        archive = zipfile.ZipFile(path)
        try:
            base, ext = split_member(name)
            if ext != '.shp':
                base = split_member(name + '.shp')[0]
            members = discover_filesets(archive.namelist()).get(base, {})
            if '.shp' not in members:
                raise MemberNotFoundError(name)
            return cls(archive, members, encoding, encoding_errors)
        except Exception:
            archive.close()
            raise

    @property
    def members(self) -> Dict[str, str]:
        """当前文件集的成员名"""
        return dict(self._members)

    # ==================== 委托 ====================

    def advance(self) -> bool:
        return self._reader.advance()

    def current(self) -> Tuple[int, Optional[Shape]]:
        return self._reader.current()

    def attribute(self, col: int) -> str:
        return self._reader.attribute(col)

    @property
    def deleted(self) -> bool:
        return self._reader.deleted

    @property
    def fields(self) -> List[Field]:
        return self._reader.fields

    @property
    def error(self) -> Optional[Exception]:
        return self._reader.error

    @property
    def shape_type(self) -> int:
        return self._reader.shape_type

    @property
    def bbox(self) -> Box:
        return self._reader.bbox

    def close(self) -> None:
        """关闭成员数据流和归档，汇总所有失败"""
        errors = []
        try:
            self._reader.close()
        except CloseError as e:
            errors.extend(e.errors)
        errors.extend(close_streams(self._archive))
        if errors:
            raise CloseError(errors)
