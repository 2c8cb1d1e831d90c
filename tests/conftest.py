#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
pytest 全局配置

提供共享 fixtures 和测试工具。
"""

import zipfile
from pathlib import Path

import pytest

from shapescroll import (
    Writer, ShapeType, Point, PolyLine, Polygon,
    string_field, number_field, float_field, date_field, logical_field,
)


# ==================== 测试数据 ====================

ROAD_LINES = [
    [[(0.0, 0.0), (5.0, 5.0)]],
    [[(10.0, 10.0), (15.0, 15.0)], [(20.0, 20.0), (25.0, 25.0)]],
    [[(-3.0, 7.5), (1.0, -2.0), (4.0, 9.0)]],
]

ROAD_ROWS = [
    ["Main St", 1, 12.5, "2020-01-02", True],
    ["Elm St", 22, 3.25, "2021-12-31", False],
    ["中文路", 333, 0.0, "2019-06-15T08:30:00Z", True],
]


def _road_fields():
    return [
        string_field("NAME", 20),
        number_field("LANES", 5),
        float_field("LENGTH", 10, 2),
        date_field("BUILT"),
        logical_field("PAVED"),
    ]


@pytest.fixture
def road_data() -> tuple:
    """
    道路测试数据

    Returns:
        (每条记录的部件列表, 每条记录的属性值, 字段定义)
    """
    return ROAD_LINES, ROAD_ROWS, _road_fields()


# ==================== 文件集 Fixtures ====================

@pytest.fixture
def road_shp(tmp_path) -> Path:
    """
    创建 3 条折线记录 + 5 个字段的文件集

    Returns:
        .shp 文件路径
    """
    path = tmp_path / "roads.shp"
    with Writer.create(str(path), ShapeType.POLYLINE) as w:
        w.set_fields(_road_fields())
        for lines, values in zip(ROAD_LINES, ROAD_ROWS):
            row = w.write(PolyLine.from_lines(lines))
            w.write_record(row, values)
    return path


@pytest.fixture
def point_shp(tmp_path) -> Path:
    """创建没有字段定义的点文件集"""
    path = tmp_path / "points.shp"
    with Writer.create(str(path), ShapeType.POINT) as w:
        for i in range(4):
            w.write(Point(i, i * 2))
    return path


@pytest.fixture
def road_zip(tmp_path, road_shp) -> Path:
    """把道路文件集打包为只包含一个文件集的 ZIP"""
    path = tmp_path / "roads.zip"
    with zipfile.ZipFile(path, 'w') as z:
        for ext in ('.shp', '.shx', '.dbf'):
            z.write(road_shp.with_suffix(ext), "roads" + ext)
    return path


@pytest.fixture
def polygon_shp(tmp_path) -> Path:
    """两个多边形，第二个带内环"""
    path = tmp_path / "parcels.shp"
    with Writer.create(str(path), ShapeType.POLYGON) as w:
        w.set_fields([string_field("ID", 4)])
        w.write(Polygon.from_lines([[(0, 0), (0, 4), (4, 4), (4, 0), (0, 0)]]))
        w.write(Polygon.from_lines([
            [(10, 10), (10, 20), (20, 20), (20, 10), (10, 10)],
            [(12, 12), (18, 12), (18, 18), (12, 18), (12, 12)],
        ]))
        w.write_attribute(0, 0, "A1")
        w.write_attribute(1, 0, "B2")
    return path
