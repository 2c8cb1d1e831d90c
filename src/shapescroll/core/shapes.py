#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
几何编解码

定义几何类型集合 (Null / Point / PolyLine / Polygon / MultiPoint 及其
Z、M 变体和 MultiPatch)，以及每种类型的二进制读写实现。

几何内容中的所有字段均为 Little-Endian。变长数组 (parts、points、
Z/M 值) 先读取数量字段，再一次性连续读取。

每个类型通过 shape_type 类属性注册到 SHAPE_REGISTRY，
记录头读取到类型标签后只做一次分派。
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import IntEnum
from typing import ClassVar, Dict, Iterable, List, Optional, Sequence, Tuple, Type

from .binary_io import BinaryReader, BinaryWriter
from ..exceptions import UnsupportedShapeTypeError


# ==================== 常量定义 ====================

class ShapeType(IntEnum):
    """几何类型标签"""
    NULL = 0
    POINT = 1
    POLYLINE = 3
    POLYGON = 5
    MULTIPOINT = 8
    POINTZ = 11
    POLYLINEZ = 13
    POLYGONZ = 15
    MULTIPOINTZ = 18
    POINTM = 21
    POLYLINEM = 23
    POLYGONM = 25
    MULTIPOINTM = 28
    MULTIPATCH = 31


class PartType(IntEnum):
    """MultiPatch 部件类型 (编解码只保留，不解释)"""
    TRIANGLE_STRIP = 0
    TRIANGLE_FAN = 1
    OUTER_RING = 2
    INNER_RING = 3
    FIRST_RING = 4
    RING = 5


# ==================== 包围盒 ====================

@dataclass
class Box:
    """
    包围盒 (4 个 float64)

    extend 系列方法只会扩大包围盒，不会缩小。
    """
    min_x: float = 0.0
    min_y: float = 0.0
    max_x: float = 0.0
    max_y: float = 0.0

    def extend(self, box: 'Box') -> None:
        """扩展包围盒以覆盖另一个包围盒"""
        self.min_x = min(self.min_x, box.min_x)
        self.min_y = min(self.min_y, box.min_y)
        self.max_x = max(self.max_x, box.max_x)
        self.max_y = max(self.max_y, box.max_y)

    def extend_point(self, x: float, y: float) -> None:
        """扩展包围盒以覆盖一个点"""
        self.min_x = min(self.min_x, x)
        self.min_y = min(self.min_y, y)
        self.max_x = max(self.max_x, x)
        self.max_y = max(self.max_y, y)

    @classmethod
    def from_points(cls, points: Sequence['Point']) -> 'Box':
        """
        计算点集的包围盒

        空点集返回原点处的退化包围盒。
        """
        if not points:
            return cls()
        first = points[0]
        box = cls(first.x, first.y, first.x, first.y)
        for p in points[1:]:
            box.extend_point(p.x, p.y)
        return box

    def as_tuple(self) -> Tuple[float, float, float, float]:
        return (self.min_x, self.min_y, self.max_x, self.max_y)


# ==================== 几何基类 ====================

class Shape(ABC):
    """
    几何基类

    子类必须声明 shape_type，并实现 read / write / bbox。
    read 与 write 只处理类型标签之后的几何内容。
    """
    shape_type: ClassVar[ShapeType]

    @classmethod
    @abstractmethod
    def read(cls, reader: BinaryReader) -> 'Shape':
        """从读取器解码几何内容"""
        pass

    @abstractmethod
    def write(self, writer: BinaryWriter) -> None:
        """将几何内容编码到写入器"""
        pass

    @abstractmethod
    def bbox(self) -> Box:
        """
        计算包围盒

        多点类型按实际坐标计算，不使用存储的 box 字段。
        """
        pass


# ==================== 内部读写辅助 ====================

def _read_box(reader: BinaryReader) -> Box:
    return Box(*reader.read_f64_array(4))


def _write_box(writer: BinaryWriter, box: Box) -> None:
    writer.write_f64_array(list(box.as_tuple()))


def _read_points(reader: BinaryReader, count: int) -> List['Point']:
    flat = reader.read_f64_array(count * 2)
    return [Point(flat[i], flat[i + 1]) for i in range(0, len(flat), 2)]


def _write_points(writer: BinaryWriter, points: Sequence['Point']) -> None:
    flat = []
    for p in points:
        flat.append(p.x)
        flat.append(p.y)
    writer.write_f64_array(flat)


def _read_measures(reader: BinaryReader, count: int) -> Tuple[Tuple[float, float], List[float]]:
    """读取 [range: 2 x f64][values: count x f64]"""
    value_range = tuple(reader.read_f64_array(2))
    return value_range, reader.read_f64_array(count)


def _write_measures(writer: BinaryWriter, value_range: Tuple[float, float],
                    values: Sequence[float]) -> None:
    writer.write_f64_array(list(value_range))
    writer.write_f64_array(list(values))


def _as_points(points: Iterable) -> List['Point']:
    """接受 Point 对象或 (x, y) 元组"""
    return [p if isinstance(p, Point) else Point(*p) for p in points]


def _aligned(values: Sequence[float], count: int, name: str) -> List[float]:
    # 未提供时以 0 填充，与点列表一一对应
    if not values and count:
        return [0.0] * count
    if len(values) != count:
        raise ValueError(f"{name} 长度 {len(values)} 与点数量 {count} 不一致")
    return [float(v) for v in values]


def _value_range(values: Sequence[float]) -> Tuple[float, float]:
    if not values:
        return (0.0, 0.0)
    return (min(values), max(values))


def _flatten_lines(lines: Sequence[Sequence]) -> Tuple[List[int], List['Point']]:
    parts = []
    points = []
    for line in lines:
        parts.append(len(points))
        points.extend(_as_points(line))
    return parts, points


# ==================== Null ====================

@dataclass
class Null(Shape):
    """空几何，没有几何内容"""
    shape_type: ClassVar[ShapeType] = ShapeType.NULL

    @classmethod
    def read(cls, reader: BinaryReader) -> 'Null':
        return cls()

    def write(self, writer: BinaryWriter) -> None:
        pass

    def bbox(self) -> Box:
        return Box()


# ==================== 单点类型 ====================

@dataclass
class Point(Shape):
    """
    点 (x, y)

    同时用作多点类型中的坐标元素。
    """
    shape_type: ClassVar[ShapeType] = ShapeType.POINT

    x: float = 0.0
    y: float = 0.0

    @classmethod
    def read(cls, reader: BinaryReader) -> 'Point':
        return cls(*reader.read_struct('<2d'))

    def write(self, writer: BinaryWriter) -> None:
        writer.write_struct('<2d', self.x, self.y)

    def bbox(self) -> Box:
        return Box(self.x, self.y, self.x, self.y)


@dataclass
class PointM(Point):
    """带测量值的点，内容为 x, y, m"""
    shape_type: ClassVar[ShapeType] = ShapeType.POINTM

    m: float = 0.0

    @classmethod
    def read(cls, reader: BinaryReader) -> 'PointM':
        return cls(*reader.read_struct('<3d'))

    def write(self, writer: BinaryWriter) -> None:
        writer.write_struct('<3d', self.x, self.y, self.m)


@dataclass
class PointZ(Point):
    """带高程和测量值的点，内容为 x, y, z, m"""
    shape_type: ClassVar[ShapeType] = ShapeType.POINTZ

    z: float = 0.0
    m: float = 0.0

    @classmethod
    def read(cls, reader: BinaryReader) -> 'PointZ':
        return cls(*reader.read_struct('<4d'))

    def write(self, writer: BinaryWriter) -> None:
        writer.write_struct('<4d', self.x, self.y, self.z, self.m)


# ==================== 多点类型 ====================

@dataclass
class MultiPoint(Shape):
    """
    多点

    内容: [box: 4 x f64][num_points: i32][points: num_points x 2 x f64]
    """
    shape_type: ClassVar[ShapeType] = ShapeType.MULTIPOINT

    points: List[Point] = field(default_factory=list)
    box: Optional[Box] = None

    def __post_init__(self):
        self.points = _as_points(self.points)
        if self.box is None:
            self.box = Box.from_points(self.points)

    @classmethod
    def read(cls, reader: BinaryReader) -> 'MultiPoint':
        box = _read_box(reader)
        num_points = reader.read_i32()
        points = _read_points(reader, num_points)
        return cls(points=points, box=box, **cls._read_extra(reader, num_points))

    @classmethod
    def _read_extra(cls, reader: BinaryReader, num_points: int) -> dict:
        return {}

    def write(self, writer: BinaryWriter) -> None:
        _write_box(writer, self.box)
        writer.write_i32(len(self.points))
        _write_points(writer, self.points)
        self._write_extra(writer)

    def _write_extra(self, writer: BinaryWriter) -> None:
        pass

    def bbox(self) -> Box:
        return Box.from_points(self.points)


@dataclass
class MultiPointM(MultiPoint):
    """多点 + 测量值: [m_range][m_array]"""
    shape_type: ClassVar[ShapeType] = ShapeType.MULTIPOINTM

    m_range: Optional[Tuple[float, float]] = None
    m_array: List[float] = field(default_factory=list)

    def __post_init__(self):
        super().__post_init__()
        self.m_array = _aligned(self.m_array, len(self.points), "m_array")
        self.m_range = tuple(self.m_range) if self.m_range is not None else _value_range(self.m_array)

    @classmethod
    def _read_extra(cls, reader: BinaryReader, num_points: int) -> dict:
        m_range, m_array = _read_measures(reader, num_points)
        return {'m_range': m_range, 'm_array': m_array}

    def _write_extra(self, writer: BinaryWriter) -> None:
        _write_measures(writer, self.m_range, self.m_array)


@dataclass
class MultiPointZ(MultiPoint):
    """多点 + 高程 + 测量值: [z_range][z_array][m_range][m_array]"""
    shape_type: ClassVar[ShapeType] = ShapeType.MULTIPOINTZ

    z_range: Optional[Tuple[float, float]] = None
    z_array: List[float] = field(default_factory=list)
    m_range: Optional[Tuple[float, float]] = None
    m_array: List[float] = field(default_factory=list)

    def __post_init__(self):
        super().__post_init__()
        self.z_array = _aligned(self.z_array, len(self.points), "z_array")
        self.z_range = tuple(self.z_range) if self.z_range is not None else _value_range(self.z_array)
        self.m_array = _aligned(self.m_array, len(self.points), "m_array")
        self.m_range = tuple(self.m_range) if self.m_range is not None else _value_range(self.m_array)

    @classmethod
    def _read_extra(cls, reader: BinaryReader, num_points: int) -> dict:
        z_range, z_array = _read_measures(reader, num_points)
        m_range, m_array = _read_measures(reader, num_points)
        return {
            'z_range': z_range, 'z_array': z_array,
            'm_range': m_range, 'm_array': m_array,
        }

    def _write_extra(self, writer: BinaryWriter) -> None:
        _write_measures(writer, self.z_range, self.z_array)
        _write_measures(writer, self.m_range, self.m_array)


# ==================== 多部件类型 ====================

@dataclass
class PolyLine(Shape):
    """
    折线

    内容: [box][num_parts: i32][num_points: i32]
          [parts: num_parts x i32][points: num_points x 2 x f64]

    parts 为每个部件在扁平点列表中的起始下标。
    """
    shape_type: ClassVar[ShapeType] = ShapeType.POLYLINE

    parts: List[int] = field(default_factory=list)
    points: List[Point] = field(default_factory=list)
    box: Optional[Box] = None

    def __post_init__(self):
        self.parts = [int(p) for p in self.parts]
        self.points = _as_points(self.points)
        if self.box is None:
            self.box = Box.from_points(self.points)

    @classmethod
    def from_lines(cls, lines: Sequence[Sequence], **kwargs) -> 'PolyLine':
        """
        由多条点序列构建

        Args:
            lines: 每个部件的点序列，元素为 Point 或 (x, y)
            **kwargs: 传给构造函数的其他字段 (如 z_array, m_array)

        Example:
            >>> PolyLine.from_lines([[(0, 0), (5, 5)], [(10, 10), (15, 15)]]).parts
            [0, 2]
        """
        parts, points = _flatten_lines(lines)
        return cls(parts=parts, points=points, **kwargs)

    @classmethod
    def read(cls, reader: BinaryReader) -> 'PolyLine':
        box = _read_box(reader)
        num_parts = reader.read_i32()
        num_points = reader.read_i32()
        parts = reader.read_i32_array(num_parts)
        extra = cls._read_part_types(reader, num_parts)
        points = _read_points(reader, num_points)
        extra.update(cls._read_extra(reader, num_points))
        return cls(parts=parts, points=points, box=box, **extra)

    @classmethod
    def _read_part_types(cls, reader: BinaryReader, num_parts: int) -> dict:
        return {}

    @classmethod
    def _read_extra(cls, reader: BinaryReader, num_points: int) -> dict:
        return {}

    def write(self, writer: BinaryWriter) -> None:
        _write_box(writer, self.box)
        writer.write_i32(len(self.parts))
        writer.write_i32(len(self.points))
        writer.write_i32_array(self.parts)
        self._write_part_types(writer)
        _write_points(writer, self.points)
        self._write_extra(writer)

    def _write_part_types(self, writer: BinaryWriter) -> None:
        pass

    def _write_extra(self, writer: BinaryWriter) -> None:
        pass

    def bbox(self) -> Box:
        return Box.from_points(self.points)


@dataclass
class Polygon(PolyLine):
    """
    多边形

    与 PolyLine 的二进制结构完全相同。环不自相交是使用方的约定，
    编解码不做校验。
    """
    shape_type: ClassVar[ShapeType] = ShapeType.POLYGON


@dataclass
class PolyLineM(PolyLine):
    shape_type: ClassVar[ShapeType] = ShapeType.POLYLINEM

    m_range: Optional[Tuple[float, float]] = None
    m_array: List[float] = field(default_factory=list)

    def __post_init__(self):
        super().__post_init__()
        self.m_array = _aligned(self.m_array, len(self.points), "m_array")
        self.m_range = tuple(self.m_range) if self.m_range is not None else _value_range(self.m_array)

    @classmethod
    def _read_extra(cls, reader: BinaryReader, num_points: int) -> dict:
        m_range, m_array = _read_measures(reader, num_points)
        return {'m_range': m_range, 'm_array': m_array}

    def _write_extra(self, writer: BinaryWriter) -> None:
        _write_measures(writer, self.m_range, self.m_array)


@dataclass
class PolygonM(PolyLineM):
    shape_type: ClassVar[ShapeType] = ShapeType.POLYGONM


@dataclass
class PolyLineZ(PolyLine):
    """折线 + 高程 + 测量值，Z 数组在 M 数组之前"""
    shape_type: ClassVar[ShapeType] = ShapeType.POLYLINEZ

    z_range: Optional[Tuple[float, float]] = None
    z_array: List[float] = field(default_factory=list)
    m_range: Optional[Tuple[float, float]] = None
    m_array: List[float] = field(default_factory=list)

    def __post_init__(self):
        super().__post_init__()
        self.z_array = _aligned(self.z_array, len(self.points), "z_array")
        self.z_range = tuple(self.z_range) if self.z_range is not None else _value_range(self.z_array)
        self.m_array = _aligned(self.m_array, len(self.points), "m_array")
        self.m_range = tuple(self.m_range) if self.m_range is not None else _value_range(self.m_array)

    @classmethod
    def _read_extra(cls, reader: BinaryReader, num_points: int) -> dict:
        z_range, z_array = _read_measures(reader, num_points)
        m_range, m_array = _read_measures(reader, num_points)
        return {
            'z_range': z_range, 'z_array': z_array,
            'm_range': m_range, 'm_array': m_array,
        }

    def _write_extra(self, writer: BinaryWriter) -> None:
        _write_measures(writer, self.z_range, self.z_array)
        _write_measures(writer, self.m_range, self.m_array)


@dataclass
class PolygonZ(PolyLineZ):
    shape_type: ClassVar[ShapeType] = ShapeType.POLYGONZ


@dataclass
class MultiPatch(PolyLineZ):
    """
    多面片

    在 parts 与 points 之间多一个 part_types 数组 (每个部件一个)，
    编解码只保留这些标签，不解释顶点顺序。
    """
    shape_type: ClassVar[ShapeType] = ShapeType.MULTIPATCH

    part_types: List[int] = field(default_factory=list)

    def __post_init__(self):
        super().__post_init__()
        if not self.part_types and self.parts:
            self.part_types = [PartType.RING] * len(self.parts)
        if len(self.part_types) != len(self.parts):
            raise ValueError(
                f"part_types 长度 {len(self.part_types)} 与部件数量 {len(self.parts)} 不一致"
            )
        self.part_types = [int(t) for t in self.part_types]

    @classmethod
    def _read_part_types(cls, reader: BinaryReader, num_parts: int) -> dict:
        return {'part_types': reader.read_i32_array(num_parts)}

    def _write_part_types(self, writer: BinaryWriter) -> None:
        writer.write_i32_array(self.part_types)


# ==================== 类型注册表 ====================

SHAPE_REGISTRY: Dict[int, Type[Shape]] = {
    cls.shape_type: cls
    for cls in (
        Null, Point, PolyLine, Polygon, MultiPoint,
        PointZ, PolyLineZ, PolygonZ, MultiPointZ,
        PointM, PolyLineM, PolygonM, MultiPointM,
        MultiPatch,
    )
}


def get_shape_class(shape_type: int) -> Type[Shape]:
    """
    根据类型标签查找几何类

    Raises:
        UnsupportedShapeTypeError: 类型标签未注册
    """
    try:
        return SHAPE_REGISTRY[shape_type]
    except KeyError:
        raise UnsupportedShapeTypeError(shape_type) from None


def read_shape(reader: BinaryReader, shape_type: int) -> Shape:
    """按类型标签解码一条几何内容 (类型标签已被读取)"""
    return get_shape_class(shape_type).read(reader)
