#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
读取器基类定义

随机读取器、顺序读取器和归档读取器共享同一套读取约定:

    while reader.advance():
        index, shape = reader.current()
        name = reader.attribute(0)
    if reader.error:
        ...

也可以直接迭代，迭代结束后若有错误会被抛出。
"""

from abc import ABC, abstractmethod
from typing import Iterator, List, Optional, Tuple

from ..core.schema import Field
from ..core.shapes import Box, Shape


class ShapeSource(ABC):
    """
    几何 + 属性记录源

    实例携带游标状态，不能在多个线程间共享。
    """

    @abstractmethod
    def advance(self) -> bool:
        """
        前进到下一条记录

        Returns:
            成功读取返回 True；正常结束或出错返回 False，
            出错时可通过 error 获取第一个错误
        """
        pass

    @abstractmethod
    def current(self) -> Tuple[int, Optional[Shape]]:
        """
        当前记录

        Returns:
            (从 0 开始的记录下标, 几何)
        """
        pass

    @abstractmethod
    def attribute(self, col: int) -> str:
        """当前记录第 col 个字段的文本值"""
        pass

    @property
    @abstractmethod
    def fields(self) -> List[Field]:
        """属性表字段定义"""
        pass

    @property
    @abstractmethod
    def error(self) -> Optional[Exception]:
        """第一个非正常结束的错误，没有则为 None"""
        pass

    @property
    @abstractmethod
    def shape_type(self) -> int:
        """文件头中的几何类型"""
        pass

    @property
    @abstractmethod
    def bbox(self) -> Box:
        """文件头中的包围盒"""
        pass

    @abstractmethod
    def close(self) -> None:
        """释放底层资源"""
        pass

    @property
    def attribute_count(self) -> int:
        """字段数"""
        return len(self.fields)

    def attributes(self) -> List[str]:
        """当前记录的全部字段值"""
        return [self.attribute(i) for i in range(len(self.fields))]

    def __iter__(self) -> Iterator[Tuple[int, Shape]]:
        """
        迭代所有记录

        Yields:
            (index, shape) 元组

        Raises:
            读取过程中遇到的第一个错误
        """
        while self.advance():
            yield self.current()
        if self.error is not None:
            raise self.error

    def __enter__(self):
        return self

    def __exit__(self, *args) -> None:
        self.close()
