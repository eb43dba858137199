"""
    Implements the capability set shared by every node of a tree.

    This file is part of h5bind.

    h5bind is free software: you can redistribute it and/or modify
    it under the terms of the GNU General Public License as published by
    the Free Software Foundation, either version 3 of the License, or
    (at your option) any later version.

    h5bind is distributed in the hope that it will be useful,
    but WITHOUT ANY WARRANTY; without even the implied warranty of
    MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
    GNU General Public License for more details.

    You should have received a copy of the GNU General Public License
    along with h5bind.  If not, see <https://www.gnu.org/licenses/>.
"""
from enum import Enum
from typing import Iterable, List, Optional, Union

import logging

logger = logging.getLogger(__name__.split(".")[0])


class PrimitiveKind(Enum):
    """
    Closed set of element kinds a leaf can hold.
    """
    UINT8 = 'uint8'
    UINT16 = 'uint16'
    UINT32 = 'uint32'
    UINT64 = 'uint64'
    INT8 = 'int8'
    INT16 = 'int16'
    INT32 = 'int32'
    INT64 = 'int64'
    FLOAT32 = 'float32'
    FLOAT64 = 'float64'
    TEXT = 'text'


def copy_into(out: Union[bytearray, memoryview], data: bytes) -> int:
    """
    Copy bytes at the start of a writable buffer.
    :param out: destination buffer
    :param data: bytes to copy
    :return: number of bytes copied
    """
    view = memoryview(out).cast('B')
    if len(data) > len(view):
        raise ValueError(f'Buffer of {len(view)} bytes is too small for {len(data)} bytes.')
    view[:len(data)] = data

    return len(data)


def close_all(nodes: Iterable) -> None:
    """
    Release every node, even when releasing one of them fails.
    The first failure is raised once all nodes are released, later ones are logged.
    :param nodes: nodes with a close_r method
    :return:
    """
    error = None
    for node in nodes:
        try:
            node.close_r()
        except Exception as exception:
            if error is None:
                error = exception
            else:
                logger.error(f'Failed to release "{node.name}": {exception}')

    if error is not None:
        raise error


class Node:
    """
    Uniform interface of groups, dataset accessors, record members and attributes.

    Generic traversal code (printers, exporters, comparisons) only relies on these methods,
    so it works the same over declared and reflected trees.
    The defaults describe a node which is neither readable nor indexable and has no children.
    """
    def is_leaf(self) -> Optional[PrimitiveKind]:
        """
        Kind of the value when the node is directly readable.
        :return: primitive kind, or None if the node is not a leaf
        """
        return None

    def read_leaf_value(self, out) -> bool:
        """
        Copy the leaf value into a buffer.
        :param out: writable buffer of at least bytes_below() bytes
        :return: True if a value was copied
        """
        return False

    def can_index(self) -> bool:
        return False

    def index(self, i: int) -> 'Node':
        raise TypeError(f'{type(self).__name__} can not be indexed.')

    def indexable_size(self) -> int:
        return 0

    def element_kind(self) -> Optional[PrimitiveKind]:
        """
        Kind of the elements reached by indexing down to the bottom.
        :return: primitive kind, or None for records and containers
        """
        return None

    def bytes_below(self) -> int:
        """
        Number of bytes read_all_below() would produce.
        :return: number of bytes
        """
        return 0

    def read_all_below(self, out) -> bool:
        """
        Copy everything under this node into a buffer.
        :param out: writable buffer of at least bytes_below() bytes
        :return: False if the node is not readable
        """
        return False

    def memory_location(self) -> Optional[memoryview]:
        return None

    def children_names(self) -> List[str]:
        return []

    def child_by_name(self, name: str) -> Optional['Node']:
        return None
