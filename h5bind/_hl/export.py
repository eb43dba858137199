"""
    Implements generic traversal, description and export of trees.

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
from typing import Any, Dict, Iterator, List, Tuple

import bson

from .node import Node
from .. import config


def walk(node: Node, path: str = '') -> Iterator[Tuple[str, Node]]:
    """
    Iterate over a node and every node below it, depth-first, following children names only.
    :param node: starting node
    :param path: path of the starting node
    :return: iterator of (path, node) pairs
    """
    yield path or config.PATH_SEPARATOR, node

    for name in node.children_names():
        yield from walk(node.child_by_name(name), f'{path}{config.PATH_SEPARATOR}{name}')


def describe(node: Node, values: bool = False) -> Dict[str, Any]:
    """
    Describe a node and everything below it using only the node interface.
    Indexable nodes are described by their size and by their first element.
    :param node: node to describe
    :param values: True to include the bytes of the leaves
    :return: nested dictionary
    """
    leaf = node.is_leaf()
    kind = node.element_kind()

    description: Dict[str, Any] = {
        'leaf': leaf.value if leaf is not None else None,
        'kind': kind.value if kind is not None else None,
        'bytes': node.bytes_below(),
    }

    if values and leaf is not None:
        buffer = bytearray(description['bytes'])
        if node.read_leaf_value(buffer):
            description['value'] = bytes(buffer)

    if node.can_index():
        size = node.indexable_size()
        description['size'] = size
        if size > 0:
            description['element'] = describe(node.index(0), values)

    names = node.children_names()
    if names:
        description['children'] = {name: describe(node.child_by_name(name), values) for name in names}

    return description


def dumps(node: Node, values: bool = False) -> bytes:
    """
    Serialize the description of a node.
    :param node: node to describe
    :param values: True to include the bytes of the leaves
    :return: BSON document
    """
    return bson.encode(describe(node, values))


def loads(data: bytes) -> Dict[str, Any]:
    """
    Deserialize a description.
    :param data: BSON document
    :return: nested dictionary
    """
    return bson.decode(data)


def format_tree(node: Node, indent: str = '  ') -> str:
    """
    Render a node and its children as an indented outline.
    :param node: root of the outline
    :param indent: indentation of each level
    :return: one line per node
    """
    lines: List[str] = []

    def visit(current: Node, name: str, level: int):
        kind = current.element_kind()
        details = [kind.value if kind is not None else 'container']
        if current.can_index():
            details.append(f'size {current.indexable_size()}')
        details.append(f'{current.bytes_below()} bytes')
        lines.append(f'{indent * level}{name} ({", ".join(details)})')

        for child_name in current.children_names():
            visit(current.child_by_name(child_name), child_name, level + 1)

    visit(node, config.PATH_SEPARATOR, 0)

    return '\n'.join(lines)
