"""
    Implements high-level support for groups and file objects.

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
from collections import OrderedDict
from typing import Dict, Iterator, List, Optional, Type
from types import TracebackType

import logging

import h5py

from .attribute import Attribute, AttributeHolder
from .node import Node, close_all
from .. import config
from ..errors import DeclarationError, SchemaMismatchError

logger = logging.getLogger(__name__.split(".")[0])


class Group(Node, AttributeHolder):
    """
    Named container of datasets, groups and attributes.

    Children are declared by passing the group as their parent; they share a single namespace
    with the attributes of the group and are bound in declaration order.
    """
    def __init__(self, parent: Optional['Group'], name: str):
        """
        Declare a new group.
        :param parent: enclosing group (None to adopt it later)
        :param name: name of the group
        """
        self.name = name
        self.parent = None
        self._children: Dict[str, Node] = OrderedDict()
        self._external: List[Node] = []
        self._handle = None
        self._init_attributes()

        if parent is not None:
            parent.register_child(self)

    @property
    def handle(self) -> Optional[h5py.Group]:
        return self._handle

    @property
    def bound(self) -> bool:
        return self._handle is not None

    def register_child(self, child: Node):
        """
        Append a child after the existing ones.
        :param child: group, dataset or attribute
        :return:
        """
        if child.name in self._children:
            raise DeclarationError(f'Group "{self.name}" already has a child named "{child.name}".')

        child.parent = self
        self._children[child.name] = child

    def register_attribute(self, attribute):
        self.register_child(attribute)
        self._attributes[attribute.name] = attribute

    def register_external_child(self, child: Node):
        """
        Register a child owned by this group: it is dropped by destroy().
        :param child: group, dataset or attribute
        :return:
        """
        if isinstance(child, Attribute):
            self.register_attribute(child)
        else:
            self.register_child(child)
        self._external.append(child)

    def unregister_child(self, child: Node):
        self._children.pop(child.name, None)
        self._attributes.pop(child.name, None)
        if child in self._external:
            self._external.remove(child)
        child.parent = None

    def adopt(self, child: Node, create: bool = False) -> Node:
        """
        Take ownership of a child declared without parent, binding it if this group is bound.
        :param child: group, dataset or attribute
        :param create: True to create the stored object
        :return: the child
        """
        self.register_external_child(child)
        if self.bound:
            child.open_r(create)

        return child

    def open_r(self, create: bool = False):
        """
        Bind the group, then its children in declaration order.
        :param create: True to create the stored objects
        :return:
        """
        parent_handle = self.parent.handle

        if create:
            handle = parent_handle.create_group(self.name, track_order=config.TRACK_ORDER)
        else:
            handle = parent_handle.get(self.name)
            if not isinstance(handle, h5py.Group):
                raise SchemaMismatchError(f'Group "{self.name}" not found in {parent_handle.name}.')

        self._handle = handle
        self._open_children(create)

    def _open_children(self, create: bool):
        for child in self._children.values():
            child.open_r(create)

    def close_r(self):
        """
        Release the children, then the group handle.
        :return:
        """
        try:
            self._close_children()
        finally:
            self._handle = None

    def _close_children(self):
        close_all(self._children.values())

    def destroy(self):
        """
        Release and drop every child owned by this group, depth-first.
        :return:
        """
        for child in list(self._children.values()):
            if isinstance(child, Group):
                child.destroy()

        for child in reversed(list(self._external)):
            if child.bound:
                child.close_r()
            self.unregister_child(child)

    def find(self, path: str) -> Node:
        """
        Resolve a path relative to this group.
        :param path: names separated by config.PATH_SEPARATOR
        :return: node at the end of the path
        """
        node = self
        for name in path.split(config.PATH_SEPARATOR):
            if not name:
                continue
            child = node.child_by_name(name)
            if child is None:
                raise KeyError(f'No node at "{path}".')
            node = child

        return node

    def __getitem__(self, path: str) -> Node:
        return self.find(path)

    def __contains__(self, name: str) -> bool:
        return name in self._children

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._children))

    def __repr__(self) -> str:
        return f'<{type(self).__name__} "{self.name}" ({len(self._children)} children)>'

    def children_names(self) -> List[str]:
        return list(self._children.keys())

    def child_by_name(self, name: str) -> Optional[Node]:
        return self._children.get(name)


class File(Group):
    """
    Root group, owning the container file.
    """
    def __init__(self):
        super().__init__(None, config.PATH_SEPARATOR)
        self._file: Optional[h5py.File] = None
        self._file_path: Optional[str] = None
        self._read_only = False

    @property
    def filename(self) -> Optional[str]:
        return self._file_path

    @property
    def is_open(self) -> bool:
        return self._file is not None

    @property
    def read_only(self) -> bool:
        return self._read_only

    def create_or_overwrite_assist(self):
        """
        Called by create() before any child is created: last chance to set dimensions.
        :return:
        """
        pass

    def create_or_overwrite_complete(self):
        """
        Called by create() once every child is created.
        :return:
        """
        pass

    def create(self, file_path: str) -> 'File':
        """
        Create the container, overwriting any existing file, and create every declared child.
        :param file_path: path to the file on disk
        :return: self
        """
        if self._file is not None:
            self.close()

        self._bind(h5py.File(file_path, 'w', track_order=config.TRACK_ORDER), file_path, create=True)
        logger.info(f'Created {file_path}.')

        return self

    def open(self, file_path: str, read_only: bool = False) -> 'File':
        """
        Open an existing container and bind every declared child to its stored object.
        :param file_path: path to the file on disk
        :param read_only: True to forbid writes
        :return: self
        """
        if self._file is not None:
            self.close()

        self._read_only = read_only
        self._bind(h5py.File(file_path, 'r' if read_only else 'r+'), file_path, create=False)
        logger.info(f'Opened {file_path}{" read only" if read_only else ""}.')

        return self

    def open_in_memory(self, name: str = 'memory', increment: int = config.DEFAULT_MEMORY_INCREMENT) -> 'File':
        """
        Create a container which only lives in memory.
        :param name: name of the container
        :param increment: growth step of the memory image in bytes
        :return: self
        """
        if self._file is not None:
            self.close()

        h5_file = h5py.File(name, 'w', driver='core', backing_store=False, block_size=increment,
                            track_order=config.TRACK_ORDER)
        self._bind(h5_file, name, create=True)

        return self

    def _bind(self, h5_file: h5py.File, file_path: str, create: bool):
        self._file = h5_file
        self._file_path = file_path
        self._handle = h5_file

        try:
            if create:
                self.create_or_overwrite_assist()
            self._open_children(create)
            if create:
                self.create_or_overwrite_complete()
        except Exception:
            self.close()
            raise

    def open_r(self, create: bool = False):
        raise DeclarationError('The root group is bound with create(), open() or open_in_memory().')

    def close(self):
        """
        Release every child, then close the file.
        Needs to be called explicitly or use a "with" statement.
        :return:
        """
        if self._file is None:
            return

        h5_file = self._file
        try:
            self._close_children()
        finally:
            self._handle = None
            self._file = None
            h5_file.close()
            logger.debug(f'Closed {self._file_path}.')

    def close_r(self):
        self.close()

    def __enter__(self):
        """
        Return File object when using a "with" statement.
        :return: File object
        """
        return self

    def __exit__(self, exception_type: Optional[Type[BaseException]], exception_value: Optional[BaseException],
                 traceback: Optional[TracebackType]):
        """
        Explicitly close the File when exiting a "with" context.
        :param exception_type: type of exception
        :param exception_value: value of exception
        :param traceback: traceback
        :return:
        """
        self.close()
