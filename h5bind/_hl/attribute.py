"""
    Implements high-level support for attributes.

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
from typing import Any, Dict, List, Optional, Sequence, Tuple

import logging
import numpy as np

from .compound import Record, is_record_like, record_factory
from .node import Node, PrimitiveKind, close_all, copy_into
from .serialization import dtype_of, encode_texts, kind_of, text_list
from ..errors import DeclarationError, SchemaMismatchError, ShapeMismatchError

logger = logging.getLogger(__name__.split(".")[0])


class AttributeHolder:
    """
    Mixin for nodes which carry attributes.
    """
    def _init_attributes(self):
        self._attributes: Dict[str, 'Attribute'] = OrderedDict()

    def register_attribute(self, attribute: 'Attribute'):
        if attribute.name in self._attributes:
            raise DeclarationError(f'Duplicate attribute name "{attribute.name}".')

        attribute.parent = self
        self._attributes[attribute.name] = attribute

    @property
    def attributes(self) -> Dict[str, 'Attribute']:
        return OrderedDict(self._attributes)

    def attribute_handle(self):
        """
        Get the storage object the attributes are attached to.
        :return: h5py object, or None if unbound
        """
        return self.handle

    def _open_attributes(self, create: bool):
        for attribute in self._attributes.values():
            attribute.open_r(create)

    def _close_attributes(self):
        close_all(self._attributes.values())


class _AttributeIO:
    """
    IO target of the record held by a scalar record attribute.
    """
    def __init__(self, attribute: 'Attribute'):
        self._attribute = attribute

    @property
    def bound(self) -> bool:
        return self._attribute.bound

    def read(self) -> Optional[bytes]:
        array = self._attribute.read_array()
        if array is None:
            return None
        return array.tobytes()

    def write(self, data: bytes) -> bool:
        array = np.frombuffer(data, dtype=self._attribute.dtype)
        return self._attribute.write_array(array.reshape(()))


class _AttributeElement(Node):
    def __init__(self, attribute: 'Attribute', position: int):
        self._attribute = attribute
        self._position = position

    def is_leaf(self) -> Optional[PrimitiveKind]:
        return self._attribute.kind

    def element_kind(self) -> Optional[PrimitiveKind]:
        return self._attribute.kind

    def _data(self) -> bytes:
        value = self._attribute.read()
        if value is None:
            return b''
        if self._attribute.kind is PrimitiveKind.TEXT:
            return encode_texts([value[self._position]])
        return np.asarray(value)[self._position:self._position + 1].tobytes()

    def bytes_below(self) -> int:
        if self._attribute.kind is PrimitiveKind.TEXT:
            return len(self._data())
        return self._attribute.dtype.itemsize

    def read_leaf_value(self, out) -> bool:
        if not self._attribute.bound:
            return False
        copy_into(out, self._data())
        return True

    def read_all_below(self, out) -> bool:
        return self.read_leaf_value(out)


class Attribute(Node):
    """
    Whole-value metadata attached to a group or a dataset.

    The value is either a primitive, a text or a record, of shape () or (n,).
    """
    def __init__(self, parent: Optional[AttributeHolder], name: str, element: Any, shape: Sequence[int] = ()):
        """
        Declare a new attribute.
        :param parent: group or dataset carrying the attribute (None to adopt it later)
        :param name: name of the attribute
        :param element: primitive kind, Record subclass or template record
        :param shape: () for a single value, (n,) for n values
        """
        self.name = name
        self.parent = None
        self._shape: Tuple[int, ...] = tuple(int(d) for d in shape)
        self._attrs = None

        if len(self._shape) > 1:
            raise DeclarationError(f'Attribute {name}: only scalar and one dimensional attributes are supported.')

        if is_record_like(element):
            self.kind: Optional[PrimitiveKind] = None
            self._factory = record_factory(element)
            self.record: Optional[Record] = self._factory()
            self.dtype = self.record.dtype()
            if self._shape == ():
                self.record.set_io(_AttributeIO(self))
        else:
            self.kind = element
            self._factory = None
            self.record = None
            self.dtype = dtype_of(element)

        if parent is not None:
            parent.register_attribute(self)

    @property
    def shape(self) -> Tuple[int, ...]:
        return self._shape

    @property
    def bound(self) -> bool:
        return self._attrs is not None

    def _default(self) -> Any:
        if self.kind is PrimitiveKind.TEXT:
            if self._shape == ():
                return ''
            return np.array([''] * self._shape[0], dtype=self.dtype)
        if self.record is not None and self._shape == ():
            return np.asarray(self.record.to_numpy())

        return np.zeros(self._shape, dtype=self.dtype)

    def open_r(self, create: bool = False):
        """
        Bind the attribute, creating it when required.
        :param create: True to create the stored attribute
        :return:
        """
        attrs = self.parent.attribute_handle().attrs

        if create:
            attrs.create(self.name, data=self._default(), shape=self._shape, dtype=self.dtype)
        else:
            if self.name not in attrs:
                raise SchemaMismatchError(f'Attribute "{self.name}" not found.')
            stored = attrs.get_id(self.name)
            if tuple(stored.shape) != self._shape:
                raise SchemaMismatchError(f'Attribute "{self.name}": declared shape {self._shape}, '
                                          f'stored shape {tuple(stored.shape)}.')
            self._check_type(stored.dtype)

        self._attrs = attrs
        logger.debug(f'Bound attribute "{self.name}" of {self.parent.attribute_handle().name}.')

    def _check_type(self, stored_type):
        if self.record is not None:
            if stored_type.names is None or tuple(stored_type.names) != tuple(self.dtype.names):
                raise SchemaMismatchError(f'Attribute "{self.name}": stored type {stored_type} is not the declared record.')
            return

        try:
            stored_kind = kind_of(stored_type)
        except TypeError as exception:
            raise SchemaMismatchError(f'Attribute "{self.name}": {exception}')
        if stored_kind is not self.kind:
            raise SchemaMismatchError(f'Attribute "{self.name}": declared {self.kind.value}, stored {stored_kind.value}.')

    def close_r(self):
        self._attrs = None

    def read_array(self) -> Optional[np.ndarray]:
        """
        Read the raw stored value.
        :return: array of the attribute type, or None if unbound
        """
        if not self.bound:
            return None

        array = np.asarray(self._attrs[self.name])
        if self.kind is PrimitiveKind.TEXT:
            return array
        if array.dtype != self.dtype:
            array = array.astype(self.dtype)

        return array.reshape(self._shape)

    def write_array(self, array: np.ndarray) -> bool:
        if not self.bound:
            return False

        self._attrs.modify(self.name, array)

        return True

    def read(self) -> Any:
        """
        Read the whole value.
        :return: scalar, str, detached record, or a list/array for one dimensional attributes; None if unbound
        """
        array = self.read_array()
        if array is None:
            return None

        if self.kind is PrimitiveKind.TEXT:
            values = text_list(array)
            return values[0] if self._shape == () else values

        if self.record is not None:
            records = []
            for element in array.reshape(-1):
                record = self._factory()
                record.from_numpy(element)
                records.append(record)
            return records[0] if self._shape == () else records

        return array[()] if self._shape == () else array

    def write(self, value: Any) -> bool:
        """
        Write the whole value.
        :param value: value matching the declared kind and shape
        :return: False if unbound
        """
        if not self.bound:
            return False

        count = 1 if self._shape == () else self._shape[0]

        if self.kind is PrimitiveKind.TEXT:
            values = [value] if self._shape == () else list(value)
            if len(values) != count:
                raise ShapeMismatchError(f'Attribute "{self.name}" holds {count} values, got {len(values)}.')
            array = np.array(values, dtype=self.dtype).reshape(self._shape)
        elif self.record is not None:
            records = [value] if self._shape == () else list(value)
            if len(records) != count:
                raise ShapeMismatchError(f'Attribute "{self.name}" holds {count} records, got {len(records)}.')
            data = b''.join(record.serialize() for record in records)
            array = np.frombuffer(data, dtype=self.dtype).reshape(self._shape)
        else:
            array = np.asarray(value, dtype=self.dtype)
            if array.size != count:
                raise ShapeMismatchError(f'Attribute "{self.name}" holds {count} values, got {array.size}.')
            array = array.reshape(self._shape)

        return self.write_array(array)

    @property
    def value(self) -> Any:
        return self.read()

    @value.setter
    def value(self, value: Any):
        self.write(value)

    def _data(self) -> bytes:
        if self.kind is PrimitiveKind.TEXT:
            value = self.read()
            if value is None:
                return b''
            return encode_texts([value] if self._shape == () else value)

        array = self.read_array()
        if array is None:
            return b''
        return array.tobytes()

    def is_leaf(self) -> Optional[PrimitiveKind]:
        if self._shape == ():
            return self.kind
        return None

    def read_leaf_value(self, out) -> bool:
        if self.is_leaf() is None or not self.bound:
            return False
        copy_into(out, self._data())
        return True

    def can_index(self) -> bool:
        return self._shape != ()

    def index(self, i: int) -> Node:
        if not self.can_index():
            raise TypeError(f'Attribute "{self.name}" is scalar.')
        if self.record is not None:
            records = self.read()
            if records is None:
                return self._factory()
            return records[i]
        return _AttributeElement(self, i)

    def indexable_size(self) -> int:
        return self._shape[0] if self._shape else 0

    def element_kind(self) -> Optional[PrimitiveKind]:
        return self.kind

    def bytes_below(self) -> int:
        if self.kind is PrimitiveKind.TEXT:
            return len(self._data())
        return int(np.prod(self._shape, dtype=np.int64)) * self.dtype.itemsize

    def read_all_below(self, out) -> bool:
        if not self.bound:
            return False
        copy_into(out, self._data())
        return True

    def children_names(self) -> List[str]:
        if self.record is not None and self._shape == ():
            return self.record.children_names()
        return []

    def child_by_name(self, name: str) -> Optional[Node]:
        if self.record is not None and self._shape == ():
            return self.record.child_by_name(name)
        return None
