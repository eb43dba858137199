"""
    Implements high-level support for compound records.

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
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Union
from numpy import dtype

import numpy as np

from .node import Node, PrimitiveKind, copy_into
from .serialization import dtype_of
from ..errors import DeclarationError, ShapeMismatchError


def is_record_like(element: Any) -> bool:
    return isinstance(element, Record) or (isinstance(element, type) and issubclass(element, Record))


def record_factory(element: Any) -> Callable[[], 'Record']:
    """
    Get a callable creating fresh records from a record class or a template record.
    :param element: Record subclass, Record instance or callable
    :return: callable without arguments returning a new record
    """
    if isinstance(element, Record):
        return element.clone
    if callable(element):
        return element

    raise DeclarationError(f'Expected a Record subclass or template, got {element!r}.')


class Member(Node):
    """
    Named member of a record.

    Members keep the last value read or assigned.
    When the enclosing record is bound, get() reloads it first and set() writes the whole enclosing record back.
    """
    def __init__(self, name: str):
        self.name = name
        self.owner: Optional['Record'] = None

    @property
    def dtype(self) -> dtype:
        raise NotImplementedError

    @property
    def size(self) -> int:
        return self.dtype.itemsize

    def get(self) -> Any:
        raise NotImplementedError

    def set(self, value: Any):
        raise NotImplementedError

    def pack_into(self, buffer: bytearray, cursor: int) -> int:
        """
        Copy the member bytes into a buffer.
        :param buffer: destination buffer
        :param cursor: position of the member in the buffer
        :return: position following the member
        """
        raise NotImplementedError

    def unpack_from(self, buffer: bytes, cursor: int) -> int:
        """
        Load the member from a buffer.
        :param buffer: source buffer
        :param cursor: position of the member in the buffer
        :return: position following the member
        """
        raise NotImplementedError

    def clone(self) -> 'Member':
        raise NotImplementedError

    def to_python(self) -> Any:
        raise NotImplementedError

    def node(self) -> Node:
        return self

    def signal_read(self) -> bool:
        if self.owner is None:
            return False
        return self.owner.read_all()

    def signal_change(self) -> bool:
        if self.owner is None:
            return False
        return self.owner.write_all()

    def _refresh(self):
        if self.owner is not None:
            self.owner.read_all()

    def _update(self, assign: Callable[[], Any]):
        if self.owner is not None:
            self.owner.read_all()
        assign()
        if self.owner is not None:
            self.owner.write_all()

    def _bytes(self) -> bytes:
        buffer = bytearray(self.size)
        self.pack_into(buffer, 0)

        return bytes(buffer)

    def bytes_below(self) -> int:
        return self.size

    def read_all_below(self, out) -> bool:
        self._refresh()
        copy_into(out, self._bytes())

        return True


class PrimitiveMember(Member):
    """
    Member holding a single fixed width value.
    """
    def __init__(self, name: str, kind: PrimitiveKind):
        super().__init__(name)
        if kind is PrimitiveKind.TEXT:
            raise DeclarationError(f'Member {name}: text is not supported inside records.')

        self.kind = kind
        self._value = np.zeros((), dtype=dtype_of(kind))

    @property
    def dtype(self) -> dtype:
        return self._value.dtype

    def get(self) -> Any:
        self._refresh()
        return self._value[()]

    def set(self, value: Any):
        def assign():
            self._value[()] = value
        self._update(assign)

    def pack_into(self, buffer: bytearray, cursor: int) -> int:
        end = cursor + self.size
        buffer[cursor:end] = self._value.tobytes()
        return end

    def unpack_from(self, buffer: bytes, cursor: int) -> int:
        self._value[()] = np.frombuffer(buffer, dtype=self.dtype, count=1, offset=cursor)[0]
        return cursor + self.size

    def clone(self) -> 'PrimitiveMember':
        member = PrimitiveMember(self.name, self.kind)
        member._value[()] = self._value
        return member

    def to_python(self) -> Any:
        return self._value.item()

    def is_leaf(self) -> Optional[PrimitiveKind]:
        return self.kind

    def element_kind(self) -> Optional[PrimitiveKind]:
        return self.kind

    def read_leaf_value(self, out) -> bool:
        return self.read_all_below(out)

    def memory_location(self) -> Optional[memoryview]:
        return memoryview(self._value.reshape(1))


class NestedMember(Member):
    """
    Member holding a nested record, stored as a named sub-structure of the enclosing record.
    """
    def __init__(self, name: str, record: 'Record'):
        super().__init__(name)
        self.record = record
        record._parent = self

    @property
    def dtype(self) -> dtype:
        return self.record.dtype()

    def get(self) -> 'Record':
        return self.record

    def set(self, value: Union['Record', Dict[str, Any]]):
        def assign():
            if isinstance(value, Record):
                self.record.deserialize(value.serialize())
            else:
                self.record.update(value)
        self._update(assign)

    def pack_into(self, buffer: bytearray, cursor: int) -> int:
        return self.record.pack_into(buffer, cursor)

    def unpack_from(self, buffer: bytes, cursor: int) -> int:
        return self.record.unpack_from(buffer, cursor)

    def clone(self) -> 'NestedMember':
        return NestedMember(self.name, self.record.clone())

    def to_python(self) -> Dict[str, Any]:
        return self.record.to_dict()

    def node(self) -> Node:
        return self.record


class ArrayElement(Node):
    """
    Leaf node of a single element of a fixed array member.
    """
    def __init__(self, array: 'ArrayMember', position: int):
        self._array = array
        self._position = position

    def is_leaf(self) -> Optional[PrimitiveKind]:
        return self._array.kind

    def element_kind(self) -> Optional[PrimitiveKind]:
        return self._array.kind

    def bytes_below(self) -> int:
        return self._array.dtype.base.itemsize

    def read_leaf_value(self, out) -> bool:
        self._array._refresh()
        copy_into(out, self._array._values[self._position:self._position + 1].tobytes())
        return True

    def read_all_below(self, out) -> bool:
        return self.read_leaf_value(out)


class ArrayMember(Member):
    """
    Member holding a fixed number of primitive values.
    Assigning a single element rewrites the whole array.
    """
    def __init__(self, name: str, kind: PrimitiveKind, count: int):
        super().__init__(name)
        if kind is PrimitiveKind.TEXT:
            raise DeclarationError(f'Member {name}: text is not supported inside records.')
        if count < 1:
            raise DeclarationError(f'Member {name}: array length must be positive, got {count}.')

        self.kind = kind
        self.count = count
        self._values = np.zeros(count, dtype=dtype_of(kind))
        self._elements = [ArrayElement(self, i) for i in range(count)]

    @property
    def dtype(self) -> dtype:
        return np.dtype((self._values.dtype, (self.count,)))

    @property
    def values(self) -> np.ndarray:
        self._refresh()
        return self._values.copy()

    def get(self) -> 'ArrayMember':
        return self

    def set(self, values: Sequence[Any]):
        array = np.asarray(values, dtype=self._values.dtype)
        if array.size != self.count:
            raise ShapeMismatchError(f'Member {self.name} holds {self.count} values, got {array.size}.')

        def assign():
            self._values[:] = array.ravel()
        self._update(assign)

    def __len__(self) -> int:
        return self.count

    def __getitem__(self, item):
        self._refresh()
        value = self._values[item]
        if isinstance(value, np.ndarray):
            return value.copy()
        return value

    def __setitem__(self, item, value):
        def assign():
            self._values[item] = value
        self._update(assign)

    def __iter__(self) -> Iterator[Any]:
        return iter(self.values)

    def __repr__(self) -> str:
        return repr(self._values.tolist())

    def pack_into(self, buffer: bytearray, cursor: int) -> int:
        end = cursor + self.size
        buffer[cursor:end] = self._values.tobytes()
        return end

    def unpack_from(self, buffer: bytes, cursor: int) -> int:
        self._values[:] = np.frombuffer(buffer, dtype=self._values.dtype, count=self.count, offset=cursor)
        return cursor + self.size

    def clone(self) -> 'ArrayMember':
        member = ArrayMember(self.name, self.kind, self.count)
        member._values[:] = self._values
        return member

    def to_python(self) -> List[Any]:
        return self._values.tolist()

    def can_index(self) -> bool:
        return True

    def index(self, i: int) -> Node:
        return self._elements[i]

    def indexable_size(self) -> int:
        return self.count

    def element_kind(self) -> Optional[PrimitiveKind]:
        return self.kind


class RecordArrayMember(Member):
    """
    Member holding a fixed number of records.

    Elements are live: changing a member of an element signals this array,
    which writes the whole enclosing record, array included.
    """
    def __init__(self, name: str, factory: Callable[[], 'Record'], count: int):
        super().__init__(name)
        if count < 1:
            raise DeclarationError(f'Member {name}: array length must be positive, got {count}.')

        self.count = count
        self._factory = factory
        self._elements: List[Record] = []
        for _ in range(count):
            record = factory()
            record._parent = self
            self._elements.append(record)

    @property
    def dtype(self) -> dtype:
        return np.dtype((self._elements[0].dtype(), (self.count,)))

    @property
    def factory(self) -> Callable[[], 'Record']:
        return self._factory

    def get(self) -> 'RecordArrayMember':
        return self

    def set(self, values: Sequence['Record']):
        if len(values) != self.count:
            raise ShapeMismatchError(f'Member {self.name} holds {self.count} records, got {len(values)}.')

        def assign():
            for element, value in zip(self._elements, values):
                element.deserialize(value.serialize())
        self._update(assign)

    def read_all(self) -> bool:
        return self.signal_read()

    def write_all(self) -> bool:
        return self.signal_change()

    def __len__(self) -> int:
        return self.count

    def __getitem__(self, item: int) -> 'Record':
        self._refresh()
        return self._elements[item]

    def __setitem__(self, item: int, value: 'Record'):
        def assign():
            self._elements[item].deserialize(value.serialize())
        self._update(assign)

    def __iter__(self) -> Iterator['Record']:
        self._refresh()
        return iter(self._elements)

    def pack_into(self, buffer: bytearray, cursor: int) -> int:
        for element in self._elements:
            cursor = element.pack_into(buffer, cursor)
        return cursor

    def unpack_from(self, buffer: bytes, cursor: int) -> int:
        for element in self._elements:
            cursor = element.unpack_from(buffer, cursor)
        return cursor

    def clone(self) -> 'RecordArrayMember':
        member = RecordArrayMember(self.name, self._factory, self.count)
        member.unpack_from(self._bytes(), 0)
        return member

    def to_python(self) -> List[Dict[str, Any]]:
        return [element.to_dict() for element in self._elements]

    def can_index(self) -> bool:
        return True

    def index(self, i: int) -> Node:
        return self._elements[i]

    def indexable_size(self) -> int:
        return self.count


class Declaration:
    """
    Class level declaration of a record member.
    Gives attribute access to the member of each record instance.
    """
    name: Optional[str] = None

    def __set_name__(self, owner, name: str):
        self.name = name

    def __get__(self, instance, owner=None):
        if instance is None:
            return self
        return instance._members[self.name].get()

    def __set__(self, instance, value):
        instance._members[self.name].set(value)

    def build(self, name: str) -> Member:
        raise NotImplementedError


class Field(Declaration):
    def __init__(self, kind: PrimitiveKind):
        self.kind = kind

    def build(self, name: str) -> Member:
        return PrimitiveMember(name, self.kind)


class Nested(Declaration):
    def __init__(self, record):
        self.factory = record_factory(record)

    def build(self, name: str) -> Member:
        return NestedMember(name, self.factory())


class Array(Declaration):
    """
    Fixed size array of primitive values or of records.
    """
    def __init__(self, element, count: int):
        self.element = element
        self.count = count

    def build(self, name: str) -> Member:
        if is_record_like(self.element):
            return RecordArrayMember(name, record_factory(self.element), self.count)
        return ArrayMember(name, self.element, self.count)


class Record(Node):
    """
    Fixed layout record made of ordered named members.

    Members are declared as class attributes (Field, Nested, Array) or registered at run time
    with register_member(). The declaration order is the stored member order.
    A record bound to an IO target (a dataset element or an attribute) reads and writes through it;
    a record nested in another one, or held by a record array member, signals its owner instead.
    """
    _declarations: Dict[str, Declaration] = OrderedDict()

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)

        declarations = OrderedDict()
        for klass in reversed(cls.__mro__):
            for name, value in vars(klass).items():
                if not isinstance(value, Declaration):
                    continue
                if hasattr(Record, name):
                    raise DeclarationError(f'Member name "{name}" of {cls.__name__} shadows a Record attribute.')
                declarations[name] = value

        cls._declarations = declarations

    def __init__(self, **values):
        """
        Create a new record with zeroed members.
        :param values: initial member values
        """
        self._members: Dict[str, Member] = OrderedDict()
        self._io = None
        self._parent: Optional[Member] = None

        for name, declaration in self._declarations.items():
            self.register_member(declaration.build(name))

        self.update(values)

    def register_member(self, member: Member) -> Member:
        """
        Append a member after the existing ones.
        :param member: member to register
        :return: the registered member
        """
        if member.name in self._members:
            raise DeclarationError(f'Duplicate member name "{member.name}".')

        member.owner = self
        self._members[member.name] = member

        return member

    def members(self) -> List[Member]:
        return list(self._members.values())

    def keys(self) -> List[str]:
        return list(self._members.keys())

    def member(self, name: str) -> Member:
        return self._members[name]

    def total_size(self) -> int:
        return sum(member.size for member in self._members.values())

    def offsets(self) -> List[int]:
        """
        Get the byte offset of each member.
        :return: running sum of the member sizes
        """
        offsets = []
        offset = 0
        for member in self._members.values():
            offsets.append(offset)
            offset += member.size

        return offsets

    def dtype(self) -> dtype:
        """
        Get the packed structured type of the record.
        :return: numpy structured type
        """
        return np.dtype([(member.name, member.dtype) for member in self._members.values()])

    def pack_into(self, buffer: bytearray, cursor: int) -> int:
        for member in self._members.values():
            cursor = member.pack_into(buffer, cursor)
        return cursor

    def unpack_from(self, buffer: bytes, cursor: int) -> int:
        for member in self._members.values():
            cursor = member.unpack_from(buffer, cursor)
        return cursor

    def serialize(self) -> bytes:
        """
        Serialize the record in member order.
        :return: total_size() bytes
        """
        buffer = bytearray(self.total_size())
        self.pack_into(buffer, 0)

        return bytes(buffer)

    def deserialize(self, data: bytes):
        """
        Load every member from serialized bytes.
        :param data: at least total_size() bytes
        :return:
        """
        if len(data) < self.total_size():
            raise ShapeMismatchError(f'Expected {self.total_size()} bytes, got {len(data)}.')

        self.unpack_from(bytes(data), 0)

    def to_numpy(self) -> np.void:
        return np.frombuffer(self.serialize(), dtype=self.dtype())[0]

    def from_numpy(self, value: Any):
        """
        Load the record from an element of a structured array.
        :param value: structured scalar or 0-d array with the same member layout
        :return:
        """
        self.deserialize(np.asarray(value).astype(self.dtype()).tobytes())

    def set_io(self, io):
        """
        Bind the record to an IO target exposing bound, read() and write(data).
        :param io: IO target, None to detach
        :return:
        """
        self._io = io

    def _bound_io(self):
        if self._io is None or not self._io.bound:
            return None
        return self._io

    def root(self) -> 'Record':
        record = self
        while record._parent is not None and record._parent.owner is not None:
            record = record._parent.owner

        return record

    def read_all(self) -> bool:
        """
        Reload the record from storage.
        :return: False if neither the record nor an owner is bound
        """
        if self._parent is not None:
            return self._parent.signal_read()

        io = self._bound_io()
        if io is None:
            return False

        data = io.read()
        if data is None:
            return False

        self.deserialize(data)

        return True

    def write_all(self) -> bool:
        """
        Write the record to storage.
        :return: False if neither the record nor an owner is bound
        """
        if self._parent is not None:
            return self._parent.signal_change()

        io = self._bound_io()
        if io is None:
            return False

        return io.write(self.serialize())

    def clone(self) -> 'Record':
        """
        Copy the record layout and values, without any binding.
        :return: detached record
        """
        record = self.__class__.__new__(self.__class__)
        record._members = OrderedDict()
        record._io = None
        record._parent = None
        for member in self._members.values():
            record.register_member(member.clone())

        return record

    def update(self, values: Dict[str, Any]):
        for name, value in values.items():
            self[name] = value

    def to_dict(self) -> Dict[str, Any]:
        return OrderedDict((name, member.to_python()) for name, member in self._members.items())

    def __getitem__(self, name: str) -> Any:
        return self._members[name].get()

    def __setitem__(self, name: str, value: Any):
        if name not in self._members:
            raise KeyError(f'Record has no member "{name}".')
        self._members[name].set(value)

    def __getattr__(self, name: str) -> Any:
        members = self.__dict__.get('_members')
        if members is not None and name in members:
            return members[name].get()
        raise AttributeError(f'{type(self).__name__} has no attribute "{name}".')

    def __setattr__(self, name: str, value: Any):
        members = self.__dict__.get('_members')
        if members is not None and name in members:
            members[name].set(value)
        else:
            super().__setattr__(name, value)

    def __contains__(self, name: str) -> bool:
        return name in self._members

    def __eq__(self, other) -> bool:
        if not isinstance(other, Record):
            return NotImplemented
        return self.keys() == other.keys() and self.serialize() == other.serialize()

    __hash__ = None

    def __repr__(self) -> str:
        values = ', '.join(f'{name}={value!r}' for name, value in self.to_dict().items())
        return f'{type(self).__name__}({values})'

    def children_names(self) -> List[str]:
        return self.keys()

    def child_by_name(self, name: str) -> Optional[Node]:
        member = self._members.get(name)
        if member is None:
            return None
        return member.node()

    def bytes_below(self) -> int:
        return self.total_size()

    def read_all_below(self, out) -> bool:
        self.read_all()
        copy_into(out, self.serialize())

        return True
