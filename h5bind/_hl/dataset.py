"""
    Implements high-level support for datasets and their per-dimension accessors.

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
from typing import Any, Iterator, List, Optional, Sequence, Tuple, Union
from numpy import ndarray

import logging
import operator

import h5py
import numpy as np

from .attribute import AttributeHolder
from .compound import Record, is_record_like, record_factory
from .node import Node, PrimitiveKind, copy_into
from .selection import Selection
from .serialization import dtype_of, kind_of
from .. import config
from ..errors import DeclarationError, SchemaMismatchError, SelectionError, ShapeMismatchError

logger = logging.getLogger(__name__.split(".")[0])


def _layout(data_type) -> Any:
    """
    Describe a type by its member names only, recursively.
    """
    if data_type.subdtype is not None:
        base, shape = data_type.subdtype
        return _layout(base), shape
    if data_type.names is None:
        return None
    return tuple((name, _layout(data_type.fields[name][0])) for name in data_type.names)


class _RecordIO:
    """
    IO target of the record of a record dataset: the element currently selected.
    """
    def __init__(self, dataset: 'Dataset'):
        self._dataset = dataset

    @property
    def bound(self) -> bool:
        return self._dataset.bound

    def _selection(self) -> Selection:
        selection = self._dataset._selection
        if selection.element_count() != 1:
            raise SelectionError(f'Record of dataset "{self._dataset.name}" needs a selection of exactly one element, '
                                 f'got {selection.element_count()}. Index the dataset down to a scalar first.')
        return selection

    def read(self) -> Optional[bytes]:
        array = self._selection().read()
        if array is None:
            return None
        return array.tobytes()

    def write(self, data: bytes) -> bool:
        selection = self._selection()
        return selection.write(np.frombuffer(data, dtype=self._dataset.dtype).reshape(()))


class Accessor(Node):
    """
    One level of the accessor chain of a dataset.

    An accessor of level k leaves k dimensions free: indexing it fixes one more dimension in the
    selection of the dataset and returns the accessor of level k - 1. The accessor of level 0 is the scalar
    accessor. Accessors are created once with the dataset; indexing only changes the selection.
    """
    def __init__(self, owner: 'Dataset', level: int):
        self._owner = owner
        self._level = level

    @property
    def dataset(self) -> 'Dataset':
        return self._owner

    @property
    def level(self) -> int:
        return self._level

    @property
    def depth(self) -> int:
        """
        Number of dimensions fixed above this accessor.
        """
        return self._owner.rank - self._level

    def _begin(self) -> Selection:
        selection = self._owner._selection
        depth = self.depth

        if selection.bound and len(selection.indices) < depth:
            raise SelectionError('The selection was reset above this accessor, index the dataset again from the top.')
        selection.truncate(depth)

        return selection

    def __getitem__(self, item: Union[int, Tuple[int, ...]]) -> 'Accessor':
        """
        Fix the next dimension.
        :param item: index, negative indices count from the end; a tuple indexes several dimensions
        :return: accessor of the next level
        """
        if isinstance(item, tuple):
            accessor = self
            for index in item:
                accessor = accessor[index]
            return accessor

        if self._level == 0:
            raise SelectionError(f'Dataset "{self._owner.name}": can not index past the last dimension.')

        index = operator.index(item)
        selection = self._begin()

        if selection.bound:
            extent = selection.dims[self.depth]
            if index < 0:
                index += extent
            if not 0 <= index < extent:
                raise SelectionError(f'Index {item} out of range for dimension {self.depth} of extent {extent}.')

        selection.add_index(index)

        return self._owner._chain[self._level - 1]

    def __setitem__(self, item: Union[int, Tuple[int, ...]], value: Any):
        self[item].write(value)

    def __len__(self) -> int:
        if self._level == 0:
            raise TypeError('A scalar accessor has no length.')
        return self.dim_size()

    def __iter__(self) -> Iterator['Accessor']:
        for i in range(len(self)):
            yield self[i]

    def __bool__(self) -> bool:
        return True

    def dims(self) -> Tuple[int, ...]:
        return self._owner._dims

    def max_dims(self) -> Tuple[Optional[int], ...]:
        return self._owner._max_dims

    @property
    def shape(self) -> Tuple[int, ...]:
        """
        Extents of the free dimensions of this accessor.
        """
        return self._owner._dims[self.depth:]

    def dim_size(self) -> int:
        """
        Get the current extent of the first free dimension.
        :return: extent
        """
        if self._level == 0:
            raise SelectionError('A scalar accessor has no free dimension.')
        if len(self._owner._dims) <= self.depth:
            return 0
        return self._owner._dims[self.depth]

    def max_dim_size(self) -> Optional[int]:
        if self._level == 0:
            raise SelectionError('A scalar accessor has no free dimension.')
        if len(self._owner._max_dims) <= self.depth:
            return None
        return self._owner._max_dims[self.depth]

    def element_count(self) -> int:
        if len(self._owner._dims) < self._owner.rank:
            return 0
        count = 1
        for extent in self.shape:
            count *= extent
        return count

    def read(self) -> Any:
        """
        Read the selected region.
        :return: value for a scalar accessor, otherwise an array (list for records and text); None if unbound
        """
        selection = self._begin()
        array = selection.read()
        if array is None:
            return None

        return self._owner._from_storage(array, self._level == 0)

    def read_array(self) -> Optional[ndarray]:
        """
        Read the selected region as stored.
        :return: array with the shape of the free dimensions (structured for records), None if unbound
        """
        return self._begin().read()

    def read_raw(self) -> Optional[bytes]:
        array = self.read_array()
        if array is None:
            return None
        return self._owner._to_bytes(array)

    def write(self, values: Any) -> bool:
        """
        Write the selected region.
        :param values: value for a scalar accessor, otherwise as many values as selected elements
        :return: False if unbound
        """
        selection = self._begin()
        if not selection.bound:
            return False

        return selection.write(self._owner._to_storage(values))

    def write_raw(self, data: bytes) -> bool:
        selection = self._begin()
        if not selection.bound:
            return False

        return selection.write(np.frombuffer(data, dtype=self._owner.dtype))

    def write_raw_starting_at(self, offset: int, data: bytes) -> bool:
        """
        Write raw element bytes from an offset along the first free dimension.
        :param offset: start along the first free dimension
        :param data: bytes of the elements from the offset to the end of the region
        :return: False if unbound
        """
        selection = self._begin()
        if not selection.bound:
            return False

        return selection.write_with_offset(offset, np.frombuffer(data, dtype=self._owner.dtype))

    def write_starting_at(self, offset: int, values: Any) -> bool:
        """
        Write the selected region from an offset along its first free dimension.
        :param offset: start along the first free dimension
        :param values: values from the offset to the end of the region
        :return: False if unbound
        """
        selection = self._begin()
        if not selection.bound:
            return False

        return selection.write_with_offset(offset, self._owner._to_storage(values))

    def set_all(self, value: Any) -> bool:
        """
        Write the same value in every selected element.
        :param value: single value
        :return: False if unbound
        """
        selection = self._begin()
        if not selection.bound:
            return False

        return selection.write(self._owner._filled(value, selection.shape))

    def extend(self, n: int = 1, axis: Optional[int] = None) -> bool:
        """
        Grow an unlimited dimension.
        :param n: number of elements to add
        :param axis: dimension to grow, defaults to the first free dimension of this accessor
        :return: False if unbound
        """
        self._begin()
        return self._owner._extend_axis(self.depth if axis is None else axis, n)

    def extend_once_and_write(self, value: Any) -> bool:
        """
        Grow the first free dimension by one and write in the new slot.
        :param value: value of the new slot
        :return: False if unbound
        """
        if not self.extend(1):
            return False

        return self[self.dim_size() - 1].write(value)

    def extend_once_and_write_raw(self, data: bytes) -> bool:
        if not self.extend(1):
            return False

        return self[self.dim_size() - 1].write_raw(data)

    @property
    def value(self) -> Any:
        if self._level != 0:
            raise SelectionError('Only a scalar accessor has a value, index the remaining dimensions first.')
        return self.read()

    @value.setter
    def value(self, value: Any):
        if self._level != 0:
            raise SelectionError('Only a scalar accessor has a value, index the remaining dimensions first.')
        self.write(value)

    def __int__(self) -> int:
        return int(self.value)

    def __float__(self) -> float:
        return float(self.value)

    @property
    def record(self) -> Record:
        """
        Live record of the selected element: member reads and writes go to storage.
        """
        if self._owner._record is None:
            raise TypeError(f'Dataset "{self._owner.name}" does not hold records.')
        if self._level != 0:
            raise SelectionError('Only a scalar accessor has a record, index the remaining dimensions first.')

        self._begin()

        return self._owner._record

    def __repr__(self) -> str:
        return f'<{type(self).__name__} "{self._owner.name}" level {self._level} of {self._owner.rank}>'

    def is_leaf(self) -> Optional[PrimitiveKind]:
        if self._level == 0:
            return self._owner.kind
        return None

    def read_leaf_value(self, out) -> bool:
        if self.is_leaf() is None:
            return False
        return self.read_all_below(out)

    def can_index(self) -> bool:
        return self._level > 0

    def index(self, i: int) -> Node:
        return self[i]

    def indexable_size(self) -> int:
        if self._level == 0:
            return 0
        return self.dim_size()

    def element_kind(self) -> Optional[PrimitiveKind]:
        return self._owner.kind

    def bytes_below(self) -> int:
        return self.element_count() * self._owner.dtype.itemsize

    def read_all_below(self, out) -> bool:
        data = self.read_raw()
        if data is None:
            return False
        copy_into(out, data)
        return True

    def children_names(self) -> List[str]:
        if self._level == 0 and self._owner._record is not None:
            return self._owner._record.children_names()
        return []

    def child_by_name(self, name: str) -> Optional[Node]:
        if self._level == 0 and self._owner._record is not None:
            return self.record.child_by_name(name)
        return None


class Dataset(Accessor, AttributeHolder):
    """
    Typed N-dimensional array stored in the container.

    The dataset is the top level accessor of its chain; it owns the storage handle and the selection
    shared by every level. Dimensions, chunking, compression and fill value are set before the root is bound.
    """
    _accessor_class = Accessor

    def __init__(self, parent, name: str, element: Any, rank: Optional[int] = None,
                 dims: Optional[Sequence[int]] = None, max_dims: Optional[Sequence[Optional[int]]] = None,
                 chunks: Optional[Sequence[int]] = None, deflate: Optional[int] = None, fill_value: Any = None):
        """
        Declare a new dataset.
        :param parent: group holding the dataset (None to adopt it later)
        :param name: name of the dataset
        :param element: primitive kind, Record subclass or template record
        :param rank: number of dimensions, defaults to len(dims) or 0
        :param dims: initial extents
        :param max_dims: maximum extents, config.UNLIMITED for unlimited dimensions (defaults to dims)
        :param chunks: chunk shape
        :param deflate: gzip compression level
        :param fill_value: value of unwritten elements
        """
        if rank is None:
            rank = len(dims) if dims is not None else 0

        self.name = name
        self.parent = None
        self._rank = rank
        self._dims: Tuple[int, ...] = ()
        self._max_dims: Tuple[Optional[int], ...] = ()
        self._dims_set = False
        self._handle = None
        self._chunks = tuple(chunks) if chunks is not None else None
        self._deflate = deflate
        self._fill_value = fill_value

        self._set_element(element)
        self._selection = self._new_selection()
        self._init_attributes()

        Accessor.__init__(self, self, rank)
        self._chain: List[Accessor] = [self._accessor_class(self, level) for level in range(rank)] + [self]

        if rank == 0:
            self.set_dimensions(())
        elif dims is not None:
            self.set_dimensions(dims, max_dims)

        if parent is not None:
            parent.register_child(self)

    def _set_element(self, element: Any):
        if is_record_like(element):
            self.kind: Optional[PrimitiveKind] = None
            self._factory = record_factory(element)
            self._record: Optional[Record] = self._factory()
            self._record.set_io(_RecordIO(self))
            self.dtype = self._record.dtype()
            return

        if element is PrimitiveKind.TEXT:
            raise DeclarationError(f'Dataset "{self.name}": use TextDataset for text.')

        self.kind = element
        self._factory = None
        self._record = None
        self.dtype = dtype_of(element)

    def _new_selection(self) -> Selection:
        return Selection()

    @property
    def rank(self) -> int:
        return self._rank

    @property
    def bound(self) -> bool:
        return self._handle is not None

    @property
    def handle(self) -> Optional[h5py.Dataset]:
        return self._handle

    @property
    def chunks(self) -> Optional[Tuple[int, ...]]:
        return self._chunks

    @property
    def deflate(self) -> Optional[int]:
        return self._deflate

    def _check_unbound(self, what: str):
        if self.bound:
            raise DeclarationError(f'Dataset "{self.name}": {what} can not change once the dataset is bound.')

    def set_dimensions(self, dims: Sequence[int], max_dims: Optional[Sequence[Optional[int]]] = None):
        """
        Set the initial and maximum extents.
        :param dims: initial extents, one per dimension
        :param max_dims: maximum extents, config.UNLIMITED for unlimited dimensions (defaults to dims)
        :return:
        """
        self._check_unbound('dimensions')

        dims = tuple(int(d) for d in dims)
        if max_dims is None:
            max_dims = dims
        max_dims = tuple(config.UNLIMITED if d is config.UNLIMITED else int(d) for d in max_dims)

        if len(dims) != self._rank or len(max_dims) != self._rank:
            raise DeclarationError(f'Dataset "{self.name}" has rank {self._rank}, got dims {dims} and max dims {max_dims}.')
        for extent, limit in zip(dims, max_dims):
            if limit is not config.UNLIMITED and limit < extent:
                raise DeclarationError(f'Dataset "{self.name}": max dims {max_dims} smaller than dims {dims}.')

        self._dims = dims
        self._max_dims = max_dims
        self._dims_set = True

    def set_chunk_size(self, chunks: Sequence[int]):
        self._check_unbound('chunk size')
        if len(chunks) != self._rank:
            raise DeclarationError(f'Dataset "{self.name}" has rank {self._rank}, got chunks {tuple(chunks)}.')
        self._chunks = tuple(int(c) for c in chunks)

    def set_deflate_level(self, level: int):
        self._check_unbound('deflate level')
        self._deflate = int(level)

    def set_fill_value(self, value: Any):
        self._check_unbound('fill value')
        self._fill_value = value

    def _storage_fill_value(self) -> Any:
        if self._fill_value is None:
            return None
        if self._record is not None:
            return self._fill_value.to_numpy()
        return np.asarray(self._fill_value, dtype=self.dtype)[()]

    def open_r(self, create: bool = False):
        """
        Bind the dataset, creating it when required.
        :param create: True to create the stored dataset
        :return:
        """
        parent_handle = self.parent.handle

        if create:
            if not self._dims_set:
                raise DeclarationError(f'Dataset "{self.name}": dimensions must be set before the file is created.')

            options = dict(shape=self._dims, dtype=self.dtype, track_order=config.TRACK_ORDER)
            if self._rank > 0:
                options['maxshape'] = self._max_dims
            if self._chunks is not None:
                options['chunks'] = self._chunks
            if self._deflate is not None:
                options['compression'] = config.COMPRESSION
                options['compression_opts'] = self._deflate
            fill_value = self._storage_fill_value()
            if fill_value is not None:
                options['fillvalue'] = fill_value

            handle = parent_handle.create_dataset(self.name, **options)
        else:
            handle = parent_handle.get(self.name)
            if not isinstance(handle, h5py.Dataset):
                raise SchemaMismatchError(f'Dataset "{self.name}" not found in {parent_handle.name}.')
            self._check_stored(handle)

            self._dims = tuple(handle.shape)
            self._max_dims = tuple(handle.maxshape) if handle.maxshape is not None else ()
            self._chunks = handle.chunks
            self._deflate = handle.compression_opts
            self._dims_set = True

        self._handle = handle
        self._selection.init(handle, self._dims, self.dtype)
        self._open_attributes(create)

        logger.debug(f'Bound dataset {handle.name} with dims {self._dims}.')

    def _check_stored(self, handle: h5py.Dataset):
        if len(handle.shape) != self._rank:
            raise SchemaMismatchError(f'Dataset "{self.name}": declared rank {self._rank}, stored rank {len(handle.shape)}.')

        if self._record is not None:
            if _layout(handle.dtype) != _layout(self.dtype):
                raise SchemaMismatchError(f'Dataset "{self.name}": stored type {handle.dtype} is not the declared record.')
            return

        try:
            stored_kind = kind_of(handle.dtype)
        except TypeError as exception:
            raise SchemaMismatchError(f'Dataset "{self.name}": {exception}')
        if stored_kind is not self.kind:
            raise SchemaMismatchError(f'Dataset "{self.name}": declared {self.kind.value}, stored {stored_kind.value}.')

    def close_r(self):
        """
        Release the attributes, then the dataset handle.
        :return:
        """
        try:
            self._close_attributes()
        finally:
            self._selection.release()
            self._handle = None

    def _extend_axis(self, axis: int, n: int) -> bool:
        if not self.bound:
            return False
        if not 0 <= axis < self._rank:
            raise SelectionError(f'Dataset "{self.name}" has no dimension {axis} to extend.')

        new_dims = list(self._dims)
        new_dims[axis] += n
        limit = self._max_dims[axis]
        if limit is not config.UNLIMITED and new_dims[axis] > limit:
            raise ShapeMismatchError(f'Dataset "{self.name}": dimension {axis} can not grow past {limit}.')

        self._handle.resize(tuple(new_dims))

        self._dims = tuple(new_dims)
        self._selection.resize(self._dims)

        return True

    def copy_from(self, other: 'Dataset') -> bool:
        """
        Copy the whole content of another dataset, resizing this one to its extents.
        :param other: source dataset of the same rank and element type
        :return: False if either dataset is unbound
        """
        if other.rank != self._rank:
            raise ShapeMismatchError(f'Can not copy a rank {other.rank} dataset into a rank {self._rank} dataset.')
        if other.kind is not self.kind or (self._record is not None and _layout(other.dtype) != _layout(self.dtype)):
            raise SchemaMismatchError(f'Dataset "{self.name}": can not copy elements of dataset "{other.name}", '
                                      f'their types differ.')
        for extent, limit in zip(other.dims(), self._max_dims):
            if limit is not config.UNLIMITED and limit < extent:
                raise ShapeMismatchError(f'Dataset "{self.name}" with max dims {self._max_dims} '
                                         f'can not hold dims {other.dims()}.')

        if not self.bound or not other.bound:
            return False

        array = other.read_array()

        if tuple(other.dims()) != self._dims:
            self._handle.resize(tuple(other.dims()))
            self._dims = tuple(other.dims())
            self._selection.resize(self._dims)

        return self.write(array)

    def _from_storage(self, array: ndarray, scalar: bool) -> Any:
        if self._record is None:
            return array[()] if scalar else array

        records = []
        for element in array.reshape(-1):
            record = self._factory()
            record.from_numpy(element)
            records.append(record)

        return records[0] if scalar else records

    def _to_storage(self, values: Any) -> ndarray:
        if self._record is None:
            return np.asarray(values, dtype=self.dtype)

        if isinstance(values, Record):
            values = [values]
        elif isinstance(values, np.ndarray) and values.dtype.names is not None:
            return values.astype(self.dtype)

        data = b''.join(record.serialize() for record in values)

        return np.frombuffer(data, dtype=self.dtype)

    def _filled(self, value: Any, shape: Tuple[int, ...]) -> ndarray:
        if self._record is None:
            return np.full(shape, value, dtype=self.dtype)

        return np.full(shape, value.to_numpy(), dtype=self.dtype)

    def _to_bytes(self, array: ndarray) -> bytes:
        return np.ascontiguousarray(array).tobytes()

    def children_names(self) -> List[str]:
        return Accessor.children_names(self) + list(self._attributes.keys())

    def child_by_name(self, name: str) -> Optional[Node]:
        if name in self._attributes:
            return self._attributes[name]
        return Accessor.child_by_name(self, name)
