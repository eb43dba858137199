"""
    Implements region selection and deferred IO on datasets.

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
from typing import Any, List, Optional, Sequence, Tuple
from numpy import dtype, ndarray

import logging
import numpy as np

from ..errors import SelectionError, ShapeMismatchError

logger = logging.getLogger(__name__.split(".")[0])


class Selection:
    """
    Partial index selection into an N-dimensional dataset.

    The selection holds the indices fixed so far, one per leading dimension.
    Every remaining dimension is selected over its full current extent.
    Before init() is called the selection is unbound: reads return None and writes do nothing.
    """
    def __init__(self):
        self._handle = None
        self._dims: Tuple[int, ...] = ()
        self._dtype: Optional[dtype] = None
        self._indices: List[int] = []

    def init(self, handle: Any, dims: Sequence[int], data_type: Optional[dtype] = None):
        """
        Bind the selection to a stored dataset and clear the fixed indices.
        :param handle: h5py dataset
        :param dims: current extents of the dataset
        :param data_type: memory type of the elements (defaults to the stored type)
        :return:
        """
        self._handle = handle
        self._dims = tuple(int(d) for d in dims)
        self._dtype = data_type
        self._indices = []

    def release(self):
        """
        Unbind the selection.
        :return:
        """
        self._handle = None
        self._indices = []

    @property
    def bound(self) -> bool:
        return self._handle is not None

    @property
    def rank(self) -> int:
        return len(self._dims)

    @property
    def dims(self) -> Tuple[int, ...]:
        return self._dims

    @property
    def indices(self) -> Tuple[int, ...]:
        return tuple(self._indices)

    @property
    def shape(self) -> Tuple[int, ...]:
        """
        Extents of the dimensions which are not fixed yet.
        """
        return self._dims[len(self._indices):]

    def reset(self):
        self._indices = []

    def truncate(self, depth: int):
        """
        Forget the indices fixed past the given depth.
        :param depth: number of indices to keep
        :return:
        """
        del self._indices[depth:]

    def resize(self, dims: Sequence[int]):
        """
        Update the tracked extents after the stored dataset was resized.
        :param dims: new extents
        :return:
        """
        self._dims = tuple(int(d) for d in dims)

    def add_index(self, index: int) -> bool:
        """
        Fix the next dimension to the given index.
        :param index: index along the first free dimension
        :return: False if unbound or if every dimension is already fixed
        """
        if not self.bound:
            return False
        if len(self._indices) >= self.rank:
            logger.warning(f'Selection overflow: all {self.rank} dimensions are already fixed, index {index} ignored.')
            return False

        self._indices.append(int(index))

        return True

    def element_count(self) -> int:
        """
        Get the number of elements moved by read() or write().
        :return: product of the free extents (1 for a complete selection)
        """
        count = 1
        for extent in self.shape:
            count *= extent

        return count

    def byte_count(self, itemsize: int) -> int:
        return self.element_count() * itemsize

    def region(self, offset: Optional[int] = None) -> tuple:
        """
        Translate the selection into an index tuple for the storage engine.
        :param offset: start of the first free dimension
        :return: fixed indices, followed by a slice when an offset is given
        """
        region = tuple(self._indices)

        if offset is not None:
            if len(self._indices) >= self.rank:
                raise SelectionError('Can not offset a selection without any free dimension.')
            extent = self._dims[len(self._indices)]
            if not 0 <= offset <= extent:
                raise SelectionError(f'Offset {offset} out of range for extent {extent}.')
            region += (slice(offset, extent),)

        return region

    def offset_shape(self, offset: int) -> Tuple[int, ...]:
        shape = self.shape

        return (shape[0] - offset,) + shape[1:]

    def read(self) -> Optional[ndarray]:
        """
        Read the selected region.
        :return: array with the shape of the free dimensions, or None if unbound
        """
        if not self.bound:
            return None

        data_type = self._dtype if self._dtype is not None else self._handle.dtype
        if self.element_count() == 0:
            return np.zeros(self.shape, dtype=data_type)

        data = np.asarray(self._handle[self.region()])
        if data.dtype != data_type:
            data = data.astype(data_type)

        return data.reshape(self.shape)

    def write(self, data: Any) -> bool:
        """
        Write the selected region.
        :param data: array-like holding exactly element_count() elements
        :return: False if unbound
        """
        if not self.bound:
            return False

        return self._write(self.region(), self.shape, data)

    def write_with_offset(self, offset: int, data: Any) -> bool:
        """
        Write the selected region, starting the first free dimension at an offset.
        :param offset: start of the first free dimension
        :param data: array-like holding the elements from the offset to the end of the region
        :return: False if unbound
        """
        if not self.bound:
            return False

        region = self.region(offset)

        return self._write(region, self.offset_shape(offset), data)

    def _write(self, region: tuple, shape: Tuple[int, ...], data: Any) -> bool:
        array = np.asarray(data, dtype=self._dtype)

        count = 1
        for extent in shape:
            count *= extent

        if array.size != count:
            raise ShapeMismatchError(f'Expected {count} elements for region {shape}, got {array.size}.')
        if count == 0:
            return True

        self._handle[region] = np.ascontiguousarray(array).reshape(shape)

        return True
