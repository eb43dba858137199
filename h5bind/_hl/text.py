"""
    Implements high-level support for variable length text datasets.

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
from typing import Any, List, Optional, Sequence, Tuple, Union
from numpy import ndarray

import numpy as np

from .dataset import Accessor, Dataset
from .node import PrimitiveKind
from .selection import Selection
from .serialization import encode_texts, text_dtype, text_list
from .. import config
from ..errors import DeclarationError, TextCountMismatchError


class TextSelection(Selection):
    """
    Selection moving lists of strings instead of fixed width buffers.
    """
    def read(self) -> Optional[ndarray]:
        if not self.bound:
            return None
        if self.element_count() == 0:
            return np.empty(self.shape, dtype=object)

        values = text_list(self._handle.asstr()[self.region()])

        return np.array(values, dtype=object).reshape(self.shape)

    def _write(self, region: tuple, shape: Tuple[int, ...], data: Any) -> bool:
        if isinstance(data, (str, bytes)):
            values = [data]
        else:
            values = list(np.asarray(data, dtype=object).ravel())

        count = 1
        for extent in shape:
            count *= extent

        if len(values) != count:
            raise TextCountMismatchError(f'Expected {count} text values for region {shape}, got {len(values)}.')
        if count == 0:
            return True

        if shape == ():
            self._handle[region] = values[0]
        else:
            self._handle[region] = np.array(values, dtype=text_dtype).reshape(shape)

        return True


class TextAccessor(Accessor):
    """
    Accessor level of a text dataset.
    A scalar text accessor reads a str, other levels read flat lists of str.
    """
    def bytes_below(self) -> int:
        data = self.read_raw()
        if data is None:
            return 0
        return len(data)

    def write_raw(self, data: bytes) -> bool:
        return self.write(bytes(data).decode(config.TEXT_ENCODING).split('\0'))

    def write_raw_starting_at(self, offset: int, data: bytes) -> bool:
        return self.write_starting_at(offset, bytes(data).decode(config.TEXT_ENCODING).split('\0'))

    def __str__(self) -> str:
        if self._level != 0:
            return repr(self)
        value = self.read()
        return '' if value is None else value


class TextDataset(TextAccessor, Dataset):
    """
    N-dimensional array of variable length strings.
    """
    _accessor_class = TextAccessor

    def __init__(self, parent, name: str, rank: Optional[int] = None, dims: Optional[Sequence[int]] = None,
                 max_dims: Optional[Sequence[Optional[int]]] = None, chunks: Optional[Sequence[int]] = None,
                 deflate: Optional[int] = None):
        """
        Declare a new text dataset.
        :param parent: group holding the dataset (None to adopt it later)
        :param name: name of the dataset
        :param rank: number of dimensions, defaults to len(dims) or 0
        :param dims: initial extents
        :param max_dims: maximum extents, config.UNLIMITED for unlimited dimensions (defaults to dims)
        :param chunks: chunk shape
        :param deflate: gzip compression level
        """
        super().__init__(parent, name, PrimitiveKind.TEXT, rank=rank, dims=dims, max_dims=max_dims,
                         chunks=chunks, deflate=deflate)

    def _set_element(self, element: Any):
        if element is not PrimitiveKind.TEXT:
            raise DeclarationError(f'Text dataset "{self.name}" can only hold text.')

        self.kind = PrimitiveKind.TEXT
        self._factory = None
        self._record = None
        self.dtype = text_dtype

    def _new_selection(self) -> Selection:
        return TextSelection()

    def _storage_fill_value(self) -> Any:
        return None

    def _from_storage(self, array: ndarray, scalar: bool) -> Union[str, List[str]]:
        values = text_list(array)
        return values[0] if scalar else values

    def _to_storage(self, values: Any) -> Any:
        if isinstance(values, str):
            return values
        return np.array(list(values), dtype=object)

    def _filled(self, value: Any, shape: Tuple[int, ...]) -> Any:
        if shape == ():
            return value
        return np.full(shape, value, dtype=object)

    def _to_bytes(self, array: ndarray) -> bytes:
        return encode_texts(text_list(array))
