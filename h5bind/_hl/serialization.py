"""
    Implements the mapping between primitive kinds and stored types.

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
from typing import Any, Iterable, List, Optional, Tuple
from numpy import dtype

import h5py
import numpy as np

from .node import PrimitiveKind
from .. import config

"""
Supported fixed width types by kind
"""
dtypes = {
    PrimitiveKind.UINT8: np.dtype('uint8'),
    PrimitiveKind.UINT16: np.dtype('uint16'),
    PrimitiveKind.UINT32: np.dtype('uint32'),
    PrimitiveKind.UINT64: np.dtype('uint64'),
    PrimitiveKind.INT8: np.dtype('int8'),
    PrimitiveKind.INT16: np.dtype('int16'),
    PrimitiveKind.INT32: np.dtype('int32'),
    PrimitiveKind.INT64: np.dtype('int64'),
    PrimitiveKind.FLOAT32: np.dtype('float32'),
    PrimitiveKind.FLOAT64: np.dtype('float64'),
}

"""
Supported fixed width kinds by (class, width in bytes, signedness)
"""
kinds_by_signature = {
    ('integer', 1, False): PrimitiveKind.UINT8,
    ('integer', 2, False): PrimitiveKind.UINT16,
    ('integer', 4, False): PrimitiveKind.UINT32,
    ('integer', 8, False): PrimitiveKind.UINT64,
    ('integer', 1, True): PrimitiveKind.INT8,
    ('integer', 2, True): PrimitiveKind.INT16,
    ('integer', 4, True): PrimitiveKind.INT32,
    ('integer', 8, True): PrimitiveKind.INT64,
    ('float', 4, True): PrimitiveKind.FLOAT32,
    ('float', 8, True): PrimitiveKind.FLOAT64,
}

"""
Type of variable length text
"""
text_dtype = h5py.string_dtype(encoding=config.TEXT_ENCODING)


def dtype_of(kind: PrimitiveKind) -> dtype:
    """
    Get the storage type of a primitive kind.
    :param kind: primitive kind
    :return: numpy type (a variable length string type for text)
    """
    if kind is PrimitiveKind.TEXT:
        return text_dtype
    if kind not in dtypes:
        raise TypeError(f'Kind {kind} is not supported. Supported kinds are: {", ".join(k.value for k in PrimitiveKind)}')

    return dtypes[kind]


def signature_of(data_type: dtype) -> Optional[Tuple[str, int, bool]]:
    """
    Describe a numpy type by its class, width and signedness.
    :param data_type: numpy type
    :return: signature, or None if the type is neither an integer nor a float
    """
    if data_type.kind == 'i':
        return 'integer', data_type.itemsize, True
    if data_type.kind == 'u':
        return 'integer', data_type.itemsize, False
    if data_type.kind == 'f':
        return 'float', data_type.itemsize, True

    return None


def is_text(data_type: dtype) -> bool:
    """
    Check whether a numpy type is variable length text.
    :param data_type: numpy type
    :return: True for variable length strings
    """
    string_info = h5py.check_string_dtype(data_type)

    return string_info is not None and string_info.length is None


def kind_of(data_type: dtype) -> PrimitiveKind:
    """
    Converts a numpy type in one of the supported kinds, raises an exception if it is not possible.
    :param data_type: numpy type
    :return: primitive kind
    """
    if is_text(data_type):
        return PrimitiveKind.TEXT

    signature = signature_of(data_type)

    if signature not in kinds_by_signature:
        raise TypeError(f'Type {data_type} is not supported.')

    return kinds_by_signature[signature]


def decode_text(value: Any) -> str:
    """
    Decode a text value as returned by the storage engine.
    :param value: str or bytes
    :return: decoded string
    """
    if isinstance(value, bytes):
        return value.decode(config.TEXT_ENCODING)
    if value is None:
        return ''

    return str(value)


def encode_texts(values: Iterable[str]) -> bytes:
    """
    Serialize a sequence of text values as null separated bytes.
    :param values: text values
    :return: serialized text
    """
    return b'\0'.join(bytes(value, encoding=config.TEXT_ENCODING) for value in values)


def text_list(values: Any) -> List[str]:
    """
    Flatten text values read from storage into a list of strings.
    :param values: scalar or array of str/bytes
    :return: list of strings
    """
    array = np.asarray(values, dtype=object)

    return [decode_text(value) for value in array.ravel()]
