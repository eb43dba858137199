"""
    Typed access layer over hierarchical HDF5 containers.

    A tree of groups, datasets, records and attributes is declared in Python, then bound to a container
    with File.create(), File.open() or File.open_in_memory(). An N-dimensional dataset is indexed one
    dimension at a time through a chain of accessors; storage is only touched when a value is read or written.
    reflect() builds the same kind of tree from the schema stored in an existing container.
"""
from .logging import logger
from ._hl.node import Node, PrimitiveKind
from ._hl.compound import Array, Field, Nested, Record
from ._hl.selection import Selection
from ._hl.dataset import Accessor, Dataset
from ._hl.text import TextAccessor, TextDataset
from ._hl.attribute import Attribute
from ._hl.group import File, Group
from ._hl.reflect import SchemaReflector, reflect
from ._hl.export import describe, dumps, format_tree, loads, walk
from .errors import (H5BindError, SelectionError, SchemaMismatchError, ShapeMismatchError, TextCountMismatchError,
                     DeclarationError)
from .version import version as __version__
