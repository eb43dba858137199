"""
    Implements reconstruction of a tree from the schema stored in a container.

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
from typing import List, Union
from numpy import dtype

import logging

import h5py

from .attribute import Attribute
from .compound import ArrayMember, NestedMember, PrimitiveMember, Record, RecordArrayMember
from .dataset import Dataset
from .group import File, Group
from .node import PrimitiveKind
from .serialization import is_text, kinds_by_signature, signature_of
from .text import TextDataset
from ..errors import DeclarationError, SchemaMismatchError

logger = logging.getLogger(__name__.split(".")[0])


class SchemaReflector:
    """
    Builds, under a bound group, the nodes matching what is stored in it.

    Attributes come first, then datasets in storage order, then sub-groups, depth-first.
    Every reflected node is owned by the group it is adopted by.
    """
    def populate(self, group: Group):
        """
        Reflect the content of a bound group.
        :param group: group bound to a stored group
        :return:
        """
        handle = group.handle
        if handle is None:
            raise DeclarationError(f'Group "{group.name}" must be bound before its schema can be reflected.')

        for name in handle.attrs:
            self.reflect_attribute(group, name, f'{handle.name}@{name}')

        subgroups: List[str] = []
        for name in handle:
            stored = handle.get(name)
            path = f'{handle.name.rstrip("/")}/{name}'

            if stored is None:
                logger.warning(f'Skipping dangling link {path}.')
            elif isinstance(stored, h5py.Dataset):
                self.reflect_dataset(group, name, stored)
            elif isinstance(stored, h5py.Group):
                subgroups.append(name)
            else:
                logger.warning(f'Skipping {path}: {type(stored).__name__} objects hold no data.')

        for name in subgroups:
            subgroup = group.adopt(Group(None, name))
            logger.debug(f'Reflecting group {subgroup.handle.name}.')
            self.populate(subgroup)

    def reflect_dataset(self, group: Group, name: str, stored: h5py.Dataset) -> Dataset:
        """
        Reflect a stored dataset and its attributes.
        :param group: bound group holding the dataset
        :param name: name of the dataset
        :param stored: h5py dataset
        :return: bound dataset node
        """
        rank = len(stored.shape)
        data_type = stored.dtype

        if is_text(data_type):
            dataset = TextDataset(None, name, rank=rank)
        elif data_type.names is not None:
            dataset = Dataset(None, name, self.build_record(data_type, stored.name), rank=rank)
        else:
            dataset = Dataset(None, name, self.kind_for(data_type, stored.name), rank=rank)

        group.adopt(dataset)

        for attribute_name in stored.attrs:
            self.reflect_attribute(dataset, attribute_name, f'{stored.name}@{attribute_name}')

        return dataset

    def reflect_attribute(self, holder: Union[Group, Dataset], name: str, path: str) -> Attribute:
        """
        Reflect a stored attribute.
        :param holder: bound group or dataset carrying the attribute
        :param name: name of the attribute
        :param path: location used in error messages
        :return: bound attribute node
        """
        stored = holder.attribute_handle().attrs.get_id(name)

        if stored.shape is None or len(stored.shape) > 1:
            raise SchemaMismatchError(f'{path}: only scalar and one dimensional attributes are supported.')

        data_type = stored.dtype
        if is_text(data_type):
            element = PrimitiveKind.TEXT
        elif data_type.names is not None:
            element = self.build_record(data_type, path)
        else:
            element = self.kind_for(data_type, path)

        attribute = Attribute(None, name, element, stored.shape)

        if isinstance(holder, Group):
            holder.adopt(attribute)
        else:
            holder.register_attribute(attribute)
            attribute.open_r(False)

        return attribute

    def kind_for(self, data_type: dtype, path: str) -> PrimitiveKind:
        """
        Dispatch a stored fixed width type on its class, width and signedness.
        :param data_type: numpy type
        :param path: location used in error messages
        :return: primitive kind
        """
        signature = signature_of(data_type)
        if signature not in kinds_by_signature:
            raise SchemaMismatchError(f'{path}: unsupported type {data_type}.')

        return kinds_by_signature[signature]

    def build_record(self, data_type: dtype, path: str) -> Record:
        """
        Rebuild a record from a stored compound type, member by member.
        :param data_type: numpy structured type
        :param path: location used in error messages
        :return: template record
        """
        record = Record()

        for name in data_type.names:
            member_type = data_type.fields[name][0]
            member_path = f'{path}.{name}'

            if member_type.subdtype is not None:
                base, shape = member_type.subdtype
                if len(shape) != 1:
                    raise SchemaMismatchError(f'{member_path}: only one dimensional arrays are supported, got {shape}.')
                if base.names is not None:
                    template = self.build_record(base, member_path)
                    record.register_member(RecordArrayMember(name, template.clone, shape[0]))
                else:
                    record.register_member(ArrayMember(name, self.kind_for(base, member_path), shape[0]))
            elif member_type.names is not None:
                record.register_member(NestedMember(name, self.build_record(member_type, member_path)))
            else:
                record.register_member(PrimitiveMember(name, self.kind_for(member_type, member_path)))

        return record


def reflect(file_path: str, read_only: bool = True) -> File:
    """
    Open a container and reflect its whole schema.
    :param file_path: path to the file on disk
    :param read_only: True to forbid writes
    :return: bound root group
    """
    root = File()
    root.open(file_path, read_only)

    try:
        SchemaReflector().populate(root)
    except Exception:
        root.close()
        raise

    logger.info(f'Reflected {file_path}.')

    return root
