"""
    Dataset utilities for PyTorch.

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
from typing import List, Tuple, Dict, Callable, Optional
from torch.utils.data.dataset import Dataset, ConcatDataset
from numpy import ndarray
from .. import reflect


class H5BindDataset(Dataset):
    """
    Represent a PyTorch Dataset reading items along the first dimension of datasets of a container.
    """
    def __init__(self, file_path: str, keys: List[str], process_funcs: Optional[Dict[str, Callable]] = None):
        """
        Create a new `Dataset` object.
        :param file_path: path to the container
        :param keys: paths of the datasets to retrieve, all with the same first dimension
        :param process_funcs: functions applied to the arrays of some keys
        """
        self.file_path = file_path
        self.keys = keys
        self.process_funcs = process_funcs or dict()

        self.root = reflect(file_path)
        self.len = self._length()

    def _length(self) -> int:
        lengths = {len(self.root.find(key)) for key in self.keys}
        if len(lengths) > 1:
            raise ValueError(f'Datasets {", ".join(self.keys)} do not have the same first dimension.')

        return lengths.pop() if lengths else 0

    def worker_init_fn(self, worker_id: int = -1):
        """
        Open the container again.
        Needs to be set as "worker_init_fn" argument when using a Dataloader with num_workers > 1.
        :param worker_id: id of the PyTorch data loader worker calling the method
        """
        self.root.close()
        self.root = reflect(self.file_path)
        self.len = self._length()

    def __getitem__(self, item: int) -> Tuple[ndarray, ...]:
        """
        Access the item at the specified index
        :param item: index of the item
        :return: tuple of arrays
        """
        arrays = [self.root.find(key)[item].read_array() for key in self.keys]

        processed_arrays = [
            self.process_funcs[key](array) if key in self.process_funcs else array
            for key, array in zip(self.keys, arrays)
        ]

        return tuple(processed_arrays)

    def __len__(self) -> int:
        """
        Returns the length of the dataset.
        :return: length of the dataset
        """
        return self.len


class H5BindConcatDataset(ConcatDataset):
    """
    Represent a concatenation of h5bind datasets.
    """
    def __init__(self, datasets: List[H5BindDataset]):
        """
        Concatenate several h5bind datasets
        :param datasets: list of h5bind datasets
        """
        super().__init__(datasets)

    def worker_init_fn(self, worker_id: int = -1):
        """
        Open each of the containers again.
        Needs to be set as "worker_init_fn" argument when using a Dataloader with num_workers > 1.
        :param worker_id: id of the PyTorch data loader worker calling the method
        """
        for dataset in self.datasets:
            dataset.worker_init_fn(worker_id)
