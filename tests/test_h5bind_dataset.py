"""
    Run tests for datasets and their accessor chains

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
import os
import tempfile
import unittest
from unittest import mock
from h5bind import (Array, Dataset, Field, File, Group, Nested, Record, PrimitiveKind, DeclarationError,
                    SchemaMismatchError, SelectionError, ShapeMismatchError)
from h5bind.config import UNLIMITED
import numpy as np


class Vec3(Record):
    x = Field(PrimitiveKind.FLOAT32)
    y = Field(PrimitiveKind.FLOAT32)
    z = Field(PrimitiveKind.FLOAT32)


class Particle(Record):
    id = Field(PrimitiveKind.UINT32)
    charge = Field(PrimitiveKind.INT8)
    position = Nested(Vec3)
    history = Array(PrimitiveKind.FLOAT64, 4)


class Cell(Record):
    label = Field(PrimitiveKind.INT16)
    particles = Array(Particle, 10)
    spares = Array(Particle, 10)


class FileTestCase(unittest.TestCase):
    def setUp(self):
        self.directory = tempfile.TemporaryDirectory()
        self.path = os.path.join(self.directory.name, 'test.h5')
        self.root = File()

    def tearDown(self):
        self.root.close()
        self.directory.cleanup()


class TestGrowingGrid(FileTestCase):
    def setUp(self):
        super().setUp()
        self.grid = Dataset(self.root, 'grid', PrimitiveKind.INT32, dims=(3, 4), max_dims=(3, UNLIMITED))
        self.root.create(self.path)
        for row in range(3):
            self.grid[row] = [row] * 4

    def test_extend_from_row_accessor(self):
        self.assertTrue(self.grid[0].extend(1))
        self.assertEqual(self.grid.dims(), (3, 5))

        for row in range(3):
            self.grid[row][4] = 9

        expected = np.array([[row] * 4 + [9] for row in range(3)], dtype=np.int32)
        np.testing.assert_array_equal(self.grid.read(), expected)

    def test_extend_from_dataset(self):
        self.assertTrue(self.grid.extend(1, axis=1))
        self.assertEqual(self.grid.dims(), (3, 5))
        np.testing.assert_array_equal(self.grid.read()[:, 4], [0, 0, 0])

    def test_extend_limited_dimension(self):
        with self.assertRaises(ShapeMismatchError):
            self.grid.extend(1)

        with self.assertRaises(SelectionError):
            self.grid.extend(1, axis=2)

        self.assertEqual(self.grid.dims(), (3, 4))

    def test_values_survive_reopening(self):
        self.grid[1].extend(2)
        self.grid[1][5] = 11
        self.root.close()

        root = File()
        grid = Dataset(root, 'grid', PrimitiveKind.INT32, rank=2)
        with root.open(self.path, read_only=True):
            self.assertTrue(root.read_only)
            self.assertEqual(grid.dims(), (3, 6))
            self.assertEqual(grid.max_dims(), (3, UNLIMITED))
            self.assertEqual(grid[1][5].read(), 11)
            np.testing.assert_array_equal(grid[2].read(), [2, 2, 2, 2, 0, 0])

    def test_lengths(self):
        self.assertEqual(len(self.grid), 3)
        self.assertEqual(len(self.grid[0]), 4)
        self.assertEqual(self.grid[0].shape, (4,))
        self.assertEqual(self.grid.dim_size(), 3)
        self.assertEqual(self.grid.max_dim_size(), 3)
        self.assertEqual(self.grid[0].max_dim_size(), UNLIMITED)
        self.assertEqual([accessor.read()[0] for accessor in self.grid], [0, 1, 2])

        with self.assertRaises(TypeError):
            len(self.grid[0][0])

    def test_extend_once_and_write_raw(self):
        self.assertTrue(self.grid[1].extend_once_and_write_raw(np.int32(8).tobytes()))

        self.assertEqual(self.grid.dims(), (3, 5))
        np.testing.assert_array_equal(self.grid[1].read(), [1, 1, 1, 1, 8])
        np.testing.assert_array_equal(self.grid[0].read(), [0, 0, 0, 0, 0])


class TestAccessorChain(FileTestCase):
    def setUp(self):
        super().setUp()
        self.cube = Dataset(self.root, 'cube', PrimitiveKind.INT16, dims=(2, 3, 4))
        self.root.create(self.path)

    def test_levels(self):
        self.assertEqual(self.cube.level, 3)
        self.assertEqual(self.cube[0].level, 2)
        self.assertEqual(self.cube[0][0].level, 1)
        self.assertEqual(self.cube[0][0][0].level, 0)
        self.assertIs(self.cube[0][0][0].dataset, self.cube)

    def test_scalar_write_and_read(self):
        self.cube[1][2][3].write(7)

        self.assertEqual(self.cube[1][2][3].read(), 7)
        self.assertEqual(self.cube[1, 2, 3].read(), 7)
        self.assertEqual(self.cube.read()[1, 2, 3], 7)
        self.assertEqual(self.cube.read().sum(), 7)

    def test_indexing_a_scalar(self):
        self.cube[1][2][3].write(7)
        scalar = self.cube[1][2][3]

        with self.assertRaises(SelectionError):
            scalar[0]

        self.assertEqual(scalar.read(), 7)

    def test_bounds(self):
        with self.assertRaises(SelectionError):
            self.cube[2]
        with self.assertRaises(SelectionError):
            self.cube[0][-4]
        with self.assertRaises(TypeError):
            self.cube['a']

        self.cube[1][0][3].write(5)
        self.assertEqual(self.cube[-1][0][-1].read(), 5)

    def test_accessor_reuse(self):
        row = self.cube[1][2]
        row.write([1, 2, 3, 4])
        np.testing.assert_array_equal(row.read(), [1, 2, 3, 4])

        self.cube.read()

        with self.assertRaises(SelectionError):
            row.read()

    def test_write_starting_at(self):
        self.cube[0][1].write_starting_at(2, [8, 9])

        np.testing.assert_array_equal(self.cube[0][1].read(), [0, 0, 8, 9])

    def test_set_all(self):
        self.cube.set_all(3)
        self.cube[1].set_all(0)

        self.assertEqual(self.cube[0].read().sum(), 3 * 12)
        self.assertEqual(self.cube[1].read().sum(), 0)

    def test_write_count_mismatch(self):
        with self.assertRaises(ShapeMismatchError):
            self.cube[0].write([1, 2, 3])

    def test_raw_bytes(self):
        self.cube[0][0].write([1, 2, 3, 4])
        data = self.cube[0][0].read_raw()

        self.assertEqual(data, np.array([1, 2, 3, 4], dtype=np.int16).tobytes())

        self.cube[1][1].write_raw(data)
        np.testing.assert_array_equal(self.cube[1][1].read_array(), [1, 2, 3, 4])

    def test_raw_bytes_starting_at(self):
        self.cube[0][1].write_raw_starting_at(1, np.array([4, 5, 6], dtype=np.int16).tobytes())

        np.testing.assert_array_equal(self.cube[0][1].read(), [0, 4, 5, 6])

        with self.assertRaises(ShapeMismatchError):
            self.cube[0][1].write_raw_starting_at(2, np.array([4, 5, 6], dtype=np.int16).tobytes())

    def test_node_interface(self):
        self.cube[0][0][1].write(6)

        self.assertTrue(self.cube.can_index())
        self.assertEqual(self.cube.indexable_size(), 2)
        self.assertIs(self.cube.element_kind(), PrimitiveKind.INT16)
        self.assertIsNone(self.cube.is_leaf())
        self.assertEqual(self.cube.bytes_below(), 2 * 3 * 4 * 2)

        row = self.cube.index(0).index(0)
        self.assertEqual(row.bytes_below(), 8)
        self.assertEqual(row.indexable_size(), 4)

        leaf = row.index(1)
        buffer = bytearray(2)
        self.assertIs(leaf.is_leaf(), PrimitiveKind.INT16)
        self.assertFalse(leaf.can_index())
        self.assertTrue(leaf.read_leaf_value(buffer))
        self.assertEqual(np.frombuffer(bytes(buffer), dtype=np.int16)[0], 6)


class TestScalarDataset(FileTestCase):
    def test_conversions(self):
        count = Dataset(self.root, 'count', PrimitiveKind.UINT64)
        self.root.create(self.path)

        count.write(5)
        self.assertEqual(int(count), 5)

        count.value = 6
        self.assertEqual(count.value, 6)
        self.assertEqual(float(count), 6.0)
        self.assertEqual(count.dims(), ())
        self.assertEqual(count.element_count(), 1)

    def test_value_needs_scalar_accessor(self):
        series = Dataset(self.root, 'series', PrimitiveKind.FLOAT32, dims=(3,))
        self.root.create(self.path)

        with self.assertRaises(SelectionError):
            series.value

        series[1].value = 1.5
        self.assertEqual(series[1].value, 1.5)


class TestUnbound(unittest.TestCase):
    def test_no_op(self):
        root = File()
        grid = Dataset(root, 'grid', PrimitiveKind.FLOAT64, dims=(2, 2))

        self.assertFalse(grid.bound)
        self.assertIsNone(grid.read())
        self.assertIsNone(grid[0].read())
        self.assertFalse(grid[0].write([1.0, 2.0]))
        self.assertFalse(grid.extend(1))
        self.assertFalse(grid.set_all(1.0))
        self.assertIsNone(grid.read_raw())

    def test_record_template(self):
        root = File()
        particles = Dataset(root, 'particles', Particle, dims=(2,))

        record = particles[0].record
        record.charge = 4

        self.assertEqual(record.charge, 4)
        self.assertIsNone(particles[0].read())

    def test_rank_only(self):
        root = File()
        grid = Dataset(root, 'grid', PrimitiveKind.INT32, rank=2)

        self.assertEqual(grid.dims(), ())
        self.assertEqual(len(grid), 0)
        self.assertEqual(grid.indexable_size(), 0)
        self.assertEqual(grid[0].indexable_size(), 0)
        self.assertIsNone(grid.max_dim_size())
        self.assertEqual(grid.element_count(), 0)
        self.assertEqual(grid.bytes_below(), 0)
        self.assertEqual(list(grid), [])


class TestDeclaration(FileTestCase):
    def test_missing_dimensions(self):
        Dataset(self.root, 'grid', PrimitiveKind.FLOAT32, rank=2)

        with self.assertRaises(DeclarationError):
            self.root.create(self.path)

        self.assertFalse(self.root.is_open)

    def test_dimensions_checked(self):
        grid = Dataset(self.root, 'grid', PrimitiveKind.FLOAT32, rank=2)

        with self.assertRaises(DeclarationError):
            grid.set_dimensions((2,))
        with self.assertRaises(DeclarationError):
            grid.set_dimensions((2, 3), (2, 2))

    def test_frozen_once_bound(self):
        grid = Dataset(self.root, 'grid', PrimitiveKind.FLOAT32, dims=(2,))
        self.root.create(self.path)

        with self.assertRaises(DeclarationError):
            grid.set_dimensions((3,))
        with self.assertRaises(DeclarationError):
            grid.set_chunk_size((1,))

    def test_duplicate_name(self):
        Dataset(self.root, 'grid', PrimitiveKind.FLOAT32)

        with self.assertRaises(DeclarationError):
            Group(self.root, 'grid')

    def test_storage_options(self):
        packed = Dataset(self.root, 'packed', PrimitiveKind.FLOAT32, dims=(100,), chunks=(10,), deflate=4)
        filled = Dataset(self.root, 'filled', PrimitiveKind.INT16, dims=(3,))
        filled.set_fill_value(-1)
        self.root.create(self.path)

        self.assertEqual(packed.handle.chunks, (10,))
        self.assertEqual(packed.handle.compression, 'gzip')
        self.assertEqual(packed.handle.compression_opts, 4)
        np.testing.assert_array_equal(filled.read(), [-1, -1, -1])
        self.root.close()

        root = File()
        packed = Dataset(root, 'packed', PrimitiveKind.FLOAT32, rank=1)
        with root.open(self.path):
            self.assertEqual(packed.chunks, (10,))
            self.assertEqual(packed.deflate, 4)

    def test_open_mismatch(self):
        Dataset(self.root, 'grid', PrimitiveKind.INT32, dims=(2, 2))
        self.root.create(self.path)
        self.root.close()

        for declare in (lambda root: Dataset(root, 'grid', PrimitiveKind.FLOAT64, rank=2),
                        lambda root: Dataset(root, 'grid', PrimitiveKind.INT32, rank=1),
                        lambda root: Dataset(root, 'missing', PrimitiveKind.INT32, rank=2),
                        lambda root: Dataset(root, 'grid', Particle, rank=2)):
            root = File()
            declare(root)
            with self.assertRaises(SchemaMismatchError):
                root.open(self.path)
            self.assertFalse(root.is_open)


class TestRecordDataset(FileTestCase):
    def setUp(self):
        super().setUp()
        self.particles = Dataset(self.root, 'particles', Particle, dims=(4,), max_dims=(UNLIMITED,))
        self.cells = Dataset(self.root, 'cells', Cell, dims=(2,))
        self.root.create(self.path)

    def test_write_and_read_record(self):
        particle = Particle(id=3, charge=-1)
        particle.position.z = 2.0
        self.particles[2] = particle

        self.assertEqual(self.particles[2].read(), particle)
        self.assertEqual(self.particles.read()[2], particle)
        self.assertEqual(self.particles[1].read(), Particle())

    def test_live_record(self):
        record = self.particles[1].record
        record.id = 11
        record.position.y = 0.5
        record.history[3] = 2.0

        stored = self.particles[1].read()
        self.assertEqual(stored.id, 11)
        self.assertEqual(stored.position.y, 0.5)
        self.assertEqual(list(stored.history), [0.0, 0.0, 0.0, 2.0])
        self.assertEqual(self.particles.read_array()['id'].tolist(), [0, 11, 0, 0])

    def test_live_record_reloads(self):
        self.particles[0].record.charge = 2
        self.particles[3] = Particle(charge=9)

        self.assertEqual(self.particles[3].record.charge, 9)
        self.assertEqual(self.particles[0].record.charge, 2)

    def test_record_needs_scalar_accessor(self):
        with self.assertRaises(SelectionError):
            self.particles.record

    def test_extend_once_and_write(self):
        self.assertTrue(self.particles.extend_once_and_write(Particle(id=5)))

        self.assertEqual(self.particles.dims(), (5,))
        self.assertEqual(self.particles[4].read().id, 5)

    def test_record_array_member(self):
        cell = self.cells[1].record
        cell.particles[3].charge = 5

        self.assertEqual(self.cells[1].read().particles[3].charge, 5)
        self.assertEqual(self.cells[1].read().spares[3].charge, 0)
        self.assertEqual(self.cells[0].read().particles[3].charge, 0)

    def test_set_all_records(self):
        self.particles.set_all(Particle(id=1))

        self.assertEqual(self.particles.read_array()['id'].tolist(), [1, 1, 1, 1])

    def test_node_interface(self):
        self.particles[0] = Particle(id=4)
        element = self.particles.index(0)

        self.assertIsNone(element.is_leaf())
        self.assertEqual(element.children_names(), ['id', 'charge', 'position', 'history'])
        self.assertEqual(element.bytes_below(), Particle().total_size())

        buffer = bytearray(4)
        self.assertTrue(self.particles.index(0).child_by_name('id').read_leaf_value(buffer))
        self.assertEqual(np.frombuffer(bytes(buffer), dtype=np.uint32)[0], 4)


class TestCopy(FileTestCase):
    def setUp(self):
        super().setUp()
        self.source = Dataset(self.root, 'source', PrimitiveKind.FLOAT64, dims=(2, 3))
        self.target = Dataset(self.root, 'target', PrimitiveKind.FLOAT64, dims=(1, 3), max_dims=(UNLIMITED, 3))
        self.small = Dataset(self.root, 'small', PrimitiveKind.FLOAT64, dims=(1, 2))
        self.counts = Dataset(self.root, 'counts', PrimitiveKind.INT32, dims=(1, 3), max_dims=(UNLIMITED, 3))
        self.particles = Dataset(self.root, 'particles', Particle, dims=(3,))
        self.vectors = Dataset(self.root, 'vectors', Vec3, dims=(1,), max_dims=(UNLIMITED,))
        self.labels = Dataset(self.root, 'labels', PrimitiveKind.INT32, dims=(1,), max_dims=(UNLIMITED,))
        self.root.create(self.path)
        self.source.write(np.arange(6).reshape(2, 3))

    def test_copy_from(self):
        self.assertTrue(self.target.copy_from(self.source))

        self.assertEqual(self.target.dims(), (2, 3))
        np.testing.assert_array_equal(self.target.read(), np.arange(6).reshape(2, 3))

    def test_copy_into_smaller(self):
        with self.assertRaises(ShapeMismatchError):
            self.small.copy_from(self.source)

        self.assertEqual(self.small.dims(), (1, 2))

    def test_copy_other_kind(self):
        self.counts.set_all(5)

        with self.assertRaises(SchemaMismatchError):
            self.counts.copy_from(self.source)

        self.assertEqual(self.counts.dims(), (1, 3))
        np.testing.assert_array_equal(self.counts.read(), [[5, 5, 5]])

    def test_copy_records_into_primitives(self):
        self.labels.write([7])

        with self.assertRaises(SchemaMismatchError):
            self.labels.copy_from(self.particles)

        self.assertEqual(self.labels.dims(), (1,))
        np.testing.assert_array_equal(self.labels.read(), [7])

    def test_copy_other_record(self):
        with self.assertRaises(SchemaMismatchError):
            self.vectors.copy_from(self.particles)

        self.assertEqual(self.vectors.dims(), (1,))

    def test_copy_records(self):
        copies = Dataset(None, 'copies', Particle, dims=(1,), max_dims=(UNLIMITED,))
        self.root.adopt(copies, create=True)
        self.particles[2] = Particle(id=4, charge=-1)

        self.assertTrue(copies.copy_from(self.particles))

        self.assertEqual(copies.dims(), (3,))
        self.assertEqual(copies[2].read().id, 4)
        self.assertEqual(copies[2].read().charge, -1)


class TestRelease(FileTestCase):
    def setUp(self):
        super().setUp()
        self.first = Dataset(self.root, 'first', PrimitiveKind.INT8, dims=(2,))
        self.second = Dataset(self.root, 'second', PrimitiveKind.INT8, dims=(2,))
        self.sub = Group(self.root, 'sub')
        self.third = Dataset(self.sub, 'third', PrimitiveKind.INT8, dims=(2,))
        self.root.create(self.path)

    def test_release_after_failure(self):
        with mock.patch.object(self.first, 'close_r', side_effect=RuntimeError('first')):
            with self.assertRaises(RuntimeError):
                self.root.close()

        self.assertFalse(self.second.bound)
        self.assertFalse(self.sub.bound)
        self.assertFalse(self.third.bound)
        self.assertFalse(self.root.is_open)

    def test_later_failures_are_logged(self):
        with mock.patch.object(self.first, 'close_r', side_effect=RuntimeError('first')), \
                mock.patch.object(self.sub, 'close_r', side_effect=RuntimeError('sub')):
            with self.assertLogs('h5bind', level='ERROR') as logs, self.assertRaisesRegex(RuntimeError, 'first'):
                self.root.close()

        self.assertIn('sub', logs.output[0])
        self.assertFalse(self.second.bound)
        self.assertFalse(self.root.is_open)


class TestInMemory(unittest.TestCase):
    def test_open_in_memory(self):
        root = File()
        values = Dataset(root, 'values', PrimitiveKind.FLOAT32, dims=(0,), max_dims=(UNLIMITED,))

        with root.open_in_memory('values'):
            for value in (1.5, 2.5, 3.5):
                values.extend_once_and_write(value)

            np.testing.assert_array_equal(values.read(), [1.5, 2.5, 3.5])

        self.assertFalse(root.is_open)
        self.assertFalse(values.bound)


if __name__ == '__main__':
    unittest.main()
