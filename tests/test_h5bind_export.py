"""
    Run tests for tree export and description

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
import unittest
from h5bind import (Attribute, Dataset, File, Group, TextDataset, PrimitiveKind, describe, dumps, format_tree, loads,
                    walk)
import numpy as np


class TestExport(unittest.TestCase):
    def setUp(self):
        self.root = File()
        self.version = Attribute(self.root, 'version', PrimitiveKind.INT32)
        self.grid = Dataset(self.root, 'grid', PrimitiveKind.INT32, dims=(2, 3))
        self.units = Attribute(self.grid, 'units', PrimitiveKind.TEXT)
        sub = Group(self.root, 'sub')
        self.note = TextDataset(sub, 'note')

        self.root.open_in_memory('export')
        self.version.write(4)
        self.grid.write(np.arange(6).reshape(2, 3))
        self.units.write('m')
        self.note.write('abc')

    def tearDown(self):
        self.root.close()

    def test_walk(self):
        paths = [path for path, _ in walk(self.root)]

        self.assertEqual(paths, ['/', '/version', '/grid', '/grid/units', '/sub', '/sub/note'])
        self.assertIs(dict(walk(self.root))['/sub/note'], self.note)

    def test_describe(self):
        description = describe(self.root)
        grid = description['children']['grid']

        self.assertIsNone(description['leaf'])
        self.assertEqual(description['bytes'], 0)
        self.assertEqual(grid['kind'], 'int32')
        self.assertEqual(grid['bytes'], 6 * 4)
        self.assertEqual(grid['size'], 2)
        self.assertEqual(grid['element']['size'], 3)
        self.assertEqual(grid['element']['element']['leaf'], 'int32')
        self.assertEqual(list(grid['children']), ['units'])
        self.assertEqual(description['children']['sub']['children']['note']['bytes'], 3)

    def test_describe_values(self):
        description = describe(self.root, values=True)

        self.assertEqual(description['children']['version']['value'], np.int32(4).tobytes())
        self.assertEqual(description['children']['sub']['children']['note']['value'], b'abc')
        self.assertNotIn('value', description['children']['grid'])

    def test_dumps(self):
        data = dumps(self.root, values=True)

        self.assertIsInstance(data, bytes)
        self.assertEqual(loads(data), describe(self.root, values=True))

    def test_describe_before_open(self):
        root = File()
        Dataset(root, 'grid', PrimitiveKind.INT32, rank=2)
        Dataset(root, 'scalar', PrimitiveKind.FLOAT64)

        description = describe(root)
        grid = description['children']['grid']

        self.assertEqual(grid['size'], 0)
        self.assertEqual(grid['bytes'], 0)
        self.assertNotIn('element', grid)
        self.assertEqual(description['children']['scalar']['bytes'], 8)
        self.assertIn('  grid (int32, size 0, 0 bytes)', format_tree(root).split('\n'))

    def test_format_tree(self):
        lines = format_tree(self.root).split('\n')

        self.assertEqual(lines[0], '/ (container, 0 bytes)')
        self.assertIn('  version (int32, 4 bytes)', lines)
        self.assertIn('  grid (int32, size 2, 24 bytes)', lines)
        self.assertIn('    units (text, 1 bytes)', lines)
        self.assertIn('    note (text, 3 bytes)', lines)


if __name__ == '__main__':
    unittest.main()
