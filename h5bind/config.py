"""
    Configuration file

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

"""
    Extent value marking an unlimited dimension in max_dims.
"""
UNLIMITED = None

"""
    Growth step in bytes of in-memory containers.
"""
DEFAULT_MEMORY_INCREMENT = 1024 * 1024

"""
    Keep creation order of groups, datasets and attributes so that children enumerate in declaration order.
"""
TRACK_ORDER = True

"""
    Encoding of variable length text.
"""
TEXT_ENCODING = 'utf-8'

"""
    Filter used when a deflate level is set on a dataset.
"""
COMPRESSION = 'gzip'

"""
    Environment variable holding the log level.
"""
LOG_LEVEL_ENV = 'H5BIND_LOG_LEVEL'

"""
    Log level used when the environment variable is not set.
"""
DEFAULT_LOG_LEVEL = 'warning'

"""
    Separator of node paths.
"""
PATH_SEPARATOR = '/'
