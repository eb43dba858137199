"""
    Exception classes

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


# --- Top Level ---
class H5BindError(Exception):
    """
    Base class for errors specific to h5bind.
    """
    def suggest(self, *args):
        """
        Regenerate the exception with additional arguments.
        :param args: additional arguments
        :return: a new exception of the same type with the additional arguments
        """
        return self.__class__(*(self.args + args))


# --- Second Level ---
class SelectionError(H5BindError, IndexError):
    """
    Invalid index selection into a dataset.
    """


class SchemaMismatchError(H5BindError, TypeError):
    """
    Stored schema is unsupported or differs from the declared one.
    """


class ShapeMismatchError(H5BindError, ValueError):
    """
    Data does not fit the selected region.
    """


class DeclarationError(H5BindError):
    """
    Invalid tree declaration.
    """


# --- Third Level ---
class TextCountMismatchError(ShapeMismatchError):
    """
    Number of text values does not match the number of selected elements.
    """
