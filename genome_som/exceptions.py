"""
Exception types raised by the genome SOM package
"""


class GenomeSOMError(Exception):
    """Base class for all package errors"""


class InvalidDimensions(GenomeSOMError, ValueError):
    """A lattice size or node length is not positive"""


class DimensionMismatch(GenomeSOMError, ValueError):
    """Node data does not fit the declared lattice shape"""


class DimensionalityMismatch(GenomeSOMError, ValueError):
    """A lattice coordinate has the wrong number of components"""


class MalformedInput(GenomeSOMError, ValueError):
    """A data file could not be parsed"""

    def __init__(self, message: str, path: str = None):
        self.path = path
        if path is not None:
            message = f"{path}: {message}"
        super().__init__(message)
