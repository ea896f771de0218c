"""Exceptions raised while reading or writing serialized mesh archives."""


class SerializedError(ValueError):
    """Base class for all serialized-format errors."""


class BadMagicError(SerializedError):
    """The sub-mesh header does not start with the format identifier."""


class UnsupportedVersionError(SerializedError):
    """The sub-mesh header carries a version this reader does not know."""


class ShapeIndexOutOfRangeError(SerializedError):
    """The requested sub-mesh is not listed in the archive dictionary."""


class TruncatedError(SerializedError):
    """The stream ended before an expected field."""


class DecompressionError(SerializedError):
    """The compressed region of a sub-mesh is malformed."""


class UnsupportedOperationError(SerializedError):
    """The operation is not available on this kind of stream."""


class InvalidIndexError(SerializedError):
    """A face refers to a vertex past the end of the vertex buffer."""
