"""Exceptions raised while decoding or encoding EDF/EDF+ data."""


class EdfError(Exception):
    """Base class for all errors raised by edfcodec."""


class FormatError(EdfError, ValueError):
    """The data does not follow the EDF/EDF+ file format."""


class TruncatedInputError(FormatError):
    """Fewer bytes are available than a header field or data record requires."""


class InvalidIdentificationError(FormatError):
    """The identification code (version field) is not `"0"`."""


class NumericParseError(FormatError):
    """A fixed-width header field can not be parsed as the expected number."""


class ArrayLengthMismatchError(FormatError):
    """A per-channel array does not have exactly `num_channels` elements."""


class TrailingDataError(FormatError):
    """Unconsumed bytes remain after the expected number of data records."""


class MalformedAnnotationError(FormatError):
    """A TAL contains an onset or duration that is not a valid number."""


class InvalidCalibrationError(FormatError):
    """Digital minimum equals digital maximum, so no scale factor exists."""


class FieldOverflowError(EdfError, OverflowError):
    """A value's textual form exceeds the width of its header field."""
