from edfcodec.edf import EdfDocument, decode_document, encode_document, read_edf
from edfcodec.edf_annotations import (
    EdfAnnotation,
    ScanState,
    find_annotation_channel,
    iter_annotations,
    parse_annotations,
)
from edfcodec.edf_header import (
    EDF_ANNOTATIONS_LABEL,
    HEADER_SIZE_PER_CHANNEL,
    HEADER_SIZE_RECORDING_INFO,
    AnonymizedDateError,
    ChannelHeader,
    EdfHeader,
    Patient,
    Recording,
    build_annotation_header,
    decode_header,
    encode_header,
)
from edfcodec.edf_signal import EdfSignal, decode_signal, encode_signal
from edfcodec.errors import (
    ArrayLengthMismatchError,
    EdfError,
    FieldOverflowError,
    FormatError,
    InvalidCalibrationError,
    InvalidIdentificationError,
    MalformedAnnotationError,
    NumericParseError,
    TrailingDataError,
    TruncatedInputError,
)

try:
    from importlib.metadata import version

    __version__ = version("edfcodec")
except Exception:  # pragma: no cover
    __version__ = "0.0.0"


__all__ = [
    "EDF_ANNOTATIONS_LABEL",
    "HEADER_SIZE_PER_CHANNEL",
    "HEADER_SIZE_RECORDING_INFO",
    "AnonymizedDateError",
    "ArrayLengthMismatchError",
    "ChannelHeader",
    "EdfAnnotation",
    "EdfDocument",
    "EdfError",
    "EdfHeader",
    "EdfSignal",
    "FieldOverflowError",
    "FormatError",
    "InvalidCalibrationError",
    "InvalidIdentificationError",
    "MalformedAnnotationError",
    "NumericParseError",
    "Patient",
    "Recording",
    "ScanState",
    "TrailingDataError",
    "TruncatedInputError",
    "build_annotation_header",
    "decode_document",
    "decode_header",
    "decode_signal",
    "encode_document",
    "encode_header",
    "encode_signal",
    "find_annotation_channel",
    "iter_annotations",
    "parse_annotations",
    "read_edf",
]
