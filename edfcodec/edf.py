from __future__ import annotations

import dataclasses
import io
import warnings
from collections.abc import Iterable
from functools import singledispatch
from pathlib import Path
from typing import Any, BinaryIO

import numpy as np
import numpy.typing as npt

from edfcodec.edf_annotations import (
    AnnotationChannel,
    EdfAnnotation,
    split_annotation_channel,
)
from edfcodec.edf_header import (
    EdfHeader,
    decode_header,
    encode_header,
    header_size,
)
from edfcodec.edf_signal import EdfSignal, decode_signal, encode_signal, signal_size
from edfcodec.errors import (
    ArrayLengthMismatchError,
    FormatError,
    TrailingDataError,
)


class EdfDocument:
    """Python representation of a decoded EDF/EDF+ file.

    A document owns exactly one :class:`EdfHeader` and one :class:`EdfSignal`
    describing the same channels, plus the annotations of an EDF+ file. The
    annotation channel of a decoded EDF+ file is not part of header and signal, its
    raw data is kept to write it back unchanged. Annotations are never re-encoded:
    documents created directly are written without an annotation channel.

    Parameters
    ----------
    header : EdfHeader
        The header describing the ordinary channels.
    signal : EdfSignal
        The samples of the channels described by `header`.
    annotations : Iterable[EdfAnnotation], default: ()
        Annotations associated with the recording.

    Raises
    ------
    ArrayLengthMismatchError
        If header and signal disagree on the number of channels or samples.
    """

    _annotation_channel: AnnotationChannel | None

    def __init__(
        self,
        header: EdfHeader,
        signal: EdfSignal,
        annotations: Iterable[EdfAnnotation] = (),
    ) -> None:
        header.validate_channel_arrays()
        if signal.num_channels != header.num_channels:
            raise ArrayLengthMismatchError(
                f"Signal has {signal.num_channels} channels, header has {header.num_channels}"
            )
        for label, digital, samples_per_record in zip(
            header.labels, signal.digital, header.samples_per_record
        ):
            if len(digital) != header.num_records * samples_per_record:
                raise ArrayLengthMismatchError(
                    f"Channel {label.strip()!r} has {len(digital)} samples, header requires {header.num_records * samples_per_record}"
                )
        self._header = header
        self._signal = signal
        self._annotations = tuple(annotations)
        self._annotation_channel = None

    def __repr__(self) -> str:
        channels_text = f"{self.num_channels} channel"
        if self.num_channels != 1:
            channels_text += "s"
        annotations_text = f"{len(self.annotations)} annotation"
        if len(self.annotations) != 1:
            annotations_text += "s"
        return f"<EdfDocument {channels_text} {annotations_text}>"

    @property
    def header(self) -> EdfHeader:
        """The header, without the annotation channel of an EDF+ file."""
        return self._header

    @property
    def signal(self) -> EdfSignal:
        """The signal, without the annotation channel of an EDF+ file."""
        return self._signal

    @property
    def annotations(self) -> tuple[EdfAnnotation, ...]:
        """Annotations in the order in which they appear in the file."""
        return self._annotations

    @property
    def num_channels(self) -> int:
        """Number of ordinary channels (excluding the annotation channel)."""
        return self._header.num_channels

    @property
    def labels(self) -> tuple[str, ...]:
        """
        The (trimmed) labels of all ordinary channels.

        Returns
        -------
        tuple[str, ...]
            The labels, in order of the channels.
        """
        return tuple(label.strip() for label in self._header.labels)

    def get_physical(self, label: str) -> npt.NDArray[np.float64]:
        """
        Get the physical values of a channel by its label.

        The label has to be unique - a ValueError is raised if it is ambiguous or does
        not exist.

        Parameters
        ----------
        label : str
            A channel label, see :attr:`labels`.
        """
        count = self.labels.count(label)
        if count == 0:
            raise ValueError(
                f"No channel with label {label!r}, possible options: {self.labels}"
            )
        if count > 1:
            indices = [i for i, l in enumerate(self.labels) if l == label]
            raise ValueError(f"Ambiguous label {label!r} identifies indices {indices}")
        return self._signal.physical[self.labels.index(label)]

    def to_bytes(self) -> bytes:
        """
        Convert the document to a `bytes` object.

        Returns
        -------
        bytes
            The binary representation of the document (i.e., what a file created with
            :meth:`EdfDocument.write` would contain).
        """
        return encode_document(self)

    def write(self, target: Path | str | BinaryIO) -> None:
        """
        Write the document to a file or file-like object.

        Parameters
        ----------
        target : Path | str | BinaryIO
            The file location (path object or string) or file-like object to write to.
        """
        raw = self.to_bytes()
        if isinstance(target, str):
            target = Path(target)
        if isinstance(target, Path):
            with target.expanduser().open("wb") as file:
                file.write(raw)
        else:
            target.write(raw)


def _with_inferred_num_records(header: EdfHeader, available_bytes: int) -> EdfHeader:
    datarecord_size = signal_size(dataclasses.replace(header, num_records=1))
    if datarecord_size == 0:
        raise FormatError("Can not infer number of data records without samples")
    num_records, remainder = divmod(available_bytes, datarecord_size)
    if remainder:
        raise TrailingDataError(
            f"Incomplete data record at the end of the data: {remainder} bytes remain after {num_records} records"
        )
    warnings.warn(
        f"EDF header indicates -1 data records, data contains {num_records} records. Updating header."
    )
    return dataclasses.replace(header, num_records=num_records)


def decode_document(
    data: bytes | bytearray | memoryview,
    *,
    header_encoding: str = "ascii",
) -> EdfDocument:
    """
    Decode a complete EDF/EDF+ file.

    Header, data records and, for EDF+ files, the annotation channel are decoded in
    this order. The annotation channel is removed from header and signal.

    Parameters
    ----------
    data : bytes | bytearray | memoryview
        The complete file content.
    header_encoding : str, default: "ascii"
        The character encoding to use when decoding header text fields.

    Raises
    ------
    TrailingDataError
        If bytes remain after the number of data records given in the header.
    """
    header, consumed = decode_header(data, header_encoding=header_encoding)
    body = memoryview(data)[consumed:]
    if header.num_records == -1:
        header = _with_inferred_num_records(header, len(body))
    signal = decode_signal(body, header)
    remaining = len(body) - signal_size(header)
    if remaining:
        raise TrailingDataError(
            f"{remaining} bytes remain after {header.num_records} data records"
        )
    header, signal, annotations, annotation_channel = split_annotation_channel(
        header, signal
    )
    document = EdfDocument(header, signal, annotations)
    document._annotation_channel = annotation_channel
    return document


def encode_document(document: EdfDocument) -> bytes:
    """
    Encode a document into the bytes of an EDF/EDF+ file.

    The annotation channel of a decoded EDF+ file is written back at its original
    position. `bytes_in_header` is recomputed from the number of channels.
    """
    header = document.header
    signal = document.signal
    annotation_channel = document._annotation_channel
    if annotation_channel is not None:
        header = header.with_channel(
            annotation_channel.index, annotation_channel.header
        )
        signal = signal.with_channel(
            annotation_channel.index,
            annotation_channel.digital,
            annotation_channel.units_in_digit,
        )
    header = dataclasses.replace(
        header, bytes_in_header=header_size(header.num_channels)
    )
    return encode_header(header) + encode_signal(signal, header)


@singledispatch
def _read_edf(edf_file: Any, *, header_encoding: str) -> EdfDocument:
    return decode_document(edf_file.read(), header_encoding=header_encoding)


@_read_edf.register
def _(edf_file: Path, *, header_encoding: str) -> EdfDocument:
    edf_file = edf_file.expanduser()
    with edf_file.open("rb") as file:
        return _read_edf(file, header_encoding=header_encoding)


@_read_edf.register
def _(edf_file: str, *, header_encoding: str) -> EdfDocument:
    return _read_edf(Path(edf_file), header_encoding=header_encoding)


@_read_edf.register
def _(edf_file: bytes, *, header_encoding: str) -> EdfDocument:
    return decode_document(edf_file, header_encoding=header_encoding)


# Pyright loses information about parameters for singledispatch functions. Hiding it
# behind this normal function makes things work again.
def read_edf(
    edf_file: Path | str | BinaryIO | io.BytesIO | bytes,
    *,
    header_encoding: str = "ascii",
) -> EdfDocument:
    """
    Read an EDF/EDF+ file into an :class:`EdfDocument` object.

    The file is read completely before decoding starts. If a file-like object is
    passed, its stream position is moved to EOF.

    Parameters
    ----------
    edf_file : Path | str | BinaryIO | io.BytesIO | bytes
        The file location (path object or string), file-like object, or file content
        to read from.
    header_encoding : str, default: "ascii"
        The character encoding to use when reading header fields.

    Returns
    -------
    EdfDocument
        The resulting :class:`EdfDocument` object.
    """
    return _read_edf(edf_file, header_encoding=header_encoding)
