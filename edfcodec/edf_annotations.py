from __future__ import annotations

import enum
import math
from collections.abc import Iterator
from dataclasses import dataclass
from typing import NamedTuple

import numpy as np
import numpy.typing as npt

from edfcodec.edf_header import EDF_ANNOTATIONS_LABEL, ChannelHeader, EdfHeader
from edfcodec.edf_signal import EdfSignal
from edfcodec.errors import MalformedAnnotationError

_DURATION_SEPARATOR = 0x15
_TEXT_SEPARATOR = 0x14
_TERMINATOR = 0x00


class EdfAnnotation(NamedTuple):
    """A single time-stamped annotation list (TAL) of an EDF+ file.

    Parameters
    ----------
    onset : float
        The annotation onset in seconds from recording start, may be negative.
    duration : float, default: 0.0
        The annotation duration in seconds, `0.0` if the TAL has no duration.
    texts : tuple[str, ...], default: ()
        The non-empty annotation texts sharing onset and duration.
    """

    onset: float
    duration: float = 0.0
    texts: tuple[str, ...] = ()


class ScanState(enum.Enum):
    """States of the byte scanner in :func:`iter_annotations`."""

    AWAITING_ONSET = enum.auto()
    """Between TALs, the next non-zero byte starts an onset."""
    AWAITING_DURATION = enum.auto()
    """Inside the onset, waiting for `0x15` (duration) or `0x14` (texts)."""
    AWAITING_ANNOTATION_TEXT = enum.auto()
    """Inside the duration, waiting for the `0x14` that starts the texts."""
    AWAITING_END = enum.auto()
    """Inside the texts, waiting for the terminating `0x14 0x00`."""


@dataclass
class _TalSpan:
    onset_start: int
    duration_separator: int | None = None
    text_separator: int = -1


def _parse_seconds(raw: bytes, name: str) -> float:
    try:
        if b"_" in raw:
            raise ValueError(raw)
        value = float(raw.decode("ascii"))
    except (UnicodeDecodeError, ValueError):
        raise MalformedAnnotationError(
            f"Invalid annotation {name}: {raw!r}"
        ) from None
    if not math.isfinite(value):
        raise MalformedAnnotationError(f"Invalid annotation {name}: {raw!r}")
    return value


def _annotation_from_span(raw: bytes, span: _TalSpan, end: int) -> EdfAnnotation:
    if span.duration_separator is None:
        onset_raw = raw[span.onset_start : span.text_separator]
        duration = 0.0
    else:
        onset_raw = raw[span.onset_start : span.duration_separator]
        duration_raw = raw[span.duration_separator + 1 : span.text_separator]
        duration = _parse_seconds(duration_raw, "duration") if duration_raw else 0.0
        if duration < 0:
            raise MalformedAnnotationError(
                f"Annotation duration must not be negative, is {duration}"
            )
    onset = _parse_seconds(onset_raw, "onset")
    texts = tuple(
        text
        for text in (
            part.decode("utf-8", errors="replace")
            for part in raw[span.text_separator + 1 : end].split(b"\x14")
        )
        if text.strip()
    )
    return EdfAnnotation(onset, duration, texts)


def iter_annotations(raw: bytes) -> Iterator[EdfAnnotation]:
    """
    Parse the TALs contained in the raw bytes of an annotation channel.

    Annotations are yielded in the order in which they appear in `raw`, zero bytes
    between TALs (e.g., data record padding) are skipped.

    Parameters
    ----------
    raw : bytes
        The annotation channel's samples reinterpreted as little-endian bytes.

    Raises
    ------
    MalformedAnnotationError
        If onset or duration of a TAL is not a valid number.
    """
    state = ScanState.AWAITING_ONSET
    span = _TalSpan(0)
    # the terminator check peeks one byte ahead
    for i in range(len(raw) - 1):
        byte = raw[i]
        if state is ScanState.AWAITING_ONSET:
            if byte == _TERMINATOR:
                continue
            span = _TalSpan(onset_start=i)
            state = ScanState.AWAITING_DURATION
        if state is ScanState.AWAITING_DURATION:
            if byte == _DURATION_SEPARATOR:
                span.duration_separator = i
                state = ScanState.AWAITING_ANNOTATION_TEXT
            elif byte == _TEXT_SEPARATOR:
                span.text_separator = i
                state = ScanState.AWAITING_END
        elif state is ScanState.AWAITING_ANNOTATION_TEXT:
            if byte == _TEXT_SEPARATOR:
                span.text_separator = i
                state = ScanState.AWAITING_END
        elif state is ScanState.AWAITING_END:
            if byte == _TEXT_SEPARATOR and raw[i + 1] == _TERMINATOR:
                yield _annotation_from_span(raw, span, end=i)
                state = ScanState.AWAITING_ONSET


def parse_annotations(raw: bytes) -> list[EdfAnnotation]:
    """Parse all TALs in `raw`, see :func:`iter_annotations`."""
    return list(iter_annotations(raw))


def find_annotation_channel(header: EdfHeader) -> int | None:
    """Index of the first channel labeled `EDF Annotations`, `None` if there is none."""
    for i, label in enumerate(header.labels):
        if label.strip() == EDF_ANNOTATIONS_LABEL:
            return i
    return None


def channel_bytes(signal: EdfSignal, index: int) -> bytes:
    """The digital samples of a channel reinterpreted as little-endian bytes."""
    return signal.digital[index].astype("<i2").tobytes()


@dataclass(frozen=True)
class AnnotationChannel:
    """An annotation channel removed from a document, kept to write it back."""

    index: int
    header: ChannelHeader
    digital: npt.NDArray[np.int16]
    units_in_digit: float


def split_annotation_channel(
    header: EdfHeader, signal: EdfSignal
) -> tuple[EdfHeader, EdfSignal, tuple[EdfAnnotation, ...], AnnotationChannel | None]:
    """
    Extract the annotations of an EDF+ file and remove the annotation channel.

    For plain EDF files or if no channel is labeled `EDF Annotations`, header and
    signal are returned unchanged without annotations.

    Returns
    -------
    tuple
        The header and signal without the annotation channel, the parsed
        annotations, and the removed channel (or `None`).
    """
    index = find_annotation_channel(header)
    if not header.is_edf_plus or index is None:
        return header, signal, (), None
    annotations = tuple(iter_annotations(channel_bytes(signal, index)))
    removed = AnnotationChannel(
        index=index,
        header=header.channel(index),
        digital=signal.digital[index],
        units_in_digit=float(signal.units_in_digit[index]),
    )
    return (
        header.without_channel(index),
        signal.without_channel(index),
        annotations,
        removed,
    )
