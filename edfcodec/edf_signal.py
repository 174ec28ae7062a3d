from __future__ import annotations

import math
import sys
import warnings
from collections.abc import Sequence

import numpy as np
import numpy.typing as npt

from edfcodec._utils import insert_index, remove_index
from edfcodec.edf_header import EdfHeader
from edfcodec.errors import (
    ArrayLengthMismatchError,
    FormatError,
    InvalidCalibrationError,
    TruncatedInputError,
)

if sys.version_info < (3, 11):  # pragma: no cover
    from typing_extensions import Self
else:  # pragma: no cover
    from typing import Self


_DIGITAL_DTYPE = np.dtype("<i2")
_DIGITAL_RANGE = (-32768, 32767)
_BYTES_PER_SAMPLE = 2


def _calculate_gain_and_offset(
    digital_min: int,
    digital_max: int,
    physical_min: float,
    physical_max: float,
) -> tuple[float, float]:
    gain = (physical_max - physical_min) / (digital_max - digital_min)
    offset = physical_max / gain - digital_max
    return gain, offset


def _calibration(header: EdfHeader) -> tuple[list[float], list[float]]:
    units_in_digit = []
    offsets = []
    for i in range(header.num_channels):
        channel = header.channel(i)
        if channel.digital_max == channel.digital_min:
            raise InvalidCalibrationError(
                f"Digital minimum equals digital maximum ({channel.digital_min}) for channel {i} ({channel.label!r})."
            )
        try:
            gain, offset = _calculate_gain_and_offset(
                channel.digital_min,
                channel.digital_max,
                channel.physical_min,
                channel.physical_max,
            )
        except ZeroDivisionError:
            warnings.warn(
                f"Physical minimum equals physical maximum ({channel.physical_min}) for {channel.label!r}, physical values are all zero."
            )
            gain, offset = 0.0, 0.0
        if not (math.isfinite(gain) and math.isfinite(offset)):
            raise InvalidCalibrationError(
                f"Physical range [{channel.physical_min}, {channel.physical_max}] of channel {i} ({channel.label!r}) gives a non-finite scale factor {gain}."
            )
        units_in_digit.append(gain)
        offsets.append(offset)
    return units_in_digit, offsets


def _as_digital(values: npt.ArrayLike) -> npt.NDArray[np.int16]:
    array = np.asarray(values)
    if array.size == 0:
        array = array.astype(np.int16)
    if not np.issubdtype(array.dtype, np.integer):
        raise ValueError(f"Digital values must be integers, got dtype {array.dtype}")
    if array.dtype != np.int16 and (
        array.min() < _DIGITAL_RANGE[0] or array.max() > _DIGITAL_RANGE[1]
    ):
        raise ValueError(
            f"Digital values [{array.min()}, {array.max()}] exceed 16-bit range {_DIGITAL_RANGE}"
        )
    digital = np.array(array, dtype=np.int16).reshape(-1)
    digital.setflags(write=False)
    return digital


def _readonly(array: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
    array.setflags(write=False)
    return array


class EdfSignal:
    """The data records of an EDF file, de-interleaved into one array per channel.

    Samples are stored as the 16-bit digital values found in the file. Physical
    values are computed once on construction as `digital * units_in_digit`. All
    arrays are read-only.

    Parameters
    ----------
    digital : Sequence[npt.ArrayLike]
        One integer array per channel, containing all samples of that channel.
    units_in_digit : Sequence[float]
        The scale factor of each channel, i.e., the physical value of one digit.
    offsets : Sequence[float] | None, default: None
        Digital offsets of each channel used by :meth:`calibrated`. If `None`, no
        offset is applied.
    """

    def __init__(
        self,
        digital: Sequence[npt.ArrayLike],
        units_in_digit: Sequence[float],
        offsets: Sequence[float] | None = None,
    ) -> None:
        if offsets is None:
            offsets = [0.0] * len(units_in_digit)
        if not len(digital) == len(units_in_digit) == len(offsets):
            raise ArrayLengthMismatchError(
                f"Got {len(digital)} digital arrays, {len(units_in_digit)} scale factors and {len(offsets)} offsets."
            )
        self._digital = tuple(_as_digital(d) for d in digital)
        self._units_in_digit = _readonly(np.array(units_in_digit, dtype=np.float64))
        self._offsets = _readonly(np.array(offsets, dtype=np.float64))
        self._physical = tuple(
            _readonly(d * u) for d, u in zip(self._digital, self._units_in_digit)
        )

    @classmethod
    def from_header(cls, digital: Sequence[npt.ArrayLike], header: EdfHeader) -> Self:
        """Create a signal, taking the calibration of each channel from `header`.

        Raises
        ------
        InvalidCalibrationError
            If digital minimum and maximum of a channel are equal or the physical
            range gives a non-finite scale factor.
        """
        units_in_digit, offsets = _calibration(header)
        return cls(digital, units_in_digit, offsets)

    def __repr__(self) -> str:
        return f"<EdfSignal {self.num_channels} channels>"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, EdfSignal):
            return NotImplemented
        return (
            self.num_channels == other.num_channels
            and np.array_equal(self._units_in_digit, other._units_in_digit)
            and all(
                np.array_equal(a, b) for a, b in zip(self._digital, other._digital)
            )
        )

    __hash__ = None  # type: ignore[assignment]

    @property
    def num_channels(self) -> int:
        return len(self._digital)

    @property
    def digital(self) -> tuple[npt.NDArray[np.int16], ...]:
        """Digital (uncalibrated) samples of each channel."""
        return self._digital

    @property
    def units_in_digit(self) -> npt.NDArray[np.float64]:
        """Scale factor of each channel: `(phys_max - phys_min) / (dig_max - dig_min)`."""
        return self._units_in_digit

    @property
    def physical(self) -> tuple[npt.NDArray[np.float64], ...]:
        """Samples of each channel in physical units, `digital * units_in_digit`."""
        return self._physical

    def calibrated(self, index: int) -> npt.NDArray[np.float64]:
        """
        Physical values of a channel including the digital offset.

        Unlike :attr:`physical`, this maps `digital_min` to `physical_min` and
        `digital_max` to `physical_max` exactly.

        Parameters
        ----------
        index : int
            The channel index.
        """
        return _readonly(
            (self._digital[index] + self._offsets[index]) * self._units_in_digit[index]
        )

    def without_channel(self, index: int) -> Self:
        """Return a new signal with the channel at `index` removed."""
        return type(self)(
            remove_index(self._digital, index),
            remove_index(tuple(self._units_in_digit), index),
            remove_index(tuple(self._offsets), index),
        )

    def with_channel(
        self,
        index: int,
        digital: npt.ArrayLike,
        units_in_digit: float,
        offset: float = 0.0,
    ) -> Self:
        """Return a new signal with a channel inserted at `index`."""
        return type(self)(
            insert_index(self._digital, index, digital),
            insert_index(tuple(self._units_in_digit), index, units_in_digit),
            insert_index(tuple(self._offsets), index, offset),
        )


def _record_layout(header: EdfHeader) -> tuple[list[int], npt.NDArray[np.int64]]:
    header.validate_channel_arrays()
    lens = list(header.samples_per_record)
    if any(n < 0 for n in lens):
        raise FormatError(f"Number of samples per record must not be negative: {lens}")
    if header.num_records < 0:
        raise FormatError(
            f"Number of data records must not be negative, got {header.num_records}"
        )
    if header.num_records and not sum(lens):
        raise FormatError(
            f"Data records must contain samples, samples per record are {lens}"
        )
    ends = np.cumsum(lens, dtype=np.int64)
    return lens, ends


def signal_size(header: EdfHeader) -> int:
    """Number of bytes occupied by all data records described by `header`."""
    return header.num_records * sum(header.samples_per_record) * _BYTES_PER_SAMPLE


def decode_signal(data: bytes | bytearray | memoryview, header: EdfHeader) -> EdfSignal:
    """
    Decode the data records described by `header`.

    Parameters
    ----------
    data : bytes | bytearray | memoryview
        Buffer starting with the first data record. Bytes following the last data
        record are not read.
    header : EdfHeader
        The header providing number of data records and samples per record.

    Returns
    -------
    EdfSignal
        The de-interleaved samples of all channels.
    """
    lens, ends = _record_layout(header)
    datarecord_len = sum(lens)
    expected_size = signal_size(header)
    if len(data) < expected_size:
        raise TruncatedInputError(
            f"EDF header indicates {header.num_records} data records of {datarecord_len * _BYTES_PER_SAMPLE} bytes ({expected_size} bytes), but only {len(data)} bytes are available."
        )
    if expected_size == 0:
        return EdfSignal.from_header([np.zeros(0, np.int16) for _ in lens], header)
    datarecords = np.frombuffer(
        data, dtype=_DIGITAL_DTYPE, count=header.num_records * datarecord_len
    ).reshape((header.num_records, datarecord_len))
    starts = ends - lens
    digital = [
        datarecords[:, start:end].astype(np.int16).ravel()
        for start, end in zip(starts, ends)
    ]
    return EdfSignal.from_header(digital, header)


def encode_signal(signal: EdfSignal, header: EdfHeader) -> bytes:
    """
    Interleave the samples of all channels into data records.

    Returns
    -------
    bytes
        `num_records * sum(samples_per_record) * 2` bytes of little-endian 16-bit
        samples.

    Raises
    ------
    ArrayLengthMismatchError
        If the number of channels or the length of a channel does not match the
        header.
    """
    lens, ends = _record_layout(header)
    if signal.num_channels != header.num_channels:
        raise ArrayLengthMismatchError(
            f"Signal has {signal.num_channels} channels, header has {header.num_channels}"
        )
    starts = ends - lens
    data_record = np.empty((header.num_records, sum(lens)), dtype=_DIGITAL_DTYPE)
    for i, (digital, start, end) in enumerate(zip(signal.digital, starts, ends)):
        expected_length = header.num_records * (end - start)
        if len(digital) != expected_length:
            raise ArrayLengthMismatchError(
                f"Channel {i} has {len(digital)} samples, expected {header.num_records} records * {end - start} samples = {expected_length}"
            )
        data_record[:, start:end] = digital.reshape((header.num_records, end - start))
    return data_record.tobytes()
