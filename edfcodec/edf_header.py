from __future__ import annotations

import dataclasses
import datetime
import sys
import warnings
from collections.abc import Sequence
from typing import Literal, NamedTuple, Union

from edfcodec._header_field import (
    decode_date,
    decode_float,
    decode_int,
    decode_str,
    decode_time,
    encode_date,
    encode_float,
    encode_int,
    encode_str,
    encode_time,
)
from edfcodec._utils import (
    decode_edfplus_date,
    encode_edfplus_date,
    insert_index,
    remove_index,
    repr_from_init,
    validate_subfields,
)
from edfcodec.errors import (
    ArrayLengthMismatchError,
    FieldOverflowError,
    InvalidIdentificationError,
    NumericParseError,
    TruncatedInputError,
)

if sys.version_info < (3, 11):  # pragma: no cover
    from typing_extensions import Self
else:  # pragma: no cover
    from typing import Self


_RECORDING_FIELDS = (
    ("id_code", 8),
    ("subject_id", 80),
    ("recording_id", 80),
    ("start_date", 8),
    ("start_time", 8),
    ("bytes_in_header", 8),
    ("format_version", 44),
    ("num_records", 8),
    ("record_duration", 8),
    ("num_channels", 4),
)
_CHANNEL_FIELDS = (
    ("labels", 16),
    ("transducer_types", 80),
    ("physical_dimensions", 8),
    ("physical_mins", 8),
    ("physical_maxs", 8),
    ("digital_mins", 8),
    ("digital_maxs", 8),
    ("prefilterings", 80),
    ("samples_per_record", 8),
    ("reserveds", 32),
)
_INT_FIELDS = frozenset(
    {
        "bytes_in_header",
        "num_records",
        "num_channels",
        "digital_mins",
        "digital_maxs",
        "samples_per_record",
    }
)
_FLOAT_FIELDS = frozenset({"record_duration", "physical_mins", "physical_maxs"})

HEADER_SIZE_RECORDING_INFO = sum(length for _, length in _RECORDING_FIELDS)
HEADER_SIZE_PER_CHANNEL = sum(length for _, length in _CHANNEL_FIELDS)

EDF_ANNOTATIONS_LABEL = "EDF Annotations"

_EDF_DEFAULT_RANGE = (-32768, 32767)

_FieldValue = Union[str, int, float]

_PADDING = " \x00"


def _trim(value: str) -> str:
    return value.strip(_PADDING)


def header_size(num_channels: int) -> int:
    """Number of header bytes required for `num_channels` channels."""
    return HEADER_SIZE_RECORDING_INFO + num_channels * HEADER_SIZE_PER_CHANNEL


class AnonymizedDateError(ValueError):
    """Raised when trying to access an anonymized startdate or birthdate."""


def _date_or_x(date: datetime.date | None) -> str:
    return "X" if date is None else encode_edfplus_date(date)


class _IdentificationField:
    """Space-separated EDF+ subfields of an 80 byte identification header field.

    Missing subfields read as `"X"`, subfields beyond the standard ones are
    available as :attr:`additional`.
    """

    _leading: tuple[str, ...] = ()
    _num_standard_subfields: int
    _field: str

    def _set_subfields(
        self, subfields: dict[str, str], additional: Sequence[str]
    ) -> None:
        subfields.update((f"additional[{i}]", v) for i, v in enumerate(additional))
        validate_subfields(subfields)
        field = " ".join((*self._leading, *subfields.values()))
        encode_str(field, 80)
        self._field = field

    def __repr__(self) -> str:
        try:
            return repr_from_init(self)
        except ValueError:
            return repr(self._field)

    @classmethod
    def _from_str(cls, string: str) -> Self:
        field = string.rstrip(_PADDING)
        encode_str(field, 80)
        obj = object.__new__(cls)
        obj._field = field
        return obj

    def _to_str(self) -> str:
        return self._field

    def _date_subfield(self, idx: int, description: str) -> datetime.date:
        value = self.get_subfield(idx)
        if value == "X":
            raise AnonymizedDateError(f"{description} is not available ('X').")
        return decode_edfplus_date(value)

    @property
    def additional(self) -> tuple[str, ...]:
        """Optional additional subfields."""
        return tuple(self._field.split()[self._num_standard_subfields :])

    def get_subfield(self, idx: int) -> str:
        """
        Access a subfield of the identification field by index.

        Parameters
        ----------
        idx : int
            The index of the subfield to access. For the recording identification,
            index 0 is the literal `Startdate`.

        Returns
        -------
        str
            The subfield at the specified index, `"X"` if the field has fewer
            subfields.
        """
        subfields = self._field.split()
        return subfields[idx] if idx < len(subfields) else "X"


class Patient(_IdentificationField):
    """
    The EDF+ local patient identification (`subject_id` header field).

    Parameters
    ----------
    code : str, default: `"X"`
        The code by which the patient is known in the hospital administration.
    sex : `{"X", "F", "M"}`, default: `"X"`
        Sex, `F` for female, `M` for male, `X` if anonymized.
    birthdate : datetime.date | None, default: None
        Patient birthdate, stored as `X` if `None`.
    name : str, default: `"X"`
        The patient's name.
    additional : Sequence[str], default: `()`
        Further subfields, stored separated by spaces.
    """

    _num_standard_subfields = 4

    def __init__(
        self,
        *,
        code: str = "X",
        sex: Literal["F", "M", "X"] = "X",
        birthdate: datetime.date | None = None,
        name: str = "X",
        additional: Sequence[str] = (),
    ) -> None:
        if sex not in ("F", "M", "X"):
            raise ValueError(f"Invalid sex: {sex}, must be one of F, M, X")
        self._set_subfields(
            {
                "code": code,
                "sex": sex,
                "birthdate": _date_or_x(birthdate),
                "name": name,
            },
            additional,
        )

    @property
    def code(self) -> str:
        return self.get_subfield(0)

    @property
    def sex(self) -> str:
        return self.get_subfield(1)

    @property
    def birthdate(self) -> datetime.date:
        return self._date_subfield(2, "Patient birthdate")

    @property
    def name(self) -> str:
        return self.get_subfield(3)


class Recording(_IdentificationField):
    """
    The EDF+ local recording identification (`recording_id` header field).

    Parameters
    ----------
    startdate : datetime.date | None, default: None
        The recording startdate, stored as `X` if `None`.
    hospital_administration_code : str, default: `"X"`
        The hospital administration code of the investigation.
    investigator_technician_code : str, default: `"X"`
        A code specifying the responsible investigator or technician.
    equipment_code : str, default: `"X"`
        A code specifying the used equipment.
    additional : Sequence[str], default: `()`
        Further subfields, stored separated by spaces.
    """

    _leading = ("Startdate",)
    _num_standard_subfields = 5

    def __init__(
        self,
        *,
        startdate: datetime.date | None = None,
        hospital_administration_code: str = "X",
        investigator_technician_code: str = "X",
        equipment_code: str = "X",
        additional: Sequence[str] = (),
    ) -> None:
        self._set_subfields(
            {
                "startdate": _date_or_x(startdate),
                "hospital_administration_code": hospital_administration_code,
                "investigator_technician_code": investigator_technician_code,
                "equipment_code": equipment_code,
            },
            additional,
        )

    @property
    def startdate(self) -> datetime.date:
        if self.get_subfield(0) != "Startdate":
            raise ValueError(
                f"Recording identification field {self._field!r} does not follow EDF+ standard."
            )
        return self._date_subfield(1, "Recording startdate")

    @property
    def hospital_administration_code(self) -> str:
        return self.get_subfield(2)

    @property
    def investigator_technician_code(self) -> str:
        return self.get_subfield(3)

    @property
    def equipment_code(self) -> str:
        return self.get_subfield(4)


class ChannelHeader(NamedTuple):
    """Header fields of a single channel, trimmed of their padding."""

    label: str
    transducer_type: str
    physical_dimension: str
    physical_min: float
    physical_max: float
    digital_min: int
    digital_max: int
    prefiltering: str
    samples_per_record: int
    reserved: str


@dataclasses.dataclass(frozen=True, eq=False)
class EdfHeader:
    """The complete header record of an EDF/EDF+ file.

    String fields keep the padding they were decoded with, comparisons between
    headers use the trimmed values. Per-channel fields are tuples with one element
    per channel, in file order.

    Use :meth:`EdfHeader.create` to build a consistent header from scratch; the
    plain constructor accepts any values and leaves validation to
    :func:`encode_header`.
    """

    id_code: str
    subject_id: str
    recording_id: str
    start_date: str
    start_time: str
    bytes_in_header: int
    format_version: str
    num_records: int
    record_duration: float
    num_channels: int
    labels: tuple[str, ...]
    transducer_types: tuple[str, ...]
    physical_dimensions: tuple[str, ...]
    physical_mins: tuple[float, ...]
    physical_maxs: tuple[float, ...]
    digital_mins: tuple[int, ...]
    digital_maxs: tuple[int, ...]
    prefilterings: tuple[str, ...]
    samples_per_record: tuple[int, ...]
    reserveds: tuple[str, ...]

    def __post_init__(self) -> None:
        for name, _ in _CHANNEL_FIELDS:
            object.__setattr__(self, name, tuple(getattr(self, name)))

    @classmethod
    def create(
        cls,
        *,
        labels: Sequence[str],
        samples_per_record: Sequence[int],
        num_records: int,
        record_duration: float,
        transducer_types: Sequence[str] | None = None,
        physical_dimensions: Sequence[str] | None = None,
        physical_mins: Sequence[float] | None = None,
        physical_maxs: Sequence[float] | None = None,
        digital_mins: Sequence[int] | None = None,
        digital_maxs: Sequence[int] | None = None,
        prefilterings: Sequence[str] | None = None,
        patient: Patient | None = None,
        recording: Recording | None = None,
        starttime: datetime.time | None = None,
        format_version: str = "",
    ) -> Self:
        """Create a header with `bytes_in_header` matching the number of channels.

        Omitted per-channel fields default to empty strings and the full 16-bit
        range for both physical and digital extrema (i.e., an uncalibrated signal).
        The legacy startdate field is taken from `recording`, falling back to
        `01.01.85` if it is anonymized.

        Parameters
        ----------
        labels : Sequence[str]
            Channel labels, one per channel.
        samples_per_record : Sequence[int]
            Number of samples of each channel in one data record.
        num_records : int
            Number of data records.
        record_duration : float
            Duration of each data record in seconds.
        patient : Patient | None, default: None
            Subject identification, `X X X X` if `None`.
        recording : Recording | None, default: None
            Recording identification, `Startdate X X X X` if `None`.
        starttime : datetime.time | None, default: None
            Recording starttime, `00.00.00` if `None`.
        format_version : str, default: `""`
            The 44 byte reserved field, e.g., `"EDF+C"`.
        """
        num_channels = len(labels)

        def per_channel(values: Sequence | None, default: _FieldValue) -> tuple:
            if values is None:
                return (default,) * num_channels
            return tuple(values)

        if patient is None:
            patient = Patient()
        if recording is None:
            recording = Recording()
        if starttime is None:
            starttime = datetime.time(0, 0, 0)
        try:
            startdate = recording.startdate
        except AnonymizedDateError:
            startdate = datetime.date(1985, 1, 1)
        return cls(
            id_code="0",
            subject_id=patient._to_str(),
            recording_id=recording._to_str(),
            start_date=encode_date(startdate),
            start_time=encode_time(starttime),
            bytes_in_header=header_size(num_channels),
            format_version=format_version,
            num_records=num_records,
            record_duration=record_duration,
            num_channels=num_channels,
            labels=tuple(labels),
            transducer_types=per_channel(transducer_types, ""),
            physical_dimensions=per_channel(physical_dimensions, ""),
            physical_mins=per_channel(physical_mins, _EDF_DEFAULT_RANGE[0]),
            physical_maxs=per_channel(physical_maxs, _EDF_DEFAULT_RANGE[1]),
            digital_mins=per_channel(digital_mins, _EDF_DEFAULT_RANGE[0]),
            digital_maxs=per_channel(digital_maxs, _EDF_DEFAULT_RANGE[1]),
            prefilterings=per_channel(prefilterings, ""),
            samples_per_record=tuple(samples_per_record),
            reserveds=("",) * num_channels,
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, EdfHeader):
            return NotImplemented
        return self._comparison_key() == other._comparison_key()

    def __hash__(self) -> int:
        return hash(self._comparison_key())

    def __repr__(self) -> str:
        return f"<EdfHeader {self.format_version.strip() or 'EDF'} {self.num_channels} channels {self.num_records} records>"

    def _comparison_key(self) -> tuple:
        key = []
        for name, _ in (*_RECORDING_FIELDS, *_CHANNEL_FIELDS):
            value = getattr(self, name)
            if isinstance(value, tuple):
                value = tuple(_trim(v) if isinstance(v, str) else v for v in value)
            elif isinstance(value, str):
                value = _trim(value)
            key.append(value)
        return tuple(key)

    @property
    def is_edf_plus(self) -> bool:
        """`True` if the format version field marks an EDF+ file."""
        return self.format_version.strip().startswith("EDF+")

    @property
    def patient(self) -> Patient:
        """Parsed :class:`Patient` representation of :attr:`subject_id`."""
        return Patient._from_str(self.subject_id)

    @property
    def recording(self) -> Recording:
        """Parsed :class:`Recording` representation of :attr:`recording_id`."""
        return Recording._from_str(self.recording_id)

    @property
    def startdate(self) -> datetime.date:
        """Recording startdate parsed from the legacy `dd.mm.yy` field."""
        return decode_date(self.start_date)

    @property
    def starttime(self) -> datetime.time:
        """Recording starttime parsed from the `hh.mm.ss` field."""
        return decode_time(self.start_time)

    @property
    def duration(self) -> float:
        """Recording duration in seconds."""
        return self.num_records * self.record_duration

    def channel(self, index: int) -> ChannelHeader:
        """Get the (trimmed) header fields of the channel at `index`."""
        values = []
        for name, _ in _CHANNEL_FIELDS:
            value = getattr(self, name)[index]
            values.append(_trim(value) if isinstance(value, str) else value)
        return ChannelHeader(*values)

    def validate_channel_arrays(self) -> None:
        """Raise an :class:`ArrayLengthMismatchError` for inconsistent channel fields."""
        for name, _ in _CHANNEL_FIELDS:
            length = len(getattr(self, name))
            if length != self.num_channels:
                raise ArrayLengthMismatchError(
                    f"Header field {name} has {length} elements, expected num_channels={self.num_channels}"
                )

    def without_channel(self, index: int) -> Self:
        """Return a new header with the channel at `index` removed."""
        self.validate_channel_arrays()
        channel_fields = {
            name: remove_index(getattr(self, name), index)
            for name, _ in _CHANNEL_FIELDS
        }
        return dataclasses.replace(
            self,
            num_channels=self.num_channels - 1,
            bytes_in_header=header_size(self.num_channels - 1),
            **channel_fields,
        )

    def with_channel(self, index: int, channel: ChannelHeader) -> Self:
        """Return a new header with `channel` inserted at `index`."""
        self.validate_channel_arrays()
        channel_fields = {
            name: insert_index(getattr(self, name), index, value)
            for (name, _), value in zip(_CHANNEL_FIELDS, channel)
        }
        return dataclasses.replace(
            self,
            num_channels=self.num_channels + 1,
            bytes_in_header=header_size(self.num_channels + 1),
            **channel_fields,
        )


def build_annotation_header(
    *,
    startdatetime: datetime.datetime,
    record_duration: float,
    samples_per_record: int,
    num_records: int = 1,
    patient: Patient | None = None,
    recording_hospital: str = "X",
    recording_technician: str = "X",
    recording_equipment: str = "X",
) -> EdfHeader:
    """Build the header of an EDF+C file containing only an annotation channel.

    The annotation channel spans the full 16-bit range for both its digital and
    physical extrema, its raw data has to be provided as TALs according to the EDF+
    specification.

    Parameters
    ----------
    startdatetime : datetime.datetime
        Start of the recording, used for the legacy startdate/starttime fields and the
        EDF+ recording identification.
    record_duration : float
        Duration of each data record in seconds, must be positive.
    samples_per_record : int
        Number of 16-bit samples reserved for TALs in each data record.
    num_records : int, default: 1
        Number of data records.
    patient : Patient | None, default: None
        Subject identification, `X X X X` if `None`.
    """
    if record_duration <= 0:
        raise ValueError(f"record_duration must be positive, got {record_duration}")
    if samples_per_record <= 0:
        raise ValueError(
            f"samples_per_record must be positive, got {samples_per_record}"
        )
    recording = Recording(
        startdate=startdatetime.date(),
        hospital_administration_code=recording_hospital.replace(" ", "_"),
        investigator_technician_code=recording_technician.replace(" ", "_"),
        equipment_code=recording_equipment.replace(" ", "_"),
    )
    return EdfHeader.create(
        labels=[EDF_ANNOTATIONS_LABEL],
        samples_per_record=[samples_per_record],
        num_records=num_records,
        record_duration=record_duration,
        physical_mins=[_EDF_DEFAULT_RANGE[0]],
        physical_maxs=[_EDF_DEFAULT_RANGE[1]],
        patient=patient,
        recording=recording,
        starttime=startdatetime.time(),
        format_version="EDF+C",
    )


class _FieldReader:
    def __init__(self, data: bytes | bytearray | memoryview) -> None:
        self._data = memoryview(data)
        self.position = 0

    def read(self, length: int, name: str) -> bytes:
        end = self.position + length
        if end > len(self._data):
            available = max(len(self._data) - self.position, 0)
            raise TruncatedInputError(
                f"Header field {name} requires {length} bytes at offset {self.position}, only {available} available"
            )
        field = self._data[self.position : end].tobytes()
        self.position = end
        return field


def _decode_field(name: str, raw: bytes, header_encoding: str) -> _FieldValue:
    if name in _INT_FIELDS:
        return decode_int(raw, name)
    if name in _FLOAT_FIELDS:
        return decode_float(raw, name)
    return decode_str(raw, header_encoding)


def _encode_field(name: str, value: _FieldValue, length: int) -> bytes:
    if name in _INT_FIELDS:
        return encode_int(value, length)
    if name in _FLOAT_FIELDS:
        return encode_float(value, length)
    return encode_str(str(value).rstrip(_PADDING), length)


def decode_header(
    data: bytes | bytearray | memoryview,
    *,
    header_encoding: str = "ascii",
) -> tuple[EdfHeader, int]:
    """
    Decode the header record at the start of `data`.

    Parameters
    ----------
    data : bytes | bytearray | memoryview
        Buffer starting with an EDF header, may contain further data.
    header_encoding : str, default: "ascii"
        The character encoding to use when decoding text fields. Undecodable bytes
        are replaced.

    Returns
    -------
    tuple[EdfHeader, int]
        The decoded header and the number of bytes consumed.
    """
    reader = _FieldReader(data)
    values: dict[str, _FieldValue | tuple[_FieldValue, ...]] = {}
    for name, length in _RECORDING_FIELDS:
        raw = reader.read(length, name)
        if name == "id_code" and raw.strip() != b"0":
            raise InvalidIdentificationError(
                f"Identification code must be '0', got {raw!r}"
            )
        values[name] = _decode_field(name, raw, header_encoding)
    num_channels = int(values["num_channels"])  # type: ignore[arg-type]
    if num_channels < 0:
        raise NumericParseError(
            f"Header field num_channels must not be negative, got {num_channels}"
        )
    for name, length in _CHANNEL_FIELDS:
        values[name] = tuple(
            _decode_field(name, reader.read(length, f"{name}[{i}]"), header_encoding)
            for i in range(num_channels)
        )
    header = EdfHeader(**values)  # type: ignore[arg-type]
    if header.bytes_in_header != header_size(num_channels):
        warnings.warn(
            f"EDF header indicates {header.bytes_in_header} bytes, but {num_channels} channels require {header_size(num_channels)}."
        )
    return header, reader.position


def encode_header(header: EdfHeader) -> bytes:
    """
    Encode a header record.

    Every field is written left-justified and padded with spaces to its fixed width.
    The result is padded with spaces to `header.bytes_in_header` bytes.

    Raises
    ------
    FieldOverflowError
        If a value does not fit into its field or the fields do not fit into
        `header.bytes_in_header` bytes.
    ArrayLengthMismatchError
        If a per-channel field does not have `header.num_channels` elements.
    """
    header.validate_channel_arrays()
    fields = [
        _encode_field(name, getattr(header, name), length)
        for name, length in _RECORDING_FIELDS
    ]
    for name, length in _CHANNEL_FIELDS:
        fields.extend(
            _encode_field(name, value, length) for value in getattr(header, name)
        )
    raw = b"".join(fields)
    if len(raw) > header.bytes_in_header:
        raise FieldOverflowError(
            f"Header requires {len(raw)} bytes, but bytes_in_header is {header.bytes_in_header}"
        )
    return raw.ljust(header.bytes_in_header)
