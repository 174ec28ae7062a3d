import datetime
from pathlib import Path

import numpy as np
import pytest

from edfcodec import (
    EdfAnnotation,
    EdfHeader,
    EdfSignal,
    Patient,
    Recording,
    encode_header,
    encode_signal,
)

TAL_BYTES_PER_RECORD = 40
TAL_RECORDS = (
    b"+0\x14\x14\x00+0.5\x151.5\x14Apnea\x14\x00",
    b"+1\x14\x14\x00",
    b"+2\x14\x14\x00+2.5\x14Lights off\x14Close door\x14\x00",
)
EXPECTED_ANNOTATIONS = (
    EdfAnnotation(0.0, 0.0, ()),
    EdfAnnotation(0.5, 1.5, ("Apnea",)),
    EdfAnnotation(1.0, 0.0, ()),
    EdfAnnotation(2.0, 0.0, ()),
    EdfAnnotation(2.5, 0.0, ("Lights off", "Close door")),
)


def tal_digital(records=TAL_RECORDS, bytes_per_record=TAL_BYTES_PER_RECORD):
    raw = b"".join(record.ljust(bytes_per_record, b"\x00") for record in records)
    return np.frombuffer(raw, dtype="<i2").astype(np.int16)


def replace_bytes(data: bytes, offset: int, value: bytes) -> bytes:
    return data[:offset] + value + data[offset + len(value) :]


@pytest.fixture
def patient() -> Patient:
    return Patient(
        code="MCH-0234567",
        sex="F",
        birthdate=datetime.date(1951, 5, 2),
        name="Haagse_Harry",
    )


@pytest.fixture
def recording() -> Recording:
    return Recording(
        startdate=datetime.date(2002, 3, 2),
        hospital_administration_code="EMG561",
        investigator_technician_code="BK/JOP",
        equipment_code="Sony.",
    )


@pytest.fixture
def header(patient: Patient, recording: Recording) -> EdfHeader:
    return EdfHeader.create(
        labels=["EEG Fpz-Cz", "Resp"],
        samples_per_record=[4, 2],
        num_records=3,
        record_duration=1,
        physical_dimensions=["uV", ""],
        physical_mins=[-500, -1],
        physical_maxs=[500, 1],
        digital_mins=[-2048, -32768],
        digital_maxs=[2047, 32767],
        patient=patient,
        recording=recording,
        starttime=datetime.time(16, 13, 0),
    )


@pytest.fixture
def digital() -> list[np.ndarray]:
    return [
        np.arange(12, dtype=np.int16) - 6,
        np.array([-32768, 32767, 0, 1, -1, 100], dtype=np.int16),
    ]


@pytest.fixture
def signal(header: EdfHeader, digital: list[np.ndarray]) -> EdfSignal:
    return EdfSignal.from_header(digital, header)


@pytest.fixture
def edf_bytes(header: EdfHeader, signal: EdfSignal) -> bytes:
    return encode_header(header) + encode_signal(signal, header)


@pytest.fixture
def edfplus_header(patient: Patient, recording: Recording) -> EdfHeader:
    return EdfHeader.create(
        labels=["EEG Fpz-Cz", "EDF Annotations", "Resp"],
        samples_per_record=[4, TAL_BYTES_PER_RECORD // 2, 2],
        num_records=3,
        record_duration=1,
        physical_mins=[-500, -32768, -1],
        physical_maxs=[500, 32767, 1],
        digital_mins=[-2048, -32768, -32768],
        digital_maxs=[2047, 32767, 32767],
        patient=patient,
        recording=recording,
        format_version="EDF+C",
    )


@pytest.fixture
def edfplus_signal(edfplus_header: EdfHeader, digital: list[np.ndarray]) -> EdfSignal:
    return EdfSignal.from_header(
        [digital[0], tal_digital(), digital[1]], edfplus_header
    )


@pytest.fixture
def edfplus_bytes(edfplus_header: EdfHeader, edfplus_signal: EdfSignal) -> bytes:
    return encode_header(edfplus_header) + encode_signal(edfplus_signal, edfplus_header)


@pytest.fixture
def tmp_file(tmp_path: Path) -> Path:
    return tmp_path / "target.edf"
