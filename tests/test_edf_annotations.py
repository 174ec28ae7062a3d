from __future__ import annotations

import dataclasses
import types

import numpy as np
import pytest

from edfcodec import (
    EdfAnnotation,
    EdfHeader,
    EdfSignal,
    MalformedAnnotationError,
    find_annotation_channel,
    iter_annotations,
    parse_annotations,
)
from edfcodec.edf_annotations import channel_bytes, split_annotation_channel
from tests.conftest import EXPECTED_ANNOTATIONS, TAL_RECORDS, tal_digital


def test_parse_annotation_without_duration_and_text():
    assert parse_annotations(b"+1800\x14\x14\x00") == [EdfAnnotation(1800.0, 0.0, ())]


def test_parse_annotation_with_duration_and_text():
    assert parse_annotations(b"+180\x1530\x14Seizure\x14\x14\x00") == [
        EdfAnnotation(180.0, 30.0, ("Seizure",))
    ]


# examples taken from https://www.edfplus.info/specs/edfplus.html
@pytest.mark.parametrize(
    ("raw_annotations", "expected_annotations"),
    [
        (
            b"+180\x14Lights off\x14Close door\x14\x00",
            [EdfAnnotation(180, 0, ("Lights off", "Close door"))],
        ),
        (
            b"+180\x14Lights off\x14\x00+180\x14Close door\x14\x00",
            [
                EdfAnnotation(180, 0, ("Lights off",)),
                EdfAnnotation(180, 0, ("Close door",)),
            ],
        ),
        (
            b"+1800.2\x1525.5\x14Apnea\x14\x00",
            [EdfAnnotation(1800.2, 25.5, ("Apnea",))],
        ),
        (
            b"+0\x14\x14Stimulus click 35dB both ears\x14Free text\x14\x00",
            [EdfAnnotation(0, 0, ("Stimulus click 35dB both ears", "Free text"))],
        ),
        (
            b"-0.065\x14Pre-stimulus beep 1000Hz\x14\x00",
            [EdfAnnotation(-0.065, 0, ("Pre-stimulus beep 1000Hz",))],
        ),
        (
            b"+0\x14\x14Recording starts\x14\x00",
            [EdfAnnotation(0, 0, ("Recording starts",))],
        ),
        (
            b"+993.2\x151.2\x14Limb movement\x14R+L leg\x14\x00",
            [EdfAnnotation(993.2, 1.2, ("Limb movement", "R+L leg"))],
        ),
        (
            b"+30210\x14Recording ends\x14\x00\x00\x00\x00\x00\x00\x00\x00",
            [EdfAnnotation(30210, 0, ("Recording ends",))],
        ),
        (  # from https://github.com/mne-tools/mne-testing-data/blob/14a4cbc0ca9b3f268885d91ff058c18737487865/EDF/test_utf8_annotations.edf
            b"+2\x150.500000\x14\xe4\xbb\xb0\xe5\x8d\xa7\x14\x00",
            [EdfAnnotation(2, 0.5, ("仰卧",))],
        ),
        (  # allow trailing 0
            b"+15.0\x155.0\x14Text\x14\x00",
            [EdfAnnotation(15, 5, ("Text",))],
        ),
        (  # empty duration
            b"+15\x15\x14Text\x14\x00",
            [EdfAnnotation(15, 0, ("Text",))],
        ),
    ],
)
def test_parse_annotations(
    raw_annotations: bytes,
    expected_annotations: list[EdfAnnotation],
):
    assert parse_annotations(raw_annotations) == expected_annotations


def test_parse_annotations_skips_padding_between_tals():
    raw = b"".join(record.ljust(40, b"\x00") for record in TAL_RECORDS)
    assert tuple(parse_annotations(raw)) == EXPECTED_ANNOTATIONS


def test_parse_annotations_keeps_file_order():
    raw = b"+5\x14B\x14\x00+1\x14A\x14\x00"
    assert [a.onset for a in parse_annotations(raw)] == [5, 1]


@pytest.mark.parametrize("raw", [b"", b"\x00", b"\x00" * 16])
def test_parse_annotations_without_tals(raw: bytes):
    assert parse_annotations(raw) == []


@pytest.mark.parametrize(
    "raw",
    [
        b"+1\x14A",
        b"+1\x14A\x14",
        b"+1\x15",
    ],
)
def test_parse_annotations_ignores_unterminated_tal(raw: bytes):
    assert parse_annotations(raw) == []


def test_parse_annotations_keeps_terminated_tals_before_unterminated_one():
    raw = b"+1\x14A\x14\x00+2\x14B"
    assert parse_annotations(raw) == [EdfAnnotation(1, 0, ("A",))]


def test_parse_annotations_drops_blank_texts():
    assert parse_annotations(b"+1\x14 \x14\x14Text\x14\x00") == [
        EdfAnnotation(1, 0, ("Text",))
    ]


def test_parse_annotations_replaces_invalid_utf8():
    assert parse_annotations(b"+1\x14\xff\x14\x00")[0].texts == ("�",)


@pytest.mark.parametrize(
    ("raw", "message"),
    [
        (b"+abc\x14A\x14\x00", "Invalid annotation onset"),
        (b"\x14A\x14\x00", "Invalid annotation onset"),
        (b"+1\x15x\x14A\x14\x00", "Invalid annotation duration"),
        (b"+1\x15inf\x14A\x14\x00", "Invalid annotation duration"),
        (b"+1\x15-5\x14A\x14\x00", "must not be negative"),
        (b"+1_0\x14A\x14\x00", "Invalid annotation onset"),
        (b"+1\x151_0\x14A\x14\x00", "Invalid annotation duration"),
    ],
)
def test_parse_annotations_with_invalid_timing_fails(raw: bytes, message: str):
    with pytest.raises(MalformedAnnotationError, match=message):
        parse_annotations(raw)


def test_malformed_annotation_error_is_value_error():
    with pytest.raises(ValueError, match="Invalid annotation onset"):
        parse_annotations(b"+x\x14\x14\x00")


def test_iter_annotations_is_lazy():
    annotations = iter_annotations(b"+1\x14A\x14\x00+x\x14B\x14\x00")
    assert isinstance(annotations, types.GeneratorType)
    assert next(annotations) == EdfAnnotation(1, 0, ("A",))
    with pytest.raises(MalformedAnnotationError):
        next(annotations)


def test_annotation_defaults():
    annotation = EdfAnnotation(3.5)
    assert annotation.duration == 0.0
    assert annotation.texts == ()


def test_find_annotation_channel(edfplus_header: EdfHeader):
    assert find_annotation_channel(edfplus_header) == 1


def test_find_annotation_channel_ignores_padding(edfplus_header: EdfHeader):
    header = dataclasses.replace(
        edfplus_header, labels=("EEG", "EDF Annotations ", "Resp")
    )
    assert find_annotation_channel(header) == 1


def test_find_annotation_channel_returns_first_match(edfplus_header: EdfHeader):
    header = dataclasses.replace(
        edfplus_header, labels=("EEG", "EDF Annotations", "EDF Annotations")
    )
    assert find_annotation_channel(header) == 1


def test_find_annotation_channel_without_annotation_channel(header: EdfHeader):
    assert find_annotation_channel(header) is None


def test_channel_bytes_are_little_endian():
    signal = EdfSignal([np.array([0x142B, 0x0014])], [1.0])
    assert channel_bytes(signal, 0) == b"\x2b\x14\x14\x00"


def test_channel_bytes_restore_tal_bytes(edfplus_signal: EdfSignal):
    raw = channel_bytes(edfplus_signal, 1)
    assert raw[:21] == TAL_RECORDS[0]
    assert len(raw) == 3 * 40


def test_split_annotation_channel(
    edfplus_header: EdfHeader,
    edfplus_signal: EdfSignal,
    digital: list[np.ndarray],
):
    header, signal, annotations, removed = split_annotation_channel(
        edfplus_header, edfplus_signal
    )
    assert annotations == EXPECTED_ANNOTATIONS
    assert header.labels == ("EEG Fpz-Cz", "Resp")
    assert header.num_channels == 2
    assert header.bytes_in_header == 768
    assert signal.num_channels == 2
    np.testing.assert_array_equal(signal.digital[0], digital[0])
    np.testing.assert_array_equal(signal.digital[1], digital[1])
    assert removed is not None
    assert removed.index == 1
    assert removed.header.label == "EDF Annotations"
    np.testing.assert_array_equal(removed.digital, tal_digital())


def test_split_annotation_channel_ignores_plain_edf(
    edfplus_header: EdfHeader,
    edfplus_signal: EdfSignal,
):
    header = dataclasses.replace(edfplus_header, format_version="")
    result = split_annotation_channel(header, edfplus_signal)
    assert result == (header, edfplus_signal, (), None)


def test_split_annotation_channel_without_annotation_channel(
    header: EdfHeader,
    signal: EdfSignal,
):
    header = dataclasses.replace(header, format_version="EDF+C")
    assert split_annotation_channel(header, signal) == (header, signal, (), None)
