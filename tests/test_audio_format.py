from __future__ import annotations

import numpy as np
import pytest

from konnichiwa.core.audio.format import (
    SILENCE_DB,
    average_power_db,
    decode_wav,
    encode_wav,
    float32_to_pcm16le_bytes,
    mixdown_to_mono_f32,
    normalized_level,
    pcm16le_bytes_to_float32,
)


def test_mixdown_to_mono():
    stereo = np.array([[1.0, -1.0], [0.5, 0.5]], dtype=np.float32)
    mono = mixdown_to_mono_f32(stereo)
    assert mono.dtype == np.float32
    assert mono.tolist() == [0.0, 0.5]

    with pytest.raises(ValueError):
        mixdown_to_mono_f32(np.zeros((2, 2, 2), dtype=np.float32))


def test_pcm16_conversion_clips():
    data = float32_to_pcm16le_bytes(np.array([0.0, 2.0, -2.0], dtype=np.float32))
    assert data == b"\x00\x00\xff\x7f\x01\x80"


def test_pcm16_decode_ignores_trailing_byte():
    samples = pcm16le_bytes_to_float32(b"\x00\x40\x00\xc0\x01")
    assert samples.tolist() == [0.5, -0.5]


def test_wav_roundtrip_keeps_rate_and_length():
    t = np.arange(1600, dtype=np.float32) / 16000.0
    tone = 0.25 * np.sin(2 * np.pi * 440.0 * t).astype(np.float32)

    data = encode_wav(tone, sample_rate_hz=16000)
    assert data[:4] == b"RIFF" and data[8:12] == b"WAVE"

    samples, rate = decode_wav(data)
    assert rate == 16000
    assert samples.shape == tone.shape
    assert np.max(np.abs(samples - tone)) < 1e-3


def test_wav_stereo_input_is_mixed_down():
    stereo = np.full((100, 2), 0.5, dtype=np.float32)
    samples, _ = decode_wav(encode_wav(stereo, sample_rate_hz=8000))
    assert samples.shape == (100,)


def test_average_power_db():
    assert average_power_db(np.zeros(160, dtype=np.float32)) == SILENCE_DB
    assert average_power_db(np.array([], dtype=np.float32)) == SILENCE_DB
    assert average_power_db(np.ones(160, dtype=np.float32)) == pytest.approx(0.0)
    assert average_power_db(np.full(160, 0.1, dtype=np.float32)) == pytest.approx(-20.0, abs=1e-3)


def test_normalized_level():
    assert normalized_level(SILENCE_DB) == 0.0
    assert normalized_level(0.0) == 1.0
    assert normalized_level(-80.0) == pytest.approx(0.5)
    assert normalized_level(-500.0) == 0.0
