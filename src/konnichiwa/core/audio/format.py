from __future__ import annotations

import io
import math
import wave

import numpy as np

SILENCE_DB = -160.0


def mixdown_to_mono_f32(samples: np.ndarray) -> np.ndarray:
    if samples.ndim == 1:
        mono = samples
    elif samples.ndim == 2:
        mono = samples.mean(axis=1)
    else:
        raise ValueError("samples must be 1D (mono) or 2D (frames, channels)")

    return np.asarray(mono, dtype=np.float32)


def float32_to_pcm16le_bytes(samples: np.ndarray) -> bytes:
    samples = np.asarray(samples, dtype=np.float32)
    clipped = np.clip(samples, -1.0, 1.0)
    int16 = np.round(clipped * 32767.0).astype("<i2")
    return int16.tobytes()


def pcm16le_bytes_to_float32(data: bytes) -> np.ndarray:
    if len(data) % 2:
        data = data[:-1]
    arr = np.frombuffer(data, dtype="<i2").astype(np.float32)
    return arr / 32768.0


def average_power_db(samples: np.ndarray) -> float:
    """RMS level in dBFS, floored at -160 like a recorder meter."""
    samples = np.asarray(samples, dtype=np.float32).reshape(-1)
    if samples.size == 0:
        return SILENCE_DB
    rms = float(np.sqrt(np.mean(np.square(samples))))
    if rms <= 0.0:
        return SILENCE_DB
    return max(SILENCE_DB, 20.0 * math.log10(rms))


def normalized_level(level_db: float) -> float:
    """Map -160..0 dBFS onto 0..1 for waveform display."""
    return min(1.0, max(0.0, (level_db - SILENCE_DB) / -SILENCE_DB))


def encode_wav(samples: np.ndarray, *, sample_rate_hz: int) -> bytes:
    mono = mixdown_to_mono_f32(np.asarray(samples, dtype=np.float32))
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(sample_rate_hz)
        wav.writeframes(float32_to_pcm16le_bytes(mono))
    return buf.getvalue()


def decode_wav(data: bytes) -> tuple[np.ndarray, int]:
    with wave.open(io.BytesIO(data), "rb") as wav:
        if wav.getsampwidth() != 2:
            raise ValueError("only 16-bit PCM WAV is supported")
        channels = wav.getnchannels()
        rate = wav.getframerate()
        frames = wav.readframes(wav.getnframes())
    samples = pcm16le_bytes_to_float32(frames)
    if channels > 1:
        samples = samples.reshape(-1, channels).mean(axis=1).astype(np.float32)
    return samples, rate
