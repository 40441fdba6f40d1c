SR = 44100

import io
from typing import Optional, cast
import numpy as np
import numpy.typing as npt
import soundfile as sf

# Synth voices: 50ms linear attack to 0.5, exponential decay to 0.001 at note end
SYNTH_ATTACK = 0.05
SYNTH_PEAK = 0.5
SYNTH_FLOOR = 0.001

# Sample voices: 20ms attack, settle to 0.6 by 300ms, decay to 0.01 one second past note end
SAMPLE_ATTACK = 0.02
SAMPLE_SETTLE = 0.3
SAMPLE_SETTLE_LEVEL = 0.6
SAMPLE_FLOOR = 0.01
SAMPLE_RELEASE = 1.0
SAMPLE_TAIL = 2.0
FADE_OUT = 0.01


def _exp_ramp(t: npt.NDArray[np.float32], t0: float, t1: float, v0: float, v1: float) -> npt.NDArray[np.float32]:
	span = max(t1 - t0, 1e-6)
	return (v0 * (v1 / v0) ** ((t - t0) / span)).astype(np.float32)


def oscillator(freq: float, dur: float, waveform: str = "sine") -> npt.NDArray[np.float32]:
	"""Raw oscillator output without an envelope.

	Args:
		freq: Frequency in Hz
		dur: Duration in seconds
		waveform: One of {"sine","triangle","saw"}
	"""
	t = np.linspace(0.0, dur, int(SR * dur), endpoint=False, dtype=np.float32)
	omega = 2.0 * np.pi * freq
	if waveform == "sine":
		x = np.sin(omega * t).astype(np.float32)
	elif waveform == "triangle":
		# 2/pi * arcsin(sin)
		x = ((2.0 / np.pi) * np.arcsin(np.sin(omega * t))).astype(np.float32)
	else:
		# sawtooth via fractional part formula
		phase = (freq * t).astype(np.float32)
		x = (2.0 * (phase - np.floor(phase + 0.5))).astype(np.float32)
	return cast(npt.NDArray[np.float32], x)


def synth_envelope(n: int, duration: float, sr: int = SR) -> npt.NDArray[np.float32]:
	t = np.arange(n, dtype=np.float32) / sr
	env = np.empty(n, dtype=np.float32)
	attack = t < SYNTH_ATTACK
	env[attack] = SYNTH_PEAK * t[attack] / SYNTH_ATTACK
	decay = ~attack
	env[decay] = _exp_ramp(t[decay], SYNTH_ATTACK, duration, SYNTH_PEAK, SYNTH_FLOOR)
	return env


def sample_envelope(n: int, duration: float, sr: int = SR) -> npt.NDArray[np.float32]:
	"""Envelope for pitch-shifted samples.

	The release runs one second past ``duration`` so the tail masks
	resampling artifacts, then holds at the floor and fades out over the
	last 10ms of the buffer.
	"""
	t = np.arange(n, dtype=np.float32) / sr
	env = np.full(n, SAMPLE_FLOOR, dtype=np.float32)
	attack = t < SAMPLE_ATTACK
	env[attack] = t[attack] / SAMPLE_ATTACK
	settle = (t >= SAMPLE_ATTACK) & (t < SAMPLE_SETTLE)
	env[settle] = _exp_ramp(t[settle], SAMPLE_ATTACK, SAMPLE_SETTLE, 1.0, SAMPLE_SETTLE_LEVEL)
	release_end = max(duration + SAMPLE_RELEASE, SAMPLE_SETTLE + 0.01)
	release = (t >= SAMPLE_SETTLE) & (t < release_end)
	env[release] = _exp_ramp(t[release], SAMPLE_SETTLE, release_end, SAMPLE_SETTLE_LEVEL, SAMPLE_FLOOR)
	fade = min(n, int(FADE_OUT * sr))
	if fade > 0:
		env[-fade:] *= np.linspace(1.0, 0.0, fade, dtype=np.float32)
	return env


def tone(freq: float, dur: float, waveform: str = "sine") -> npt.NDArray[np.float32]:
	"""Generate a single enveloped oscillator tone."""
	x = oscillator(freq, dur, waveform)
	y = (x * synth_envelope(len(x), dur)).astype(np.float32)
	return cast(npt.NDArray[np.float32], y)


def pitch_shift(x: npt.NDArray[np.float32], rate: float, max_len: Optional[int] = None) -> npt.NDArray[np.float32]:
	"""Resample ``x`` so it plays back ``rate`` times faster (and higher)."""
	if rate <= 0:
		raise ValueError("rate must be positive")
	n_out = int(len(x) / rate)
	if max_len is not None:
		n_out = min(n_out, max_len)
	if n_out <= 0 or len(x) == 0:
		return np.zeros(0, dtype=np.float32)
	pos = np.arange(n_out, dtype=np.float64) * rate
	y = np.interp(pos, np.arange(len(x), dtype=np.float64), x.astype(np.float64))
	return y.astype(np.float32)


def to_mono(data: npt.NDArray[np.float32]) -> npt.NDArray[np.float32]:
	# Ensure mono by mixing down if stereo
	if data.ndim == 2:
		data = data.mean(axis=1)
	return data.astype(np.float32)


def normalize(x: npt.NDArray[np.float32]) -> npt.NDArray[np.float32]:
	max_abs = float(np.max(np.abs(x))) if x.size else 1.0
	if max_abs > 1.0:
		x = (x / max_abs).astype(np.float32)
	return x


def wav_bytes(x: npt.NDArray[np.float32], sr: int = SR) -> bytes:
	buf = io.BytesIO()
	sf.write(buf, x, sr, format="WAV")
	return buf.getvalue()
