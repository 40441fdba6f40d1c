from __future__ import annotations

import logging
from typing import Dict, Optional, Tuple

from .audio import SAMPLE_TAIL, SR, oscillator, pitch_shift, sample_envelope, synth_envelope
from .engine import AudioEngineHandle, Voice
from .samples import SampleBuffer, SampleLoader
from .theory import instrument_by_id, midi_to_freq

logger = logging.getLogger(__name__)

# Synth fallback waveform per instrument family
WAVEFORMS = {
	"piano": "triangle",
	"plucked": "saw",
}


def nearest_sample(samples: Dict[int, SampleBuffer], pitch: int) -> Optional[Tuple[SampleBuffer, float]]:
	"""Closest reference sample and the playback rate that shifts it to ``pitch``.

	Ties go to the lower reference pitch.
	"""
	if not samples:
		return None
	refs = sorted(samples)
	closest = refs[0]
	for ref in refs:
		if abs(pitch - ref) < abs(pitch - closest):
			closest = ref
	return samples[closest], 2.0 ** ((pitch - closest) / 12.0)


class ToneSource:
	def __init__(self, engine: AudioEngineHandle, loader: SampleLoader) -> None:
		self.engine = engine
		self.loader = loader

	def render(self, pitch: int, instrument_id: str, start_time: float, duration: float) -> Voice:
		"""Schedule one note at ``start_time`` on the engine clock."""
		instrument = instrument_by_id(instrument_id)
		hit = nearest_sample(self.loader.samples(instrument_id), pitch)
		if hit is not None:
			buf, rate = hit
			# The file's own sample rate folds into the resampling step
			step = rate * buf.sample_rate / SR
			shifted = pitch_shift(buf.data, step, max_len=int((duration + SAMPLE_TAIL) * SR))
			samples = shifted * sample_envelope(len(shifted), duration)
			voice = Voice(start=start_time, samples=samples, pitch=pitch, source="sample")
		else:
			x = oscillator(midi_to_freq(pitch), duration, WAVEFORMS[instrument.family])
			samples = x * synth_envelope(len(x), duration)
			voice = Voice(start=start_time, samples=samples, pitch=pitch, source="synth")
		logger.debug("%s voice %d at %.3f (%s)", voice.source, pitch, start_time, instrument_id)
		self.engine.output(voice)
		return voice
