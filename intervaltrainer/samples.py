from __future__ import annotations

import asyncio
import io
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterable, Optional, Set, Tuple

import numpy as np
import numpy.typing as npt
import requests
import soundfile as sf

from .audio import to_mono
from .models import Instrument
from .theory import instrument_by_id, sample_note_name

logger = logging.getLogger(__name__)

# C2..C6, one sample per octave
REFERENCE_PITCHES: Tuple[int, ...] = (36, 48, 60, 72, 84)

DEFAULT_SAMPLE_BASE = "audio"
FETCH_TIMEOUT = 10

Fetcher = Callable[[str], bytes]


@dataclass
class SampleBuffer:
	pitch: int
	data: npt.NDArray[np.float32]
	sample_rate: int


def sample_base() -> str:
	return os.environ.get("INTERVALTRAINER_SAMPLE_BASE", DEFAULT_SAMPLE_BASE)


def sample_url(base: str, instrument: Instrument, pitch: int) -> str:
	return f"{base.rstrip('/')}/{instrument.sample_path}/{sample_note_name(pitch)}.{instrument.sample_ext}"


def fetch_bytes(url: str) -> bytes:
	if url.startswith(("http://", "https://")):
		response = requests.get(url, timeout=FETCH_TIMEOUT)
		response.raise_for_status()
		return response.content
	return Path(url).read_bytes()


def decode_sample(raw: bytes) -> Tuple[npt.NDArray[np.float32], int]:
	data, sr = sf.read(io.BytesIO(raw), dtype="float32")
	return to_mono(data), int(sr)


class SampleLoader:
	"""Loads the reference samples for each instrument, once.

	Concurrent ``ensure_loaded`` calls for one instrument await the same
	task. A reference pitch that cannot be fetched or decoded is skipped;
	an instrument whose every pitch failed ends up with no samples and is
	played with the synth fallback.
	"""

	def __init__(
		self,
		base: Optional[str] = None,
		fetcher: Fetcher = fetch_bytes,
		reference_pitches: Iterable[int] = REFERENCE_PITCHES,
	) -> None:
		self.base = base if base is not None else sample_base()
		self.reference_pitches = tuple(reference_pitches)
		self._fetcher = fetcher
		self._buffers: Dict[str, Dict[int, SampleBuffer]] = {}
		self._loaded: Set[str] = set()
		self._inflight: Dict[str, "asyncio.Task[None]"] = {}

	def is_ready(self, instrument_id: str) -> bool:
		return instrument_id in self._loaded

	def samples(self, instrument_id: str) -> Dict[int, SampleBuffer]:
		return self._buffers.get(instrument_id, {})

	async def ensure_loaded(self, instrument_id: str) -> None:
		if instrument_id in self._loaded:
			return
		task = self._inflight.get(instrument_id)
		if task is None:
			instrument = instrument_by_id(instrument_id)
			task = asyncio.get_running_loop().create_task(self._load(instrument))
			self._inflight[instrument_id] = task
			task.add_done_callback(lambda _t: self._inflight.pop(instrument_id, None))
		# A cancelled waiter must not cancel the shared load
		await asyncio.shield(task)

	async def _load(self, instrument: Instrument) -> None:
		bucket = self._buffers.setdefault(instrument.id, {})
		pending = [p for p in self.reference_pitches if p not in bucket]
		logger.debug("loading %d samples for %s from %s", len(pending), instrument.id, self.base)
		results = await asyncio.gather(*(self._load_one(instrument, p) for p in pending))
		for buf in results:
			if buf is not None:
				bucket[buf.pitch] = buf
		self._loaded.add(instrument.id)
		if bucket:
			logger.info("loaded %d/%d samples for %s", len(bucket), len(self.reference_pitches), instrument.id)
		else:
			logger.warning("no samples available for %s, using synth fallback", instrument.id)

	def _fetch_and_decode(self, url: str) -> Tuple[npt.NDArray[np.float32], int]:
		return decode_sample(self._fetcher(url))

	async def _load_one(self, instrument: Instrument, pitch: int) -> Optional[SampleBuffer]:
		url = sample_url(self.base, instrument, pitch)
		try:
			data, sr = await asyncio.to_thread(self._fetch_and_decode, url)
		except (requests.RequestException, OSError, RuntimeError, ValueError) as e:
			logger.warning("failed to load sample for %d (%s) from %s: %s", pitch, instrument.id, url, e)
			return None
		if data.size == 0:
			logger.warning("empty sample for %d (%s) from %s", pitch, instrument.id, url)
			return None
		return SampleBuffer(pitch=pitch, data=data, sample_rate=sr)
