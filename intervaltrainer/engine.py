"""Process-wide audio engine resource.

The engine owns the shared audio clock and the master output. It is an
explicit object passed to the components that schedule sound, with its own
small lifecycle::

	UNINITIALIZED --init--> ACTIVE <--suspend/resume--> SUSPENDED
	      ^                   |
	      +------reset------ FAILED

Reconstruction only happens through ``ensure_running`` when the engine is
FAILED; state-change callbacks never re-initialise it.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Protocol

import numpy as np
import numpy.typing as npt

from .audio import SR, normalize, wav_bytes

logger = logging.getLogger(__name__)

MASTER_GAIN = 0.8


class EngineState(str, Enum):
	UNINITIALIZED = "uninitialized"
	ACTIVE = "active"
	SUSPENDED = "suspended"
	FAILED = "failed"


class AudioEngineUnavailable(RuntimeError):
	"""The engine could not be resumed; playback should be retried later."""


@dataclass(eq=False)
class Voice:
	start: float
	samples: npt.NDArray[np.float32]
	pitch: int
	source: str
	gain: float = 1.0

	@property
	def end(self) -> float:
		return self.start + len(self.samples) / SR


class OutputSink(Protocol):
	def add(self, voice: Voice) -> None:
		...

	def discard_before(self, t: float) -> None:
		...


class MixdownSink:
	"""Collects scheduled voices and mixes them on the engine timeline."""

	def __init__(self, sr: int = SR) -> None:
		self.sr = sr
		self.voices: List[Voice] = []

	def add(self, voice: Voice) -> None:
		self.voices.append(voice)

	def discard_before(self, t: float) -> None:
		"""Forget voices that finished before engine time ``t``."""
		self.voices = [v for v in self.voices if v.end > t]

	def render(self, start: Optional[float] = None) -> npt.NDArray[np.float32]:
		if not self.voices:
			return np.zeros(0, dtype=np.float32)
		t0 = min(v.start for v in self.voices) if start is None else start
		t1 = max(v.end for v in self.voices)
		out = np.zeros(max(0, int(round((t1 - t0) * self.sr))) + 1, dtype=np.float32)
		for v in self.voices:
			offset = int(round((v.start - t0) * self.sr))
			if offset < 0:
				continue
			seg = v.samples[: len(out) - offset]
			out[offset:offset + len(seg)] += seg * v.gain
		return normalize(out)

	def wav_bytes(self, start: Optional[float] = None) -> bytes:
		return wav_bytes(self.render(start), self.sr)


ResumeHook = Callable[[], Awaitable[None]]


async def _noop_resume() -> None:
	return None


class AudioEngineHandle:
	def __init__(
		self,
		clock: Callable[[], float] = time.monotonic,
		sink_factory: Callable[[], OutputSink] = MixdownSink,
		resume_hook: Optional[ResumeHook] = None,
		master_gain: float = MASTER_GAIN,
	) -> None:
		self._clock = clock
		self._sink_factory = sink_factory
		self._resume_hook = resume_hook or _noop_resume
		self.master_gain = master_gain
		self.on_state_change: Optional[Callable[[EngineState], None]] = None
		self._state = EngineState.UNINITIALIZED
		self._sink: Optional[OutputSink] = None
		self._origin: Optional[float] = None
		# The audio clock does not advance while suspended
		self._paused_total = 0.0
		self._paused_at: Optional[float] = None

	@property
	def state(self) -> EngineState:
		return self._state

	@property
	def sink(self) -> OutputSink:
		if self._sink is None:
			raise RuntimeError("audio engine is not initialised")
		return self._sink

	@property
	def current_time(self) -> float:
		if self._origin is None:
			raise RuntimeError("audio engine is not initialised")
		now = self._paused_at if self._paused_at is not None else self._clock()
		return now - self._origin - self._paused_total

	def _set_state(self, state: EngineState) -> None:
		if state == self._state:
			return
		logger.debug("audio engine %s -> %s", self._state.value, state.value)
		self._state = state
		if self.on_state_change is not None:
			self.on_state_change(state)

	def init(self) -> None:
		if self._state != EngineState.UNINITIALIZED:
			return
		self._sink = self._sink_factory()
		self._origin = self._clock()
		self._paused_total = 0.0
		self._paused_at = None
		self._set_state(EngineState.ACTIVE)

	def suspend(self) -> None:
		if self._state != EngineState.ACTIVE:
			return
		self._paused_at = self._clock()
		self._set_state(EngineState.SUSPENDED)

	async def resume(self) -> None:
		if self._state != EngineState.SUSPENDED:
			return
		try:
			await self._resume_hook()
		except Exception as e:
			logger.warning("audio engine resume failed: %s", e)
			raise AudioEngineUnavailable("audio engine could not be resumed") from e
		if self._paused_at is not None:
			self._paused_total += self._clock() - self._paused_at
			self._paused_at = None
		self._set_state(EngineState.ACTIVE)

	def fail(self, reason: str = "") -> None:
		"""Record that the output reported a terminal state."""
		logger.warning("audio engine failed%s", f": {reason}" if reason else "")
		self._set_state(EngineState.FAILED)

	def reset(self) -> None:
		self._sink = None
		self._origin = None
		self._paused_total = 0.0
		self._paused_at = None
		self._set_state(EngineState.UNINITIALIZED)

	async def ensure_running(self) -> None:
		if self._state == EngineState.FAILED:
			logger.info("reconstructing failed audio engine")
			self.reset()
		if self._state == EngineState.UNINITIALIZED:
			self.init()
		if self._state == EngineState.SUSPENDED:
			await self.resume()

	def output(self, voice: Voice) -> None:
		if self._state != EngineState.ACTIVE:
			raise AudioEngineUnavailable(f"audio engine is {self._state.value}")
		self.sink.discard_before(self.current_time)
		voice.gain *= self.master_gain
		self.sink.add(voice)
