from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

from .engine import AudioEngineHandle
from .models import Direction, Family, PlaybackMode
from .theory import instrument_by_id
from .tone import ToneSource

logger = logging.getLogger(__name__)

MELODIC_SPACING = 0.6
MELODIC_SUSTAIN = 1.5
HARMONIC_SUSTAIN = 2.5
# Harmonic playback is heard as one event regardless of note count
HARMONIC_DURATION = 2.0
# Strum offset between notes of plucked instruments
STRUM_STAGGER = 0.05


def playback_plan(
	notes: Sequence[int], mode: PlaybackMode, direction: Direction, family: Family = "piano"
) -> Tuple[List[Tuple[int, float, float]], float]:
	"""(pitch, offset, sustain) for each note, plus the total duration."""
	sequence = sorted(notes)
	if direction == "descending":
		sequence.reverse()
	if mode == "harmonic":
		stagger = STRUM_STAGGER if family == "plucked" else 0.0
		plan = [(n, i * stagger, HARMONIC_SUSTAIN) for i, n in enumerate(sequence)]
		return plan, HARMONIC_DURATION
	plan = [(n, i * MELODIC_SPACING, MELODIC_SUSTAIN) for i, n in enumerate(sequence)]
	return plan, len(sequence) * MELODIC_SPACING + MELODIC_SPACING


class PlaybackScheduler:
	def __init__(self, engine: AudioEngineHandle, tones: ToneSource, instrument_id: str = "piano") -> None:
		self.engine = engine
		self.tones = tones
		self.instrument_id = instrument_id

	async def schedule(
		self,
		notes: Sequence[int],
		mode: PlaybackMode,
		direction: Direction,
		instrument_id: Optional[str] = None,
	) -> float:
		"""Schedule ``notes`` and return the seconds until all of them have played.

		Raises AudioEngineUnavailable if a suspended engine cannot be resumed;
		nothing is scheduled in that case.
		"""
		inst = instrument_by_id(instrument_id or self.instrument_id)
		await self.engine.ensure_running()
		# Read the clock only once the engine is running again
		now = self.engine.current_time
		plan, total = playback_plan(notes, mode, direction, inst.family)
		for pitch, offset, sustain in plan:
			self.tones.render(pitch, inst.id, now + offset, sustain)
		logger.debug("scheduled %d notes (%s, %s) for %.2fs", len(plan), mode, direction, total)
		return total
