from __future__ import annotations

import logging
import random
import uuid
from typing import Dict, List, Literal, Optional, Sequence

from pydantic import BaseModel, Field

from .models import Direction, DirectionMode, GenerationMode, Interval, Question, SessionConfig
from .theory import MIDI_MAX, intervals_for

logger = logging.getLogger(__name__)

MAX_OPTIONS = 4

Issue = Literal["no_direction", "no_interval", "empty_queue"]

MESSAGES: Dict[str, str] = {
	"no_direction": "Select at least one playback direction.",
	"no_interval": "Select at least one interval to practise.",
	"empty_queue": "There are no questions to practise.",
}


class GenerationResult(BaseModel):
	questions: List[Question] = Field(default_factory=list)
	issue: Optional[Issue] = None

	@property
	def ok(self) -> bool:
		return self.issue is None

	@property
	def message(self) -> str:
		return MESSAGES[self.issue] if self.issue else ""


def build_options(target: Interval, pool: Sequence[Interval], rng: random.Random) -> List[Interval]:
	"""The target plus up to three distractors from ``pool``, by ascending size.

	Options are ordered by semitones rather than shuffled so answer buttons
	keep their positions across replays.
	"""
	effective = list(pool)
	if all(i.id != target.id for i in effective):
		effective.append(target)
	if len(effective) <= MAX_OPTIONS:
		return sorted(effective, key=lambda i: i.semitones)
	others = [i for i in effective if i.id != target.id]
	chosen = [target] + rng.sample(others, MAX_OPTIONS - 1)
	return sorted(chosen, key=lambda i: i.semitones)


def resolve_direction(mode: DirectionMode, rng: random.Random) -> Direction:
	if mode == "random":
		return "ascending" if rng.random() < 0.5 else "descending"
	return mode


class QuestionGenerator:
	def __init__(self, rng: Optional[random.Random] = None) -> None:
		self.rng = rng or random.Random()

	def generate(
		self,
		config: SessionConfig,
		mode: GenerationMode = "fresh",
		source: Optional[Sequence[Question]] = None,
	) -> GenerationResult:
		pool = intervals_for(config.intervals)
		if mode == "fresh":
			if not config.directions:
				return GenerationResult(issue="no_direction")
			if not pool:
				return GenerationResult(issue="no_interval")
			questions = [self._fresh(config, pool) for _ in range(config.question_count)]
		else:
			questions = self._review(pool, source or [])
		if not questions:
			return GenerationResult(issue="empty_queue")
		logger.debug("generated %d %s questions", len(questions), mode)
		return GenerationResult(questions=questions)

	def pick_root(self, config: SessionConfig, interval: Interval) -> int:
		root = self.rng.randrange(config.range_min, config.range_max)
		if root + interval.semitones <= MIDI_MAX:
			return root
		# Keep the upper note inside the MIDI range
		legal_max = min(config.range_max, MIDI_MAX + 1 - interval.semitones)
		if legal_max > config.range_min:
			return self.rng.randrange(config.range_min, legal_max)
		return MIDI_MAX - interval.semitones

	def _fresh(self, config: SessionConfig, pool: List[Interval]) -> Question:
		interval = self.rng.choice(pool)
		root = self.pick_root(config, interval)
		direction = resolve_direction(self.rng.choice(config.directions), self.rng)
		return Question(
			root=root,
			interval=interval,
			notes=[root, root + interval.semitones],
			direction=direction,
			options=build_options(interval, pool, self.rng),
		)

	def _review(self, pool: List[Interval], source: Sequence[Question]) -> List[Question]:
		# Stored option sets may reference intervals no longer selected
		questions = [
			q.model_copy(update={"id": uuid.uuid4().hex, "options": build_options(q.interval, pool, self.rng)})
			for q in source
		]
		self.rng.shuffle(questions)
		return questions
