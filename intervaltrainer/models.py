from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


Direction = Literal["ascending", "descending", "harmonic"]
DirectionMode = Literal["ascending", "descending", "harmonic", "random"]
PlaybackMode = Literal["harmonic", "melodic"]
GenerationMode = Literal["fresh", "review"]
Family = Literal["piano", "plucked"]


class Interval(BaseModel):
	model_config = ConfigDict(frozen=True)

	id: str
	name: str
	semitones: int = Field(ge=1, le=12)


class Instrument(BaseModel):
	model_config = ConfigDict(frozen=True)

	id: str
	name: str
	family: Family
	sample_path: str
	sample_ext: str = "mp3"


class SessionConfig(BaseModel):
	range_min: int = Field(default=48, ge=0, le=127)
	range_max: int = Field(default=72, ge=0, le=127)
	# Empty lists are accepted here; the generator reports them to the user.
	directions: List[DirectionMode] = Field(default=["ascending"])
	question_count: int = Field(default=10, ge=1, le=50)
	intervals: List[str] = Field(
		default=["m2","M2","m3","M3","P4","TT","P5","m6","M6","m7","M7","P8"]
	)
	instrument: str = Field(default="piano")

	@model_validator(mode="after")
	def check_range(self) -> "SessionConfig":
		if self.range_min >= self.range_max:
			raise ValueError("range_min must be below range_max")
		return self

	@field_validator("intervals")
	@classmethod
	def known_intervals(cls, v: List[str]) -> List[str]:
		from .theory import SEMITONES
		unknown = [i for i in v if i not in SEMITONES]
		if unknown:
			raise ValueError(f"unknown interval ids: {unknown}")
		return v

	@field_validator("instrument")
	@classmethod
	def known_instrument(cls, v: str) -> str:
		from .theory import INSTRUMENTS
		if v not in INSTRUMENTS:
			raise ValueError(f"unknown instrument: {v}")
		return v


class Question(BaseModel):
	model_config = ConfigDict(frozen=True)

	id: str = Field(default_factory=lambda: uuid.uuid4().hex)
	root: int = Field(ge=0, le=127)
	interval: Interval
	notes: List[int]
	direction: Direction
	options: List[Interval]

	@property
	def playback_mode(self) -> PlaybackMode:
		return "harmonic" if self.direction == "harmonic" else "melodic"

	@property
	def option_ids(self) -> List[str]:
		return [o.id for o in self.options]


class AnswerResult(BaseModel):
	chosen: str
	correct_id: str
	correct: bool
	elapsed: float


class Phase(str, Enum):
	IDLE = "idle"
	PLAYING = "playing"
	WAITING_ANSWER = "waiting_answer"
	ANSWERED = "answered"
	FINISHED = "finished"


class SessionState(BaseModel):
	index: int = 0
	phase: Phase = Phase.IDLE
	timer_start: Optional[float] = None
	response_time: Optional[float] = None
	answer: Optional[AnswerResult] = None

	def reset_question(self) -> None:
		self.phase = Phase.IDLE
		self.timer_start = None
		self.response_time = None
		self.answer = None


class IntervalStats(BaseModel):
	seen: int = 0
	correct: int = 0


class Stats(BaseModel):
	by_interval: Dict[str, IntervalStats] = Field(default_factory=dict)
	confusion: Dict[str, Dict[str, int]] = Field(default_factory=dict)

	def record(self, truth: str, chosen: str, correct: bool) -> None:
		st_i = self.by_interval.setdefault(truth, IntervalStats())
		st_i.seen += 1
		if correct:
			st_i.correct += 1
		else:
			conf = self.confusion.setdefault(truth, {})
			conf[chosen] = conf.get(chosen, 0) + 1


class HistoryRecord(BaseModel):
	date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
	total: int
	correct: int
	accuracy: int = Field(ge=0, le=100)
	avg_time: float
	stats: Stats = Field(default_factory=Stats)
