from __future__ import annotations

import logging
import time
from typing import Callable, List, Literal, Optional, Sequence, Tuple

from .engine import AudioEngineHandle, AudioEngineUnavailable
from .models import AnswerResult, GenerationMode, HistoryRecord, Phase, Question, SessionConfig
from .playback import PlaybackScheduler
from .pools import PracticePools
from .questions import GenerationResult, QuestionGenerator
from .samples import SampleLoader
from .session import Deferrer, Session
from .storage import JsonFileStore, KeyValueStore, load_config, save_config
from .tone import ToneSource

logger = logging.getLogger(__name__)

ReviewSource = Literal["mistakes", "slow"]


def summarize(session: Session) -> HistoryRecord:
	total = len(session.queue)
	correct = sum(1 for a in session.answers if a.correct)
	times = [a.elapsed for a in session.answers]
	return HistoryRecord(
		total=total,
		correct=correct,
		accuracy=int(round(100.0 * correct / total)) if total else 0,
		avg_time=round(sum(times) / len(times), 2) if times else 0.0,
		stats=session.stats.model_copy(deep=True),
	)


class Trainer:
	"""Engine API used by the presentation layer.

	Wires the audio engine, sample loader, scheduler, question generator and
	persistent pools together and runs one session at a time.
	"""

	def __init__(
		self,
		store: Optional[KeyValueStore] = None,
		engine: Optional[AudioEngineHandle] = None,
		loader: Optional[SampleLoader] = None,
		generator: Optional[QuestionGenerator] = None,
		deferrer: Optional[Deferrer] = None,
		clock: Callable[[], float] = time.monotonic,
	) -> None:
		self.store = store if store is not None else JsonFileStore()
		self.config = load_config(self.store)
		self.pools = PracticePools(self.store)
		self.engine = engine or AudioEngineHandle()
		self.loader = loader or SampleLoader()
		self.tones = ToneSource(self.engine, self.loader)
		self.scheduler = PlaybackScheduler(self.engine, self.tones, self.config.instrument)
		self.generator = generator or QuestionGenerator()
		self.deferrer = deferrer
		self.clock = clock
		self.session: Optional[Session] = None
		self.last_summary: Optional[HistoryRecord] = None

	def update_config(self, config: SessionConfig) -> None:
		self.config = config
		save_config(self.store, config)

	async def warm_up(self) -> None:
		try:
			await self.engine.ensure_running()
		except AudioEngineUnavailable:
			logger.warning("audio engine not available yet")
		await self.loader.ensure_loaded(self.config.instrument)
		if self.config.instrument != "piano":
			await self.loader.ensure_loaded("piano")

	async def start_session(
		self,
		mode: GenerationMode = "fresh",
		custom_queue: Optional[Sequence[Question]] = None,
		source: ReviewSource = "mistakes",
	) -> GenerationResult:
		if mode == "review" and custom_queue is None:
			custom_queue = self.pools.slow_responses if source == "slow" else self.pools.mistakes
		result = self.generator.generate(self.config, mode, custom_queue)
		if not result.ok:
			logger.info("session not started: %s", result.issue)
			return result
		self.abandon()
		try:
			await self.engine.ensure_running()
		except AudioEngineUnavailable:
			logger.warning("audio engine suspended at session start; playback will retry")
		await self.loader.ensure_loaded(self.config.instrument)
		self.scheduler.instrument_id = self.config.instrument
		self.session = Session(result.questions, self.pools, self.scheduler, self.deferrer, self.clock)
		self.last_summary = None
		logger.info("started %s session with %d questions", mode, len(result.questions))
		return result

	async def play_current_question(self) -> bool:
		if self.session is None:
			return False
		return await self.session.play_question()

	async def play_option(self, interval_id: str) -> bool:
		if self.session is None:
			return False
		return await self.session.preview_option(interval_id)

	def handle_answer(self, interval_id: str) -> Optional[AnswerResult]:
		if self.session is None:
			return None
		return self.session.submit_answer(interval_id)

	def next_question(self) -> bool:
		if self.session is None or not self.session.advance():
			return False
		if self.session.finished:
			self.last_summary = summarize(self.session)
			self.pools.add_history(self.last_summary)
			logger.info(
				"session finished: %d/%d correct", self.last_summary.correct, self.last_summary.total
			)
		return True

	def abandon(self) -> None:
		if self.session is not None and not self.session.finished:
			self.session.abandon()
			logger.info("session abandoned at question %d", self.session.state.index + 1)
		self.session = None

	@property
	def current_question(self) -> Optional[Question]:
		return self.session.current_question if self.session else None

	@property
	def phase(self) -> Phase:
		return self.session.phase if self.session else Phase.IDLE

	@property
	def elapsed(self) -> float:
		return self.session.elapsed if self.session else 0.0

	@property
	def last_answer(self) -> Optional[AnswerResult]:
		return self.session.state.answer if self.session else None

	@property
	def progress(self) -> Optional[Tuple[int, int]]:
		if self.session is None:
			return None
		return self.session.state.index + 1, len(self.session.queue)

	@property
	def mistakes(self) -> List[Question]:
		return self.pools.mistakes

	@property
	def slow_responses(self) -> List[Question]:
		return self.pools.slow_responses

	@property
	def history(self) -> List[HistoryRecord]:
		return self.pools.history
