from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, List, Optional, Protocol, Sequence

from .engine import AudioEngineUnavailable
from .models import AnswerResult, Phase, Question, SessionState, Stats
from .playback import PlaybackScheduler
from .pools import PracticePools
from .theory import interval_by_id

logger = logging.getLogger(__name__)


class Cancelable(Protocol):
	def cancel(self) -> None:
		...


class Deferrer(Protocol):
	def call_later(self, delay: float, callback: Callable[[], None]) -> Cancelable:
		...


class AsyncioDeferrer:
	def call_later(self, delay: float, callback: Callable[[], None]) -> Cancelable:
		return asyncio.get_running_loop().call_later(delay, callback)


def response_elapsed(start: Optional[float], now: float) -> float:
	if start is None:
		return 0.0
	return max(0.0, now - start)


class Session:
	"""One pass over a question queue.

	Phases per question::

		IDLE -> PLAYING -> WAITING_ANSWER -> ANSWERED -> (IDLE | FINISHED)

	The PLAYING phase lasts exactly the duration reported by the scheduler.
	The response timer starts when WAITING_ANSWER is first entered for a
	question; replays leave it alone. Calls that do not fit the current
	phase are ignored.
	"""

	def __init__(
		self,
		questions: Sequence[Question],
		pools: PracticePools,
		scheduler: PlaybackScheduler,
		deferrer: Optional[Deferrer] = None,
		clock: Callable[[], float] = time.monotonic,
	) -> None:
		self.queue: List[Question] = list(questions)
		self.pools = pools
		self.scheduler = scheduler
		self.deferrer = deferrer or AsyncioDeferrer()
		self.clock = clock
		self.state = SessionState()
		self.answers: List[AnswerResult] = []
		self.stats = Stats()
		self.abandoned = False
		self._pending: Optional[Cancelable] = None
		self._token = 0
		self._heard = False
		if not self.queue:
			self.state.phase = Phase.FINISHED

	@property
	def phase(self) -> Phase:
		return self.state.phase

	@property
	def finished(self) -> bool:
		return self.state.phase == Phase.FINISHED

	@property
	def current_question(self) -> Optional[Question]:
		if self.finished:
			return None
		return self.queue[self.state.index]

	@property
	def elapsed(self) -> float:
		"""Response time so far, or the measured time once answered."""
		if self.state.response_time is not None:
			return self.state.response_time
		return response_elapsed(self.state.timer_start, self.clock())

	def _cancel_pending(self) -> None:
		if self._pending is not None:
			self._pending.cancel()
			self._pending = None

	def _settled_phase(self) -> Phase:
		if self.state.answer is not None:
			return Phase.ANSWERED
		return Phase.WAITING_ANSWER if self._heard else Phase.IDLE

	async def play_question(self) -> bool:
		"""Play the current question.

		Returns False if the audio engine could not be resumed; the caller
		should ask the user to try again.
		"""
		q = self.current_question
		if q is None:
			return False
		previous = self.state.phase
		if previous == Phase.PLAYING:
			previous = self._settled_phase()
		self._cancel_pending()
		self._token += 1
		token = self._token
		self.state.phase = Phase.PLAYING
		try:
			duration = await self.scheduler.schedule(q.notes, q.playback_mode, q.direction)
		except AudioEngineUnavailable as e:
			logger.warning("playback not scheduled: %s", e)
			if token == self._token:
				self.state.phase = previous
			return False
		if token != self._token:
			# Superseded by another play request, an advance or abandonment
			return False
		self._pending = self.deferrer.call_later(duration, lambda: self._playback_finished(token))
		return True

	def _playback_finished(self, token: int) -> None:
		if token != self._token or self.state.phase != Phase.PLAYING:
			return
		self._pending = None
		if self.state.answer is not None:
			self.state.phase = Phase.ANSWERED
			return
		self.state.phase = Phase.WAITING_ANSWER
		if not self._heard:
			self._heard = True
			self.state.timer_start = self.clock()

	async def preview_option(self, interval_id: str) -> bool:
		"""Play an answer option from the current root in the question's mode.

		Phase, timer and any pending playback gate are left as they are.
		"""
		q = self.current_question
		if q is None:
			return False
		interval = interval_by_id(interval_id)
		notes = [q.root, q.root + interval.semitones]
		try:
			await self.scheduler.schedule(notes, q.playback_mode, q.direction)
		except AudioEngineUnavailable as e:
			logger.warning("option preview not scheduled: %s", e)
			return False
		return True

	def submit_answer(self, interval_id: str) -> Optional[AnswerResult]:
		"""Record the answer to the current question; later submissions are ignored.

		An answer given during playback is kept and the session settles on
		ANSWERED when the playback gate fires. Elapsed time is 0 if the
		timer has not started yet.
		"""
		if self.finished or self.state.answer is not None:
			logger.debug("ignoring answer %s in phase %s", interval_id, self.state.phase.value)
			return None
		q = self.queue[self.state.index]
		elapsed = response_elapsed(self.state.timer_start, self.clock())
		result = AnswerResult(
			chosen=interval_id,
			correct_id=q.interval.id,
			correct=interval_id == q.interval.id,
			elapsed=elapsed,
		)
		self.state.answer = result
		self.state.response_time = elapsed
		if self.state.phase != Phase.PLAYING:
			self.state.phase = Phase.ANSWERED
		self.answers.append(result)
		self.stats.record(q.interval.id, interval_id, result.correct)
		self.pools.record_answer(q, result.correct, elapsed)
		return result

	def advance(self) -> bool:
		if self.state.phase != Phase.ANSWERED:
			logger.debug("ignoring advance in phase %s", self.state.phase.value)
			return False
		self._cancel_pending()
		self._token += 1
		self._heard = False
		if self.state.index < len(self.queue) - 1:
			self.state.index += 1
			self.state.reset_question()
		else:
			self.state.phase = Phase.FINISHED
		return True

	def abandon(self) -> None:
		"""Tear the session down; answers already submitted stay recorded."""
		self._cancel_pending()
		self._token += 1
		self.abandoned = True
		self.state.phase = Phase.FINISHED
