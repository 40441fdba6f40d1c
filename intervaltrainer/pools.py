from __future__ import annotations

import logging
from typing import List, Tuple

from pydantic import ValidationError

from .models import HistoryRecord, Question
from .storage import KEY_HISTORY, KEY_MISTAKES, KEY_SLOW, KeyValueStore

logger = logging.getLogger(__name__)

SLOW_RESPONSE_SECONDS = 2.0
HISTORY_LIMIT = 10


def pool_key(q: Question) -> Tuple[str, int]:
	return q.interval.id, q.root


class PracticePools:
	"""Mistake, slow-response and history lists persisted in a key-value store.

	A correct answer clears the matching mistake entry. Slow-response
	entries are never cleared by a later fast answer.
	"""

	def __init__(self, store: KeyValueStore) -> None:
		self.store = store
		self.mistakes: List[Question] = self._load_questions(KEY_MISTAKES)
		self.slow_responses: List[Question] = self._load_questions(KEY_SLOW)
		self.history: List[HistoryRecord] = self._load_history()

	def _load_questions(self, key: str) -> List[Question]:
		raw = self.store.get(key, [])
		if not isinstance(raw, list):
			logger.warning("discarding malformed %s pool", key)
			return []
		out: List[Question] = []
		for item in raw:
			try:
				q = Question.model_validate(item)
			except ValidationError as e:
				logger.warning("dropping invalid %s entry: %s", key, e)
				continue
			if not self._contains(out, q):
				out.append(q)
		return out

	def _load_history(self) -> List[HistoryRecord]:
		raw = self.store.get(KEY_HISTORY, [])
		if not isinstance(raw, list):
			return []
		out: List[HistoryRecord] = []
		for item in raw:
			try:
				out.append(HistoryRecord.model_validate(item))
			except ValidationError as e:
				logger.warning("dropping invalid history entry: %s", e)
		return out[:HISTORY_LIMIT]

	@staticmethod
	def _contains(pool: List[Question], q: Question) -> bool:
		key = pool_key(q)
		return any(pool_key(m) == key for m in pool)

	def _save(self, key: str, pool: List[Question]) -> None:
		self.store.set(key, [m.model_dump(mode="json") for m in pool])

	def record_answer(self, q: Question, correct: bool, elapsed: float) -> None:
		if not correct:
			if not self._contains(self.mistakes, q):
				self.mistakes.append(q)
				self._save(KEY_MISTAKES, self.mistakes)
		elif self._contains(self.mistakes, q):
			key = pool_key(q)
			self.mistakes = [m for m in self.mistakes if pool_key(m) != key]
			self._save(KEY_MISTAKES, self.mistakes)
		if elapsed > SLOW_RESPONSE_SECONDS and not self._contains(self.slow_responses, q):
			self.slow_responses.append(q)
			self._save(KEY_SLOW, self.slow_responses)

	def add_history(self, record: HistoryRecord) -> None:
		self.history = [record] + self.history[: HISTORY_LIMIT - 1]
		self.store.set(KEY_HISTORY, [h.model_dump(mode="json") for h in self.history])
