import random
from typing import Callable, List

import pytest
import requests

from intervaltrainer.audio import SR, oscillator, wav_bytes
from intervaltrainer.engine import AudioEngineHandle
from intervaltrainer.questions import QuestionGenerator
from intervaltrainer.samples import SampleLoader
from intervaltrainer.storage import MemoryStore, save_config
from intervaltrainer.trainer import Trainer


class FakeClock:
	def __init__(self, t: float = 100.0) -> None:
		self.t = t

	def __call__(self) -> float:
		return self.t

	def advance(self, dt: float) -> None:
		self.t += dt


class Handle:
	def __init__(self, delay: float, callback: Callable[[], None]) -> None:
		self.delay = delay
		self.callback = callback
		self.cancelled = False
		self.fired = False

	def cancel(self) -> None:
		self.cancelled = True


class ManualDeferrer:
	def __init__(self) -> None:
		self.handles: List[Handle] = []

	def call_later(self, delay: float, callback: Callable[[], None]) -> Handle:
		h = Handle(delay, callback)
		self.handles.append(h)
		return h

	@property
	def pending(self) -> List[Handle]:
		return [h for h in self.handles if not h.cancelled and not h.fired]

	def fire(self, h: Handle) -> None:
		h.fired = True
		h.callback()

	def fire_all(self) -> None:
		for h in self.pending:
			self.fire(h)


SAMPLE_WAV = wav_bytes(oscillator(261.63, 0.5, "sine"), SR)


class FakeFetcher:
	def __init__(self, fail=(), payload: bytes = SAMPLE_WAV) -> None:
		self.fail = tuple(fail)
		self.payload = payload
		self.calls: List[str] = []

	def __call__(self, url: str) -> bytes:
		self.calls.append(url)
		if any(f in url for f in self.fail):
			raise requests.ConnectionError(f"unreachable: {url}")
		return self.payload


@pytest.fixture
def clock():
	return FakeClock()


@pytest.fixture
def deferrer():
	return ManualDeferrer()


@pytest.fixture
def fetcher():
	return FakeFetcher()


@pytest.fixture
def engine(clock):
	return AudioEngineHandle(clock=clock)


@pytest.fixture
def store():
	return MemoryStore()


@pytest.fixture
def make_trainer(clock, deferrer):
	def _make(store=None, config=None, fetcher=None, seed=0):
		store = store if store is not None else MemoryStore()
		if config is not None:
			save_config(store, config)
		return Trainer(
			store=store,
			engine=AudioEngineHandle(clock=clock),
			loader=SampleLoader(base="samples", fetcher=fetcher or FakeFetcher()),
			generator=QuestionGenerator(random.Random(seed)),
			deferrer=deferrer,
			clock=clock,
		)
	return _make


@pytest.fixture
def fake_fetcher_cls():
	return FakeFetcher
