import pytest

from intervaltrainer.models import Phase, SessionConfig
from intervaltrainer.storage import KEY_HISTORY, MemoryStore
from intervaltrainer.trainer import Trainer


async def _answer_current(trainer, deferrer, clock, interval_id, after):
	assert await trainer.play_current_question()
	deferrer.fire_all()
	assert trainer.phase == Phase.WAITING_ANSWER
	clock.advance(after)
	return trainer.handle_answer(interval_id)


@pytest.mark.asyncio
async def test_fifth_only_session(make_trainer):
	config = SessionConfig(range_min=60, range_max=72, intervals=["P5"], directions=["ascending"], question_count=1)
	trainer = make_trainer(config=config)
	result = await trainer.start_session("fresh")
	assert result.ok
	q = trainer.current_question
	assert 60 <= q.root < 72
	assert q.notes == [q.root, q.root + 7]
	assert q.option_ids == ["P5"]
	assert trainer.progress == (1, 1)
	assert trainer.loader.is_ready("piano")


@pytest.mark.asyncio
async def test_wrong_and_slow_then_mastered(make_trainer, deferrer, clock):
	store = MemoryStore()
	config = SessionConfig(range_min=60, range_max=72, intervals=["P5", "P4"], directions=["ascending"], question_count=1)
	trainer = make_trainer(store=store, config=config)
	await trainer.start_session()
	q = trainer.current_question
	wrong = "P4" if q.interval.id == "P5" else "P5"
	answer = await _answer_current(trainer, deferrer, clock, wrong, 3.2)
	assert not answer.correct
	assert answer.elapsed == pytest.approx(3.2)
	assert trainer.last_answer == answer
	assert len(trainer.mistakes) == 1
	assert len(trainer.slow_responses) == 1

	# a later session, on the same store, reviewing the mistake
	later = make_trainer(store=store, config=config, seed=4)
	assert len(later.mistakes) == 1
	await later.start_session("review")
	assert later.current_question.root == q.root
	answer = await _answer_current(later, deferrer, clock, q.interval.id, 1.1)
	assert answer.correct
	assert later.mistakes == []
	assert len(later.slow_responses) == 1


@pytest.mark.asyncio
async def test_review_from_slow_pool(make_trainer, deferrer, clock):
	store = MemoryStore()
	config = SessionConfig(intervals=["M3"], question_count=1)
	trainer = make_trainer(store=store, config=config)
	await trainer.start_session()
	await _answer_current(trainer, deferrer, clock, "M3", 5.0)
	assert trainer.mistakes == []
	result = await trainer.start_session("review", source="slow")
	assert result.ok and trainer.progress == (1, 1)
	empty = await trainer.start_session("review", source="mistakes")
	assert empty.issue == "empty_queue"


@pytest.mark.asyncio
async def test_config_issue_does_not_start_session(make_trainer):
	trainer = make_trainer(config=SessionConfig(directions=[]))
	result = await trainer.start_session()
	assert result.issue == "no_direction"
	assert trainer.session is None
	assert trainer.current_question is None
	assert trainer.phase == Phase.IDLE


@pytest.mark.asyncio
async def test_finished_session_is_added_to_history(make_trainer, deferrer, clock):
	store = MemoryStore()
	trainer = make_trainer(store=store, config=SessionConfig(question_count=3, intervals=["m2", "P8"]))
	await trainer.start_session()
	times = [1.0, 2.0, 3.0]
	for i, t in enumerate(times):
		q = trainer.current_question
		chosen = q.interval.id if i < 2 else ("m2" if q.interval.id == "P8" else "P8")
		await _answer_current(trainer, deferrer, clock, chosen, t)
		assert trainer.next_question()
	assert trainer.session.finished
	summary = trainer.last_summary
	assert (summary.total, summary.correct, summary.accuracy) == (3, 2, 67)
	assert summary.avg_time == pytest.approx(2.0)
	assert trainer.history[0] == summary
	assert len(store.get(KEY_HISTORY)) == 1
	assert not trainer.next_question()


@pytest.mark.asyncio
async def test_abandon_keeps_committed_answers(make_trainer, deferrer, clock):
	trainer = make_trainer(config=SessionConfig(question_count=2, intervals=["m2", "M2"]))
	await trainer.start_session()
	q = trainer.current_question
	wrong = "m2" if q.interval.id == "M2" else "M2"
	await _answer_current(trainer, deferrer, clock, wrong, 0.5)
	trainer.next_question()
	await trainer.play_current_question()
	pending = deferrer.pending[0]
	trainer.abandon()
	assert pending.cancelled
	assert trainer.session is None
	assert len(trainer.mistakes) == 1
	assert trainer.history == []


def test_update_config_persists(make_trainer):
	store = MemoryStore()
	trainer = make_trainer(store=store)
	trainer.update_config(SessionConfig(instrument="ukulele"))
	assert Trainer(store=store).config.instrument == "ukulele"


@pytest.mark.asyncio
async def test_guitar_session_loads_guitar_samples(make_trainer):
	trainer = make_trainer(config=SessionConfig(instrument="guitar"))
	await trainer.start_session()
	assert trainer.loader.is_ready("guitar")
	assert trainer.scheduler.instrument_id == "guitar"


@pytest.mark.asyncio
async def test_warm_up_loads_configured_instrument_and_piano(make_trainer, fake_fetcher_cls):
	fetcher = fake_fetcher_cls()
	trainer = make_trainer(config=SessionConfig(instrument="guitar"), fetcher=fetcher)
	await trainer.warm_up()
	assert trainer.loader.is_ready("guitar")
	assert trainer.loader.is_ready("piano")
	assert not trainer.loader.is_ready("ukulele")
	assert len(fetcher.calls) == 10


@pytest.mark.asyncio
async def test_play_option_previews_from_current_root(make_trainer):
	trainer = make_trainer(config=SessionConfig(intervals=["P5"], question_count=1))
	assert not await trainer.play_option("P8")
	await trainer.start_session()
	q = trainer.current_question
	assert await trainer.play_option("P8")
	assert [v.pitch for v in trainer.engine.sink.voices] == [q.root, q.root + 12]
	assert trainer.phase == Phase.IDLE
	assert trainer.session.state.timer_start is None


@pytest.mark.asyncio
async def test_engine_voice_count_stays_bounded(make_trainer, deferrer, clock):
	trainer = make_trainer(config=SessionConfig(question_count=6, intervals=["M3", "P5"]))
	await trainer.start_session()
	for _ in range(6):
		await _answer_current(trainer, deferrer, clock, trainer.current_question.interval.id, 5.0)
		assert len(trainer.engine.sink.voices) <= 2
		assert trainer.next_question()
	assert trainer.session.finished
