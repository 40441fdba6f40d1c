import asyncio

import pytest

from intervaltrainer.samples import REFERENCE_PITCHES, SampleLoader, fetch_bytes, sample_url
from intervaltrainer.theory import INSTRUMENTS


def test_sample_url():
	piano = INSTRUMENTS["piano"]
	assert sample_url("https://cdn.example/audio/", piano, 60) == "https://cdn.example/audio/acoustic_grand_piano-mp3/C4.mp3"
	assert sample_url("audio", INSTRUMENTS["guitar"], 61) == "audio/acoustic_guitar_nylon-mp3/Db4.mp3"


def test_fetch_bytes_reads_local_files(tmp_path):
	p = tmp_path / "C4.wav"
	p.write_bytes(b"abc")
	assert fetch_bytes(str(p)) == b"abc"


@pytest.mark.asyncio
async def test_ensure_loaded_loads_every_reference_pitch(fetcher):
	loader = SampleLoader(base="samples", fetcher=fetcher)
	assert not loader.is_ready("piano")
	await loader.ensure_loaded("piano")
	assert loader.is_ready("piano")
	assert sorted(loader.samples("piano")) == list(REFERENCE_PITCHES)
	assert len(fetcher.calls) == len(REFERENCE_PITCHES)


@pytest.mark.asyncio
async def test_repeat_calls_are_noops(fetcher):
	loader = SampleLoader(base="samples", fetcher=fetcher)

	await loader.ensure_loaded("piano")
	await loader.ensure_loaded("piano")
	assert len(fetcher.calls) == len(REFERENCE_PITCHES)


@pytest.mark.asyncio
async def test_concurrent_calls_share_one_load(fetcher):
	loader = SampleLoader(base="samples", fetcher=fetcher)

	await asyncio.gather(*(loader.ensure_loaded("guitar") for _ in range(3)))
	assert len(fetcher.calls) == len(REFERENCE_PITCHES)
	assert loader.is_ready("guitar")
	assert not loader.is_ready("piano")


@pytest.mark.asyncio
async def test_failed_pitch_is_skipped(fake_fetcher_cls):
	fetcher = fake_fetcher_cls(fail=["/C4."])
	loader = SampleLoader(base="samples", fetcher=fetcher)
	await loader.ensure_loaded("piano")
	assert loader.is_ready("piano")
	assert sorted(loader.samples("piano")) == [36, 48, 72, 84]


@pytest.mark.asyncio
async def test_total_failure_leaves_instrument_without_samples(fake_fetcher_cls):
	fetcher = fake_fetcher_cls(fail=["samples"])
	loader = SampleLoader(base="samples", fetcher=fetcher)
	await loader.ensure_loaded("ukulele")
	assert loader.is_ready("ukulele")
	assert loader.samples("ukulele") == {}


@pytest.mark.asyncio
async def test_undecodable_sample_is_skipped(fake_fetcher_cls):
	fetcher = fake_fetcher_cls(payload=b"definitely not audio")
	loader = SampleLoader(base="samples", fetcher=fetcher)
	await loader.ensure_loaded("piano")
	assert loader.samples("piano") == {}
