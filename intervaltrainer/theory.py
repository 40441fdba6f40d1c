import re
from typing import Dict, List, Tuple

from .models import Instrument, Interval

INTERVALS: Tuple[Interval, ...] = (
	Interval(id="m2", name="Minor 2nd", semitones=1),
	Interval(id="M2", name="Major 2nd", semitones=2),
	Interval(id="m3", name="Minor 3rd", semitones=3),
	Interval(id="M3", name="Major 3rd", semitones=4),
	Interval(id="P4", name="Perfect 4th", semitones=5),
	Interval(id="TT", name="Tritone", semitones=6),
	Interval(id="P5", name="Perfect 5th", semitones=7),
	Interval(id="m6", name="Minor 6th", semitones=8),
	Interval(id="M6", name="Major 6th", semitones=9),
	Interval(id="m7", name="Minor 7th", semitones=10),
	Interval(id="M7", name="Major 7th", semitones=11),
	Interval(id="P8", name="Octave", semitones=12),
)

INSTRUMENTS: Dict[str, Instrument] = {
	"piano": Instrument(id="piano", name="Piano", family="piano", sample_path="acoustic_grand_piano-mp3"),
	"guitar": Instrument(id="guitar", name="Guitar", family="plucked", sample_path="acoustic_guitar_nylon-mp3"),
	"ukulele": Instrument(id="ukulele", name="Ukulele", family="plucked", sample_path="acoustic_guitar_steel-mp3"),
}

SEMITONES: Dict[str, int] = {i.id: i.semitones for i in INTERVALS}

A4_MIDI = 69
A4_FREQ = 440.0
MIDI_MIN = 0
MIDI_MAX = 127

NOTE_NAMES = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]
# Sample assets are named with flats
FLAT_NAMES = ["C", "Db", "D", "Eb", "E", "F", "Gb", "G", "Ab", "A", "Bb", "B"]

_NOTE_RE = re.compile(r"^([A-Ga-g])([#b]?)(-?\d+)$")
_NATURALS = {"C": 0, "D": 2, "E": 4, "F": 5, "G": 7, "A": 9, "B": 11}


def midi_to_freq(m: int) -> float:
	return float(A4_FREQ * (2.0 ** ((m - A4_MIDI) / 12.0)))


def octave(m: int) -> int:
	return m // 12 - 1


def pitch_class(m: int) -> int:
	return m % 12


def note_name(m: int) -> str:
	return f"{NOTE_NAMES[pitch_class(m)]}{octave(m)}"


def sample_note_name(m: int) -> str:
	return f"{FLAT_NAMES[pitch_class(m)]}{octave(m)}"


def note_to_midi(note: str) -> int:
	"""Parse a note name such as "C4", "F#2" or "Eb3" into a MIDI pitch."""
	match = _NOTE_RE.match(note.strip())
	if not match:
		raise ValueError(f"not a note name: {note!r}")
	letter, accidental, oct_str = match.groups()
	m = (int(oct_str) + 1) * 12 + _NATURALS[letter.upper()]
	if accidental == "#":
		m += 1
	elif accidental == "b":
		m -= 1
	if not MIDI_MIN <= m <= MIDI_MAX:
		raise ValueError(f"{note!r} is outside the MIDI range")
	return m


def interval_names() -> List[str]:
	return list(SEMITONES.keys())


def interval_by_id(interval_id: str) -> Interval:
	for interval in INTERVALS:
		if interval.id == interval_id:
			return interval
	raise KeyError(interval_id)


def intervals_for(ids: List[str]) -> List[Interval]:
	"""Catalog entries for the given ids, in catalog order."""
	wanted = set(ids)
	return [i for i in INTERVALS if i.id in wanted]


def instrument_by_id(instrument_id: str) -> Instrument:
	return INSTRUMENTS[instrument_id]
