"""Chord definitions and pitch utilities.

This module provides pitch class mappings, note-name parsing and the `Chord` class
for representing chords by root pitch class and quality.

Module-level constants:
- `NOTE_NAME_TO_PC`: Maps note names (e.g., `"C"`, `"F#"`, `"Bb"`) to pitch classes (0-11)
- `PC_TO_NOTE_NAME`: Maps pitch classes to note names
- `CHORD_INTERVALS`: Maps chord quality names to interval lists (semitones from root)
- `CHORD_SUFFIX`: Maps chord quality names to chord-symbol suffixes (e.g., `"m"`, `"7"`)

Module-level helpers:
- `key_name_to_pc(key_name)`: Validate a key name and return its pitch class (0–11).
- `note_to_midi(note)`: Parse ``"C4"`` style names (or pass through MIDI ints). C4 = 60.
- `midi_to_note_name(pitch)`: The inverse, e.g. ``69`` → ``"A4"``.
- `parse_chord_symbol(symbol)`: ``"Am"`` → ``Chord(root_pc=9, quality="minor")``.
"""

import dataclasses
import re
import typing


NOTE_NAME_TO_PC: typing.Dict[str, int] = {
	"C": 0,
	"C#": 1,
	"Db": 1,
	"D": 2,
	"D#": 3,
	"Eb": 3,
	"E": 4,
	"F": 5,
	"F#": 6,
	"Gb": 6,
	"G": 7,
	"G#": 8,
	"Ab": 8,
	"A": 9,
	"A#": 10,
	"Bb": 10,
	"B": 11,
}

PC_TO_NOTE_NAME: typing.List[str] = [
	"C",
	"C#",
	"D",
	"D#",
	"E",
	"F",
	"F#",
	"G",
	"G#",
	"A",
	"A#",
	"B",
]

NoteLike = typing.Union[int, str]

_NOTE_PATTERN = re.compile(r"^([A-G])([#b]?)(-?\d+)$")


def key_name_to_pc (key_name: str) -> int:

	"""Validate a key name and return its pitch class (0–11).

	Parameters:
		key_name: Note name (e.g. ``"C"``, ``"F#"``, ``"Bb"``).

	Returns:
		Pitch class integer (0–11).

	Raises:
		ValueError: If the key name is not recognised.

	Example:
		```python
		key_name_to_pc("C")   # → 0
		key_name_to_pc("Bb")  # → 10
		```
	"""

	if key_name not in NOTE_NAME_TO_PC:
		raise ValueError(
			f"Unknown key name: {key_name!r}. Expected e.g. 'C', 'F#', 'Bb'."
		)

	return NOTE_NAME_TO_PC[key_name]


def note_to_midi (note: NoteLike) -> int:

	"""Return the MIDI note number for a note name such as ``"C4"`` or ``"F#3"``.

	Integers are treated as MIDI note numbers already and returned unchanged.
	Octave numbering follows the C4 = 60 convention.

	Raises:
		ValueError: If the name cannot be parsed or the result is outside 0–127.

	Example:
		```python
		note_to_midi("C4")   # → 60
		note_to_midi("A3")   # → 57
		note_to_midi(64)     # → 64
		```
	"""

	if isinstance(note, bool):
		raise ValueError(f"Not a note: {note!r}")

	if isinstance(note, int):
		pitch = note

	else:
		match = _NOTE_PATTERN.match(str(note).strip())

		if match is None:
			raise ValueError(f"Unrecognised note name: {note!r}")

		letter, accidental, octave = match.groups()

		if letter + accidental not in NOTE_NAME_TO_PC:
			raise ValueError(f"Unsupported spelling: {note!r}")

		pitch = (int(octave) + 1) * 12 + NOTE_NAME_TO_PC[letter + accidental]

	if pitch < 0 or pitch > 127:
		raise ValueError(f"Note {note!r} is outside the MIDI range")

	return pitch


def midi_to_note_name (pitch: int) -> str:

	"""Return the sharp-spelled note name for a MIDI pitch (``60`` → ``"C4"``)."""

	return f"{PC_TO_NOTE_NAME[pitch % 12]}{pitch // 12 - 1}"


CHORD_INTERVALS: typing.Dict[str, typing.List[int]] = {
	"major": [0, 4, 7],
	"minor": [0, 3, 7],
	"diminished": [0, 3, 6],
	"augmented": [0, 4, 8],
	"dominant_7th": [0, 4, 7, 10],
	"major_7th": [0, 4, 7, 11],
	"minor_7th": [0, 3, 7, 10],
	"half_diminished_7th": [0, 3, 6, 10],
	"sus2": [0, 2, 7],
	"sus4": [0, 5, 7],
}

CHORD_SUFFIX: typing.Dict[str, str] = {
	"major": "",
	"minor": "m",
	"diminished": "dim",
	"augmented": "+",
	"dominant_7th": "7",
	"major_7th": "maj7",
	"minor_7th": "m7",
	"half_diminished_7th": "m7b5",
	"sus2": "sus2",
	"sus4": "sus4",
}

SUFFIX_TO_QUALITY: typing.Dict[str, str] = {suffix: quality for quality, suffix in CHORD_SUFFIX.items()}


@dataclasses.dataclass(frozen=True)
class Chord:

	"""
	Represents a chord as a root pitch class and quality.
	"""

	root_pc: int
	quality: str


	def intervals (self) -> typing.List[int]:

		"""
		Return the chord intervals for this chord quality.
		"""

		if self.quality not in CHORD_INTERVALS:
			raise ValueError(f"Unknown chord quality: {self.quality}")

		return CHORD_INTERVALS[self.quality]


	def pitch_classes (self) -> typing.List[int]:

		"""Return the chord's pitch classes, root first."""

		return [(self.root_pc + interval) % 12 for interval in self.intervals()]


	def tones (self, root: int) -> typing.List[int]:

		"""Return MIDI note numbers for the chord in root position near ``root``.

		Finds the MIDI note for the chord's root pitch class that is closest to
		``root`` and stacks the chord intervals above it.

		Example:
			```python
			Chord(root_pc=9, quality="minor").tones(root=57)  # [57, 60, 64] - A3 C4 E4
			Chord(root_pc=5, quality="major").tones(root=57)  # [53, 57, 60] - F3 A3 C4
			```
		"""

		offset = (self.root_pc - root) % 12
		if offset > 6:
			offset -= 12

		effective_root = root + offset

		return [effective_root + interval for interval in self.intervals()]


	def root_note (self, root_midi: int) -> int:

		"""Return the MIDI note number for the chord root nearest to *root_midi*."""

		return self.tones(root_midi)[0]


	def bass_note (self, root_midi: int, octave_offset: int = -1) -> int:

		"""
		Return the chord root shifted by a number of octaves.

		Example:
			```python
			chord = Chord(root_pc=9, quality="minor")  # A minor
			chord.bass_note(57)   # → 45  (A2, one octave below A3)
			```
		"""

		return self.root_note(root_midi) + (12 * octave_offset)


	def name (self) -> str:

		"""
		Return a human-friendly chord name.
		"""

		root_name = PC_TO_NOTE_NAME[self.root_pc % 12]
		suffix = CHORD_SUFFIX.get(self.quality, "")

		return f"{root_name}{suffix}"


def parse_chord_symbol (symbol: str) -> Chord:

	"""Parse a chord symbol such as ``"Am"``, ``"F"``, ``"G7"`` or ``"Bbmaj7"``.

	Raises:
		ValueError: If the root or the suffix is not recognised.
	"""

	text = symbol.strip()

	if len(text) >= 2 and text[1] in ("#", "b") and text[:2] in NOTE_NAME_TO_PC:
		root_name, suffix = text[:2], text[2:]

	else:
		root_name, suffix = text[:1], text[1:]

	root_pc = key_name_to_pc(root_name)

	if suffix not in SUFFIX_TO_QUALITY:
		raise ValueError(f"Unknown chord symbol: {symbol!r}")

	return Chord(root_pc=root_pc, quality=SUFFIX_TO_QUALITY[suffix])
