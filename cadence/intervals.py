import typing

import cadence.chords


INTERVAL_DEFINITIONS: typing.Dict[str, typing.List[int]] = {
	"blues_scale": [0, 3, 5, 6, 7, 10],
	"chromatic": [0, 1, 2, 3, 4, 5, 6, 7, 8, 9, 10, 11],
	"dorian_mode": [0, 2, 3, 5, 7, 9, 10],
	"harmonic_minor": [0, 2, 3, 5, 7, 8, 11],
	"locrian_mode": [0, 1, 3, 5, 6, 8, 10],
	"lydian": [0, 2, 4, 6, 7, 9, 11],
	"major_ionian": [0, 2, 4, 5, 7, 9, 11],
	"major_pentatonic": [0, 2, 4, 7, 9],
	"melodic_minor": [0, 2, 3, 5, 7, 9, 11],
	"minor_pentatonic": [0, 3, 5, 7, 10],
	"mixolydian": [0, 2, 4, 5, 7, 9, 10],
	"natural_minor": [0, 2, 3, 5, 7, 8, 10],
	"phrygian_mode": [0, 1, 3, 5, 7, 8, 10],
}


# Scale names accepted by scale_pitch_classes(), mapped to interval sets.
SCALE_MAP: typing.Dict[str, str] = {
	"ionian": "major_ionian",
	"major": "major_ionian",
	"dorian": "dorian_mode",
	"phrygian": "phrygian_mode",
	"lydian": "lydian",
	"mixolydian": "mixolydian",
	"aeolian": "natural_minor",
	"minor": "natural_minor",
	"locrian": "locrian_mode",
	"harmonic_minor": "harmonic_minor",
	"melodic_minor": "melodic_minor",
	"major_pentatonic": "major_pentatonic",
	"minor_pentatonic": "minor_pentatonic",
	"blues": "blues_scale",
}


def get_intervals (name: str) -> typing.List[int]:

	"""
	Return a named interval list from the registry.
	"""

	if name not in INTERVAL_DEFINITIONS:
		raise ValueError(f"Unknown interval set: {name}")

	return list(INTERVAL_DEFINITIONS[name])


def scale_pitch_classes (key_pc: int, scale: str = "minor") -> typing.List[int]:

	"""
	Return the pitch classes (0–11) that belong to a key and scale, tonic first.

	Example:
		```python
		scale_pitch_classes(9, "minor")             # → [9, 11, 0, 2, 4, 5, 7]
		scale_pitch_classes(9, "minor_pentatonic")  # → [9, 0, 2, 4, 7]
		```
	"""

	if scale not in SCALE_MAP:
		raise ValueError(f"Unknown scale '{scale}'. Available: {sorted(SCALE_MAP)}")

	return [(key_pc + i) % 12 for i in get_intervals(SCALE_MAP[scale])]


def scale_pitches (key: str, scale: str, low: int, high: int) -> typing.List[int]:

	"""Return every MIDI pitch in ``[low, high]`` that belongs to the scale, ascending."""

	pcs = set(scale_pitch_classes(cadence.chords.key_name_to_pc(key), scale))

	return [p for p in range(low, high + 1) if p % 12 in pcs]


def nearest_pitch_with_class (pitch: int, pc: int) -> int:

	"""Return the MIDI pitch with pitch class ``pc`` closest to ``pitch`` (lower wins ties)."""

	offset = (pc - pitch) % 12

	if offset > 6:
		offset -= 12

	if offset == 6:
		offset = -6

	return pitch + offset
