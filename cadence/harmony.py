"""Harmony engine: a cyclic chord progression and note-level music theory.

The engine owns one piece of mutable harmonic state, the index into a fixed
progression, plus the last generated lead note used for voice leading.

Two ways of asking "which chord is playing?" exist and they deliberately differ:

- :meth:`HarmonyEngine.current_chord` reads the live index, advanced by the
  progression clock (an asyncio task) or by calling :meth:`HarmonyEngine.advance`.
- :meth:`HarmonyEngine.chord_at_time` derives the chord from an elapsed time,
  which is what recorded-sequence analysis uses so late timer ticks can never
  misattribute a note.

Note classification priority, strongest first::

	chord_tone (1.0) > extension (0.9) > scale_tone (0.7) > clash (0.3)

Notes that cannot be parsed, or chords that cannot be resolved, produce a
neutral ``no_context`` result rather than an exception.
"""

import asyncio
import dataclasses
import logging
import math
import random
import typing

import cadence.chords
import cadence.event_emitter
import cadence.events
import cadence.intervals
import cadence.transport
import cadence.voice_leading


logger = logging.getLogger(__name__)


CHORD_TONE = "chord_tone"
SCALE_TONE = "scale_tone"
EXTENSION = "extension"
PASSING_TONE = "passing_tone"
CLASH = "clash"
NO_CONTEXT = "no_context"
MIXED = "mixed"

CLASSIFICATION_STRENGTH: typing.Dict[str, float] = {
	CHORD_TONE: 1.0,
	EXTENSION: 0.9,
	SCALE_TONE: 0.7,
	PASSING_TONE: 0.5,
	CLASH: 0.3,
	NO_CONTEXT: 1.0,
}

NOTE_KINDS = (CHORD_TONE, SCALE_TONE, EXTENSION, PASSING_TONE, MIXED)

DEFAULT_HARMONIZATION_STRENGTH = 0.7

# Chance of an extension (rather than a scale tone) once next_smart_note has
# decided against a chord tone.
EXTENSION_THRESHOLD = 0.7

# Reference pitch for voicings: chords are stacked in root position around A3.
VOICING_REFERENCE = 57

# Lead-note range for the melodic scale (A3..G5).
SCALE_LOW = 57
SCALE_HIGH = 79

# Passing tones are placed in octave 4 (C4 = 60).
PASSING_TONE_OCTAVE_BASE = 60

DEFAULT_PROGRESSION_SYMBOLS = ("Am", "F", "C", "G")

# Colour tones per chord name (sevenths, added ninths and sixths). Am has no
# sixth: F4 over Am is judged a clash.
EXTENSIONS: typing.Dict[str, typing.List[str]] = {
	"Am": ["G4", "B4"],
	"F": ["E4", "D5", "G4"],
	"C": ["B4", "D5", "F4"],
	"G": ["F4", "A4", "E5"],
	"Dm": ["C5", "E4", "G4"],
	"Em": ["D5", "F#4", "A4"],
	"E": ["D5", "F4", "B4"],
	"E7": ["F4", "B4", "C#5"],
	"Bdim": ["A4", "D5"],
}

# Harmonic role per scale degree. Predominant degrees read as subdominant and
# the relative-major chord as dominant, so Am-F-C-G is tonic, subdominant,
# dominant, subtonic.
_DEGREE_FUNCTIONS = ("tonic", "subdominant", "dominant", "subdominant", "dominant", "subdominant", "subtonic")
_ROMAN = ("I", "II", "III", "IV", "V", "VI", "VII")


@dataclasses.dataclass(frozen=True)
class ProgressionChord:

	"""
	One element of a cyclic progression.

	``voicing`` and ``extensions`` are MIDI pitches; ``tones`` are pitch classes.
	"""

	chord: cadence.chords.Chord
	function: str
	degree: str
	voicing: typing.Tuple[int, ...]
	bass_note: int
	extensions: typing.Tuple[int, ...] = ()

	@property
	def name (self) -> str:

		return self.chord.name()

	@property
	def root_pc (self) -> int:

		return self.chord.root_pc

	@property
	def root_note (self) -> int:

		return self.voicing[0]

	@property
	def tones (self) -> typing.List[int]:

		return self.chord.pitch_classes()


@dataclasses.dataclass(frozen=True)
class HarmonicAnalysis:

	"""How well a single note fits a chord."""

	fits: bool
	strength: float
	classification: str
	suggestion: typing.Optional[int] = None

	def __post_init__ (self) -> None:

		if not 0.0 <= self.strength <= 1.0:
			raise ValueError(f"Strength must be between 0 and 1, got {self.strength}")

	def to_dict (self) -> typing.Dict[str, typing.Any]:

		return dataclasses.asdict(self)

	@classmethod
	def from_dict (cls, data: typing.Dict[str, typing.Any]) -> "HarmonicAnalysis":

		return cls(
			fits = bool(data["fits"]),
			strength = float(data["strength"]),
			classification = data["classification"],
			suggestion = data.get("suggestion"),
		)


@dataclasses.dataclass(frozen=True)
class HarmonySuggestion:

	"""A clashing note in a recorded sequence and the chord tone to use instead."""

	index: int
	original: typing.Union[int, str]
	suggested: int
	reason: str
	time: float

	def to_dict (self) -> typing.Dict[str, typing.Any]:

		return dataclasses.asdict(self)

	@classmethod
	def from_dict (cls, data: typing.Dict[str, typing.Any]) -> "HarmonySuggestion":

		return cls(
			index = int(data["index"]),
			original = data["original"],
			suggested = int(data["suggested"]),
			reason = data["reason"],
			time = data["time"],
		)


@dataclasses.dataclass(frozen=True)
class SequenceAnalysis:

	"""Aggregate harmonic fit for a recorded sequence."""

	harmonic_fit: float
	suggestions: typing.Tuple[HarmonySuggestion, ...] = ()

	@property
	def clash_count (self) -> int:

		return len(self.suggestions)

	def to_dict (self) -> typing.Dict[str, typing.Any]:

		return {
			"harmonic_fit": self.harmonic_fit,
			"suggestions": [s.to_dict() for s in self.suggestions],
		}

	@classmethod
	def from_dict (cls, data: typing.Dict[str, typing.Any]) -> "SequenceAnalysis":

		return cls(
			harmonic_fit = float(data["harmonic_fit"]),
			suggestions = tuple(HarmonySuggestion.from_dict(s) for s in data.get("suggestions", [])),
		)


def describe_degree (chord: cadence.chords.Chord, key_pc: int, mode: str = "minor") -> typing.Tuple[str, str]:

	"""Return ``(function, roman numeral)`` for a chord relative to a key.

	The numeral is lower case for minor and diminished chords. Chords whose
	root lies outside the key's diatonic scale are labelled ``"chromatic"``.

	Example:
		```python
		describe_degree(parse_chord_symbol("F"), key_pc=9)   # ("subdominant", "VI")
		describe_degree(parse_chord_symbol("Am"), key_pc=9)  # ("tonic", "i")
		```
	"""

	diatonic = cadence.intervals.scale_pitch_classes(key_pc, mode)

	if chord.root_pc not in diatonic:
		return "chromatic", "?"

	degree = diatonic.index(chord.root_pc)
	numeral = _ROMAN[degree]

	if chord.quality in ("minor", "minor_7th", "diminished", "half_diminished_7th"):
		numeral = numeral.lower()

	return _DEGREE_FUNCTIONS[degree], numeral


def build_chord (symbol: str, key: str = "A", mode: str = "minor", reference: int = VOICING_REFERENCE) -> ProgressionChord:

	"""Build a :class:`ProgressionChord` from a chord symbol such as ``"Am"`` or ``"G7"``.

	Raises ``ValueError`` for unknown symbols.
	"""

	chord = cadence.chords.parse_chord_symbol(symbol)
	voicing = tuple(chord.tones(reference))
	function, degree = describe_degree(chord, cadence.chords.key_name_to_pc(key), mode)
	extensions = tuple(cadence.chords.note_to_midi(n) for n in EXTENSIONS.get(chord.name(), []))

	return ProgressionChord(
		chord = chord,
		function = function,
		degree = degree,
		voicing = voicing,
		bass_note = chord.bass_note(reference),
		extensions = extensions,
	)


def build_progression (
	symbols: typing.Iterable[str] = DEFAULT_PROGRESSION_SYMBOLS,
	key: str = "A",
	mode: str = "minor",
	reference: int = VOICING_REFERENCE
) -> typing.List[ProgressionChord]:

	"""
	Build a progression from chord symbols.

	Example:
		```python
		progression = build_progression(["Am", "F", "C", "G"])
		[c.voicing for c in progression]
		# [(57, 60, 64), (53, 57, 60), (60, 64, 67), (55, 59, 62)]
		```
	"""

	progression = [build_chord(symbol, key, mode, reference) for symbol in symbols]

	if not progression:
		raise ValueError("A progression needs at least one chord")

	return progression


def _parse_note (note: typing.Any) -> typing.Optional[int]:

	"""Return a MIDI pitch, or None when the note cannot be understood."""

	try:
		return cadence.chords.note_to_midi(note)

	except (ValueError, TypeError):
		return None


class HarmonyEngine:

	"""
	Tracks the current chord and classifies, generates and harmonizes notes.

	All randomness goes through ``rng``; with a seeded ``random.Random`` the
	sequence of generated notes is fully reproducible.
	"""

	def __init__ (
		self,
		clock: cadence.transport.TransportClock,
		progression: typing.Optional[typing.Sequence[ProgressionChord]] = None,
		key: str = "A",
		scale: str = "minor_pentatonic",
		mode: str = "minor",
		measures_per_chord: int = 2,
		voice_leading: bool = True,
		auto_harmonize: bool = False,
		harmonization_strength: float = DEFAULT_HARMONIZATION_STRENGTH,
		rng: typing.Optional[random.Random] = None,
		events: typing.Optional[cadence.event_emitter.EventEmitter] = None
	) -> None:

		"""
		Parameters:
			clock: Transport clock used for progression timing.
			progression: Chords to cycle through (default Am-F-C-G).
			key: Tonic note name of the key.
			scale: Melodic scale for lead notes and scale-tone analysis.
			mode: Diatonic mode used for passing tones and degree labels.
			measures_per_chord: Measures each chord lasts.
			voice_leading: Weight generated notes toward the previous note.
			auto_harmonize: Add chord tones under melodic notes.
			harmonization_strength: Probability of choosing a chord tone in
				:meth:`next_smart_note`, between 0 and 1.
			rng: Seeded ``random.Random`` for deterministic generation.
			events: Emitter that receives :class:`~cadence.events.ChordChanged`.
		"""

		if isinstance(measures_per_chord, bool) or not isinstance(measures_per_chord, int) or measures_per_chord <= 0:
			raise ValueError("measures_per_chord must be a positive integer")

		self.clock = clock
		self.progression: typing.List[ProgressionChord] = list(progression) if progression is not None else build_progression(key=key, mode=mode)

		if not self.progression:
			raise ValueError("A progression needs at least one chord")

		self.key = key
		self.key_pc = cadence.chords.key_name_to_pc(key)
		self.scale = scale
		self.mode = mode
		self.scale_pcs = set(cadence.intervals.scale_pitch_classes(self.key_pc, scale))
		self.measures_per_chord = measures_per_chord
		self.voice_leading = voice_leading
		self.auto_harmonize = auto_harmonize
		self.harmonization_strength = 0.0
		self.set_harmonization_strength(harmonization_strength)
		self.rng = rng or random.Random()
		self.events = events or cadence.event_emitter.EventEmitter()

		self.index = 0
		self.last_played_note: typing.Optional[int] = None

		self.running = False
		self._task: typing.Optional[asyncio.Task] = None


	# --- Progression clock ---

	@property
	def chord_period_ms (self) -> float:

		"""Duration of one chord in ms at the current tempo."""

		return self.clock.ms_per_measure * self.measures_per_chord


	def start (self) -> None:

		"""Start the progression clock. Must be called from a running event loop."""

		if self.running:
			return

		self.running = True
		self._task = asyncio.get_running_loop().create_task(self._run_progression_clock())

		logger.info(f"Progression clock started ({self.current_chord_name()}, {self.chord_period_ms:.0f} ms per chord)")


	def stop (self) -> None:

		"""Stop the progression clock. No chord change fires after this returns."""

		if not self.running and self._task is None:
			return

		self.running = False

		if self._task is not None:
			self._task.cancel()
			self._task = None

		logger.info("Progression clock stopped")


	async def _run_progression_clock (self) -> None:

		loop = asyncio.get_running_loop()
		next_change = loop.time() + self.chord_period_ms / 1000

		while self.running:

			sleep_time = next_change - loop.time()

			if sleep_time > 0:
				await asyncio.sleep(sleep_time)

			if not self.running:
				break

			self.advance()

			# The period is re-read so tempo changes apply to the next chord.
			next_change += self.chord_period_ms / 1000


	def advance (self) -> ProgressionChord:

		"""Move to the next chord (wrapping) and emit ``ChordChanged``."""

		self.index = (self.index + 1) % len(self.progression)
		chord = self.progression[self.index]

		logger.debug(f"Chord changed to {chord.name} ({chord.degree})")

		self.events.emit(cadence.events.ChordChanged(index=self.index, chord=chord))

		return chord


	def chord_at_time (self, elapsed_ms: float, start_index: int = 0) -> ProgressionChord:

		"""Return the chord sounding at ``elapsed_ms``, derived from time alone."""

		steps = math.floor(elapsed_ms / self.chord_period_ms)

		return self.progression[(start_index + steps) % len(self.progression)]


	# --- Pure reads ---

	def current_chord (self) -> ProgressionChord:

		return self.progression[self.index]


	def current_root_note (self) -> int:

		return self.current_chord().root_note


	def current_chord_name (self) -> str:

		return self.current_chord().name


	# --- Generation ---

	def available_scale_tones (self) -> typing.List[int]:

		"""Every pitch of the melodic scale between A3 and G5, ascending."""

		return cadence.intervals.scale_pitches(self.key, self.scale, SCALE_LOW, SCALE_HIGH)


	def passing_tones (self, chord: ProgressionChord) -> typing.List[int]:

		"""Diatonic pitches (octave 4) whose pitch class is not in the chord."""

		chord_pcs = set(chord.tones)
		diatonic = cadence.intervals.scale_pitch_classes(self.key_pc, self.mode)

		return [PASSING_TONE_OCTAVE_BASE + pc for pc in diatonic if pc not in chord_pcs]


	def candidate_notes (self, kind: str = MIXED, chord: typing.Optional[ProgressionChord] = None) -> typing.List[int]:

		"""Return the candidate pitches for a note kind. An empty set falls back to chord tones."""

		chord = chord or self.current_chord()
		chord_tones = list(chord.voicing)
		chord_pcs = set(chord.tones)
		scale_tones = [p for p in self.available_scale_tones() if p % 12 not in chord_pcs]

		if kind == CHORD_TONE:
			candidates = chord_tones

		elif kind == SCALE_TONE:
			candidates = scale_tones

		elif kind == EXTENSION:
			candidates = list(chord.extensions)

		elif kind == PASSING_TONE:
			candidates = self.passing_tones(chord)

		elif kind == MIXED:
			candidates = chord_tones + chord_tones + scale_tones[:3]

		else:
			raise ValueError(f"Unknown note kind: {kind}. Available: {NOTE_KINDS}")

		return candidates or chord_tones


	def smart_lead_note (self, kind: str = MIXED) -> int:

		"""Generate a lead note of the given kind and remember it for voice leading."""

		candidates = self.candidate_notes(kind)

		note = cadence.voice_leading.choose_note(
			candidates,
			self.last_played_note,
			self.rng,
			voice_leading = self.voice_leading,
		)

		self.last_played_note = note

		return note


	def next_smart_note (self) -> int:

		"""Generate the next lead note, mostly chord tones with occasional colour.

		With probability ``harmonization_strength`` a chord tone is chosen;
		otherwise an extension (30%) or a scale tone (70%).
		"""

		if self.rng.random() > self.harmonization_strength:
			kind = EXTENSION if self.rng.random() > EXTENSION_THRESHOLD else SCALE_TONE

		else:
			kind = CHORD_TONE

		return self.smart_lead_note(kind)


	# --- Analysis ---

	def _resolve_chord (self, chord: typing.Union[ProgressionChord, str, None]) -> typing.Optional[ProgressionChord]:

		if chord is None:
			return self.current_chord()

		if isinstance(chord, ProgressionChord):
			return chord

		try:
			return build_chord(chord, self.key, self.mode)

		except (ValueError, TypeError):
			return None


	@staticmethod
	def nearest_chord_tone (pitch: int, chord: ProgressionChord) -> int:

		"""Return the chord tone closest to ``pitch`` in semitones (lower pitch wins ties)."""

		candidates = [cadence.intervals.nearest_pitch_with_class(pitch, pc) for pc in chord.tones]

		return min(candidates, key=lambda p: (abs(p - pitch), p))


	def analyze_note_harmony (
		self,
		note: typing.Any,
		chord: typing.Union[ProgressionChord, str, None] = None
	) -> HarmonicAnalysis:

		"""
		Classify a note against a chord (the current chord by default).

		``note`` may be a MIDI number or a note name such as ``"C4"``; ``chord``
		may be a :class:`ProgressionChord` or a chord symbol. This never raises:
		anything it cannot interpret yields ``no_context``.

		Example:
			```python
			engine.analyze_note_harmony("C4", "Am")
			# HarmonicAnalysis(fits=True, strength=1.0, classification="chord_tone", suggestion=None)
			engine.analyze_note_harmony("F4", "Am")
			# HarmonicAnalysis(fits=False, strength=0.3, classification="clash", suggestion=64)
			```
		"""

		pitch = _parse_note(note)
		target = self._resolve_chord(chord)

		if pitch is None or target is None:
			return HarmonicAnalysis(fits=True, strength=CLASSIFICATION_STRENGTH[NO_CONTEXT], classification=NO_CONTEXT)

		pc = pitch % 12

		if pc in target.tones:
			classification = CHORD_TONE

		elif pc in {p % 12 for p in target.extensions}:
			classification = EXTENSION

		elif pc in self.scale_pcs:
			classification = SCALE_TONE

		else:
			return HarmonicAnalysis(
				fits = False,
				strength = CLASSIFICATION_STRENGTH[CLASH],
				classification = CLASH,
				suggestion = self.nearest_chord_tone(pitch, target),
			)

		return HarmonicAnalysis(fits=True, strength=CLASSIFICATION_STRENGTH[classification], classification=classification)


	@staticmethod
	def _clamp_octave (pitch: int, melody: int) -> int:

		"""Move ``pitch`` by whole octaves until it is within one octave of ``melody``."""

		melody_octave = melody // 12
		octave = min(max(pitch // 12, melody_octave - 1), melody_octave + 1)

		return octave * 12 + pitch % 12


	def harmonize_note (self, note: int) -> typing.List[int]:

		"""Return the melody note followed by the chord tones that harmonize it.

		Only chord tones with a different pitch class are added. Returns
		``[note]`` when auto-harmonize is off.
		"""

		if not self.auto_harmonize:
			return [note]

		chord = self.current_chord()
		notes = [note]

		for tone in chord.voicing:
			if tone % 12 != note % 12:
				notes.append(self._clamp_octave(tone, note))

		return notes


	def analyze_recorded_sequence (self, notes: typing.Sequence[typing.Any], start_index: int = 0) -> SequenceAnalysis:

		"""
		Score a recorded sequence against the chord sounding at each note's time.

		Each item needs ``time`` and ``lane`` attributes and may carry ``pitch``.
		``END`` events are skipped. The fit is the mean classification strength;
		an empty sequence has a fit of 0.
		"""

		total = 0.0
		count = 0
		suggestions: typing.List[HarmonySuggestion] = []

		for index, item in enumerate(notes):

			if item.lane == "END":
				continue

			pitch = getattr(item, "pitch", None)
			note: typing.Union[int, str] = pitch if pitch is not None else item.lane
			analysis = self.analyze_note_harmony(note, self.chord_at_time(item.time, start_index))

			total += analysis.strength
			count += 1

			if not analysis.fits and analysis.suggestion is not None:
				suggestions.append(HarmonySuggestion(
					index = index,
					original = note,
					suggested = analysis.suggestion,
					reason = analysis.classification,
					time = item.time,
				))

		if count == 0:
			return SequenceAnalysis(harmonic_fit=0.0)

		return SequenceAnalysis(harmonic_fit=total / count, suggestions=tuple(suggestions))


	# --- Context ---

	def recording_suggestions (self) -> typing.Dict[str, typing.List[str]]:

		"""Note names to aim for over the current chord, grouped by strength."""

		chord = self.current_chord()
		chord_pcs = set(chord.tones)

		return {
			"strong": [cadence.chords.midi_to_note_name(p) for p in chord.voicing],
			"good": [cadence.chords.midi_to_note_name(p) for p in self.available_scale_tones() if p % 12 not in chord_pcs][:4],
			"sophisticated": [cadence.chords.midi_to_note_name(p) for p in chord.extensions],
		}


	def musical_context (self) -> typing.Dict[str, typing.Any]:

		"""A snapshot of the harmonic state for display."""

		chord = self.current_chord()
		next_chord = self.progression[(self.index + 1) % len(self.progression)]

		return {
			"key": f"{self.key} {self.mode}",
			"scale": self.scale,
			"current_chord": chord.name,
			"function": chord.function,
			"degree": chord.degree,
			"next_chord": next_chord.name,
			"progression": [c.name for c in self.progression],
			"index": self.index,
			"bpm": self.clock.bpm,
			"voice_leading": self.voice_leading,
			"auto_harmonize": self.auto_harmonize,
			"harmonization_strength": self.harmonization_strength,
		}


	# --- Settings ---

	def toggle_auto_harmonize (self) -> bool:

		self.auto_harmonize = not self.auto_harmonize
		logger.info(f"Auto-harmonize {'on' if self.auto_harmonize else 'off'}")

		return self.auto_harmonize


	def toggle_voice_leading (self) -> bool:

		self.voice_leading = not self.voice_leading
		logger.info(f"Voice leading {'on' if self.voice_leading else 'off'}")

		return self.voice_leading


	def set_harmonization_strength (self, strength: float) -> None:

		"""Set the chord-tone probability, clamped to ``[0, 1]``."""

		self.harmonization_strength = max(0.0, min(1.0, float(strength)))


	def reset (self) -> None:

		"""Return to the first chord and forget the last played note."""

		self.index = 0
		self.last_played_note = None
