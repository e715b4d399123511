import asyncio
import random

import pytest

import cadence.chart
import cadence.chords
import cadence.config
import cadence.event_emitter
import cadence.events
import cadence.harmony
import cadence.transport


# ---------------------------------------------------------------------------
# Progressions
# ---------------------------------------------------------------------------

def test_default_progression_voicings () -> None:

	progression = cadence.harmony.build_progression()

	assert [c.name for c in progression] == ["Am", "F", "C", "G"]
	assert [c.voicing for c in progression] == [(57, 60, 64), (53, 57, 60), (60, 64, 67), (55, 59, 62)]
	assert [c.bass_note for c in progression] == [45, 41, 48, 43]


def test_default_progression_functions () -> None:

	progression = cadence.harmony.build_progression()

	assert [(c.function, c.degree) for c in progression] == [
		("tonic", "i"),
		("subdominant", "VI"),
		("dominant", "III"),
		("subtonic", "VII"),
	]


def test_extensions_come_from_the_table () -> None:

	am = cadence.harmony.build_chord("Am")

	assert am.extensions == (67, 71)
	assert am.tones == [9, 0, 4]


def test_bass_note_is_an_octave_below_the_voiced_root () -> None:

	chord = cadence.harmony.build_chord("Am", reference=69)

	assert chord.voicing == (69, 72, 76)
	assert chord.bass_note == 57
	assert chord.bass_note == chord.chord.bass_note(69)


def test_chromatic_chord () -> None:

	chord = cadence.harmony.build_chord("C#")

	assert (chord.function, chord.degree) == ("chromatic", "?")
	assert chord.extensions == ()


def test_build_progression_rejects_bad_input () -> None:

	with pytest.raises(ValueError):
		cadence.harmony.build_progression([])

	with pytest.raises(ValueError):
		cadence.harmony.build_progression(["Am", "Hx"])


def test_invalid_measures_per_chord (clock_120: cadence.transport.TransportClock) -> None:

	with pytest.raises(ValueError):
		cadence.harmony.HarmonyEngine(clock_120, measures_per_chord=0)


# ---------------------------------------------------------------------------
# Progression clock
# ---------------------------------------------------------------------------

def test_advance_cycles_and_emits (clock_120: cadence.transport.TransportClock) -> None:

	emitter = cadence.event_emitter.EventEmitter()
	changes: list = []
	emitter.on(cadence.events.ChordChanged, changes.append)
	engine = cadence.harmony.HarmonyEngine(clock_120, events=emitter)

	names = [engine.advance().name for _ in range(5)]

	assert names == ["F", "C", "G", "Am", "F"]
	assert [c.index for c in changes] == [1, 2, 3, 0, 1]
	assert engine.current_chord_name() == "F"


def test_reads_do_not_change_state (harmony_120: cadence.harmony.HarmonyEngine) -> None:

	for _ in range(3):
		assert harmony_120.current_chord_name() == "Am"
		assert harmony_120.current_root_note() == 57

	assert harmony_120.index == 0


def test_chord_at_time (harmony_120: cadence.harmony.HarmonyEngine) -> None:

	"""At 120 BPM with two measures per chord each chord lasts 4000 ms."""

	assert harmony_120.chord_period_ms == pytest.approx(4000)
	assert harmony_120.chord_at_time(0).name == "Am"
	assert harmony_120.chord_at_time(3999).name == "Am"
	assert harmony_120.chord_at_time(4000).name == "F"
	assert harmony_120.chord_at_time(15999).name == "G"
	assert harmony_120.chord_at_time(16000).name == "Am"
	assert harmony_120.chord_at_time(4000, start_index=3).name == "Am"


def test_live_clock_matches_time_lookup_when_on_schedule (harmony_120: cadence.harmony.HarmonyEngine) -> None:

	"""With every tick on time the live index and the time-indexed lookup agree; a late tick makes them diverge."""

	period = harmony_120.chord_period_ms
	ticks = [period * k for k in range(1, 8)]

	def live_chord_at (t: float, tick_times: list) -> str:
		harmony_120.reset()
		for tick in tick_times:
			if tick <= t:
				harmony_120.advance()
		return harmony_120.current_chord_name()

	for t in range(0, int(period * 8), 250):
		assert live_chord_at(t, ticks) == harmony_120.chord_at_time(t).name

	late_ticks = [ticks[0] + 300] + ticks[1:]

	assert live_chord_at(period + 100, late_ticks) == "Am"
	assert harmony_120.chord_at_time(period + 100).name == "F"


@pytest.mark.asyncio
async def test_progression_clock_task_advances_and_stops () -> None:

	"""At 6000 BPM a chord lasts 80 ms; the task advances until stop() and never after."""

	clock = cadence.transport.TransportClock(cadence.config.QuantizationSettings(bpm=6000))
	emitter = cadence.event_emitter.EventEmitter()
	changes: list = []
	emitter.on(cadence.events.ChordChanged, changes.append)
	engine = cadence.harmony.HarmonyEngine(clock, events=emitter)

	engine.start()
	await asyncio.sleep(0.3)
	engine.stop()

	count = len(changes)
	assert count >= 1

	await asyncio.sleep(0.2)

	assert len(changes) == count
	assert not engine.running


# ---------------------------------------------------------------------------
# Note analysis
# ---------------------------------------------------------------------------

class TestAnalyzeNoteHarmony:

	def test_chord_tone (self, harmony_120: cadence.harmony.HarmonyEngine) -> None:
		"""C4 over Am is a chord tone."""
		analysis = harmony_120.analyze_note_harmony("C4", "Am")

		assert analysis == cadence.harmony.HarmonicAnalysis(fits=True, strength=1.0, classification="chord_tone")

	def test_clash_suggests_nearest_chord_tone (self, harmony_120: cadence.harmony.HarmonyEngine) -> None:
		"""F4 over Am clashes; E4 is one semitone away."""
		analysis = harmony_120.analyze_note_harmony("F4", "Am")

		assert not analysis.fits
		assert analysis.strength == pytest.approx(0.3)
		assert analysis.classification == "clash"
		assert analysis.suggestion == cadence.chords.note_to_midi("E4")

	def test_extension_beats_scale_tone (self, harmony_120: cadence.harmony.HarmonyEngine) -> None:
		"""G4 is both a pentatonic scale tone and an Am extension; the extension wins."""
		analysis = harmony_120.analyze_note_harmony("G4", "Am")

		assert analysis.classification == "extension"
		assert analysis.strength == pytest.approx(0.9)

	def test_extension_outside_scale (self, harmony_120: cadence.harmony.HarmonyEngine) -> None:
		assert harmony_120.analyze_note_harmony("B4", "Am").classification == "extension"

	def test_ninth_over_a_minor_is_a_scale_tone (self, harmony_120: cadence.harmony.HarmonyEngine) -> None:
		analysis = harmony_120.analyze_note_harmony("D5", "Am")

		assert analysis.classification == "scale_tone"
		assert analysis.strength == pytest.approx(0.7)

	def test_sixth_over_c_is_an_extension (self, harmony_120: cadence.harmony.HarmonyEngine) -> None:
		"""F is outside the pentatonic scale but is the added sixth of C."""
		analysis = harmony_120.analyze_note_harmony("F4", "C")

		assert analysis.classification == "extension"
		assert analysis.strength == pytest.approx(0.9)

	def test_scale_tone (self, harmony_120: cadence.harmony.HarmonyEngine) -> None:
		"""C is in the pentatonic scale but neither a chord tone nor an extension of G."""
		analysis = harmony_120.analyze_note_harmony("C4", "G")

		assert analysis.classification == "scale_tone"
		assert analysis.strength == pytest.approx(0.7)
		assert analysis.fits

	def test_midi_number_and_current_chord (self, harmony_120: cadence.harmony.HarmonyEngine) -> None:
		assert harmony_120.analyze_note_harmony(64).classification == "chord_tone"

		harmony_120.advance()

		assert harmony_120.analyze_note_harmony(65).classification == "chord_tone"

	@pytest.mark.parametrize("note", ["H9", "left", None, 200, ""])
	def test_unparseable_note_has_no_context (self, harmony_120: cadence.harmony.HarmonyEngine, note: object) -> None:
		analysis = harmony_120.analyze_note_harmony(note, "Am")

		assert analysis.classification == "no_context"
		assert analysis.fits
		assert analysis.strength == 1.0

	def test_unknown_chord_has_no_context (self, harmony_120: cadence.harmony.HarmonyEngine) -> None:
		assert harmony_120.analyze_note_harmony("C4", "Zm").classification == "no_context"

	def test_priority_order (self, harmony_120: cadence.harmony.HarmonyEngine) -> None:
		"""Every classification's strength follows the priority order."""
		s = cadence.harmony.CLASSIFICATION_STRENGTH

		assert s["chord_tone"] > s["extension"] > s["scale_tone"] > s["clash"]


def test_strength_must_be_in_unit_range () -> None:

	with pytest.raises(ValueError):
		cadence.harmony.HarmonicAnalysis(fits=True, strength=1.5, classification="chord_tone")


def test_nearest_chord_tone_prefers_lower_on_tie () -> None:

	"""D4 is two semitones from both C4 and E4 over Am."""

	am = cadence.harmony.build_chord("Am")

	assert cadence.harmony.HarmonyEngine.nearest_chord_tone(62, am) == 60


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------

class TestGeneration:

	def test_available_scale_tones (self, harmony_120: cadence.harmony.HarmonyEngine) -> None:
		assert harmony_120.available_scale_tones() == [57, 60, 62, 64, 67, 69, 72, 74, 76, 79]

	def test_candidate_sets (self, harmony_120: cadence.harmony.HarmonyEngine) -> None:
		assert harmony_120.candidate_notes("chord_tone") == [57, 60, 64]
		assert harmony_120.candidate_notes("scale_tone") == [62, 67, 74, 79]
		assert harmony_120.candidate_notes("extension") == [67, 71]
		assert harmony_120.candidate_notes("passing_tone") == [71, 62, 65, 67]
		assert harmony_120.candidate_notes("mixed") == [57, 60, 64, 57, 60, 64, 62, 67, 74]

	def test_empty_candidates_fall_back_to_chord_tones (self, clock_120: cadence.transport.TransportClock) -> None:
		engine = cadence.harmony.HarmonyEngine(clock_120, progression=cadence.harmony.build_progression(["C#"]))

		assert engine.candidate_notes("extension") == list(engine.current_chord().voicing)

	def test_unknown_kind (self, harmony_120: cadence.harmony.HarmonyEngine) -> None:
		with pytest.raises(ValueError):
			harmony_120.smart_lead_note("cluster")

	def test_smart_lead_note_remembers_last_note (self, harmony_120: cadence.harmony.HarmonyEngine) -> None:
		note = harmony_120.smart_lead_note("chord_tone")

		assert note in (57, 60, 64)
		assert harmony_120.last_played_note == note

	def test_seeded_generation_is_reproducible (self, clock_120: cadence.transport.TransportClock) -> None:
		a = cadence.harmony.HarmonyEngine(clock_120, rng=random.Random(7))
		b = cadence.harmony.HarmonyEngine(clock_120, rng=random.Random(7))

		assert [a.next_smart_note() for _ in range(20)] == [b.next_smart_note() for _ in range(20)]

	def test_full_strength_only_picks_chord_tones (self, harmony_120: cadence.harmony.HarmonyEngine) -> None:
		harmony_120.set_harmonization_strength(1.0)

		assert {harmony_120.next_smart_note() for _ in range(50)} <= {57, 60, 64}

	def test_zero_strength_never_picks_chord_tones (self, harmony_120: cadence.harmony.HarmonyEngine) -> None:
		harmony_120.set_harmonization_strength(0.0)
		notes = {harmony_120.next_smart_note() for _ in range(50)}

		assert notes <= {62, 67, 74, 79, 71}

	def test_strength_is_clamped (self, harmony_120: cadence.harmony.HarmonyEngine) -> None:
		harmony_120.set_harmonization_strength(1.5)
		assert harmony_120.harmonization_strength == 1.0

		harmony_120.set_harmonization_strength(-0.5)
		assert harmony_120.harmonization_strength == 0.0

	def test_reset (self, harmony_120: cadence.harmony.HarmonyEngine) -> None:
		harmony_120.advance()
		harmony_120.smart_lead_note()

		harmony_120.reset()

		assert harmony_120.index == 0
		assert harmony_120.last_played_note is None


# ---------------------------------------------------------------------------
# Harmonization
# ---------------------------------------------------------------------------

def test_harmonize_off_returns_melody_only (harmony_120: cadence.harmony.HarmonyEngine) -> None:

	assert harmony_120.harmonize_note(72) == [72]


def test_harmonize_adds_other_chord_tones_within_an_octave (harmony_120: cadence.harmony.HarmonyEngine) -> None:

	"""C5 over Am gets A and E; the C is not doubled."""

	harmony_120.toggle_auto_harmonize()

	assert harmony_120.harmonize_note(72) == [72, 69, 64]


def test_harmonize_clamps_up_to_a_low_melody (harmony_120: cadence.harmony.HarmonyEngine) -> None:

	harmony_120.toggle_auto_harmonize()

	assert harmony_120.harmonize_note(40) == [40, 57, 48]


def test_toggles (harmony_120: cadence.harmony.HarmonyEngine) -> None:

	assert harmony_120.toggle_voice_leading() is False
	assert harmony_120.toggle_voice_leading() is True
	assert harmony_120.toggle_auto_harmonize() is True


# ---------------------------------------------------------------------------
# Sequence analysis
# ---------------------------------------------------------------------------

def test_analyze_recorded_sequence (harmony_120: cadence.harmony.HarmonyEngine) -> None:

	"""Each note is judged against the chord sounding at its own time."""

	notes = [
		cadence.chart.ChartEvent(0, "right", pitch=60),
		cadence.chart.ChartEvent(4000, "right", pitch=65),
		cadence.chart.ChartEvent(8000, "right", pitch=66),
		cadence.chart.end_event(10000),
	]

	analysis = harmony_120.analyze_recorded_sequence(notes)

	assert analysis.harmonic_fit == pytest.approx((1.0 + 1.0 + 0.3) / 3)
	assert analysis.clash_count == 1
	assert analysis.suggestions[0] == cadence.harmony.HarmonySuggestion(
		index = 2,
		original = 66,
		suggested = 67,
		reason = "clash",
		time = 8000,
	)


def test_analyze_empty_sequence (harmony_120: cadence.harmony.HarmonyEngine) -> None:

	analysis = harmony_120.analyze_recorded_sequence([])

	assert analysis.harmonic_fit == 0
	assert analysis.suggestions == ()


def test_analyze_only_end (harmony_120: cadence.harmony.HarmonyEngine) -> None:

	assert harmony_120.analyze_recorded_sequence([cadence.chart.end_event(2000)]).harmonic_fit == 0


def test_rhythm_lanes_are_neutral (harmony_120: cadence.harmony.HarmonyEngine) -> None:

	notes = [cadence.chart.ChartEvent(0, "left"), cadence.chart.ChartEvent(500, "down")]

	assert harmony_120.analyze_recorded_sequence(notes).harmonic_fit == pytest.approx(1.0)


def test_sequence_analysis_dict_round_trip () -> None:

	analysis = cadence.harmony.SequenceAnalysis(
		harmonic_fit = 0.5,
		suggestions = (cadence.harmony.HarmonySuggestion(index=1, original=65, suggested=64, reason="clash", time=125.0),),
	)

	assert cadence.harmony.SequenceAnalysis.from_dict(analysis.to_dict()) == analysis


# ---------------------------------------------------------------------------
# Context
# ---------------------------------------------------------------------------

def test_recording_suggestions (harmony_120: cadence.harmony.HarmonyEngine) -> None:

	assert harmony_120.recording_suggestions() == {
		"strong": ["A3", "C4", "E4"],
		"good": ["D4", "G4", "D5", "G5"],
		"sophisticated": ["G4", "B4"],
	}


def test_musical_context (harmony_120: cadence.harmony.HarmonyEngine) -> None:

	context = harmony_120.musical_context()

	assert context["current_chord"] == "Am"
	assert context["next_chord"] == "F"
	assert context["degree"] == "i"
	assert context["progression"] == ["Am", "F", "C", "G"]
	assert context["bpm"] == 120
