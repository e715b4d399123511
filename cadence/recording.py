"""Recording pipeline: capture lane presses, classify them and build a Song.

While recording, every press is timestamped (whole ms), snapped to the grid
when quantization is enabled, and, on the melodic lane, given a pitch that is
classified against the current chord. Other lanes are purely rhythmic.

When the recording finishes the captured notes become a chart: an ``END``
sentinel is appended 2000 ms after the last note, the chart is quantized and
deduplicated, and the whole sequence is scored against the chord progression
by elapsed time.
"""

import dataclasses
import logging
import time
import typing

import cadence.chart
import cadence.event_emitter
import cadence.events
import cadence.harmony
import cadence.quantizer
import cadence.song
import cadence.transport


logger = logging.getLogger(__name__)


END_PADDING_MS = 2000
CLEAN_BONUS = 20
RHYTHM = "rhythm"


@dataclasses.dataclass
class RecordedNote:

	"""One captured press. ``time`` is the raw elapsed time rounded to whole ms."""

	time: int
	lane: str
	quantized_time: typing.Optional[float] = None
	pitch: typing.Optional[int] = None
	harmonic_analysis: typing.Optional[cadence.harmony.HarmonicAnalysis] = None

	def to_chart_event (self) -> cadence.chart.ChartEvent:

		"""Return the chart event for this note, at its quantized time when known."""

		event_time = self.quantized_time if self.quantized_time is not None else self.time

		return cadence.chart.ChartEvent(time=event_time, lane=self.lane, pitch=self.pitch)


def musical_score (analysis: cadence.harmony.SequenceAnalysis) -> int:

	"""Harmonic fit as a percentage, plus a bonus when nothing clashed."""

	bonus = CLEAN_BONUS if analysis.clash_count == 0 else 0

	return cadence.transport.round_half_up(analysis.harmonic_fit * 100 + bonus)


class Recorder:

	"""Captures one recording at a time and turns it into a :class:`~cadence.song.Song`."""

	def __init__ (
		self,
		quantizer: cadence.quantizer.Quantizer,
		harmony: cadence.harmony.HarmonyEngine,
		melodic_lane: str = "right",
		duration_seconds: float = 30.0,
		events: typing.Optional[cadence.event_emitter.EventEmitter] = None
	) -> None:

		"""
		Parameters:
			quantizer: Grid used for snapping recorded times.
			harmony: Harmony engine used for pitch generation and analysis.
			melodic_lane: The lane whose presses carry pitches.
			duration_seconds: Maximum recording length.
			events: Emitter that receives :class:`~cadence.events.NoteClassified`.
		"""

		self.quantizer = quantizer
		self.harmony = harmony
		self.melodic_lane = melodic_lane
		self.duration_seconds = duration_seconds
		self.events = events or cadence.event_emitter.EventEmitter()

		self.notes: typing.List[RecordedNote] = []
		self.name: typing.Optional[str] = None
		self.base_score = 350
		self.recording = False


	def start (self, name: str, base_score: int = 350) -> None:

		"""Begin a new recording. A non-empty name is required."""

		if not isinstance(name, str) or not name.strip():
			raise ValueError("Recording name is required")

		if base_score <= 0:
			raise ValueError("Base score must be positive")

		self.name = name.strip()
		self.base_score = base_score
		self.notes = []
		self.recording = True

		logger.info(f"Recording '{self.name}' started")


	def is_expired (self, elapsed_ms: float) -> bool:

		"""True once ``elapsed_ms`` reaches the recording duration limit."""

		return elapsed_ms >= self.duration_seconds * 1000


	def record (self, lane: str, elapsed_ms: float, pitch: typing.Optional[int] = None) -> str:

		"""
		Capture a press and return its classification token.

		Melodic-lane presses return the harmonic classification (e.g.
		``"chord_tone"``); every other lane returns ``"rhythm"``. When no pitch
		is supplied for a melodic press one is generated by the harmony engine.
		"""

		if not self.recording:
			raise RuntimeError("Not recording")

		note = RecordedNote(time=cadence.transport.round_half_up(elapsed_ms), lane=lane)

		if self.quantizer.enabled:
			note.quantized_time = self.quantizer.quantize_time(note.time)

		if lane != self.melodic_lane:
			self.notes.append(note)
			return RHYTHM

		note.pitch = pitch if pitch is not None else self.harmony.next_smart_note()
		note.harmonic_analysis = self.harmony.analyze_note_harmony(note.pitch)
		self.notes.append(note)

		self.events.emit(cadence.events.NoteClassified(note=note, analysis=note.harmonic_analysis))

		return note.harmonic_analysis.classification


	def chart_events (self) -> typing.List[cadence.chart.ChartEvent]:

		"""The recorded notes as chart events, in recording order, followed by ``END``."""

		events = [note.to_chart_event() for note in self.notes]
		last_time = max((e.time for e in events), default=0)
		events.append(cadence.chart.end_event(last_time + END_PADDING_MS))

		return events


	def finish (self, duration: typing.Optional[float] = None, recorded_at: typing.Optional[float] = None) -> cadence.song.Song:

		"""
		Stop recording and build the song.

		Parameters:
			duration: Recording length in seconds, stored on the song.
			recorded_at: Epoch seconds; defaults to now.
		"""

		if self.name is None:
			raise ValueError("Recording name is required")

		if not self.notes:
			logger.warning(f"Recording '{self.name}' has no notes")

		self.recording = False

		quantized = self.quantizer.enabled
		events = self.quantizer.quantize_recorded_chart(self.chart_events())
		chart = cadence.chart.Chart(events)
		analysis = self.harmony.analyze_recorded_sequence(chart.events)

		song = cadence.song.Song(
			name = self.name,
			base_score = self.base_score,
			chart = chart,
			quantized = quantized,
			harmonic_analysis = analysis,
			musical_score = musical_score(analysis),
			recorded_at = recorded_at if recorded_at is not None else time.time(),
			duration = duration,
		)

		logger.info(f"Recording '{song.name}' finished: {len(chart.notes)} notes, harmonic fit {analysis.harmonic_fit:.2f}, musical score {song.musical_score}")

		return song
