"""Typed events emitted by the engine.

Renderers and other observers subscribe to these through
:class:`~cadence.event_emitter.EventEmitter` instead of the engine calling into
audio or display code directly::

	session.events.on(cadence.events.NoteHit, lambda e: print(e.grade, e.points))
"""

import dataclasses
import typing

import cadence.chart
import cadence.transport

if typing.TYPE_CHECKING:
	from cadence.harmony import HarmonicAnalysis, ProgressionChord
	from cadence.recording import RecordedNote


@dataclasses.dataclass(frozen=True)
class NoteSpawned:

	active: cadence.chart.ActiveEvent
	elapsed_ms: float


@dataclasses.dataclass(frozen=True)
class NoteMoved:

	"""Per-frame position update for one active event."""

	active: cadence.chart.ActiveEvent
	position: float


@dataclasses.dataclass(frozen=True)
class NoteHit:

	active: cadence.chart.ActiveEvent
	elapsed_ms: float
	distance: float
	accuracy: float
	points: int
	grade: str


@dataclasses.dataclass(frozen=True)
class NoteMissed:

	active: cadence.chart.ActiveEvent
	elapsed_ms: float


@dataclasses.dataclass(frozen=True)
class ChartEnded:

	elapsed_ms: float


@dataclasses.dataclass(frozen=True)
class ChordChanged:

	index: int
	chord: "ProgressionChord"


@dataclasses.dataclass(frozen=True)
class NoteClassified:

	note: "RecordedNote"
	analysis: "HarmonicAnalysis"


@dataclasses.dataclass(frozen=True)
class BeatTick:

	position: cadence.transport.MusicalPosition
	beat_type: str
