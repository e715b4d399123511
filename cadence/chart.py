"""Charts: ordered, timed lane events terminated by an ``END`` sentinel.

A chart is validated once, at ingestion. Malformed entries raise
:class:`ChartValidationError` before anything is scheduled, so a bad chart can
never half-start a game.

Example:
	```python
	chart = Chart.from_dicts([
		{"time": 0, "lane": "left"},
		{"time": 1000, "lane": "right"},
		{"time": 2000, "lane": "END"},
	])
	```
"""

import dataclasses
import enum
import math
import typing


END_LANE = "END"


class ChartValidationError (ValueError):

	"""Raised when a chart entry is missing its time or lane, or the chart is malformed."""


@dataclasses.dataclass(frozen=True)
class ChartEvent:

	"""
	A single timed lane event. ``time`` is in ms from the start of the chart.

	``pitch`` is only set for recorded melodic notes (MIDI note number).
	"""

	time: float
	lane: str
	pitch: typing.Optional[int] = None

	@property
	def is_end (self) -> bool:

		return self.lane == END_LANE

	def to_dict (self) -> typing.Dict[str, typing.Any]:

		data: typing.Dict[str, typing.Any] = {"time": self.time, "lane": self.lane}

		if self.pitch is not None:
			data["pitch"] = self.pitch

		return data


def end_event (time: float) -> ChartEvent:

	"""Return the terminal sentinel at ``time``."""

	return ChartEvent(time=time, lane=END_LANE)


def parse_event (data: typing.Any, index: int = 0) -> ChartEvent:

	"""Validate one raw chart entry (a mapping) and return a :class:`ChartEvent`."""

	if isinstance(data, ChartEvent):
		return data

	if not isinstance(data, dict):
		raise ChartValidationError(f"Chart entry {index} must be a mapping, got {type(data).__name__}")

	if "time" not in data or data["time"] is None:
		raise ChartValidationError(f"Chart entry {index} is missing a time")

	if "lane" not in data or data["lane"] is None:
		raise ChartValidationError(f"Chart entry {index} is missing a lane")

	time = data["time"]
	lane = data["lane"]
	pitch = data.get("pitch")

	if isinstance(time, bool) or not isinstance(time, (int, float)) or not math.isfinite(time) or time < 0:
		raise ChartValidationError(f"Chart entry {index} has an invalid time: {time!r}")

	if not isinstance(lane, str) or not lane:
		raise ChartValidationError(f"Chart entry {index} has an invalid lane: {lane!r}")

	if pitch is not None and (isinstance(pitch, bool) or not isinstance(pitch, int) or not 0 <= pitch <= 127):
		raise ChartValidationError(f"Chart entry {index} has an invalid pitch: {pitch!r}")

	return ChartEvent(time=time, lane=lane, pitch=pitch)


class Chart:

	"""
	An immutable, time-sorted sequence of chart events ending in exactly one ``END``.
	"""

	def __init__ (self, events: typing.Iterable[ChartEvent]) -> None:

		"""Validate and sort the events.

		Raises:
			ChartValidationError: If there is not exactly one ``END`` event, or the
				``END`` event is not the last one in time.
		"""

		ordered = sorted(events, key=lambda e: e.time)
		ends = [e for e in ordered if e.is_end]

		if len(ends) != 1:
			raise ChartValidationError(f"A chart needs exactly one {END_LANE} event, found {len(ends)}")

		if not ordered[-1].is_end:
			# Sorting is stable: an END tied with a note may sit before it.
			if ordered[-1].time != ends[0].time:
				raise ChartValidationError(f"The {END_LANE} event must come after every other event")

			ordered.remove(ends[0])
			ordered.append(ends[0])

		self._events: typing.Tuple[ChartEvent, ...] = tuple(ordered)


	@classmethod
	def from_dicts (cls, entries: typing.Iterable[typing.Any]) -> "Chart":

		"""Validate raw mappings (e.g. parsed JSON) and build a chart."""

		return cls(parse_event(entry, index) for index, entry in enumerate(entries))


	@property
	def events (self) -> typing.Tuple[ChartEvent, ...]:

		return self._events


	@property
	def notes (self) -> typing.Tuple[ChartEvent, ...]:

		"""All events except the ``END`` sentinel."""

		return self._events[:-1]


	@property
	def end_time (self) -> float:

		return self._events[-1].time


	def to_dicts (self) -> typing.List[typing.Dict[str, typing.Any]]:

		return [event.to_dict() for event in self._events]


	def __len__ (self) -> int:

		return len(self._events)


	def __iter__ (self) -> typing.Iterator[ChartEvent]:

		return iter(self._events)


	def __getitem__ (self, index: int) -> ChartEvent:

		return self._events[index]


	def __eq__ (self, other: object) -> bool:

		if not isinstance(other, Chart):
			return NotImplemented

		return self._events == other._events


	def __repr__ (self) -> str:

		return f"Chart({len(self.notes)} notes, end={self.end_time})"


class EventState (enum.Enum):

	"""Lifecycle of an active event. ``HIT`` and ``MISSED`` are terminal."""

	SPAWNED = "spawned"
	HIT = "hit"
	MISSED = "missed"


@dataclasses.dataclass(eq=False)
class ActiveEvent:

	"""
	A chart event that has been spawned and is moving toward the target.

	Owned by the scheduler; compared by identity.
	"""

	chart_event: ChartEvent
	spawn_time: float
	current_position: float
	on_beat: bool = False
	state: EventState = EventState.SPAWNED

	@property
	def lane (self) -> str:

		return self.chart_event.lane

	@property
	def is_resolved (self) -> bool:

		return self.state is not EventState.SPAWNED


def _default_chart () -> Chart:

	notes: typing.List[ChartEvent] = []
	lanes = ("left", "right", "down", "up")

	for i in range(20):
		notes.append(ChartEvent(time=1000 + i * 1500, lane=lanes[i % 4]))

	notes.append(end_event(32000))

	return Chart(notes)


DEFAULT_CHART = _default_chart()
