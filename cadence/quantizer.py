"""Grid snapping, beat markers and measure-aligned durations.

The quantizer is built on a :class:`~cadence.transport.TransportClock` and reads
the same shared settings, so enabling/disabling quantization or switching the
resolution takes effect on the next call.

Duplicate policy for recorded charts: when two recorded events in the same lane
snap to the same grid point, the one recorded first is kept and later ones are
dropped. This is a deliberate rule, not an accident of iteration order.
"""

import dataclasses
import logging
import math
import typing

import cadence.chart
import cadence.transport


logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class BeatMarker:

	"""A grid point for lookahead visualisation."""

	time: float
	position: cadence.transport.MusicalPosition
	is_downbeat: bool
	is_beat: bool
	type: str


@dataclasses.dataclass(frozen=True)
class MeasureBoundary:

	"""The start of a measure."""

	time: float
	measure: int


@dataclasses.dataclass(frozen=True)
class QuantizationPreview:

	"""Where an event would snap to, and by how much it would move."""

	event: cadence.chart.ChartEvent
	quantized_time: float
	position: cadence.transport.MusicalPosition
	adjustment: float


def beat_type (position: cadence.transport.MusicalPosition) -> str:

	"""Classify a grid position as ``"downbeat"``, ``"beat"`` or ``"subdivision"``."""

	if position.beat == 0 and position.subdivision == 0:
		return "downbeat"

	if position.subdivision == 0:
		return "beat"

	return "subdivision"


class Quantizer:

	"""Snaps timestamps to the active grid."""

	def __init__ (self, clock: cadence.transport.TransportClock) -> None:

		self.clock = clock
		self.settings = clock.settings


	@property
	def enabled (self) -> bool:

		return self.settings.enabled


	def set_enabled (self, enabled: bool) -> None:

		self.settings.enabled = enabled


	def set_resolution (self, resolution: str) -> None:

		"""Switch the grid. Raises ``InvalidConfiguration`` for unknown names."""

		self.settings.resolution = resolution


	@property
	def interval (self) -> float:

		return self.clock.resolution_interval_ms


	def quantize_time (self, timestamp: float) -> float:

		"""Snap a timestamp to the nearest grid point (halves round up).

		Returns the timestamp unchanged when quantization is disabled.
		"""

		if not self.settings.enabled:
			return timestamp

		interval = self.interval

		return cadence.transport.round_half_up(timestamp / interval) * interval


	def next_quantized_time (self, timestamp: float) -> float:

		"""Return the first grid point at or after ``timestamp``."""

		interval = self.interval

		return math.ceil(timestamp / interval) * interval


	def generate_beat_markers (self, start_ms: float, end_ms: float) -> typing.Iterator[BeatMarker]:

		"""Yield a marker for every grid point in ``[start_ms, end_ms]``.

		This is a generator: it is finite and can be consumed once. Grid times
		are computed as ``index * interval`` and positions from ``index`` itself,
		so long windows do not accumulate floating-point drift.
		"""

		interval = self.interval
		index = math.ceil(round(start_ms / interval, cadence.transport.GRID_PRECISION))
		last = self.clock.grid_step(end_ms)

		while index <= last:

			time = index * interval
			position = self.clock.position_at_step(index)
			kind = beat_type(position)

			yield BeatMarker(
				time = time,
				position = position,
				is_downbeat = kind == "downbeat",
				is_beat = position.subdivision == 0,
				type = kind,
			)

			index += 1


	def quantize_recorded_chart (self, events: typing.Sequence[cadence.chart.ChartEvent]) -> typing.List[cadence.chart.ChartEvent]:

		"""Snap recorded events to the grid, drop duplicates and sort by time.

		Events are compared on ``(quantized_time, lane)``; the earliest recorded
		event wins. The sort is stable, so events sharing a grid point keep their
		recording order.
		"""

		if not self.settings.enabled or not events:
			return list(events)

		seen: typing.Set[typing.Tuple[float, str]] = set()
		unique: typing.List[cadence.chart.ChartEvent] = []

		for event in events:

			snapped = dataclasses.replace(event, time=self.quantize_time(event.time))
			key = (snapped.time, snapped.lane)

			if key in seen:
				logger.info(f"Dropping duplicate {snapped.lane} event at {snapped.time:.1f} ms (recorded at {event.time:.1f} ms)")
				continue

			seen.add(key)
			unique.append(snapped)

		unique.sort(key=lambda e: e.time)

		return unique


	def measure_boundaries (self, duration_ms: float) -> typing.List[MeasureBoundary]:

		"""Return the start of every measure that begins before ``duration_ms``."""

		ms_per_measure = self.clock.ms_per_measure
		boundaries: typing.List[MeasureBoundary] = []
		measure = 0

		while measure * ms_per_measure < duration_ms:
			boundaries.append(MeasureBoundary(time=measure * ms_per_measure, measure=measure))
			measure += 1

		return boundaries


	def ideal_recording_duration (self, requested_seconds: float) -> float:

		"""Round a requested duration (seconds) up to a whole number of measures."""

		ms_per_measure = self.clock.ms_per_measure
		measures = math.ceil((requested_seconds * 1000) / ms_per_measure)

		return (measures * ms_per_measure) / 1000


	def preview_quantization (self, events: typing.Sequence[cadence.chart.ChartEvent]) -> typing.List[QuantizationPreview]:

		"""Show where each event would snap to without changing anything."""

		previews: typing.List[QuantizationPreview] = []

		for event in events:
			quantized = self.quantize_time(event.time)
			previews.append(QuantizationPreview(
				event = event,
				quantized_time = quantized,
				position = self.clock.musical_position(quantized),
				adjustment = quantized - event.time,
			))

		return previews


	def info (self) -> typing.Dict[str, typing.Any]:

		"""Summarise the active grid for display."""

		return {
			"enabled": self.settings.enabled,
			"resolution": self.settings.resolution,
			"interval": self.interval,
			"bpm": self.settings.bpm,
			"time_signature": str(self.settings.time_signature),
		}
