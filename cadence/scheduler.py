"""Event scheduler: spawns chart events, moves them and judges input.

Each spawned event travels from ``base_position`` toward ``target_position``
at ``speed`` units per second (screen pixels for a vertical lane display)::

	position(t) = base_position - ((t - spawn_time) / 1000) * speed

An event is hit when input arrives in its lane while it is within
``tolerance`` of the target, and missed once it passes ``far_boundary``.
Every active event is resolved exactly once; a second resolution is a bug in
the caller and raises :class:`ResolutionError`.
"""

import dataclasses
import logging
import typing

import cadence.chart
import cadence.event_emitter
import cadence.events
import cadence.quantizer
import cadence.transport


logger = logging.getLogger(__name__)


PERFECT = "perfect"
GOOD = "good"
OK = "ok"

PERFECT_ACCURACY = 0.95
OK_ACCURACY = 0.30
PERFECT_BONUS = 50
OK_MULTIPLIER = 0.5


class ResolutionError (RuntimeError):

	"""Raised when an active event that is already hit or missed is resolved again."""


@dataclasses.dataclass(frozen=True)
class ScheduleGeometry:

	"""Where events start, where they should be hit and where they are lost."""

	base_position: float = 400.0
	target_position: float = 80.0
	far_boundary: float = 0.0
	speed: float = 200.0
	tolerance: float = 75.0

	def __post_init__ (self) -> None:

		if self.speed <= 0:
			raise ValueError("Speed must be positive")

		if self.tolerance <= 0:
			raise ValueError("Tolerance must be positive")

	@property
	def travel_time_ms (self) -> float:

		"""Time from spawn to the target position."""

		return (self.base_position - self.target_position) / self.speed * 1000


@dataclasses.dataclass
class ScoreState:

	"""Running totals for one game."""

	score: int = 0
	hits: int = 0
	misses: int = 0
	perfect: int = 0
	good: int = 0
	ok: int = 0
	combo: int = 0
	max_combo: int = 0

	def record_hit (self, points: int, grade: str) -> None:

		self.score += points
		self.hits += 1
		setattr(self, grade, getattr(self, grade) + 1)
		self.combo += 1
		self.max_combo = max(self.max_combo, self.combo)

	def record_miss (self) -> None:

		self.misses += 1
		self.combo = 0

	@property
	def accuracy (self) -> float:

		"""Fraction of judged events that were hit."""

		judged = self.hits + self.misses

		return self.hits / judged if judged else 0.0


def grade_hit (accuracy: float, base_score: int) -> typing.Tuple[int, str]:

	"""Return ``(points, grade)`` for a hit accuracy in ``(0, 1]``.

	Example:
		```python
		grade_hit(0.99, 350)  # (400, "perfect")
		grade_hit(0.50, 350)  # (350, "good")
		grade_hit(0.10, 350)  # (175, "ok")
		```
	"""

	if accuracy > PERFECT_ACCURACY:
		return base_score + PERFECT_BONUS, PERFECT

	if accuracy < OK_ACCURACY:
		return cadence.transport.round_half_up(base_score * OK_MULTIPLIER), OK

	return base_score, GOOD


class EventScheduler:

	"""
	Drives one chart from spawn to end.

	Call :meth:`update` once per frame with the elapsed time, and
	:meth:`handle_input` whenever a lane is pressed.
	"""

	def __init__ (
		self,
		chart: cadence.chart.Chart,
		quantizer: cadence.quantizer.Quantizer,
		geometry: typing.Optional[ScheduleGeometry] = None,
		base_score: int = 350,
		events: typing.Optional[cadence.event_emitter.EventEmitter] = None
	) -> None:

		if base_score <= 0:
			raise ValueError("Base score must be positive")

		self.chart = chart
		self.quantizer = quantizer
		self.geometry = geometry or ScheduleGeometry()
		self.base_score = base_score
		self.events = events or cadence.event_emitter.EventEmitter()

		self.score = ScoreState()
		self._cursor = 0
		self._chart_ended = False
		self._active: typing.List[cadence.chart.ActiveEvent] = []


	@property
	def active_events (self) -> typing.List[cadence.chart.ActiveEvent]:

		return list(self._active)


	@property
	def chart_ended (self) -> bool:

		"""True once the ``END`` sentinel has been reached."""

		return self._chart_ended


	@property
	def is_finished (self) -> bool:

		return self._chart_ended and not self._active


	def position_at (self, active: cadence.chart.ActiveEvent, elapsed_ms: float) -> float:

		return self.geometry.base_position - ((elapsed_ms - active.spawn_time) / 1000) * self.geometry.speed


	def update (self, elapsed_ms: float) -> None:

		"""Advance one frame: spawn due events, move active ones and detect misses."""

		self._spawn_due(elapsed_ms)

		for active in list(self._active):

			active.current_position = self.position_at(active, elapsed_ms)

			if active.current_position < self.geometry.far_boundary:
				self.resolve_miss(active, elapsed_ms)

			else:
				self.events.emit(cadence.events.NoteMoved(active=active, position=active.current_position))


	def _spawn_due (self, elapsed_ms: float) -> None:

		chart_events = self.chart.events

		while self._cursor < len(chart_events) and chart_events[self._cursor].time <= elapsed_ms:

			chart_event = chart_events[self._cursor]
			self._cursor += 1

			if chart_event.is_end:

				if not self._chart_ended:
					self._chart_ended = True
					logger.info(f"Chart exhausted at {elapsed_ms:.0f} ms")
					self.events.emit(cadence.events.ChartEnded(elapsed_ms=elapsed_ms))

				continue

			active = cadence.chart.ActiveEvent(
				chart_event = chart_event,
				spawn_time = elapsed_ms,
				current_position = self.geometry.base_position,
				on_beat = self.quantizer.clock.is_on_beat(chart_event.time),
			)

			self._active.append(active)
			self.events.emit(cadence.events.NoteSpawned(active=active, elapsed_ms=elapsed_ms))


	def handle_input (self, lane: str, elapsed_ms: float) -> typing.Optional[cadence.events.NoteHit]:

		"""Judge a press in ``lane``. Returns the hit, or None if nothing was in range."""

		candidates = [a for a in self._active if a.lane == lane and not a.is_resolved]

		if not candidates:
			return None

		target = self.geometry.target_position

		for active in candidates:
			active.current_position = self.position_at(active, elapsed_ms)

		closest = min(candidates, key=lambda a: abs(target - a.current_position))
		distance = abs(target - closest.current_position)

		if distance >= self.geometry.tolerance:
			return None

		return self.resolve_hit(closest, elapsed_ms, distance)


	def resolve_hit (self, active: cadence.chart.ActiveEvent, elapsed_ms: float, distance: float) -> cadence.events.NoteHit:

		"""Mark an event as hit, award points and remove it."""

		self._check_unresolved(active)

		accuracy = (self.geometry.tolerance - distance) / self.geometry.tolerance
		points, grade = grade_hit(accuracy, self.base_score)

		active.state = cadence.chart.EventState.HIT
		self._remove(active)
		self.score.record_hit(points, grade)

		hit = cadence.events.NoteHit(
			active = active,
			elapsed_ms = elapsed_ms,
			distance = distance,
			accuracy = accuracy,
			points = points,
			grade = grade,
		)

		self.events.emit(hit)

		return hit


	def resolve_miss (self, active: cadence.chart.ActiveEvent, elapsed_ms: float) -> None:

		"""Mark an event as missed and remove it. The score is unchanged."""

		self._check_unresolved(active)

		active.state = cadence.chart.EventState.MISSED
		self._remove(active)
		self.score.record_miss()

		logger.debug(f"Missed {active.lane} event from {active.chart_event.time:.0f} ms")

		self.events.emit(cadence.events.NoteMissed(active=active, elapsed_ms=elapsed_ms))


	def _check_unresolved (self, active: cadence.chart.ActiveEvent) -> None:

		if active.is_resolved:
			raise ResolutionError(f"Event at {active.chart_event.time} ms in lane {active.lane} is already {active.state.value}")


	def _remove (self, active: cadence.chart.ActiveEvent) -> None:

		if active in self._active:
			self._active.remove(active)


	def stop (self) -> None:

		"""Drop every active event without judging it."""

		self._active = []
