"""Transport clock: elapsed milliseconds to musical position.

The clock holds no time of its own. It converts an elapsed-time value (ms since
the session started) into a :class:`MusicalPosition` using the tempo, time
signature and grid resolution read from a shared
:class:`~cadence.config.QuantizationSettings` at call time. A tempo change
therefore affects only computations made after it.

With ``bpm = 120`` in 4/4 and a 16th-note grid::

	ms_per_beat    = 60000 / 120 = 500
	ms_per_measure = 500 * 4     = 2000
	interval       = 500 / 4     = 125

	musical_position(2630) → measure 1, beat 1, subdivision 1, total_beats 5
"""

import dataclasses
import math
import typing

import cadence.config


# Decimal places kept when converting a time to grid steps.
GRID_PRECISION = 9


def round_half_up (value: float) -> int:

	"""Round to the nearest integer with halves rounded up (``2.5`` → ``3``).

	Python's built-in ``round()`` rounds halves to even, which would snap a note
	exactly between two grid points backwards half of the time.
	"""

	return math.floor(value + 0.5)


@dataclasses.dataclass(frozen=True)
class MusicalPosition:

	"""
	A derived position on the musical grid. Never persisted.
	"""

	measure: int
	beat: int
	subdivision: int
	total_beats: int


class TransportClock:

	"""Converts elapsed time into measures, beats and grid subdivisions."""

	def __init__ (self, settings: typing.Optional[cadence.config.QuantizationSettings] = None) -> None:

		"""
		Parameters:
			settings: Shared timing settings. A private default instance is
				created when omitted.
		"""

		self.settings = settings if settings is not None else cadence.config.QuantizationSettings()


	@property
	def bpm (self) -> float:

		return self.settings.bpm


	def set_bpm (self, bpm: float) -> None:

		"""Change the tempo. Raises ``InvalidConfiguration`` for non-positive or non-finite values."""

		self.settings.bpm = bpm


	@property
	def beats_per_measure (self) -> int:

		return self.settings.time_signature.numerator


	@property
	def ms_per_beat (self) -> float:

		return 60000.0 / self.settings.bpm


	@property
	def ms_per_measure (self) -> float:

		return self.ms_per_beat * self.beats_per_measure


	def interval_for (self, resolution: str) -> float:

		"""Return the grid interval in ms for a named resolution."""

		divisions = cadence.config.RESOLUTION_DIVISIONS[cadence.config.validate_resolution(resolution)]

		return self.ms_per_beat / divisions


	@property
	def resolution_interval_ms (self) -> float:

		"""Grid interval in ms for the active resolution."""

		return self.interval_for(self.settings.resolution)


	@property
	def divisions_per_beat (self) -> int:

		return cadence.config.RESOLUTION_DIVISIONS[self.settings.resolution]


	def grid_step (self, elapsed_ms: float) -> int:

		"""Return the index of the grid interval containing ``elapsed_ms``.

		The ratio is rounded to 9 places before flooring, so a grid point such
		as ``5 * (60000 / 140)`` counts as step 5 rather than a hair before it.
		"""

		return math.floor(round(elapsed_ms / self.resolution_interval_ms, GRID_PRECISION))


	def position_at_step (self, step: int) -> MusicalPosition:

		"""Return the position of an integer grid step."""

		total_beats, subdivision = divmod(step, self.divisions_per_beat)
		measure, beat = divmod(total_beats, self.beats_per_measure)

		return MusicalPosition(
			measure = measure,
			beat = beat,
			subdivision = subdivision,
			total_beats = total_beats,
		)


	def musical_position (self, elapsed_ms: float) -> MusicalPosition:

		"""Return the position on the grid for an elapsed time."""

		return self.position_at_step(self.grid_step(elapsed_ms))


	def is_on_beat (self, elapsed_ms: float, tolerance_ms: float = 50) -> bool:

		"""True when ``elapsed_ms`` lies within ``tolerance_ms`` of a beat."""

		offset = elapsed_ms % self.ms_per_beat

		return offset < tolerance_ms or offset > self.ms_per_beat - tolerance_ms


	def is_on_measure (self, elapsed_ms: float, tolerance_ms: float = 50) -> bool:

		"""True when ``elapsed_ms`` lies within ``tolerance_ms`` of a bar line."""

		offset = elapsed_ms % self.ms_per_measure

		return offset < tolerance_ms or offset > self.ms_per_measure - tolerance_ms
