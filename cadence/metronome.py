import asyncio
import logging
import math
import typing

import cadence.event_emitter
import cadence.events
import cadence.quantizer
import cadence.transport


logger = logging.getLogger(__name__)


POLL_INTERVAL_MS = 10


class Metronome:

	"""
	Emits a :class:`~cadence.events.BeatTick` each time a new beat begins.

	The metronome polls an elapsed-time source every 10 ms rather than sleeping
	a full beat, so tempo changes and timer jitter never accumulate into drift.
	:meth:`poll` is the single step and can be driven directly in tests.
	"""

	def __init__ (
		self,
		clock: cadence.transport.TransportClock,
		elapsed_ms: typing.Callable[[], float],
		events: typing.Optional[cadence.event_emitter.EventEmitter] = None,
		poll_interval_ms: float = POLL_INTERVAL_MS
	) -> None:

		self.clock = clock
		self.elapsed_ms = elapsed_ms
		self.events = events or cadence.event_emitter.EventEmitter()
		self.poll_interval_ms = poll_interval_ms

		self.last_beat_time = -math.inf
		self.running = False
		self._task: typing.Optional[asyncio.Task] = None


	def poll (self, elapsed_ms: float) -> typing.Optional[cadence.events.BeatTick]:

		"""Emit a tick if ``elapsed_ms`` is in a beat that has not ticked yet."""

		divisions = self.clock.divisions_per_beat
		beat = self.clock.grid_step(elapsed_ms) // divisions
		beat_time = beat * self.clock.ms_per_beat

		if beat_time <= self.last_beat_time:
			return None

		self.last_beat_time = beat_time
		position = self.clock.position_at_step(beat * divisions)
		tick = cadence.events.BeatTick(position=position, beat_type=cadence.quantizer.beat_type(position))

		self.events.emit(tick)

		return tick


	def start (self) -> None:

		"""Start polling. Must be called from a running event loop."""

		if self.running:
			return

		self.running = True
		self.last_beat_time = -math.inf
		self._task = asyncio.get_running_loop().create_task(self._run())

		logger.info("Metronome started")


	def stop (self) -> None:

		"""Stop polling. No tick fires after this returns."""

		self.running = False

		if self._task is not None:
			self._task.cancel()
			self._task = None


	async def _run (self) -> None:

		while self.running:

			self.poll(self.elapsed_ms())

			await asyncio.sleep(self.poll_interval_ms / 1000)
