"""One play or recording session.

A :class:`Session` owns everything a single game needs: the shared timing
settings, transport clock, quantizer, harmony engine, scheduler, recorder,
metronome and event emitter. Nothing is shared between sessions.

Two ways to drive it:

- ``await session.play()`` starts the timers and runs a ~60 fps frame loop
  until the chart or recording ends.
- Call :meth:`Session.update` yourself with explicit elapsed times, which is
  how the tests drive it deterministically.

Example:
	```python
	session = cadence.session.Session(cadence.config.SessionConfig(seed=1))
	session.start_game()
	session.update(1000)
	session.press("left", 2600)
	```
"""

import asyncio
import logging
import random
import time
import typing

import cadence.chart
import cadence.config
import cadence.event_emitter
import cadence.events
import cadence.harmony
import cadence.metronome
import cadence.quantizer
import cadence.recording
import cadence.scheduler
import cadence.song
import cadence.sound
import cadence.transport


logger = logging.getLogger(__name__)


FRAME_INTERVAL = 1 / 60
MAX_PRESSED_LANES = 2

GAME = "game"
RECORDING = "recording"


class Session:

	"""Orchestrates a game or a recording from start to stop."""

	def __init__ (
		self,
		config: typing.Optional[cadence.config.SessionConfig] = None,
		time_source: typing.Optional[typing.Callable[[], float]] = None,
		rng: typing.Optional[random.Random] = None,
		sound_renderer: typing.Optional[cadence.sound.SoundRenderer] = None,
		persistence: typing.Optional[cadence.song.Persistence] = None
	) -> None:

		"""
		Parameters:
			config: Session configuration (stock defaults when omitted).
			time_source: Returns the current time in seconds (default
				``time.perf_counter``).
			rng: Random generator for note generation. Seeded from
				``config.seed`` when omitted.
			sound_renderer: Receives a :class:`~cadence.sound.SoundRequest` for
				every hit, miss, recorded press and harmony note.
			persistence: Receives the finished song when a recording stops.
		"""

		self.config = config or cadence.config.SessionConfig()
		self.time_source = time_source or time.perf_counter
		self.rng = rng or random.Random(self.config.seed)
		self.sound_renderer = sound_renderer
		self.persistence = persistence

		self.events = cadence.event_emitter.EventEmitter()
		self.settings = self.config.quantization_settings()
		self.clock = cadence.transport.TransportClock(self.settings)
		self.quantizer = cadence.quantizer.Quantizer(self.clock)

		self.harmony = cadence.harmony.HarmonyEngine(
			self.clock,
			key = self.config.key,
			scale = self.config.scale,
			measures_per_chord = self.config.measures_per_chord,
			voice_leading = self.config.voice_leading,
			auto_harmonize = self.config.auto_harmonize,
			rng = self.rng,
			events = self.events,
		)

		self.geometry = cadence.scheduler.ScheduleGeometry(speed=self.config.speed, tolerance=self.config.tolerance)
		self.scheduler: typing.Optional[cadence.scheduler.EventScheduler] = None

		self.recorder = cadence.recording.Recorder(
			self.quantizer,
			self.harmony,
			melodic_lane = self.config.melodic_lane,
			duration_seconds = self.config.duration_seconds,
			events = self.events,
		)

		self.metronome = cadence.metronome.Metronome(self.clock, self.elapsed_ms, self.events)

		self.mode: typing.Optional[str] = None
		self.running = False
		self.start_time: typing.Optional[float] = None
		self.pressed: typing.Set[str] = set()
		self.song: typing.Optional[cadence.song.Song] = None
		self.last_elapsed = 0.0

		self.events.on(cadence.events.NoteHit, self._on_hit)
		self.events.on(cadence.events.NoteMissed, self._on_miss)


	# --- Lifecycle ---

	def start_game (self, song: typing.Optional[cadence.song.Song] = None) -> None:

		"""Start playing a song (the built-in chart by default)."""

		if self.running:
			raise RuntimeError("Session is already running")

		self.song = song or cadence.song.Song(name="Default", chart=cadence.chart.DEFAULT_CHART)

		self.scheduler = cadence.scheduler.EventScheduler(
			self.song.chart,
			self.quantizer,
			geometry = self.geometry,
			base_score = self.song.base_score,
			events = self.events,
		)

		self._begin(GAME)

		logger.info(f"Game started: '{self.song.name}' ({len(self.song.chart.notes)} notes, base score {self.song.base_score})")


	def start_recording (self, name: str, base_score: int = 350) -> None:

		"""Start recording a new song. Raises ``ValueError`` without a name."""

		if self.running:
			raise RuntimeError("Session is already running")

		self.recorder.start(name, base_score)
		self.song = None

		self._begin(RECORDING)


	def _begin (self, mode: str) -> None:

		self.mode = mode
		self.running = True
		self.pressed = set()
		self.last_elapsed = 0.0
		self.harmony.reset()
		self.start_time = self.time_source()


	def elapsed_ms (self) -> float:

		"""Milliseconds since the session started (0 before it starts)."""

		if self.start_time is None:
			return 0.0

		return (self.time_source() - self.start_time) * 1000


	@property
	def duration_ms (self) -> float:

		return self.config.duration_seconds * 1000


	@property
	def score (self) -> typing.Optional[cadence.scheduler.ScoreState]:

		return self.scheduler.score if self.scheduler is not None else None


	def update (self, elapsed_ms: typing.Optional[float] = None) -> bool:

		"""
		Run one frame. Returns False once the session has ended.

		A game ends when its chart is exhausted or the duration limit is
		reached; a recording ends at the duration limit.
		"""

		if not self.running:
			return False

		elapsed = elapsed_ms if elapsed_ms is not None else self.elapsed_ms()
		self.last_elapsed = elapsed

		if self.mode == GAME and self.scheduler is not None:

			self.scheduler.update(elapsed)

			if self.scheduler.is_finished or elapsed >= self.duration_ms:
				self.stop(elapsed)
				return False

		elif self.mode == RECORDING and self.recorder.is_expired(elapsed):
			self.stop(elapsed)
			return False

		return True


	def stop (self, elapsed_ms: typing.Optional[float] = None) -> typing.Optional[cadence.song.Song]:

		"""
		End the session now.

		Timers are cancelled before this returns and active events are
		dropped. A recording is finalized, handed to the persistence
		collaborator and returned.
		"""

		if not self.running:
			return None

		elapsed = elapsed_ms if elapsed_ms is not None else self.elapsed_ms()

		self.running = False
		self.harmony.stop()
		self.metronome.stop()
		self.pressed = set()

		if self.scheduler is not None:
			self.scheduler.stop()

		if self.mode == GAME:
			score = self.scheduler.score if self.scheduler is not None else None
			logger.info(f"Game over at {elapsed:.0f} ms, score {score.score if score else 0}")
			return None

		song = self.recorder.finish(duration=elapsed / 1000)

		if self.persistence is not None:
			song = self.persistence.save_song(song)

		self.song = song

		return song


	async def play (self, frame_interval: float = FRAME_INTERVAL) -> typing.Optional[cadence.song.Song]:

		"""Run timers and the frame loop until the session ends.

		Returns the recorded song for a recording session, otherwise None.
		"""

		if not self.running:
			raise RuntimeError("Start a game or a recording before playing")

		self.harmony.start()
		self.metronome.start()

		try:
			while self.update():
				await asyncio.sleep(frame_interval)

		finally:
			if self.running:
				self.stop()

		return self.song if self.mode == RECORDING else None


	# --- Input ---

	def press (self, lane: str, elapsed_ms: typing.Optional[float] = None) -> typing.Union[cadence.events.NoteHit, str, None]:

		"""
		Handle a lane press.

		A lane that is already held is ignored until it is released, and at
		most two lanes can be held at once. In a game this returns the hit (or
		None); while recording it returns the classification token.
		"""

		if not self.running:
			return None

		if lane in self.pressed or len(self.pressed) >= MAX_PRESSED_LANES:
			return None

		self.pressed.add(lane)
		elapsed = elapsed_ms if elapsed_ms is not None else self.elapsed_ms()

		if self.mode == GAME and self.scheduler is not None:
			return self.scheduler.handle_input(lane, elapsed)

		token = self.recorder.record(lane, elapsed)
		self._play_recorded(self.recorder.notes[-1], elapsed)

		return token


	def release (self, lane: str) -> None:

		self.pressed.discard(lane)


	# --- Sound ---

	def _play (self, request: typing.Optional[cadence.sound.SoundRequest]) -> None:

		if self.sound_renderer is not None and request is not None:
			self.sound_renderer.play(request)


	def _play_recorded (self, note: cadence.recording.RecordedNote, elapsed_ms: float) -> None:

		self._play(cadence.sound.lane_sound(note.lane, note.pitch, elapsed_ms))

		if note.pitch is None:
			return

		for pitch in self.harmony.harmonize_note(note.pitch)[1:]:
			self._play(cadence.sound.SoundRequest(instrument=cadence.sound.HARMONY, pitch=pitch, velocity=70, schedule_time=elapsed_ms))


	def _on_hit (self, event: cadence.events.NoteHit) -> None:

		"""Sound a hit. Melodic-lane events without a charted pitch take one from the harmony engine."""

		pitch = event.active.chart_event.pitch

		if pitch is None and event.active.lane == self.config.melodic_lane:
			pitch = self.harmony.next_smart_note()

		self._play(cadence.sound.lane_sound(event.active.lane, pitch, event.elapsed_ms))


	def _on_miss (self, event: cadence.events.NoteMissed) -> None:

		self._play(cadence.sound.miss_sound(event.elapsed_ms))
