import asyncio
import logging

import cadence.config
import cadence.events
import cadence.midi_utils
import cadence.session
import cadence.sound


# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def _autoplay (session: cadence.session.Session) -> None:

	"""Press each lane as its note reaches the target, then release it."""

	loop = asyncio.get_running_loop()
	travel = session.geometry.travel_time_ms / 1000

	def on_spawn (event: cadence.events.NoteSpawned) -> None:

		lane = event.active.lane
		loop.call_later(travel, session.press, lane)
		loop.call_later(travel + 0.1, session.release, lane)

	session.events.on(cadence.events.NoteSpawned, on_spawn)


async def _run (session: cadence.session.Session) -> None:

	session.events.on(cadence.events.ChordChanged, lambda e: logger.info(f"Chord: {e.chord.name} ({e.chord.degree})"))
	session.events.on(cadence.events.NoteHit, lambda e: logger.info(f"{e.grade.upper()} {e.active.lane} +{e.points}"))
	session.events.on(cadence.events.NoteMissed, lambda e: logger.info(f"Missed {e.active.lane}"))

	session.start_game()
	_autoplay(session)

	await session.play()


def main () -> None:

	"""
	Main entry point: play the built-in chart on autopilot through MIDI.
	"""

	logger.info("Cadence starting...")

	config = cadence.config.load_config()

	device_name, midi_out = cadence.midi_utils.select_output_device(config.output_device)
	renderer = cadence.sound.MidiSoundRenderer(midi_out) if midi_out is not None else None

	if renderer is None:
		logger.warning("No MIDI output, playing silently")

	session = cadence.session.Session(config, sound_renderer=renderer)

	try:
		asyncio.run(_run(session))

	except KeyboardInterrupt:
		logger.info("Stopping...")

	finally:
		session.stop()

		if renderer is not None:
			renderer.close()

	score = session.score

	if score is not None:
		logger.info(f"Final score {score.score}: {score.perfect} perfect, {score.good} good, {score.ok} ok, {score.misses} missed, max combo {score.max_combo}")


if __name__ == "__main__":
	main()
