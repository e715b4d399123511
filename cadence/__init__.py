"""
Cadence - a rhythm-game timing and harmony engine for Python.

Cadence schedules timed lane events, judges player input against them inside
a tolerance window, and turns recorded input into playable charts that are
snapped to a musical grid and scored against an evolving chord progression.
It produces events and MIDI, not pixels or audio: rendering is left to
whatever subscribes.

What it does:

- **Transport and quantization.** Elapsed milliseconds become measures,
  beats and 16th/8th/quarter subdivisions at any tempo and time signature.
  Recorded presses snap to the grid; duplicates in the same lane collapse to
  the earliest one.
- **Event scheduling.** Charts of ``{time, lane}`` events terminated by an
  ``END`` sentinel spawn, travel toward a target and are judged as
  ``perfect``, ``good`` or ``ok`` hits, or missed.
- **Harmony.** A cyclic progression (Am-F-C-G by default) advances every two
  measures. Notes are classified as chord tones, extensions, scale tones or
  clashes, with a suggested chord tone for every clash. Lead notes are
  generated with proximity-weighted voice leading from a seeded RNG.
- **Recording.** Presses are captured, classified and finalised into a
  :class:`~cadence.song.Song` with a harmonic fit and a musical score.
- **Output.** Typed events for visuals, :class:`~cadence.sound.SoundRequest`
  objects for audio, a ``mido``-based MIDI renderer and a JSON song store.

Minimal example:

	```python
	import asyncio
	import cadence

	session = cadence.Session(cadence.SessionConfig(bpm=128, seed=7))
	session.events.on(cadence.events.NoteHit, lambda e: print(e.grade, e.points))
	session.start_game()
	asyncio.run(session.play())
	```

Package-level exports: ``Session``, ``SessionConfig``, ``Chart``, ``Song``,
``HarmonyEngine``, ``load_config``.
"""

import cadence.chart
import cadence.config
import cadence.events
import cadence.harmony
import cadence.session
import cadence.song


Chart = cadence.chart.Chart
HarmonyEngine = cadence.harmony.HarmonyEngine
Session = cadence.session.Session
SessionConfig = cadence.config.SessionConfig
Song = cadence.song.Song
load_config = cadence.config.load_config
