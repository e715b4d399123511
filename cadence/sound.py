"""Sound output boundary.

The engine never synthesises audio. It describes what should sound as a
:class:`SoundRequest` and hands it to a :class:`SoundRenderer`. The package
ships :class:`MidiSoundRenderer`, which turns requests into ``mido`` messages:
drum instruments go to General MIDI percussion on channel 10 (``channel=9``)
and pitched instruments to their own channels.
"""

import asyncio
import dataclasses
import logging
import typing

import mido


logger = logging.getLogger(__name__)


KICK = "kick"
SNARE = "snare"
HIHAT = "hihat"
LEAD = "lead"
HARMONY = "harmony"
MISS = "miss"

LANE_INSTRUMENTS: typing.Dict[str, str] = {
	"left": KICK,
	"down": SNARE,
	"up": HIHAT,
	"right": LEAD,
}

# General MIDI percussion key map.
DRUM_NOTES: typing.Dict[str, int] = {
	KICK: 36,
	SNARE: 38,
	HIHAT: 42,
}

DRUM_CHANNEL = 9

INSTRUMENT_CHANNELS: typing.Dict[str, int] = {
	LEAD: 0,
	HARMONY: 1,
	MISS: 2,
}

MISS_PITCH = 37  # C#2
DEFAULT_LEAD_PITCH = 69  # A4
DEFAULT_VELOCITY = 100
DEFAULT_DURATION_MS = 234.375  # an eighth note at 128 BPM


@dataclasses.dataclass(frozen=True)
class SoundRequest:

	"""
	Something to play. ``schedule_time`` is elapsed ms (None means now).

	``pitch`` is ignored for drum instruments.
	"""

	instrument: str
	pitch: typing.Optional[int] = None
	velocity: int = DEFAULT_VELOCITY
	schedule_time: typing.Optional[float] = None
	duration_ms: float = DEFAULT_DURATION_MS

	def __post_init__ (self) -> None:

		if not 0 <= self.velocity <= 127:
			raise ValueError(f"Velocity must be between 0 and 127, got {self.velocity}")

		if self.pitch is not None and not 0 <= self.pitch <= 127:
			raise ValueError(f"Pitch must be between 0 and 127, got {self.pitch}")


class SoundRenderer (typing.Protocol):

	"""Anything that can play a :class:`SoundRequest`."""

	def play (self, request: SoundRequest) -> None:
		...


def lane_sound (lane: str, pitch: typing.Optional[int] = None, schedule_time: typing.Optional[float] = None) -> typing.Optional[SoundRequest]:

	"""Return the hit sound for a lane, or None for a lane with no instrument."""

	instrument = LANE_INSTRUMENTS.get(lane)

	if instrument is None:
		return None

	if instrument == LEAD and pitch is None:
		pitch = DEFAULT_LEAD_PITCH

	return SoundRequest(instrument=instrument, pitch=pitch, schedule_time=schedule_time)


def miss_sound (schedule_time: typing.Optional[float] = None) -> SoundRequest:

	return SoundRequest(instrument=MISS, pitch=MISS_PITCH, velocity=80, schedule_time=schedule_time)


class MidiSoundRenderer:

	"""
	Plays sound requests on a ``mido`` output port.

	Note-offs are scheduled on the running event loop when there is one;
	otherwise they are sent by :meth:`all_notes_off`.
	"""

	def __init__ (self, midi_out: typing.Any) -> None:

		self.midi_out = midi_out
		self.active_notes: typing.Set[typing.Tuple[int, int]] = set()


	def message_for (self, request: SoundRequest) -> mido.Message:

		"""Build the note-on message for a request."""

		if request.instrument in DRUM_NOTES:
			return mido.Message("note_on", channel=DRUM_CHANNEL, note=DRUM_NOTES[request.instrument], velocity=request.velocity)

		if request.instrument not in INSTRUMENT_CHANNELS:
			raise ValueError(f"Unknown instrument: {request.instrument}")

		if request.pitch is None:
			raise ValueError(f"Instrument {request.instrument} needs a pitch")

		return mido.Message("note_on", channel=INSTRUMENT_CHANNELS[request.instrument], note=request.pitch, velocity=request.velocity)


	def play (self, request: SoundRequest) -> None:

		message = self.message_for(request)

		self.midi_out.send(message)
		self.active_notes.add((message.channel, message.note))

		try:
			loop = asyncio.get_running_loop()

		except RuntimeError:
			return

		loop.call_later(request.duration_ms / 1000, self._note_off, message.channel, message.note)


	def _note_off (self, channel: int, note: int) -> None:

		if self.midi_out is None or (channel, note) not in self.active_notes:
			return

		self.midi_out.send(mido.Message("note_off", channel=channel, note=note, velocity=0))
		self.active_notes.discard((channel, note))


	def all_notes_off (self) -> None:

		"""Send a note-off for every sounding note."""

		if self.midi_out is None:
			return

		for channel, note in sorted(self.active_notes):
			self.midi_out.send(mido.Message("note_off", channel=channel, note=note, velocity=0))

		self.active_notes.clear()


	def close (self) -> None:

		self.all_notes_off()

		if self.midi_out is not None:
			self.midi_out.close()
			self.midi_out = None

		logger.info("MIDI output closed")
