import random
import typing

import mido
import pytest

import cadence.config
import cadence.harmony
import cadence.quantizer
import cadence.sound
import cadence.transport


class FakeMidiOut:

	"""MIDI output stub that keeps every message it is sent."""

	def __init__ (self) -> None:

		self.messages: typing.List[mido.Message] = []
		self.closed = False


	def send (self, message: mido.Message) -> None:

		"""Store outgoing MIDI messages."""

		self.messages.append(message)


	def close (self) -> None:

		self.closed = True


class RecordingRenderer:

	"""Sound renderer that collects requests instead of playing them."""

	def __init__ (self) -> None:

		self.requests: typing.List[cadence.sound.SoundRequest] = []


	def play (self, request: cadence.sound.SoundRequest) -> None:

		self.requests.append(request)


class FakeTime:

	"""A manually advanced time source, in seconds."""

	def __init__ (self, now: float = 100.0) -> None:

		self.now = now


	def __call__ (self) -> float:

		return self.now


	def advance_ms (self, ms: float) -> None:

		self.now += ms / 1000


# Module-level reference so tests can inspect the most recently opened output.
_current_fake_output: typing.Optional[FakeMidiOut] = None


def _fake_get_output_names () -> list[str]:

	"""Return a fixed list of MIDI output names for tests."""

	return ["Dummy MIDI", "Other MIDI"]


def _fake_open_output (name: str) -> FakeMidiOut:

	"""Return a fake MIDI output regardless of the name."""

	global _current_fake_output
	_current_fake_output = FakeMidiOut()
	return _current_fake_output


@pytest.fixture
def patch_midi (monkeypatch: pytest.MonkeyPatch) -> None:

	"""Patch mido to use a fake MIDI output for tests that need it."""

	monkeypatch.setattr(mido, "get_output_names", _fake_get_output_names)
	monkeypatch.setattr(mido, "open_output", _fake_open_output)


@pytest.fixture
def settings_120 () -> cadence.config.QuantizationSettings:

	"""120 BPM, 4/4, 16th-note grid: 500 ms beats and 125 ms intervals."""

	return cadence.config.QuantizationSettings(bpm=120)


@pytest.fixture
def clock_120 (settings_120: cadence.config.QuantizationSettings) -> cadence.transport.TransportClock:

	return cadence.transport.TransportClock(settings_120)


@pytest.fixture
def quantizer_120 (clock_120: cadence.transport.TransportClock) -> cadence.quantizer.Quantizer:

	return cadence.quantizer.Quantizer(clock_120)


@pytest.fixture
def harmony_120 (clock_120: cadence.transport.TransportClock) -> cadence.harmony.HarmonyEngine:

	"""Default Am-F-C-G engine at 120 BPM (4000 ms per chord), seeded."""

	return cadence.harmony.HarmonyEngine(clock_120, rng=random.Random(42))


@pytest.fixture
def fake_time () -> FakeTime:

	return FakeTime()


@pytest.fixture
def renderer () -> RecordingRenderer:

	return RecordingRenderer()
