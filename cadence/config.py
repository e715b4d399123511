"""Session configuration.

Two layers live here:

- :class:`QuantizationSettings` - the small, session-scoped, *mutable* timing
  configuration shared by the transport clock, the quantizer and the scheduler.
  Every assignment is validated, so an invalid tempo is rejected at the point of
  configuration instead of surfacing later as NaN positions.
- :class:`SessionConfig` - everything a :class:`~cadence.session.Session` needs,
  loadable from a YAML file with :func:`load_config`.

Example ``config.yaml``::

	bpm: 128
	time_signature: [4, 4]
	resolution: 16th
	measures_per_chord: 2
	voice_leading: true
	auto_harmonize: false
"""

import dataclasses
import logging
import math
import os
import typing

import yaml


logger = logging.getLogger(__name__)


RESOLUTION_DIVISIONS: typing.Dict[str, int] = {
	"16th": 4,
	"8th": 2,
	"quarter": 1,
}

DEFAULT_BPM = 128
DEFAULT_RESOLUTION = "16th"


class InvalidConfiguration (ValueError):

	"""Raised when a configuration value is rejected."""


def validate_bpm (bpm: typing.Any) -> float:

	"""Return ``bpm`` as a float, or raise :class:`InvalidConfiguration`.

	BPM must be a positive, finite number. Booleans are rejected even though
	they are ints in Python.
	"""

	if isinstance(bpm, bool) or not isinstance(bpm, (int, float)):
		raise InvalidConfiguration(f"BPM must be a number, got {bpm!r}")

	if not math.isfinite(bpm) or bpm <= 0:
		raise InvalidConfiguration(f"BPM must be a positive finite number, got {bpm!r}")

	return float(bpm)


def validate_positive (name: str, value: typing.Any) -> float:

	"""Return ``value`` as a float if it is a positive finite number, or raise."""

	if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value) or value <= 0:
		raise InvalidConfiguration(f"{name} must be a positive number, got {value!r}")

	return float(value)


def validate_resolution (resolution: str) -> str:

	"""Return ``resolution`` if it is a known grid name, or raise."""

	if resolution not in RESOLUTION_DIVISIONS:
		raise InvalidConfiguration(
			f"Unknown quantization resolution {resolution!r}. Available: {sorted(RESOLUTION_DIVISIONS)}"
		)

	return resolution


@dataclasses.dataclass(frozen=True)
class TimeSignature:

	"""A time signature; only the numerator affects beat arithmetic."""

	numerator: int = 4
	denominator: int = 4

	def __post_init__ (self) -> None:

		if isinstance(self.numerator, bool) or not isinstance(self.numerator, int) or self.numerator <= 0:
			raise InvalidConfiguration(f"Time signature numerator must be a positive integer, got {self.numerator!r}")

		if isinstance(self.denominator, bool) or not isinstance(self.denominator, int) or self.denominator <= 0:
			raise InvalidConfiguration(f"Time signature denominator must be a positive integer, got {self.denominator!r}")

		if self.denominator & (self.denominator - 1):
			raise InvalidConfiguration(f"Time signature denominator must be a power of two, got {self.denominator}")

	@classmethod
	def from_value (cls, value: typing.Any) -> "TimeSignature":

		"""Accept a ``TimeSignature``, a ``(num, den)`` pair or a ``"3/4"`` string."""

		if isinstance(value, TimeSignature):
			return value

		if isinstance(value, str):
			parts = value.split("/")
			if len(parts) != 2:
				raise InvalidConfiguration(f"Cannot parse time signature {value!r}")
			try:
				return cls(int(parts[0]), int(parts[1]))
			except ValueError as exc:
				raise InvalidConfiguration(f"Cannot parse time signature {value!r}") from exc

		if isinstance(value, (list, tuple)) and len(value) == 2:
			return cls(value[0], value[1])

		raise InvalidConfiguration(f"Cannot parse time signature {value!r}")

	def __str__ (self) -> str:

		return f"{self.numerator}/{self.denominator}"


@dataclasses.dataclass
class QuantizationSettings:

	"""
	Session-scoped timing configuration, validated on every assignment.

	Shared by reference: the transport clock, quantizer and scheduler all read
	the same instance, so a tempo change is seen by every component on its next
	computation.
	"""

	enabled: bool = True
	resolution: str = DEFAULT_RESOLUTION
	bpm: float = DEFAULT_BPM
	time_signature: TimeSignature = dataclasses.field(default_factory=TimeSignature)

	def __setattr__ (self, name: str, value: typing.Any) -> None:

		if name == "bpm":
			value = validate_bpm(value)

		elif name == "resolution":
			value = validate_resolution(value)

		elif name == "time_signature":
			value = TimeSignature.from_value(value)

		elif name == "enabled":
			value = bool(value)

		super().__setattr__(name, value)


@dataclasses.dataclass
class SessionConfig:

	"""Everything a session needs, with the stock game defaults."""

	bpm: float = DEFAULT_BPM
	time_signature: TimeSignature = dataclasses.field(default_factory=TimeSignature)
	resolution: str = DEFAULT_RESOLUTION
	quantization_enabled: bool = True
	measures_per_chord: int = 2
	auto_harmonize: bool = False
	voice_leading: bool = True
	key: str = "A"
	scale: str = "minor_pentatonic"
	melodic_lane: str = "right"
	duration_seconds: float = 30.0
	base_score: int = 350
	seed: typing.Optional[int] = None
	speed: float = 200.0
	tolerance: float = 75.0
	output_device: typing.Optional[str] = None

	def __post_init__ (self) -> None:

		self.bpm = validate_bpm(self.bpm)
		self.resolution = validate_resolution(self.resolution)
		self.time_signature = TimeSignature.from_value(self.time_signature)

		if isinstance(self.measures_per_chord, bool) or not isinstance(self.measures_per_chord, int) or self.measures_per_chord <= 0:
			raise InvalidConfiguration("measures_per_chord must be a positive integer")

		self.duration_seconds = validate_positive("duration_seconds", self.duration_seconds)
		self.speed = validate_positive("speed", self.speed)
		self.tolerance = validate_positive("tolerance", self.tolerance)

		if isinstance(self.base_score, bool) or not isinstance(self.base_score, int) or self.base_score <= 0:
			raise InvalidConfiguration(f"base_score must be a positive integer, got {self.base_score!r}")


	def quantization_settings (self) -> QuantizationSettings:

		"""Return a fresh, session-owned settings object."""

		return QuantizationSettings(
			enabled = self.quantization_enabled,
			resolution = self.resolution,
			bpm = self.bpm,
			time_signature = self.time_signature,
		)


	@classmethod
	def from_dict (cls, data: typing.Dict[str, typing.Any]) -> "SessionConfig":

		"""Build a config from a plain mapping, ignoring unknown keys with a warning."""

		known = {field.name for field in dataclasses.fields(cls)}
		unknown = sorted(set(data) - known)

		if unknown:
			logger.warning(f"Ignoring unknown configuration keys: {unknown}")

		return cls(**{k: v for k, v in data.items() if k in known})


def load_config (config_path: str = "config.yaml") -> SessionConfig:

	"""
	Load a session configuration from a YAML file.

	A missing file is not an error: defaults are used and a warning is logged.
	"""

	if not os.path.exists(config_path):
		logger.warning(f"Config file {config_path} not found. Using defaults.")
		return SessionConfig()

	with open(config_path, "r") as f:
		data = yaml.safe_load(f) or {}

	if not isinstance(data, dict):
		raise InvalidConfiguration(f"Config file {config_path} must contain a mapping")

	return SessionConfig.from_dict(data)
