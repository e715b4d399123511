"""Songs and their persistence.

A :class:`Song` is a chart plus the metadata produced by a recording. It
round-trips losslessly through :meth:`Song.to_dict` / :meth:`Song.from_dict`
and JSON.

Persistence is an interface: anything with a ``save_song(song)`` method will
do. :class:`JsonSongStore` is the file-backed implementation shipped with the
package. It keeps every song in one JSON file, renames duplicates
(``"Song"``, ``"Song (1)"``, ``"Song (2)"``...), skips unreadable entries on
load and refuses to grow past a size limit.
"""

import dataclasses
import json
import logging
import os
import typing

import cadence.chart
import cadence.harmony


logger = logging.getLogger(__name__)


DEFAULT_BASE_SCORE = 350
STORAGE_LIMIT_BYTES = 5 * 1024 * 1024


class InvalidSong (ValueError):

	"""Raised when song data is missing a name, a chart or has malformed fields."""


class StorageLimitExceeded (RuntimeError):

	"""Raised when saving would take the song store past its size limit."""

	def __init__ (self, required_bytes: int, limit_bytes: int) -> None:

		super().__init__(f"Storage limit exceeded: {required_bytes / (1024 * 1024):.2f} MB needed, limit {limit_bytes / (1024 * 1024):.2f} MB")

		self.required_bytes = required_bytes
		self.limit_bytes = limit_bytes


@dataclasses.dataclass
class Song:

	"""A playable chart with optional recording metadata."""

	name: str
	chart: cadence.chart.Chart
	base_score: int = DEFAULT_BASE_SCORE
	quantized: bool = False
	harmonic_analysis: typing.Optional[cadence.harmony.SequenceAnalysis] = None
	musical_score: typing.Optional[int] = None
	recorded_at: typing.Optional[float] = None
	duration: typing.Optional[float] = None


	def to_dict (self) -> typing.Dict[str, typing.Any]:

		data: typing.Dict[str, typing.Any] = {
			"name": self.name,
			"base_score": self.base_score,
			"chart": self.chart.to_dicts(),
			"quantized": self.quantized,
		}

		if self.harmonic_analysis is not None:
			data["harmonic_analysis"] = self.harmonic_analysis.to_dict()

		if self.musical_score is not None:
			data["musical_score"] = self.musical_score

		if self.recorded_at is not None:
			data["recorded_at"] = self.recorded_at

		if self.duration is not None:
			data["duration"] = self.duration

		return data


	@classmethod
	def from_dict (cls, data: typing.Any) -> "Song":

		"""
		Validate and build a song from a plain mapping.

		A missing or non-positive base score falls back to 350 with a warning.

		Raises:
			InvalidSong: If the name or chart is missing or malformed.
			cadence.chart.ChartValidationError: If a chart entry is malformed.
		"""

		if not isinstance(data, dict):
			raise InvalidSong(f"Song data must be a mapping, got {type(data).__name__}")

		name = data.get("name")

		if not isinstance(name, str) or not name:
			raise InvalidSong("Song must have a valid name")

		chart_data = data.get("chart")

		if not isinstance(chart_data, list):
			raise InvalidSong(f"Song '{name}' must have a chart list")

		base_score = data.get("base_score")

		if isinstance(base_score, bool) or not isinstance(base_score, (int, float)) or base_score <= 0:
			logger.warning(f"Song '{name}' has an invalid base score {base_score!r}, using {DEFAULT_BASE_SCORE}")
			base_score = DEFAULT_BASE_SCORE

		analysis_data = data.get("harmonic_analysis")

		try:
			analysis = cadence.harmony.SequenceAnalysis.from_dict(analysis_data) if analysis_data is not None else None

		except (KeyError, TypeError, ValueError) as e:
			raise InvalidSong(f"Song '{name}' has malformed harmonic analysis: {e}") from e

		return cls(
			name = name,
			chart = cadence.chart.Chart.from_dicts(chart_data),
			base_score = int(base_score),
			quantized = bool(data.get("quantized", False)),
			harmonic_analysis = analysis,
			musical_score = data.get("musical_score"),
			recorded_at = data.get("recorded_at"),
			duration = data.get("duration"),
		)


	def to_json (self) -> str:

		return json.dumps(self.to_dict())


	@classmethod
	def from_json (cls, text: str) -> "Song":

		return cls.from_dict(json.loads(text))


class Persistence (typing.Protocol):

	"""Anything that can store a finished song."""

	def save_song (self, song: Song) -> Song:
		...


def unique_name (name: str, existing: typing.Iterable[str]) -> str:

	"""Append `` (1)``, `` (2)``... until ``name`` no longer collides."""

	taken = set(existing)
	candidate = name
	counter = 1

	while candidate in taken:
		candidate = f"{name} ({counter})"
		counter += 1

	return candidate


class SongLibrary:

	"""An in-memory, ordered collection of songs with unique names."""

	def __init__ (self, songs: typing.Optional[typing.Iterable[Song]] = None) -> None:

		self.songs: typing.List[Song] = []

		for song in songs or []:
			self.add(song)


	def add (self, song: Song) -> Song:

		"""Add a song, renaming it if another song already has its name."""

		final_name = unique_name(song.name, (s.name for s in self.songs))

		if final_name != song.name:
			logger.info(f"Renamed song from '{song.name}' to '{final_name}' to avoid a duplicate")
			song = dataclasses.replace(song, name=final_name)

		self.songs.append(song)

		return song


	def get (self, name: str) -> Song:

		for song in self.songs:
			if song.name == name:
				return song

		raise KeyError(name)


	def names (self) -> typing.List[str]:

		return [song.name for song in self.songs]


	def __len__ (self) -> int:

		return len(self.songs)


class JsonSongStore:

	"""
	Stores songs as a JSON list in a single file.

	Implements :class:`Persistence`.
	"""

	def __init__ (self, path: str, limit_bytes: int = STORAGE_LIMIT_BYTES) -> None:

		self.path = path
		self.limit_bytes = limit_bytes


	def load (self) -> SongLibrary:

		"""Load every valid song. Invalid entries are skipped with a warning."""

		if not os.path.exists(self.path):
			return SongLibrary()

		with open(self.path, "r", encoding="utf-8") as f:
			raw = json.load(f)

		if not isinstance(raw, list):
			logger.warning(f"Song store {self.path} does not contain a list, ignoring it")
			return SongLibrary()

		library = SongLibrary()

		for index, entry in enumerate(raw):

			try:
				library.add(Song.from_dict(entry))

			except ValueError as e:
				logger.warning(f"Skipping invalid song {index} in {self.path}: {e}")

		if len(library) != len(raw):
			logger.warning(f"Filtered out {len(raw) - len(library)} invalid songs")

		return library


	def save_song (self, song: Song) -> Song:

		"""Add a song to the store and return it (possibly renamed)."""

		library = self.load()
		stored = library.add(song)
		self._write(library)

		logger.info(f"Saved song '{stored.name}' ({len(library)} songs in {self.path})")

		return stored


	def remove_oldest (self, count: int = 1) -> int:

		"""Remove the ``count`` oldest songs, always keeping at least one. Returns how many were removed."""

		library = self.load()

		if len(library) <= count:
			logger.warning("Cannot remove all songs")
			return 0

		library.songs = library.songs[count:]
		self._write(library)

		return count


	def _write (self, library: SongLibrary) -> None:

		payload = json.dumps([song.to_dict() for song in library.songs])
		size = len(payload.encode("utf-8"))

		if size > self.limit_bytes:
			raise StorageLimitExceeded(size, self.limit_bytes)

		with open(self.path, "w", encoding="utf-8") as f:
			f.write(payload)
