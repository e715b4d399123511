import collections
import random

import pytest

import cadence.voice_leading


def test_rank_by_proximity_is_stable () -> None:

	"""Equal distances keep their input order."""

	assert cadence.voice_leading.rank_by_proximity([57, 60, 64], 62) == [60, 64, 57]


def test_proximity_weights () -> None:

	ranked, weights = cadence.voice_leading.proximity_weights([57, 60, 64], 60)

	assert ranked == [60, 57, 64]
	assert weights == [5, 4, 3]


def test_weights_floor_at_one () -> None:

	_, weights = cadence.voice_leading.proximity_weights(list(range(60, 68)), 60)

	assert weights == [5, 4, 3, 2, 1, 1, 1, 1]


def test_expand_pool () -> None:

	assert cadence.voice_leading.expand_pool([60, 64], [2, 1]) == [60, 60, 64]


def test_expand_pool_length_mismatch () -> None:

	with pytest.raises(ValueError):
		cadence.voice_leading.expand_pool([60, 64], [1])


def test_choose_weighted_empty_pool () -> None:

	with pytest.raises(ValueError):
		cadence.voice_leading.choose_weighted([], [], random.Random(0))


def test_choose_weighted_is_deterministic () -> None:

	"""The same seed gives the same choices."""

	a = [cadence.voice_leading.choose_weighted([57, 60, 64], [5, 4, 3], random.Random(3)) for _ in range(5)]
	b = [cadence.voice_leading.choose_weighted([57, 60, 64], [5, 4, 3], random.Random(3)) for _ in range(5)]

	assert a == b


def test_closer_notes_are_favoured () -> None:

	"""Over many draws the nearest candidate is chosen most often."""

	rng = random.Random(11)
	counts = collections.Counter(
		cadence.voice_leading.choose_note([57, 60, 64, 72], last_note=61, rng=rng) for _ in range(2000)
	)

	assert counts[60] > counts[64] > counts[57] > counts[72]


def test_choose_note_without_voice_leading_uses_every_candidate () -> None:

	rng = random.Random(5)
	seen = {cadence.voice_leading.choose_note([57, 60, 64], last_note=None, rng=rng) for _ in range(200)}

	assert seen == {57, 60, 64}
