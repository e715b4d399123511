"""Voice leading for generated lead notes.

Smooth melodic lines move by small intervals. These helpers turn a candidate
list into a proximity-weighted pool relative to the last played note, and pick
from it with an injected ``random.Random`` so every choice is reproducible under
a fixed seed.

All functions here are pure; the "last played note" lives in the caller
(:class:`~cadence.harmony.HarmonyEngine`), which makes note generation a
Markov-like process: each choice depends on the previous one.

Example:
	```python
	import random

	candidates, weights = proximity_weights([57, 60, 64], last_note=62)
	# candidates → [60, 64, 57]   (distances 2, 2, 5; ties keep input order)
	# weights    → [5, 4, 3]
	choose_weighted(candidates, weights, random.Random(1))
	```
"""

import random
import typing


MAX_PROXIMITY_WEIGHT = 5


def rank_by_proximity (candidates: typing.Sequence[int], last_note: int) -> typing.List[int]:

	"""Sort candidates by absolute semitone distance to ``last_note`` (stable)."""

	return sorted(candidates, key=lambda pitch: abs(pitch - last_note))


def proximity_weights (candidates: typing.Sequence[int], last_note: int) -> typing.Tuple[typing.List[int], typing.List[int]]:

	"""Rank candidates by proximity and assign integer weights ``max(1, 5 - rank)``.

	Duplicate candidates are ranked individually, so a pitch that appears twice
	in the input collects two weights.
	"""

	ranked = rank_by_proximity(candidates, last_note)
	weights = [max(1, MAX_PROXIMITY_WEIGHT - rank) for rank in range(len(ranked))]

	return ranked, weights


def expand_pool (candidates: typing.Sequence[int], weights: typing.Sequence[int]) -> typing.List[int]:

	"""Repeat each candidate as many times as its weight."""

	if len(candidates) != len(weights):
		raise ValueError("candidates and weights must have the same length")

	pool: typing.List[int] = []

	for pitch, weight in zip(candidates, weights):

		if weight < 0:
			raise ValueError("Weights must not be negative")

		pool.extend([pitch] * weight)

	return pool


def choose_weighted (candidates: typing.Sequence[int], weights: typing.Sequence[int], rng: random.Random) -> int:

	"""Pick uniformly from the weight-expanded pool."""

	pool = expand_pool(candidates, weights)

	if not pool:
		raise ValueError("Cannot choose from an empty candidate pool")

	return rng.choice(pool)


def choose_note (
	candidates: typing.Sequence[int],
	last_note: typing.Optional[int],
	rng: random.Random,
	voice_leading: bool = True
) -> int:

	"""Choose the next note, favouring small intervals when voice leading applies.

	Without voice leading (or without a previous note) every candidate has
	weight 1.
	"""

	if voice_leading and last_note is not None:
		ranked, weights = proximity_weights(candidates, last_note)
		return choose_weighted(ranked, weights, rng)

	return choose_weighted(list(candidates), [1] * len(candidates), rng)
