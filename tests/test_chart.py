import pytest

import cadence.chart


def _chart (*entries: dict) -> cadence.chart.Chart:

	return cadence.chart.Chart.from_dicts(list(entries))


def test_events_are_sorted () -> None:

	chart = _chart({"time": 500, "lane": "up"}, {"time": 100, "lane": "left"}, {"time": 900, "lane": "END"})

	assert [e.time for e in chart] == [100, 500, 900]
	assert chart.end_time == 900
	assert len(chart.notes) == 2


def test_end_tied_with_note_is_last () -> None:

	chart = _chart({"time": 500, "lane": "END"}, {"time": 500, "lane": "up"})

	assert chart[-1].is_end
	assert chart[0].lane == "up"


def test_pitch_round_trips () -> None:

	chart = _chart({"time": 0, "lane": "right", "pitch": 64}, {"time": 2000, "lane": "END"})

	assert chart[0].pitch == 64
	assert chart.to_dicts() == [{"time": 0, "lane": "right", "pitch": 64}, {"time": 2000, "lane": "END"}]


class TestValidation:

	def test_missing_time (self) -> None:
		with pytest.raises(cadence.chart.ChartValidationError, match="missing a time"):
			_chart({"lane": "up"}, {"time": 10, "lane": "END"})

	def test_missing_lane (self) -> None:
		with pytest.raises(cadence.chart.ChartValidationError, match="missing a lane"):
			_chart({"time": 10}, {"time": 20, "lane": "END"})

	@pytest.mark.parametrize("time", [-1, "soon", float("nan"), True])
	def test_bad_time (self, time: object) -> None:
		with pytest.raises(cadence.chart.ChartValidationError):
			_chart({"time": time, "lane": "up"}, {"time": 20, "lane": "END"})

	def test_bad_lane (self) -> None:
		with pytest.raises(cadence.chart.ChartValidationError):
			_chart({"time": 0, "lane": ""}, {"time": 20, "lane": "END"})

	def test_bad_pitch (self) -> None:
		with pytest.raises(cadence.chart.ChartValidationError):
			_chart({"time": 0, "lane": "right", "pitch": 200}, {"time": 20, "lane": "END"})

	def test_not_a_mapping (self) -> None:
		with pytest.raises(cadence.chart.ChartValidationError):
			_chart(["up", 10], {"time": 20, "lane": "END"})

	def test_no_end (self) -> None:
		with pytest.raises(cadence.chart.ChartValidationError, match="exactly one"):
			_chart({"time": 0, "lane": "up"})

	def test_two_ends (self) -> None:
		with pytest.raises(cadence.chart.ChartValidationError):
			_chart({"time": 0, "lane": "END"}, {"time": 10, "lane": "END"})

	def test_end_before_notes (self) -> None:
		with pytest.raises(cadence.chart.ChartValidationError, match="after every other event"):
			_chart({"time": 0, "lane": "END"}, {"time": 10, "lane": "up"})

	def test_is_value_error (self) -> None:
		assert issubclass(cadence.chart.ChartValidationError, ValueError)


def test_default_chart () -> None:

	"""The built-in chart: 20 notes every 1500 ms from 1000 ms, cycling lanes, END at 32000."""

	chart = cadence.chart.DEFAULT_CHART

	assert len(chart.notes) == 20
	assert chart[0] == cadence.chart.ChartEvent(1000, "left")
	assert chart[3] == cadence.chart.ChartEvent(5500, "up")
	assert chart.notes[-1].time == 29500
	assert chart.end_time == 32000


def test_active_event_state () -> None:

	active = cadence.chart.ActiveEvent(cadence.chart.ChartEvent(0, "up"), spawn_time=0, current_position=400)

	assert not active.is_resolved
	assert active.lane == "up"

	active.state = cadence.chart.EventState.HIT

	assert active.is_resolved
