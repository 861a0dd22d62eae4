"""Tests for the click benchmark result bookkeeping."""

from benchmarks.scenarios.clicks import LOAD_SCENARIOS, ClickResult, RoundResult


def make_round(counts, final_count, failures=0):
    clicks = [ClickResult(success=True, latency_ms=1.0, count=c, source="map") for c in counts]
    clicks += [ClickResult(success=False, latency_ms=5.0, error="timeout")] * failures
    return RoundResult(
        name="race-1",
        requested=len(clicks),
        initial_count=10,
        final_count=final_count,
        duration_sec=0.5,
        clicks=clicks,
    )


class TestRoundResult:
    """Test cases for RoundResult."""

    def test_intact_round(self):
        """Distinct counts and a matching delta mean nothing was lost."""
        result = make_round([11, 12, 13, 14], final_count=14)
        assert result.actual_increment == 4
        assert result.lost_clicks == 0
        assert result.duplicate_counts == 0
        assert result.intact
        assert result.rps == 8.0

    def test_lost_update_detected(self):
        """Two clicks returning the same count show up as a duplicate and a loss."""
        result = make_round([11, 12, 12, 13], final_count=13)
        assert result.lost_clicks == 1
        assert result.duplicate_counts == 1
        assert not result.intact

    def test_failed_requests_not_expected(self):
        """Failed requests are not counted against the delta."""
        result = make_round([11, 12], final_count=12, failures=3)
        assert result.success_count == 2
        assert result.error_count == 3
        assert result.intact

    def test_to_dict(self):
        """The report carries delta, sources and latency stats."""
        data = make_round([11, 12], final_count=12, failures=1).to_dict()
        assert data["actual_increment"] == 2
        assert data["failed_requests"] == 1
        assert data["sources"] == {"map": 2}
        assert data["latency_stats"]["mean_ms"] == 1.0


def test_load_scenarios_grow():
    """Load scenarios run from light to extreme."""
    assert [s.name for s in LOAD_SCENARIOS] == ["light", "medium", "heavy", "extreme"]
    assert [s.requests for s in LOAD_SCENARIOS] == sorted(s.requests for s in LOAD_SCENARIOS)
