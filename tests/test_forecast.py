"""Tests for the canned row forecasts and their evaluation."""

import pytest

from fixturecast.forecast import (
    ROW_FORECASTS,
    actual_outcome,
    forecast_for,
    is_correct,
    summarize,
)


class TestForecastFor:
    def test_known_rows(self):
        assert forecast_for(1) == "1/X"
        assert forecast_for(3) == "X/2"
        assert forecast_for(5) == "1/2"

    def test_row_without_label(self):
        assert forecast_for(0) is None
        assert forecast_for(max(ROW_FORECASTS) + 1) is None

    def test_table_only_uses_known_labels(self):
        assert set(ROW_FORECASTS.values()) <= {"1/X", "1/2", "X/2"}


class TestActualOutcome:
    @pytest.mark.parametrize(
        "score,expected",
        [
            ({"home": 2, "away": 1}, "1"),
            ({"home": 0, "away": 0}, "X"),
            ({"home": 1, "away": 3}, "2"),
        ],
    )
    def test_numeric_scores(self, score, expected):
        assert actual_outcome(score) == expected

    @pytest.mark.parametrize(
        "score",
        [
            {"home": None, "away": 1},
            {"home": 1, "away": None},
            {"home": "2", "away": 1},
            {"home": True, "away": 0},
            {},
        ],
    )
    def test_non_numeric_is_not_evaluable(self, score):
        assert actual_outcome(score) is None


class TestIsCorrect:
    def test_home_or_draw_iff_home_not_behind(self):
        for home in range(4):
            for away in range(4):
                assert is_correct({"home": home, "away": away}, "1/X") == (home >= away)

    def test_home_or_away_iff_not_level(self):
        for home in range(4):
            for away in range(4):
                assert is_correct({"home": home, "away": away}, "1/2") == (home != away)

    def test_draw_or_away_iff_home_not_ahead(self):
        for home in range(4):
            for away in range(4):
                assert is_correct({"home": home, "away": away}, "X/2") == (home <= away)

    def test_row_five_level_score(self):
        """Row 5 forecasts 1/2; a 2-2 draw misses it."""
        score = {"home": 2, "away": 2}
        label = forecast_for(5)
        assert label == "1/2"
        assert actual_outcome(score) == "X"
        assert is_correct(score, label) is False

    def test_unfinished_score_is_never_correct(self):
        assert is_correct({"home": None, "away": None}, "1/X") is False


class TestSummarize:
    def test_counts_and_win_rate(self):
        summary = summarize([
            (1, {"home": 1, "away": 0}),   # 1/X, correct
            (3, {"home": 2, "away": 0}),   # X/2, wrong
            (5, {"home": 0, "away": 2}),   # 1/2, correct
            (2, {"home": None, "away": None}),  # not finished
            (999, {"home": 1, "away": 1}),  # no label
        ])
        assert summary.correct == 2
        assert summary.incorrect == 1
        assert summary.total == 3
        assert summary.win_rate == 66.7
        assert summary.to_dict()["winRate"] == 66.7

    def test_empty(self):
        summary = summarize([])
        assert summary.total == 0
        assert summary.win_rate == 0.0
