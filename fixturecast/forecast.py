"""
Canned two-outcome forecasts keyed by dashboard row number.

Labels:
- "1/X": home win or draw
- "1/2": home win or away win
- "X/2": draw or away win

A row without a label, or a score that is not final, is not evaluable.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

HOME_OR_DRAW = "1/X"
HOME_OR_AWAY = "1/2"
DRAW_OR_AWAY = "X/2"

HOME = "1"
DRAW = "X"
AWAY = "2"

# Outcomes covered by each label
LABEL_OUTCOMES = {
    HOME_OR_DRAW: frozenset({HOME, DRAW}),
    HOME_OR_AWAY: frozenset({HOME, AWAY}),
    DRAW_OR_AWAY: frozenset({DRAW, AWAY}),
}

ROW_FORECASTS: dict[int, str] = {
    1: "1/X", 2: "1/X", 3: "X/2", 4: "1/X", 5: "1/2",
    6: "1/X", 7: "1/2", 8: "X/2", 9: "1/X", 10: "1/2",
    11: "1/X", 12: "X/2", 13: "1/2", 14: "1/X", 15: "1/X",
    16: "X/2", 17: "1/2", 18: "1/X", 19: "X/2", 20: "1/2",
    21: "1/X", 22: "1/2", 23: "1/X", 24: "X/2", 25: "1/X",
    26: "1/2", 27: "X/2", 28: "1/X", 29: "1/2", 30: "1/X",
    31: "X/2", 32: "1/X", 33: "1/2", 34: "1/X", 35: "X/2",
    36: "1/2", 37: "1/X", 38: "1/X", 39: "1/2", 40: "X/2",
    41: "1/X", 42: "1/2", 43: "X/2", 44: "1/X", 45: "1/2",
    46: "1/X", 47: "X/2", 48: "1/2", 49: "1/X", 50: "1/X",
}


def forecast_for(row_number: int) -> Optional[str]:
    """Forecast label for a row number, or None if the row has none."""
    return ROW_FORECASTS.get(row_number)


def _goals(value) -> Optional[int]:
    # bool is an int subclass but never a score
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def actual_outcome(score: dict) -> Optional[str]:
    """'1', 'X' or '2' for a score {"home": int, "away": int}; None if not numeric."""
    home = _goals(score.get("home"))
    away = _goals(score.get("away"))
    if home is None or away is None:
        return None
    if home > away:
        return HOME
    if home < away:
        return AWAY
    return DRAW


def is_correct(score: dict, label: str) -> bool:
    """True iff the final result is one of the two outcomes the label covers."""
    outcome = actual_outcome(score)
    if outcome is None:
        return False
    return outcome in LABEL_OUTCOMES.get(label, frozenset())


@dataclass
class ForecastSummary:
    correct: int = 0
    incorrect: int = 0

    @property
    def total(self) -> int:
        return self.correct + self.incorrect

    @property
    def win_rate(self) -> float:
        """Percentage of correct forecasts (0.0 when nothing is evaluable)."""
        if self.total == 0:
            return 0.0
        return round(self.correct / self.total * 100, 1)

    def to_dict(self) -> dict:
        return {
            "correct": self.correct,
            "incorrect": self.incorrect,
            "total": self.total,
            "winRate": self.win_rate,
        }


def summarize(rows: Iterable[tuple[int, dict]]) -> ForecastSummary:
    """
    Count correct/incorrect forecasts over (row_number, score) pairs.

    Rows without a label or without a numeric score are skipped.
    """
    summary = ForecastSummary()
    for row_number, score in rows:
        label = forecast_for(row_number)
        if label is None or actual_outcome(score) is None:
            continue
        if is_correct(score, label):
            summary.correct += 1
        else:
            summary.incorrect += 1
    return summary
