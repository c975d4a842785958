"""Join fixtures with odds into ranked dashboard rows."""

from typing import Iterable, Optional

from fixturecast.etl.base import FixtureRecord, OddsRecord, ScoreRow
from fixturecast.sections import day_label


def assemble(
    fixtures: Iterable[FixtureRecord],
    odds_by_fixture_id: dict[int, OddsRecord],
    tz_name: Optional[str] = None,
) -> list[ScoreRow]:
    """
    Build the rows for one section.

    Fixtures without odds are dropped. The rest are sorted by kickoff
    (stable, no secondary key) and numbered 1..N in that order.
    """
    priced = [f for f in fixtures if f.fixture_id in odds_by_fixture_id]
    priced.sort(key=lambda f: f.kickoff)

    return [
        ScoreRow(
            fixture=fixture,
            odds=odds_by_fixture_id[fixture.fixture_id],
            row_number=position,
            day=day_label(fixture.kickoff, tz_name),
        )
        for position, fixture in enumerate(priced, start=1)
    ]
