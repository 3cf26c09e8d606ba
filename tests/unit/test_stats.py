"""Unit tests for aggregate pick-source statistics."""

import datetime as dt

import pytest

from hkrace.analytics.repository import RaceData
from hkrace.analytics.sources import PunditSource, TrendSource, UnknownSourceError
from hkrace.analytics.stats import (
    bet_metrics,
    compute_stats,
    daily_breakdown,
    get_custom_composite_stats,
    get_race_stats,
    get_system_stats,
    hit_rate_breakdown,
    race_breakdown,
    system_accuracy,
    tally_races,
)
from hkrace.models import StrategyTest
from hkrace.strategies import set_strategy_picks

DAY1 = dt.date(2026, 1, 21)
DAY2 = dt.date(2026, 1, 28)


def _win(horse: int, dividend: str) -> list:
    return [{"name": "獨贏", "list": [{"shengchuzuhe": str(horse), "paicai": dividend}]}]


def _race(day, race_no, pools, pundit=(), trends=None) -> RaceData:
    return RaceData(
        id=f"{day.isoformat()}-ST-r{race_no}",
        date=day,
        venue="ST",
        race_no=race_no,
        pools=pools,
        pundit=list(pundit),
        trends=trends or {},
    )


class TestBetMetrics:
    def test_rates_and_roi(self):
        m = bet_metrics(hits=1, revenue=35.0, cost=40.0, race_count=2)
        assert m["rate"] == 50.0
        assert m["net"] == -5.0
        assert m["roi"] == -12.5

    def test_zero_cost_roi_is_zero(self):
        m = bet_metrics(hits=0, revenue=0.0, cost=0.0, race_count=0)
        assert m["roi"] == 0
        assert m["rate"] == 0


class TestTally:
    def test_counts_only_races_with_result_and_picks(self):
        races = [
            _race(DAY1, 1, _win(8, "35.00"), pundit=[8, 3, 1]),
            _race(DAY1, 2, _win(4, "60.00"), pundit=[1, 2, 3]),
            _race(DAY1, 3, [], pundit=[1, 2]),  # no payouts
            _race(DAY1, 4, _win(5, "25.00")),  # no picks
            _race(DAY1, 5, [{"name": "位置", "list": []}], pundit=[5]),  # no Win pool
        ]
        stats = tally_races(races, PunditSource())
        assert stats["race_count"] == 2
        assert stats["win"]["hits"] == 1
        assert stats["win"]["rate"] == 50.0
        assert stats["win"]["revenue"] == 35.0
        assert stats["win"]["cost"] == 40.0
        assert stats["win"]["roi"] == -12.5
        assert stats["box6"]["win"]["hits"] == 1

    def test_empty(self):
        stats = tally_races([], PunditSource())
        assert stats["race_count"] == 0
        assert stats["win"]["roi"] == 0

    def test_daily_newest_first(self):
        races = [
            _race(DAY1, 1, _win(8, "35.00"), pundit=[8]),
            _race(DAY2, 1, _win(2, "50.00"), pundit=[3]),
            _race(DAY2, 2, _win(4, "40.00")),
        ]
        rows = daily_breakdown(races, PunditSource())
        assert [r["date"] for r in rows] == ["2026-01-28", "2026-01-21"]
        assert rows[0]["race_count"] == 1
        assert rows[0]["win"]["hits"] == 0
        assert rows[1]["win"]["hits"] == 1

    def test_hit_rate_breakdown_per_offset(self):
        races = [
            _race(DAY1, 1, _win(8, "35.00"), pundit=[3], trends={"30": [8, 3], "0": [3, 8], "5": [1]}),
        ]
        data = hit_rate_breakdown(races)
        assert data["total_races"] == 1
        assert list(data["trends"]) == ["30", "5", "0"]
        assert data["trends"]["30"]["win"]["hits"] == 1
        assert data["trends"]["5"]["win"]["hits"] == 0
        assert data["trends"]["0"]["win"]["hits"] == 1
        assert data["pundit"]["win"]["hits"] == 0

    def test_trend_source(self):
        races = [_race(DAY1, 1, _win(8, "35.00"), trends={"30": [1, 8]})]
        assert tally_races(races, TrendSource("30"))["win"]["hits"] == 1
        assert tally_races(races, TrendSource("15"))["race_count"] == 0


class TestSystemAccuracy:
    def test_top_pick_yield(self):
        quinella = {"name": "連贏", "list": [{"shengchuzuhe": "3,8", "paicai": "120.00"}]}
        place = {"name": "位置", "list": [
            {"shengchuzuhe": "8", "paicai": "14.00"},
            {"shengchuzuhe": "3", "paicai": "20.00"},
            {"shengchuzuhe": "1", "paicai": "30.00"},
        ]}
        races = [
            _race(DAY1, 1, _win(8, "35.00") + [place, quinella], pundit=[8, 3]),
            _race(DAY1, 2, _win(4, "60.00"), pundit=[1, 2]),
        ]
        stats = system_accuracy(races)
        assert stats["total_races"] == 2
        assert stats["top1_win_count"] == 1
        assert stats["top1_place_count"] == 1
        assert stats["top2_q_count"] == 1
        # +25 on the winner, -10 on the loser
        assert stats["top1_win_yield"] == 15.0
        assert stats["roi"] == 75.0
        assert stats["top1_win_rate"] == 50.0


class TestRaceBreakdown:
    def test_sources_present(self):
        race = _race(DAY1, 1, _win(8, "35.00"), pundit=[8, 3], trends={"30": [3, 8]})
        data = race_breakdown(race)
        assert data["result"]["winner"] == 8
        assert set(data["sources"]) >= {"pundit", "trend-30"}
        assert data["sources"]["pundit"]["win"]["hit"] == 1
        assert data["pundit_performance"]["winner_pick_rank"] == 1


class TestStatsFromDatabase:
    async def test_compute_stats(self, add_race, make_pools, db_session):
        await add_race(DAY1, 1, pools=make_pools(8, "35.00"), pundit=["8", "3", "1"])
        await add_race(DAY1, 2, pools=make_pools(4, "60.00"), pundit=[1, 2, 3])
        await add_race(DAY2, 1, pools=make_pools(2, "50.00"), pundit=[2])
        await add_race(DAY2, 2, pundit=[2])  # no payouts yet

        stats = await compute_stats(db_session, "pundit", "2026-01-21", "2026/01/21")
        assert stats["source"] == "pundit"
        assert stats["race_count"] == 2
        assert stats["win"]["hits"] == 1

        everything = await compute_stats(db_session, "pundit")
        assert everything["race_count"] == 3

    async def test_unknown_source(self, db_session):
        with pytest.raises(UnknownSourceError):
            await compute_stats(db_session, "tipster")

    async def test_custom_composite_with_strategy(self, add_race, make_pools, db_session):
        race = await add_race(DAY1, 1, pools=make_pools(8, "35.00"), pundit=[3, 1], trends={"30": [1, 3]})
        strategy = StrategyTest(name="inside draws")
        db_session.add(strategy)
        await db_session.commit()
        await set_strategy_picks(db_session, strategy.id, race.id, [8, 4])

        alone = await get_custom_composite_stats(db_session, ["pundit", "trend-30"])
        assert alone["win"]["hits"] == 0

        blended = await get_custom_composite_stats(
            db_session, ["strategy-" + strategy.id, "strategy-" + strategy.id, "pundit"]
        )
        assert blended["race_count"] == 1
        assert blended["win"]["hits"] == 1

    async def test_system_stats(self, add_race, make_pools, db_session):
        await add_race(DAY1, 1, pools=make_pools(8, "35.00"), pundit=[8])
        stats = await get_system_stats(db_session)
        assert stats["top1_win_count"] == 1

    async def test_race_stats_missing(self, db_session):
        with pytest.raises(LookupError):
            await get_race_stats(db_session, "2026-01-01-ST-r1")
