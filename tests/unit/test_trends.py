"""Unit tests for market-trend movement, pundit performance and odds signals."""

import datetime as dt

import pytest

from hkrace.analytics.market import (
    betting_shares,
    calculate_fund_flow,
    calculate_odds_drops,
    load_snapshots,
)
from hkrace.analytics.repository import RaceData
from hkrace.analytics.trends import MISSING_RANK, analyse_race_trend, finishing_order, pundit_performance
from hkrace.models import OddsSnapshot

POOLS = [
    {"name": "獨贏", "list": [{"shengchuzuhe": "8", "paicai": "35.00"}]},
    {"name": "位置", "list": [
        {"shengchuzuhe": "8", "paicai": "14.00"},
        {"shengchuzuhe": "3", "paicai": "20.00"},
        {"shengchuzuhe": "1", "paicai": "30.00"},
    ]},
    {"name": "四連環", "list": [{"shengchuzuhe": "8,1,3,6", "paicai": "900.00"}]},
]


def _race(**kwargs) -> RaceData:
    defaults = dict(id="2026-01-28-HV-r1", date=dt.date(2026, 1, 28), venue="HV", race_no=1, pools=POOLS)
    defaults.update(kwargs)
    return RaceData(**defaults)


class TestFinishingOrder:
    def test_uses_first4_order(self):
        assert finishing_order(POOLS) == [8, 1, 3, 6]

    def test_falls_back_to_placings(self):
        assert finishing_order(POOLS[:2]) == [8, 3, 1]

    def test_no_result(self):
        assert finishing_order([]) == []


class TestRaceTrend:
    def test_movers_and_favourites(self):
        trends = {
            "30": [2, 3, 8, 4, 5, 6, 7, 1],
            "0": [1, 3, 8, 2, 5, 6, 7, 4],
        }
        rows = {r["horse_no"]: r for r in analyse_race_trend(_race(trends=trends))}
        assert rows[1]["rank_change"] == 7
        assert rows[1]["is_big_mover"] is True
        assert rows[3]["is_steady_favorite"] is True
        assert rows[8]["result"] == {"place": 1, "win_dividend": 35.0}
        assert rows[1]["result"]["place"] == 2
        assert rows[2]["result"]["place"] == 0

    def test_missing_from_one_snapshot(self):
        rows = analyse_race_trend(_race(trends={"30": [1, 2], "0": [2]}))
        one = next(r for r in rows if r["horse_no"] == 1)
        assert one["rank_end"] == MISSING_RANK
        assert one["rank_change"] == 0
        assert rows[0]["horse_no"] == 2

    def test_no_trends(self):
        assert analyse_race_trend(_race()) == []


class TestPunditPerformance:
    def test_counts_first_four(self):
        perf = pundit_performance(_race(pundit=[3, 8, 9, 6]))
        assert perf["winner_picked"] is True
        assert perf["winner_pick_rank"] == 2
        assert perf["top4_picked_count"] == 3

    def test_no_picks_or_result(self):
        assert pundit_performance(_race(pundit=[])) is None
        assert pundit_performance(_race(pools=[], pundit=[1])) is None


T0 = dt.datetime(2026, 1, 28, 19, 15)


def _snap(minutes_before: int, odds: dict):
    return (T0 - dt.timedelta(minutes=minutes_before), odds)


class TestOddsSignals:
    def test_odds_drops(self):
        snapshots = [
            _snap(30, {"1": 10.0, "2": 4.0}),
            _snap(5, {"1": 8.0, "2": 4.0}),
            _snap(3, {"1": 8.0, "2": 4.0}),
            _snap(0, {"1": 6.0, "2": 4.2}),
        ]
        drops = {d["horse_no"]: d for d in calculate_odds_drops(snapshots, T0)}
        assert drops[1]["drop_rate"] == 40.0
        assert drops[1]["drop_speed5"] == 25.0
        assert drops[1]["is_sudden_drop"] is True
        assert drops[2]["is_sudden_drop"] is False
        assert drops[2]["drop_rate"] == -5.0

    def test_needs_two_snapshots(self):
        assert calculate_odds_drops([_snap(0, {"1": 3.0})]) == []
        assert calculate_fund_flow([]) == []

    def test_betting_shares_sum_to_100(self):
        shares = betting_shares({"1": 2.0, "2": 4.0, "3": 4.0})
        assert shares["1"] == pytest.approx(50.0)
        assert sum(shares.values()) == pytest.approx(100.0)

    def test_fund_flow_ranks_by_share(self):
        snapshots = [
            _snap(5, {"1": 3.0, "2": 3.0, "3": 3.0}),
            _snap(0, {"1": 2.0, "2": 4.0, "3": 4.0}),
        ]
        flow = calculate_fund_flow(snapshots, T0)
        assert flow[0]["horse_no"] == 1
        assert flow[0]["hot_money_rank"] == 1
        assert flow[0]["share_change5"] > 0
        assert all(not f["is_reverse_money"] for f in flow)

    def test_snapshots_past_start_use_closest_to_start(self):
        snapshots = [
            _snap(30, {"1": 10.0}),
            _snap(0, {"1": 5.0}),
            (T0 + dt.timedelta(minutes=4), {"1": 2.0}),
        ]
        drops = calculate_odds_drops(snapshots, T0)
        assert drops[0]["odds0"] == 5.0

    async def test_load_snapshots(self, add_race, db_session):
        race = await add_race(dt.date(2026, 1, 28), 1, venue="HV", start_time=T0)
        db_session.add(OddsSnapshot(race_id=race.id, timestamp=T0, win_odds={"1": 5.0}))
        db_session.add(OddsSnapshot(race_id=race.id, timestamp=T0 - dt.timedelta(minutes=30), win_odds={"1": 9.0}))
        await db_session.commit()

        snapshots, start = await load_snapshots(db_session, race.id)
        assert start == T0
        assert [s[1]["1"] for s in snapshots] == [9.0, 5.0]

        with pytest.raises(LookupError):
            await load_snapshots(db_session, "2026-01-28-HV-r9")
