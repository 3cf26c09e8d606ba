"""Unit tests for the all-up parlay simulator."""

import datetime as dt

import pytest

from hkrace.analytics.parlay import UNIT_STAKE, ChainState, run_chain, simulate_chains, simulate_parlay
from hkrace.analytics.repository import RaceData
from hkrace.analytics.sources import PunditSource

DAY1 = dt.date(2026, 1, 21)
DAY2 = dt.date(2026, 1, 25)


def _race(day, race_no, winner, dividend, pundit) -> RaceData:
    pools = []
    if winner is not None:
        pools = [{"name": "獨贏", "list": [{"shengchuzuhe": str(winner), "paicai": dividend}]}]
    return RaceData(
        id=f"{day.isoformat()}-ST-r{race_no}",
        date=day,
        venue="ST",
        race_no=race_no,
        pools=pools,
        pundit=list(pundit),
    )


class TestRunChain:
    def test_scenario_e_failed_chain_loses_unit_only(self):
        legs = [_race(DAY1, 1, 5, "40.00", [5, 2]), _race(DAY1, 2, 9, "80.00", [1, 2])]
        chain = run_chain(legs, PunditSource(), pick_top_k=1)
        assert chain["path"][0]["leg_hit"] is True
        assert chain["path"][1]["leg_hit"] is False
        assert chain["state"] == ChainState.LEG_MISS.value
        assert chain["net"] == -UNIT_STAKE

    def test_full_chain_pays_last_dividend_less_unit(self):
        legs = [_race(DAY1, 1, 5, "40.00", [5]), _race(DAY1, 2, 9, "80.00", [9])]
        chain = run_chain(legs, PunditSource(), pick_top_k=1)
        assert chain["hit"] is True
        assert chain["state"] == ChainState.CHAIN_WIN.value
        assert chain["final_stake"] == 80.0
        assert chain["net"] == 60.0

    def test_second_pick_only_counts_for_top_two(self):
        legs = [_race(DAY1, 1, 5, "40.00", [1, 5])]
        assert run_chain(legs, PunditSource(), pick_top_k=1)["hit"] is False
        assert run_chain(legs, PunditSource(), pick_top_k=2)["hit"] is True

    def test_missing_picks_is_a_miss(self):
        legs = [_race(DAY1, 1, 5, "40.00", [])]
        chain = run_chain(legs, PunditSource(), pick_top_k=1)
        assert chain["hit"] is False
        assert chain["net"] == -UNIT_STAKE

    def test_stops_after_first_miss(self):
        legs = [_race(DAY1, 1, 5, "40.00", [1]), _race(DAY1, 2, 9, "80.00", [9])]
        chain = run_chain(legs, PunditSource(), pick_top_k=1)
        assert len(chain["path"]) == 1


class TestSimulateChains:
    def test_short_days_are_excluded(self):
        races = [
            _race(DAY1, 1, 5, "40.00", [5]),
            _race(DAY1, 2, 9, "80.00", [9]),
            _race(DAY1, 3, 2, "30.00", [1]),
            _race(DAY2, 1, 3, "25.00", [3]),  # only one race with results
            _race(DAY2, 2, None, "", [4]),
        ]
        summary = simulate_chains(races, PunditSource(), pick_top_k=1, legs=2)
        assert summary["total_chains"] == 1
        assert summary["hit_chains"] == 1
        assert summary["net_profit"] == 60.0
        assert summary["roi_pct"] == 300.0
        assert summary["details"][0]["date"] == "2026-01-21"

    def test_legs_in_race_number_order(self):
        races = [_race(DAY1, 2, 9, "80.00", [9]), _race(DAY1, 1, 5, "40.00", [5])]
        summary = simulate_chains(races, PunditSource(), legs=1)
        assert summary["details"][0]["path"][0]["race_no"] == 1
        assert summary["details"][0]["net"] == 20.0

    def test_no_chains(self):
        summary = simulate_chains([], PunditSource())
        assert summary["total_chains"] == 0
        assert summary["roi_pct"] == 0
        assert summary["hit_rate"] == 0

    @pytest.mark.parametrize("top_k,legs", [(0, 2), (3, 2), (1, 0)])
    def test_invalid_arguments(self, top_k, legs):
        with pytest.raises(ValueError):
            simulate_chains([], PunditSource(), pick_top_k=top_k, legs=legs)


class TestSimulateParlay:
    async def test_from_database(self, add_race, make_pools, db_session):
        await add_race(DAY1, 1, pools=make_pools(5, "40.00"), pundit=[5, 2])
        await add_race(DAY1, 2, pools=make_pools(9, "80.00"), pundit=[1, 2])
        summary = await simulate_parlay(db_session, DAY1, DAY1, "pundit", pick_top_k=1, legs=2)
        assert summary["total_chains"] == 1
        assert summary["hit_chains"] == 0
        assert summary["net_profit"] == -20.0
