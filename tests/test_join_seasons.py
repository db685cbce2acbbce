import pandas as pd
import pytest

from cap_value.data_helper.join_seasons import (
    PANEL_COLUMNS,
    SALARY_CAP_BY_YEAR,
    join_season,
    join_seasons,
    salary_cap_for,
)
from cap_value.utils.errors import MissingColumnsError, MissingSalaryCapError


def _performance(year, players):
    return pd.DataFrame(
        [
            {
                "year": year,
                "player": name,
                "team": "MIL",
                "obpm": 1.0,
                "dbpm": 0.5,
                "bpm": bpm,
                "minutes": 2000.0,
            }
            for name, bpm in players
        ]
    )


def _salaries(year, salaries):
    return pd.DataFrame([{"year": year, "player": name, "salary": s} for name, s in salaries])


def test_salary_fraction_uses_cap_of_the_season():
    perf = _performance(2021, [("Jrue Holiday", 3.1), ("Khris Middleton", 3.0)])
    sal = _salaries(2021, [("Jrue Holiday", 26_131_111.0), ("Khris Middleton", 33_051_724.0)])

    joined, unmatched = join_season(perf, sal, 2021)

    cap = SALARY_CAP_BY_YEAR[2021]
    fractions = joined.set_index("player")["salary_fraction"]
    assert fractions["Jrue Holiday"] == pytest.approx(26_131_111.0 / cap)
    assert fractions["Khris Middleton"] == pytest.approx(33_051_724.0 / cap)
    assert unmatched == []


def test_players_without_salary_are_dropped_and_reported():
    perf = _performance(2021, [("Jrue Holiday", 3.1), ("Bobby Portis", 1.0)])
    sal = _salaries(2021, [("Jrue Holiday", 26_131_111.0)])

    joined, unmatched = join_season(perf, sal, 2021)

    assert joined["player"].tolist() == ["Jrue Holiday"]
    assert unmatched == ["Bobby Portis"]


def test_join_is_exact_and_case_sensitive():
    perf = _performance(2021, [("LeBron James", 5.0), ("Luka Doncic", 6.0)])
    sal = _salaries(2021, [("lebron james", 39_219_566.0), ("Luka Dončić", 8_049_360.0)])

    joined, unmatched = join_season(perf, sal, 2021)

    assert joined.empty
    assert sorted(unmatched) == ["LeBron James", "Luka Doncic"]


def test_doubling_cap_halves_every_salary_fraction():
    perf = _performance(2020, [("A", 1.0), ("B", 2.0), ("C", -1.0)])
    sal = _salaries(2020, [("A", 5_000_000.0), ("B", 12_000_000.0), ("C", 1_800_000.0)])
    caps = {2020: 100_000_000.0}
    doubled = {2020: 200_000_000.0}

    base, _ = join_season(perf, sal, 2020, salary_caps=caps)
    halved, _ = join_season(perf, sal, 2020, salary_caps=doubled)

    ratio = halved.set_index("player")["salary_fraction"] / base.set_index("player")["salary_fraction"]
    assert ratio.tolist() == pytest.approx([0.5, 0.5, 0.5])


def test_unknown_cap_is_fatal():
    with pytest.raises(MissingSalaryCapError):
        salary_cap_for(1999)
    with pytest.raises(MissingSalaryCapError):
        join_season(_performance(1999, [("A", 1.0)]), _salaries(1999, [("A", 1.0)]), 1999)


def test_missing_salary_column_is_fatal():
    perf = _performance(2021, [("A", 1.0)])
    with pytest.raises(MissingColumnsError):
        join_season(perf, pd.DataFrame({"player": ["A"]}), 2021)


def test_join_seasons_keeps_performance_only_seasons_for_lags():
    performance = {
        2016: _performance(2016, [("A", 1.0), ("B", 2.0)]),
        2017: _performance(2017, [("A", 1.5), ("B", 2.5)]),
    }
    salaries = {2017: _salaries(2017, [("A", 9_414_300.0)])}

    panel, unmatched = join_seasons(performance, salaries)

    assert list(panel.columns) == PANEL_COLUMNS
    assert panel[["player", "year"]].values.tolist() == [["A", 2016], ["A", 2017], ["B", 2016]]
    bare = panel[panel["year"] == 2016]
    assert bare["salary_fraction"].isna().all()
    assert panel.loc[panel["year"] == 2017, "salary_fraction"].iloc[0] == pytest.approx(0.1)
    assert unmatched == {2017: ["B"]}


def test_join_does_not_mutate_inputs():
    perf = _performance(2021, [("A", 1.0)])
    sal = _salaries(2021, [("A", 1_000_000.0)])
    perf_before, sal_before = perf.copy(), sal.copy()

    join_season(perf, sal, 2021)

    pd.testing.assert_frame_equal(perf, perf_before)
    pd.testing.assert_frame_equal(sal, sal_before)
