from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from skyfield.api import load

from skylore.sidereal import (
    gmst_deg,
    julian_date,
    local_sidereal_time_deg,
    normalize_degrees,
)

SIDEREAL_DAY = timedelta(seconds=86164.0905)


def _angle_diff(a: float, b: float) -> float:
    return abs((a - b + 180.0) % 360.0 - 180.0)


def test_julian_date_at_j2000() -> None:
    instant = datetime(2000, 1, 1, 12, 0, tzinfo=timezone.utc)
    assert julian_date(instant) == pytest.approx(2451545.0)


def test_naive_datetime_is_utc() -> None:
    naive = datetime(2024, 3, 20, 3, 6)
    aware = naive.replace(tzinfo=timezone.utc)
    assert julian_date(naive) == julian_date(aware)
    assert julian_date(aware.timestamp()) == pytest.approx(julian_date(aware))


def test_gmst_at_j2000() -> None:
    instant = datetime(2000, 1, 1, 12, 0, tzinfo=timezone.utc)
    assert gmst_deg(instant) == pytest.approx(280.46061837, abs=1e-6)


def test_gmst_matches_skyfield() -> None:
    ts = load.timescale(builtin=True)
    instant = datetime(2020, 12, 21, 10, 30, tzinfo=timezone.utc)
    reference = ts.from_datetime(instant).gmst * 15.0
    # UT1-UTC and the precession model differ by well under 0.01°
    assert _angle_diff(gmst_deg(instant), reference) < 0.01


def test_lst_is_periodic_over_one_sidereal_day() -> None:
    t0 = datetime(2024, 1, 15, 21, 0, tzinfo=timezone.utc)
    lst0 = local_sidereal_time_deg(t0, 141.35)
    lst1 = local_sidereal_time_deg(t0 + SIDEREAL_DAY, 141.35)
    assert _angle_diff(lst0, lst1) < 1e-3


def test_lst_ignores_full_turns_of_longitude() -> None:
    t = datetime(2024, 6, 1, 0, 0, tzinfo=timezone.utc)
    for lon in (-170.0, 0.0, 141.35, 179.9):
        assert _angle_diff(
            local_sidereal_time_deg(t, lon + 360.0), local_sidereal_time_deg(t, lon)
        ) < 1e-9


def test_lst_adds_east_longitude() -> None:
    t = datetime(2024, 6, 1, 0, 0, tzinfo=timezone.utc)
    assert _angle_diff(local_sidereal_time_deg(t, 90.0), gmst_deg(t) + 90.0) < 1e-9


@pytest.mark.parametrize("angle", [-720.5, -1e-15, 0.0, 359.9999, 360.0, 1234.5])
def test_normalize_degrees_range(angle: float) -> None:
    result = normalize_degrees(angle)
    assert 0.0 <= result < 360.0
