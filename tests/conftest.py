"""Shared fixtures for SkyLore tests."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from skylore.models import AreaKey, FolkloreEntry, StarPosition


@pytest.fixture
def catalog() -> dict[str, StarPosition]:
    return {
        "A": StarPosition(id="A", ra=10.0, dec=20.0),
        "B": StarPosition(id="B", ra=350.0, dec=-5.0),
        "C": StarPosition(id="C", ra=30.0, dec=40.0),
        "D": StarPosition(id="D", ra=200.0, dec=0.0),
    }


@pytest.fixture
def fox_entry() -> FolkloreEntry:
    return FolkloreEntry(
        key="fox",
        lines=(("A", "B"),),
        area_membership=frozenset({AreaKey.AREA1}),
        names={AreaKey.AREA1: "Fox"},
    )


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    stars = {
        "hip1": {"ra": 10.0, "dec": 20.0},
        "hip2": {"ra": 350.0, "dec": -5.0, "name": "Two"},
        "hip3": {"ra": 30.0, "dec": 40.0},
    }
    folklore = [
        {
            "code": "fox",
            "lines": [["hip1", "hip2"]],
            "names": {"area1": "Fox"},
            "description": {"area1": "A fox"},
        },
        {
            "code": "owl",
            "lines": [["hip2", "hip3"], "hip9"],
            "areas": ["ainu2"],
            "name": "Owl",
        },
    ]
    cities = {
        "cityToForecastArea": {
            "Sapporo": "Ishikari",
            "Asahikawa": "Kamikawa",
            "Obihiro": "Tokachi",
        },
        "forecastAreaToArea": {
            "Ishikari": "area0",
            "Kamikawa": "ainu1",
            "Tokachi": ["ainu2"],
        },
        "cityLat": {"Sapporo": 43.06, "Asahikawa": 43.77},
        "cityLon": {"Sapporo": 141.35, "Asahikawa": 142.37},
    }
    (tmp_path / "stars_data.json").write_text(json.dumps(stars), encoding="utf-8")
    (tmp_path / "constellation_data.json").write_text(
        json.dumps(folklore), encoding="utf-8"
    )
    (tmp_path / "city_map.json").write_text(json.dumps(cities), encoding="utf-8")
    return tmp_path
