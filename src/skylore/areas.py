"""Locality directory: normalizes the locality→area tables into LocalityRecord."""

import logging
import math
from collections.abc import Iterable, Mapping
from dataclasses import replace
from typing import Any

from skylore.errors import ConfigurationError, DataLoadError
from skylore.models import LEGACY_AREA_CODES, AreaKey, LocalityRecord

LOG = logging.getLogger(__name__)

_TWO_STEP_KEYS = ("cityToForecastArea", "forecastAreaToArea")


def translate_area_codes(codes: Iterable[str] | str | None) -> frozenset[AreaKey]:
    """Translate raw area codes into canonical keys.

    Unrecognized codes are ignored and duplicates collapse. An empty result
    defaults to the umbrella area.
    """
    if codes is None:
        codes = ()
    elif isinstance(codes, str):
        codes = (codes,)
    keys: set[AreaKey] = set()
    for code in codes:
        key = LEGACY_AREA_CODES.get(str(code).strip().lower())
        if key is None:
            LOG.debug("Ignoring unrecognized area code %r", code)
            continue
        keys.add(key)
    return frozenset(keys) or frozenset({AreaKey.AREA0})


def _finite(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value) if math.isfinite(value) else None


def _normalize_direct(raw: Mapping[str, Any]) -> dict[str, LocalityRecord]:
    records: dict[str, LocalityRecord] = {}
    for name, meta in raw.items():
        if not isinstance(meta, Mapping):
            raise DataLoadError(
                f"Locality {name!r}: expected an object, got {type(meta).__name__}"
            )
        codes = meta.get("areaCodes")
        if codes is None:
            codes = meta.get("areaCode")
        records[name] = LocalityRecord(
            name=name,
            area_keys=translate_area_codes(codes),
            lat=_finite(meta.get("lat")),
            lon=_finite(meta.get("lon")),
            region_label=meta.get("region"),
            bureau_label=meta.get("bureau"),
        )
    return records


def _normalize_two_step(raw: Mapping[str, Any]) -> dict[str, LocalityRecord]:
    city_to_region: Mapping[str, Any] = raw["cityToForecastArea"]
    region_to_area: Mapping[str, Any] = raw["forecastAreaToArea"]
    city_lat: Mapping[str, Any] = raw.get("cityLat") or {}
    city_lon: Mapping[str, Any] = raw.get("cityLon") or {}
    if not all(isinstance(t, Mapping) for t in (city_to_region, region_to_area)):
        raise DataLoadError("Two-step locality table entries must be objects")

    records: dict[str, LocalityRecord] = {}
    for name, value in city_to_region.items():
        if isinstance(value, Mapping):
            region = value.get("forecastRegion")
            lat, lon = value.get("lat"), value.get("lon")
        else:
            region = value
            lat, lon = None, None
        if lat is None:
            lat = city_lat.get(name)
        if lon is None:
            lon = city_lon.get(name)
        records[name] = LocalityRecord(
            name=name,
            area_keys=translate_area_codes(region_to_area.get(region)),
            lat=_finite(lat),
            lon=_finite(lon),
            region_label=region,
        )
    return records


def normalize(raw: Mapping[str, Any]) -> dict[str, LocalityRecord]:
    """Normalize either locality table shape into canonical records.

    Accepts the direct shape ``{locality: {areaCode | areaCodes, lat, lon,
    region?, bureau?}}`` or the two-step shape ``{"cityToForecastArea": ...,
    "forecastAreaToArea": ...}``.

    Args:
        raw: Parsed locality JSON.

    Returns:
        Dict of locality name → LocalityRecord. Coordinates may still be None.

    Raises:
        DataLoadError: If the table matches neither shape.
    """
    if not isinstance(raw, Mapping):
        raise DataLoadError(
            f"Locality table must be an object, got {type(raw).__name__}"
        )
    if all(key in raw for key in _TWO_STEP_KEYS):
        return _normalize_two_step(raw)
    if any(key in raw for key in _TWO_STEP_KEYS):
        raise DataLoadError(f"Two-step locality table needs both {_TWO_STEP_KEYS}")
    return _normalize_direct(raw)


def resolve_coordinates(
    name: str, directory: Mapping[str, LocalityRecord], fallback_name: str
) -> tuple[float, float]:
    """Return (lat, lon) for a locality, substituting the fallback's when missing.

    Raises:
        ConfigurationError: If the fallback locality itself lacks coordinates.
    """
    record = directory.get(name)
    if record is not None and record.lat is not None and record.lon is not None:
        return record.lat, record.lon
    fallback = directory.get(fallback_name)
    if fallback is None or fallback.lat is None or fallback.lon is None:
        raise ConfigurationError(
            f"Fallback locality {fallback_name!r} has no coordinates"
        )
    if record is not None:
        LOG.warning("Locality %r has no coordinates; using %r", name, fallback_name)
    return fallback.lat, fallback.lon


class AreaDirectory:
    """Normalized locality directory with a validated fallback locality."""

    def __init__(
        self, records: Mapping[str, LocalityRecord], fallback_name: str
    ) -> None:
        self._records = dict(records)
        self.fallback_name = fallback_name
        # Fails at startup rather than on the first locality without coordinates
        resolve_coordinates(fallback_name, self._records, fallback_name)

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any], fallback_name: str) -> "AreaDirectory":
        return cls(normalize(raw), fallback_name)

    def __contains__(self, name: object) -> bool:
        return name in self._records

    def __len__(self) -> int:
        return len(self._records)

    def names(self) -> list[str]:
        return sorted(self._records)

    def regions(self) -> list[str]:
        """Intermediate region labels, in first-seen order."""
        seen = (r.region_label for r in self._records.values() if r.region_label)
        return list(dict.fromkeys(seen))

    def locality(self, name: str) -> LocalityRecord:
        """Look up a locality with coordinates filled in from the fallback.

        Raises:
            KeyError: If the locality is unknown.
        """
        record = self._records[name]
        lat, lon = resolve_coordinates(name, self._records, self.fallback_name)
        return replace(record, lat=lat, lon=lon)

    def fallback(self) -> LocalityRecord:
        return self.locality(self.fallback_name)

    def find_by_name(self, place: str) -> LocalityRecord | None:
        """Match a free-form place name (e.g. from reverse geocoding) to a locality."""
        place = place.strip()
        if not place:
            return None
        if place in self._records:
            return self.locality(place)
        for name in self.names():
            if name.startswith(place) or place.startswith(name):
                return self.locality(name)
        return None
