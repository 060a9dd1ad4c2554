"""Parsing of folklore definitions in the per-area-map and membership-list schemas."""

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from skylore.areas import translate_area_codes
from skylore.errors import DataLoadError
from skylore.models import LEGACY_AREA_CODES, AreaKey, FolkloreEntry, LineSpec

LOG = logging.getLogger(__name__)


def _parse_line(raw: Any, where: str) -> LineSpec | None:
    """Parse one line spec: a bare id (single star) or a list of ids."""
    if isinstance(raw, str):
        return (raw,) if raw else None
    if isinstance(raw, (list, tuple)):
        if not all(isinstance(star_id, str) and star_id for star_id in raw):
            raise DataLoadError(f"{where}: line ids must be non-empty strings: {raw!r}")
        return tuple(raw) or None
    raise DataLoadError(f"{where}: unsupported line spec {raw!r}")


def _area_text(raw: Mapping[str, Any], where: str) -> dict[AreaKey, str]:
    """Translate an area-keyed text map, dropping unknown areas and empty text."""
    text: dict[AreaKey, str] = {}
    for code, value in raw.items():
        key = LEGACY_AREA_CODES.get(str(code).lower())
        if key is None:
            LOG.debug("%s: ignoring text for unknown area %r", where, code)
            continue
        if value:
            text[key] = str(value)
    return text


def _parse_label(raw: Any, where: str) -> tuple[float, float] | None:
    if raw is None:
        return None
    if isinstance(raw, Mapping):
        raw = (raw.get("ra"), raw.get("dec"))
    try:
        ra, dec = raw
        return float(ra), float(dec)
    except (TypeError, ValueError) as e:
        raise DataLoadError(f"{where}: label must be [ra, dec], got {raw!r}") from e


def parse_entry(raw: Mapping[str, Any], index: int) -> FolkloreEntry:
    """Parse one folklore record.

    Two schemas are accepted:

    * ``names``/``description`` maps keyed by area; membership is the set of
      areas with a name. A string ``description`` applies to every area.
    * ``areas`` membership list with a single ``name``/``description``.

    Args:
        raw: One record from the folklore JSON list.
        index: Position in the list, for error messages.

    Returns:
        FolkloreEntry.

    Raises:
        DataLoadError: On malformed lines, labels or area lists.
    """
    if not isinstance(raw, Mapping):
        raise DataLoadError(f"Folklore entry #{index}: expected an object")
    key = raw.get("code") or raw.get("key") or None
    where = f"Folklore entry {key or f'#{index}'}"

    raw_lines = raw.get("lines") or []
    if isinstance(raw_lines, str):
        raw_lines = [raw_lines]
    if not isinstance(raw_lines, (list, tuple)):
        raise DataLoadError(f"{where}: lines must be a list")
    lines = tuple(
        line for line in (_parse_line(item, where) for item in raw_lines) if line
    )

    raw_description = raw.get("description")
    descriptions: dict[AreaKey, str] = {}
    if isinstance(raw_description, Mapping):
        descriptions = _area_text(raw_description, where)
        raw_description = None

    if "areas" in raw:
        areas = raw["areas"]
        if not isinstance(areas, (list, tuple, str)):
            raise DataLoadError(f"{where}: areas must be a list of area codes")
        membership = translate_area_codes(areas)
        names: dict[AreaKey, str] = {}
        name = raw.get("name")
    else:
        raw_names = raw.get("names") or {}
        if not isinstance(raw_names, Mapping):
            raise DataLoadError(f"{where}: names must be an object keyed by area")
        names = _area_text(raw_names, where)
        membership = frozenset(names)
        name = None

    return FolkloreEntry(
        key=str(key) if key is not None else None,
        lines=lines,
        area_membership=membership,
        names=names,
        descriptions=descriptions,
        name=name or None,
        description=raw_description or None,
        label_position=_parse_label(raw.get("label"), where),
    )


def parse_entries(raw: Iterable[Mapping[str, Any]]) -> tuple[FolkloreEntry, ...]:
    """Parse the folklore JSON list, preserving order."""
    if raw is None or isinstance(raw, (str, bytes, Mapping)):
        raise DataLoadError("Folklore definitions must be a list of records")
    return tuple(parse_entry(item, i) for i, item in enumerate(raw))


def required_catalog_ids(entries: Iterable[FolkloreEntry]) -> frozenset[str]:
    """Every catalog id referenced by any entry's lines."""
    return frozenset(
        star_id for entry in entries for line in entry.lines for star_id in line
    )
