"""Joins folklore entries against resolved stars to produce renderable features."""

import logging
from collections.abc import Iterable, Mapping

from skylore.models import (
    AreaKey,
    FolkloreEntry,
    Point,
    RenderFeature,
    Segment,
    StarPosition,
)
from skylore.projection import to_planar

LOG = logging.getLogger(__name__)


def _segments(
    entry: FolkloreEntry, catalog: Mapping[str, StarPosition]
) -> tuple[list[Segment], dict[Point, None]]:
    """Emit segments for every resolvable consecutive pair; singletons become [p, p].

    Returns the segments and the distinct points used, in first-use order.
    """
    segments: list[Segment] = []
    used: dict[Point, None] = {}

    def point(star_id: str) -> Point | None:
        star = catalog.get(star_id)
        return None if star is None else to_planar(star.ra, star.dec)

    for line in entry.lines:
        if len(line) == 1:
            p = point(line[0])
            if p is not None:
                segments.append((p, p))
                used[p] = None
            continue
        for id_from, id_to in zip(line, line[1:]):
            p1, p2 = point(id_from), point(id_to)
            if p1 is None or p2 is None:
                continue
            segments.append((p1, p2))
            used[p1] = None
            used[p2] = None
    return segments, used


def _label_position(entry: FolkloreEntry, points: Iterable[Point]) -> Point:
    """Explicit label if given, else the planar mean of the distinct points.

    Averaging lon and lat independently is wrong near the poles and across the
    ±180° seam; kept to match the established label placement.
    """
    if entry.label_position is not None:
        return to_planar(*entry.label_position)
    pts = list(points)
    lon = sum(p[0] for p in pts) / len(pts)
    lat = sum(p[1] for p in pts) / len(pts)
    return lon, lat


def build_features(
    entries: Iterable[FolkloreEntry],
    catalog: Mapping[str, StarPosition],
    requested_areas: Iterable[AreaKey],
) -> tuple[RenderFeature, ...]:
    """Build render features for the entries shown in the requested areas.

    Missing stars drop only the segments that reference them; an entry with no
    segment left is omitted. Output order follows `entries`.

    Args:
        entries: Parsed folklore entries, in display order.
        catalog: Resolved stars keyed by catalog id. May be partial.
        requested_areas: Areas of the selected locality.

    Returns:
        Tuple of RenderFeature with unique ids.
    """
    areas = sorted(set(requested_areas), key=lambda a: a.value)
    if not areas:
        return ()

    features: list[RenderFeature] = []
    seen_ids: set[str] = set()
    for index, entry in enumerate(entries):
        matched = next((a for a in areas if a in entry.area_membership), None)
        if matched is None:
            continue

        segments, used = _segments(entry, catalog)
        if not segments:
            LOG.debug(
                "Entry %s has no resolvable segments; omitted", entry.key or index
            )
            continue

        name = entry.display_name(matched) or ""
        feature_id = entry.key or name or f"entry-{index}"
        if feature_id in seen_ids:
            LOG.warning(
                "Duplicate feature id %r at entry %d; keeping the first",
                feature_id,
                index,
            )
            continue
        seen_ids.add(feature_id)

        features.append(
            RenderFeature(
                id=feature_id,
                name=name,
                description=entry.display_description(matched) or "",
                segments=tuple(segments),
                label_position=_label_position(entry, used),
                distinct_point_count=len(used),
            )
        )
    return tuple(features)


def feature_collection(features: Iterable[RenderFeature]) -> dict:
    """GeoJSON FeatureCollection of MultiLineString features for the sky renderer.

    Properties: ``n`` name, ``desc`` description, ``loc`` label anchor,
    ``count`` distinct point count.
    """
    return {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "id": f.id,
                "properties": {
                    "n": f.name,
                    "desc": f.description,
                    "loc": list(f.label_position),
                    "count": f.distinct_point_count,
                },
                "geometry": {
                    "type": "MultiLineString",
                    "coordinates": [[list(a), list(b)] for a, b in f.segments],
                },
            }
            for f in features
        ],
    }
