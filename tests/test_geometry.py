from __future__ import annotations

import pytest

from skylore.geometry import build_features, feature_collection
from skylore.models import AreaKey, FolkloreEntry, StarPosition


def _entry(key, lines, areas, names=None, **kwargs) -> FolkloreEntry:
    return FolkloreEntry(
        key=key,
        lines=tuple(tuple(line) for line in lines),
        area_membership=frozenset(areas),
        names=names or {},
        **kwargs,
    )


def test_end_to_end_single_segment(catalog, fox_entry) -> None:
    features = build_features([fox_entry], catalog, {AreaKey.AREA1})
    assert len(features) == 1
    fox = features[0]
    assert fox.id == "fox"
    assert fox.name == "Fox"
    assert fox.description == ""
    assert fox.as_dict()["lineSegments"] == [[[10.0, 20.0], [-10.0, -5.0]]]
    assert fox.distinct_point_count == 2
    assert fox.label_position == pytest.approx((0.0, 7.5))


def test_entries_outside_requested_areas_are_skipped(catalog, fox_entry) -> None:
    assert build_features([fox_entry], catalog, {AreaKey.AREA2, AreaKey.AREA0}) == ()


def test_empty_area_selection_is_a_no_op(catalog, fox_entry) -> None:
    assert build_features([fox_entry], catalog, set()) == ()


def test_one_unresolved_pair_drops_one_segment(catalog) -> None:
    entry = _entry("e", [("A", "B"), ("B", "MISSING"), ("C", "D")], {AreaKey.AREA1})
    (feature,) = build_features([entry], catalog, {AreaKey.AREA1})
    assert len(feature.segments) == 2
    assert feature.distinct_point_count == 4


def test_entry_with_no_resolvable_star_is_omitted(catalog) -> None:
    entry = _entry("ghost", [("X", "Y"), ("Z",)], {AreaKey.AREA1})
    assert build_features([entry], catalog, {AreaKey.AREA1}) == ()


def test_polyline_walks_consecutive_pairs(catalog) -> None:
    entry = _entry("poly", [("A", "C", "MISSING", "D", "A")], {AreaKey.AREA1})
    (feature,) = build_features([entry], catalog, {AreaKey.AREA1})
    assert feature.segments == (
        ((10.0, 20.0), (30.0, 40.0)),
        ((-160.0, 0.0), (10.0, 20.0)),
    )
    assert feature.distinct_point_count == 3


def test_single_star_is_degenerate_segment(catalog) -> None:
    entry = _entry("one", [("C",)], {AreaKey.AREA1})
    (feature,) = build_features([entry], catalog, {AreaKey.AREA1})
    assert feature.segments == (((30.0, 40.0), (30.0, 40.0)),)
    assert feature.distinct_point_count == 1
    assert feature.label_position == (30.0, 40.0)


def test_label_is_mean_of_distinct_points(catalog) -> None:
    # A appears three times; it must count once in the centroid
    entry = _entry("tri", [("A", "C"), ("C", "A"), ("A",)], {AreaKey.AREA1})
    (feature,) = build_features([entry], catalog, {AreaKey.AREA1})
    assert feature.distinct_point_count == 2
    assert feature.label_position == pytest.approx((20.0, 30.0))


def test_explicit_label_is_transformed(catalog) -> None:
    entry = _entry("lbl", [("A", "B")], {AreaKey.AREA1}, label_position=(300.0, 12.0))
    (feature,) = build_features([entry], catalog, {AreaKey.AREA1})
    assert feature.label_position == (-60.0, 12.0)


def test_text_resolved_for_first_matching_area_in_key_order(catalog) -> None:
    entry = _entry(
        "multi",
        [("A", "C")],
        {AreaKey.AREA2, AreaKey.AREA4},
        names={AreaKey.AREA2: "Two", AreaKey.AREA4: "Four"},
        descriptions={AreaKey.AREA4: "Four desc"},
    )
    (feature,) = build_features([entry], catalog, [AreaKey.AREA4, AreaKey.AREA2])
    assert feature.name == "Two"
    (feature,) = build_features([entry], catalog, [AreaKey.AREA4])
    assert (feature.name, feature.description) == ("Four", "Four desc")


def test_id_fallbacks_and_duplicates(catalog) -> None:
    entries = [
        _entry(None, [("A", "B")], {AreaKey.AREA1}, names={AreaKey.AREA1: "Named"}),
        _entry(None, [("A", "C")], {AreaKey.AREA1}),
        _entry("Named", [("C", "D")], {AreaKey.AREA1}),
        _entry("dup", [("A", "D")], {AreaKey.AREA1}),
        _entry("dup", [("B", "D")], {AreaKey.AREA1}),
    ]
    features = build_features(entries, catalog, {AreaKey.AREA1})
    assert [f.id for f in features] == ["Named", "entry-1", "dup"]
    assert features[2].segments[0][0] == (10.0, 20.0)


def test_build_is_deterministic_and_input_ordered(catalog, fox_entry) -> None:
    entries = [
        _entry("z", [("C", "D")], {AreaKey.AREA1}),
        fox_entry,
        _entry("a", [("A", "C")], {AreaKey.AREA1, AreaKey.AREA3}),
    ]
    first = build_features(entries, catalog, {AreaKey.AREA3, AreaKey.AREA1})
    second = build_features(entries, catalog, {AreaKey.AREA1, AreaKey.AREA3})
    assert first == second
    assert [f.id for f in first] == ["z", "fox", "a"]


def test_partial_catalog_is_tolerated(fox_entry) -> None:
    partial = {"A": StarPosition(id="A", ra=10.0, dec=20.0)}
    assert build_features([fox_entry], partial, {AreaKey.AREA1}) == ()


def test_feature_collection_shape(catalog, fox_entry) -> None:
    features = build_features([fox_entry], catalog, {AreaKey.AREA1})
    collection = feature_collection(features)
    assert collection["type"] == "FeatureCollection"
    (feature,) = collection["features"]
    assert feature["id"] == "fox"
    assert feature["geometry"] == {
        "type": "MultiLineString",
        "coordinates": [[[10.0, 20.0], [-10.0, -5.0]]],
    }
    assert feature["properties"] == {
        "n": "Fox",
        "desc": "",
        "loc": [0.0, 7.5],
        "count": 2,
    }
