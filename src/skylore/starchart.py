"""CLI entry point for folklore overlay generation.

    uv run python -m skylore.starchart 札幌市 --output results/overlay.geojson
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from skylore.compute import (
    build_overlay,
    load_datasets,
    make_client,
    resolve_catalog,
    select_locality,
)
from skylore.config import load_settings
from skylore.errors import SkyLoreError
from skylore.geometry import feature_collection
from skylore.models import SkyOverlay

LOG = logging.getLogger("skylore")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Build the folklore star overlay for a locality."
    )
    parser.add_argument(
        "locality", nargs="?", help="Locality name (default: first in sorted order)"
    )
    parser.add_argument(
        "--output", type=Path, help="Write the GeoJSON feature collection here"
    )
    parser.add_argument(
        "--list", action="store_true", help="List known localities and exit"
    )
    return parser.parse_args(argv)


def _summary(overlay: SkyOverlay) -> str:
    loc = overlay.state.locality
    areas = ", ".join(sorted(a.value for a in overlay.state.area_keys))
    ra, dec = overlay.centering.skyview_center
    rotate = overlay.centering.rotate_center
    lines = [
        f"Locality: {loc.name} ({loc.region_label or '-'}) areas=[{areas}]",
        f"Centre: RA {ra:.2f}° Dec {dec:.0f}° (rotate {rotate:.2f}°)",
    ]
    if not overlay.features:
        lines.append("No folklore star groupings are registered for this area.")
    for f in overlay.features:
        lines.append(
            f"  {f.id}: {f.name} | {f.distinct_point_count} stars, "
            f"{len(f.segments)} segments"
        )
    return "\n".join(lines)


async def _main(args: argparse.Namespace) -> int:
    settings = load_settings()
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)
    async with make_client(settings) as client:
        datasets = await load_datasets(settings, client)
        if args.list:
            print("\n".join(datasets.directory.names()))
            return 0
        catalog = await resolve_catalog(datasets, settings, client)

    name = args.locality or datasets.directory.names()[0]
    if name not in datasets.directory:
        LOG.error("Unknown locality: %s", name)
        return 2
    state = select_locality(datasets.directory, name)
    overlay = build_overlay(state, datasets.entries, catalog)
    print(_summary(overlay))

    if args.output is not None:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        collection = feature_collection(overlay.features)
        args.output.write_text(
            json.dumps(collection, ensure_ascii=False, indent=2), encoding="utf-8"
        )
        print(f"Saved: {args.output}")
    return 0


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = _parse_args(argv)
    try:
        return asyncio.run(_main(args))
    except SkyLoreError as e:
        LOG.error("%s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
