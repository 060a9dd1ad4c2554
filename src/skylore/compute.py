"""Pipeline layer: dataset loading, geolocation, catalog resolution, overlay builds."""

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

import httpx
from pytz import utc

from skylore.areas import AreaDirectory
from skylore.catalog import (
    BundledCatalogResolver,
    RemoteCatalogResolver,
    gather_or_cancel,
)
from skylore.centering import centering_for
from skylore.config import Settings
from skylore.errors import DataLoadError
from skylore.folklore import parse_entries, required_catalog_ids
from skylore.geometry import build_features
from skylore.models import (
    FolkloreEntry,
    Geoposition,
    SelectionState,
    SkyOverlay,
    StarPosition,
)

LOG = logging.getLogger(__name__)

USER_AGENT = "SkyLore/1.0"
NOMINATIM_REVERSE_URL = "https://nominatim.openstreetmap.org/reverse"
HIPPARCOS_FILENAMES = ("hip_main.dat", "hip_main.dat.gz")

PositionProvider = Callable[[], Awaitable[Geoposition]]


class GeocodingError(Exception):
    """Reverse geocoder returned nothing usable."""


@dataclass(frozen=True)
class Datasets:
    """Everything loaded at startup. Read-only afterwards."""

    stars: BundledCatalogResolver | None  # None in remote catalog mode
    entries: tuple[FolkloreEntry, ...]
    directory: AreaDirectory


def is_hipparcos_file(source: str) -> bool:
    """True for a local Hipparcos main catalogue (hip_main.dat, optionally gzipped)."""
    if source.startswith(("http://", "https://")):
        return False
    return Path(source).name.endswith(HIPPARCOS_FILENAMES)


def make_client(settings: Settings) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=settings.http_timeout, headers={"User-Agent": USER_AGENT}
    )


async def _fetch_json(client: httpx.AsyncClient, source: str) -> Any:
    """Fetch and parse one JSON dataset from a URL or a local path."""
    try:
        if source.startswith(("http://", "https://")):
            resp = await client.get(source)
            resp.raise_for_status()
            return resp.json()
        text = await asyncio.to_thread(Path(source).read_text, encoding="utf-8")
        return json.loads(text)
    except (httpx.HTTPError, OSError, ValueError) as e:
        raise DataLoadError(f"Failed to load {source}: {e}") from e


async def load_datasets(settings: Settings, client: httpx.AsyncClient) -> Datasets:
    """Fetch the star, folklore and locality datasets concurrently and parse them.

    A local ``hip_main.dat`` star file is read with skyfield after the folklore
    is parsed, keeping only the stars its lines reference. If one fetch fails
    the others are cancelled.

    Args:
        settings: Data locations and fallback locality.
        client: Shared HTTP client, used for URL sources.

    Returns:
        Datasets ready for resolution and builds.

    Raises:
        DataLoadError: If any dataset fails to load or parse.
        ConfigurationError: If the fallback locality has no coordinates.
    """
    sources = [
        settings.source(settings.folklore_file),
        settings.source(settings.locality_file),
    ]
    star_source = settings.source(settings.stars_file)
    hipparcos = settings.catalog_mode == "bundled" and is_hipparcos_file(star_source)
    if settings.catalog_mode == "bundled" and not hipparcos:
        sources.append(star_source)
    raw = await gather_or_cancel(*(_fetch_json(client, s) for s in sources))

    entries = parse_entries(raw[0])
    directory = AreaDirectory.from_raw(raw[1], settings.fallback_locality)
    stars = BundledCatalogResolver.from_json(raw[2]) if len(raw) > 2 else None
    if hipparcos:
        stars = await asyncio.to_thread(
            BundledCatalogResolver.from_hipparcos,
            Path(star_source),
            required_catalog_ids(entries),
        )
    LOG.info(
        "Loaded %d folklore entries, %d localities%s",
        len(entries),
        len(directory),
        f", {len(stars)} stars" if stars is not None else "",
    )
    return Datasets(stars=stars, entries=entries, directory=directory)


async def resolve_catalog(
    datasets: Datasets, settings: Settings, client: httpx.AsyncClient
) -> dict[str, StarPosition]:
    """Resolve every star the folklore lines reference.

    Bundled mode tolerates gaps (missing segments are dropped at build time);
    remote mode is all-or-nothing and raises CatalogResolutionError.
    """
    required = required_catalog_ids(datasets.entries)
    if datasets.stars is not None:
        catalog = await datasets.stars.resolve(required)
        if len(catalog) < len(required):
            LOG.warning(
                "Bundled catalog lacks %d of %d referenced stars: %s",
                len(required) - len(catalog),
                len(required),
                ", ".join(sorted(required - catalog.keys())),
            )
        return catalog
    resolver = RemoteCatalogResolver(
        client,
        tap_url=settings.tap_url,
        batch_size=settings.batch_size,
        parallel=settings.parallel_batches,
    )
    return await resolver.resolve(required)


async def _reverse_geocode(client: httpx.AsyncClient, position: Geoposition) -> str:
    """Nominatim (OpenStreetMap) reverse geocoder. Returns the municipality name."""
    params = {
        "format": "json",
        "lat": position.lat,
        "lon": position.lon,
        "zoom": 10,
        "addressdetails": 1,
    }
    resp = await client.get(NOMINATIM_REVERSE_URL, params=params)
    resp.raise_for_status()
    try:
        data = resp.json()
    except ValueError as e:
        raise GeocodingError(f"Malformed reverse geocoding response: {e}") from e
    address = data.get("address") if isinstance(data, Mapping) else None
    if not isinstance(address, Mapping):
        raise GeocodingError(f"Reverse geocoding response has no address: {data!r}")
    for field_name in ("city", "town", "village", "county"):
        place = address.get(field_name)
        if place and isinstance(place, str):
            return place
    raise GeocodingError(f"No municipality at lat={position.lat}, lon={position.lon}")


def select_locality(
    directory: AreaDirectory, name: str, geoposition: Geoposition | None = None
) -> SelectionState:
    """Produce a new selection for a locality.

    Raises:
        KeyError: If the locality is unknown.
    """
    record = directory.locality(name)
    return SelectionState(
        locality=record, area_keys=record.area_keys, geoposition=geoposition
    )


async def locate(
    directory: AreaDirectory,
    provider: PositionProvider | None,
    client: httpx.AsyncClient,
    timeout: float = 10.0,
) -> SelectionState:
    """Select the locality the device is in, or the fallback locality.

    Any provider failure (denial, timeout, position unavailable), a missing
    provider, geocoding failure and unknown places all fall back silently
    (logged, never raised).

    Args:
        directory: Locality directory.
        provider: Coroutine factory returning the device position; None if the
            capability is absent. May raise PermissionError on denial, or any
            other error when no position is available.
        client: HTTP client for reverse geocoding.
        timeout: Bound on each asynchronous step, in seconds.

    Returns:
        SelectionState for the resolved locality.
    """
    fallback = directory.fallback_name
    if provider is None:
        LOG.info("Geolocation unavailable; using %s", fallback)
        return select_locality(directory, fallback)

    try:
        position = await asyncio.wait_for(provider(), timeout)
    except Exception as e:
        reason = str(e) or type(e).__name__
        LOG.warning("Geolocation failed (%s); using %s", reason, fallback)
        return select_locality(directory, fallback)

    try:
        place = await asyncio.wait_for(_reverse_geocode(client, position), timeout)
    except (httpx.HTTPError, GeocodingError, TimeoutError, asyncio.TimeoutError) as e:
        reason = str(e) or type(e).__name__
        LOG.warning("Reverse geocoding failed (%s); using %s", reason, fallback)
        return select_locality(directory, fallback, position)

    record = directory.find_by_name(place)
    if record is None:
        LOG.warning("No locality matches %r; using %s", place, fallback)
        return select_locality(directory, fallback, position)
    return SelectionState(
        locality=record, area_keys=record.area_keys, geoposition=position
    )


def build_overlay(
    state: SelectionState,
    entries: tuple[FolkloreEntry, ...],
    catalog: Mapping[str, StarPosition],
    instant: datetime | None = None,
) -> SkyOverlay:
    """Rebuild the full overlay for a selection. Always replaces the previous one.

    Args:
        state: Current selection; its locality always carries coordinates.
        entries: Parsed folklore entries.
        catalog: Resolved stars.
        instant: Time for centering; now (UTC) if None.

    Returns:
        SkyOverlay with features and centering directive.
    """
    if instant is None:
        instant = datetime.now(utc)
    features = build_features(entries, catalog, state.area_keys)
    centering = centering_for(state.locality.lon, instant)
    return SkyOverlay(state=state, features=features, centering=centering)


async def run(
    settings: Settings,
    locality: str | None = None,
    instant: datetime | None = None,
    provider: PositionProvider | None = None,
) -> SkyOverlay:
    """Top-level entry point: load, resolve, select and build.

    Args:
        settings: Runtime settings.
        locality: Locality name; geolocate via `provider` when None.
        instant: Time for centering; now if None.
        provider: Device position source for geolocation.

    Returns:
        Fully built SkyOverlay.
    """
    async with make_client(settings) as client:
        datasets = await load_datasets(settings, client)
        catalog = await resolve_catalog(datasets, settings, client)
        if locality is not None:
            state = select_locality(datasets.directory, locality)
        else:
            state = await locate(
                datasets.directory, provider, client, settings.geolocation_timeout
            )
    return build_overlay(state, datasets.entries, catalog, instant)
