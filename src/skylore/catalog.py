"""Star catalog resolution from a bundled table or batched SIMBAD TAP queries."""

import asyncio
import io
import logging
import math
import re
from collections import defaultdict
from collections.abc import Awaitable, Iterable, Mapping
from pathlib import Path
from typing import Any, TypeVar

import httpx
import pandas as pd
from skyfield.api import Loader
from skyfield.data import hipparcos

from skylore.errors import CatalogResolutionError, DataLoadError
from skylore.models import StarPosition

LOG = logging.getLogger(__name__)

T = TypeVar("T")

SIMBAD_TAP_URL = "https://simbad.cds.unistra.fr/simbad/sim-tap/sync"
BATCH_SIZE = 20  # Keeps the ADQL IN (...) list under upstream query-length limits

# Accepted column names (case-insensitive) in a lookup response
_ID_COLUMNS = ("ident", "id", "main_id", "identifier", "catalog_id")
_RA_COLUMNS = ("ra", "ra_deg", "ra_degrees", "raj2000")
_DEC_COLUMNS = ("dec", "dec_deg", "dec_degrees", "dej2000", "decj2000")

_QUERY_ID = re.compile(r"^([A-Za-z]+)[\s_]*(\d.*)$")


def normalize_identifier(star_id: str) -> str:
    """Comparable form of a catalog id ("hip17702", "HIP 17702" → "HIP17702")."""
    return re.sub(r"[^0-9A-Z]", "", star_id.upper())


def query_identifier(star_id: str) -> str:
    """SIMBAD spelling of a catalog id ("hip17702" → "HIP 17702")."""
    m = _QUERY_ID.match(star_id.strip())
    if m is None:
        return star_id.strip()
    return f"{m.group(1).upper()} {m.group(2)}"


async def gather_or_cancel(*aws: Awaitable[T]) -> list[T]:
    """Like asyncio.gather, but cancels the siblings when one fails.

    Re-raises the first failure once every sibling has finished cancelling.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


def _star_from_raw(star_id: str, raw: Mapping[str, Any]) -> StarPosition:
    try:
        ra = float(raw["ra"])
        dec = float(raw["dec"])
    except (KeyError, TypeError, ValueError) as e:
        msg = f"Star {star_id!r}: ra/dec must be numbers, got {raw!r}"
        raise DataLoadError(msg) from e
    if not (math.isfinite(ra) and math.isfinite(dec)):
        raise DataLoadError(f"Star {star_id!r}: non-finite coordinates")
    return StarPosition(id=star_id, ra=ra, dec=dec, name=raw.get("name") or None)


class BundledCatalogResolver:
    """Direct lookup in a bundled table. Unknown ids are silently omitted."""

    def __init__(self, table: Mapping[str, StarPosition]) -> None:
        self._table = dict(table)

    @classmethod
    def from_json(cls, raw: Mapping[str, Any]) -> "BundledCatalogResolver":
        """Build from the bundled ``{id: {ra, dec, name?}}`` JSON object.

        Raises:
            DataLoadError: If the table or any record is malformed.
        """
        if not isinstance(raw, Mapping):
            raise DataLoadError(
                f"Star table must be an object, got {type(raw).__name__}"
            )
        return cls({i: _star_from_raw(i, rec) for i, rec in raw.items()})

    @classmethod
    def from_hipparcos(
        cls, path: Path, ids: Iterable[str] | None = None
    ) -> "BundledCatalogResolver":
        """Build from a local Hipparcos main catalogue file.

        Raises:
            DataLoadError: If the file is missing or unreadable.
        """
        try:
            return cls(load_hipparcos_table(path, ids))
        except (OSError, ValueError, KeyError) as e:
            raise DataLoadError(f"Failed to load {path}: {e}") from e

    def __len__(self) -> int:
        return len(self._table)

    async def resolve(self, required_ids: Iterable[str]) -> dict[str, StarPosition]:
        found = {i: self._table[i] for i in set(required_ids) if i in self._table}
        LOG.debug("Bundled catalog resolved %d ids", len(found))
        return found


def load_hipparcos_table(
    path: Path, ids: Iterable[str] | None = None
) -> dict[str, StarPosition]:
    """Read the Hipparcos main catalogue (hip_main.dat) into a bundled table.

    Args:
        path: Local path to hip_main.dat (or its .gz).
        ids: Optional catalog ids ("hipNNNN") to keep; all stars when None.

    Returns:
        Dict of "hip<number>" → StarPosition.
    """
    loader = Loader(str(path.parent))
    with loader.open(path.name) as f:
        df = hipparcos.load_dataframe(f)
    df = df.dropna(subset=["ra_degrees", "dec_degrees"])
    if ids is not None:
        wanted = {normalize_identifier(i) for i in ids}
        df = df[[f"HIP{int(hip)}" in wanted for hip in df.index]]
    return {
        f"hip{int(hip)}": StarPosition(
            id=f"hip{int(hip)}",
            ra=float(row["ra_degrees"]),
            dec=float(row["dec_degrees"]),
        )
        for hip, row in df.iterrows()
    }


def _find_column(columns: Iterable[str], aliases: tuple[str, ...]) -> str | None:
    by_lower = {str(c).strip().lower(): c for c in columns}
    return next((by_lower[a] for a in aliases if a in by_lower), None)


def parse_lookup_table(text: str) -> pd.DataFrame:
    """Parse a CSV lookup response into a frame with ``id``, ``ra``, ``dec`` columns.

    Raises:
        CatalogResolutionError: If the table is unreadable or a column is missing.
    """
    try:
        df = pd.read_csv(io.StringIO(text), dtype=str, skipinitialspace=True)
    except (pd.errors.EmptyDataError, pd.errors.ParserError) as e:
        raise CatalogResolutionError(f"Unreadable catalog lookup response: {e}") from e

    columns = {
        "id": _find_column(df.columns, _ID_COLUMNS),
        "ra": _find_column(df.columns, _RA_COLUMNS),
        "dec": _find_column(df.columns, _DEC_COLUMNS),
    }
    absent = [name for name, col in columns.items() if col is None]
    if absent:
        raise CatalogResolutionError(
            f"Catalog lookup response lacks {', '.join(absent)} column(s); "
            f"got {list(df.columns)}"
        )
    out = pd.DataFrame(
        {
            "id": df[columns["id"]].astype(str).str.strip(),
            "ra": pd.to_numeric(df[columns["ra"]], errors="coerce"),
            "dec": pd.to_numeric(df[columns["dec"]], errors="coerce"),
        }
    )
    return out.dropna(subset=["ra", "dec"])


def _adql(batch: list[str]) -> str:
    quoted = ", ".join(
        "'" + query_identifier(i).replace("'", "''") + "'" for i in batch
    )
    return (
        "SELECT id.id AS ident, b.ra, b.dec "
        "FROM ident AS id JOIN basic AS b ON b.oid = id.oidref "
        f"WHERE id.id IN ({quoted})"
    )


class RemoteCatalogResolver:
    """All-or-nothing batched lookup against a TAP service.

    Every required id must resolve; otherwise CatalogResolutionError names the
    missing ones. Batches write disjoint keys, so `parallel=True` is safe but
    sequential is the default to bound load on the shared service.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        tap_url: str = SIMBAD_TAP_URL,
        batch_size: int = BATCH_SIZE,
        parallel: bool = False,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        self.client = client
        self.tap_url = tap_url
        self.batch_size = batch_size
        self.parallel = parallel

    async def _fetch_batch(self, batch: list[str]) -> dict[str, StarPosition]:
        params = {
            "REQUEST": "doQuery",
            "LANG": "ADQL",
            "FORMAT": "csv",
            "QUERY": _adql(batch),
        }
        try:
            resp = await self.client.get(self.tap_url, params=params)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise CatalogResolutionError(f"Catalog lookup failed: {e}") from e

        wanted: dict[str, list[str]] = defaultdict(list)
        for star_id in batch:
            wanted[normalize_identifier(star_id)].append(star_id)

        found: dict[str, StarPosition] = {}
        for row in parse_lookup_table(resp.text).itertuples(index=False):
            for star_id in wanted.get(normalize_identifier(row.id), ()):
                found[star_id] = StarPosition(
                    id=star_id, ra=float(row.ra), dec=float(row.dec)
                )
        LOG.debug("Catalog batch: %d requested, %d resolved", len(batch), len(found))
        return found

    async def resolve(self, required_ids: Iterable[str]) -> dict[str, StarPosition]:
        """Resolve every id or fail.

        Args:
            required_ids: Catalog ids referenced by folklore lines.

        Returns:
            Dict of id → StarPosition covering every required id.

        Raises:
            CatalogResolutionError: On transport failure, schema mismatch, or
                ids that no batch resolved.
        """
        ids = sorted(set(required_ids))
        size = self.batch_size
        batches = [ids[i : i + size] for i in range(0, len(ids), size)]
        LOG.info("Resolving %d catalog ids in %d batch(es)", len(ids), len(batches))

        resolved: dict[str, StarPosition] = {}
        if self.parallel:
            fetches = (self._fetch_batch(b) for b in batches)
            for found in await gather_or_cancel(*fetches):
                resolved.update(found)
        else:
            for batch in batches:
                resolved.update(await self._fetch_batch(batch))

        missing = frozenset(ids) - resolved.keys()
        if missing:
            raise CatalogResolutionError(
                f"Unresolved catalog ids: {', '.join(sorted(missing))}", missing=missing
            )
        return resolved
