"""
Nearest-records lookups against the authoritative dataset.

The authoritative dataset lives in a spatial database. Rather than scanning it, lookups go
through a spatial index over representative points (centroids) that are computed ahead of
time, and refreshed whenever the underlying records change. ``NearbyQuery`` describes what
every implementation guarantees; ``NearbyClient`` calls the database's RPC endpoint, and
``CentroidIndex`` is an in-process equivalent for offline use and tests.
"""

import asyncio
import json
import logging
import math
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from json import JSONDecodeError
from typing import Any, Final

from infra_nearby import __version__
from infra_nearby.distance import EARTH_RADIUS_KM, distance_m
from infra_nearby.error import (
    CallError,
    CallTimeoutError,
    InvalidReferenceError,
    ResponseError,
)
from infra_nearby.geometry import Coordinate, Geometry, invalid_reason, to_shape, vertices
from infra_nearby.normalize import parse_geometry

import aiohttp
import shapely
from shapely.geometry.base import BaseGeometry


__docformat__ = "google"
__all__ = (
    "InfrastructureRecord",
    "NearbyRecord",
    "NearbyQuery",
    "CentroidIndex",
    "NearbyClient",
    "DEFAULT_NEARBY_RADIUS_M",
    "NEARBY_LIMIT",
    "DEFAULT_RPC_FUNCTION",
    "DEFAULT_USER_AGENT",
)


DEFAULT_NEARBY_RADIUS_M: Final[float] = 500.0
"""Default lookup radius in meters."""

NEARBY_LIMIT: Final[int] = 100
"""The maximum number of records a lookup returns."""

DEFAULT_RPC_FUNCTION: Final[str] = "nearby_infrastructure"
"""Name of the database function that implements the lookup."""

DEFAULT_USER_AGENT: Final[str] = f"infra-nearby/{__version__}"
"""User agent of ``NearbyClient`` requests."""

_EARTH_RADIUS_M = EARTH_RADIUS_KM * 1000.0

_DEFAULT_LOGGER = logging.getLogger(__name__)
_DEFAULT_LOGGER.addHandler(logging.NullHandler())


@dataclass(kw_only=True, slots=True, frozen=True)
class InfrastructureRecord:
    """
    A record of the authoritative dataset.

    Attributes:
        id: the record's identifier
        label: a display name
        category: the kind of infrastructure, f.e. ``"bridge"``
        is_official: ``True`` for official records, ``False`` for citizen-reported ones
        geometry: the record's geometry
    """

    id: str | int
    label: str
    category: str
    is_official: bool
    geometry: Geometry


@dataclass(kw_only=True, slots=True, frozen=True)
class NearbyRecord(InfrastructureRecord):
    """
    A record returned by a nearby lookup.

    Attributes:
        distance_m: distance between the lookup coordinate and the record's centroid, in meters
    """

    distance_m: float


class NearbyQuery(ABC):
    """
    A lookup of the records nearest to a coordinate.

    Every implementation guarantees that
     - …only records whose centroid is within ``radius_m`` are returned,
     - …records are ordered by ascending distance,
     - …at most ``NEARBY_LIMIT`` records are returned,
     - …centroids are not recomputed per lookup, but ahead of time.
    """

    __slots__ = ()

    @abstractmethod
    async def __call__(
        self,
        lat: float,
        lon: float,
        radius_m: float = DEFAULT_NEARBY_RADIUS_M,
    ) -> list[NearbyRecord]:
        """
        Look up the records nearest to a coordinate.

        Raises:
            InvalidReferenceError: if the coordinate is not finite or out of range
            ValueError: if ``radius_m`` is not finite > 0
        """
        pass


class CentroidIndex(NearbyQuery):
    """
    In-process nearby lookups over an R-tree of record centroids.

    Centroids are computed with Shapely, and indexed with a ``shapely.STRtree``, only
    when calling ``refresh()``. Lookups use the index to find candidates in a bounding
    box around the coordinate, and then compute haversine distances to filter and sort
    candidates.

    Since Shapely works on the Cartesian plane, centroids are computed in lon/lat degrees.
    For the small features this is used for, that difference does not matter.

    Args:
        records: the records to index right away
        logger: the logger to use for all logging output related to this index
    """

    __slots__ = (
        "_centroids",
        "_logger",
        "_records",
        "_tree",
    )

    def __init__(
        self,
        records: Iterable[InfrastructureRecord] = (),
        logger: logging.Logger = _DEFAULT_LOGGER,
    ) -> None:
        self._logger = logger
        self._records: list[InfrastructureRecord] = []
        self._centroids: list[Coordinate] = []
        self._tree: shapely.STRtree | None = None
        self.refresh(records)

    def refresh(self, records: Iterable[InfrastructureRecord]) -> None:
        """
        Replace the indexed records, and recompute all centroids.

        Records with invalid geometries are left out.
        """
        indexed: list[InfrastructureRecord] = []
        centroids: list[Coordinate] = []

        for record in records:
            if reason := invalid_reason(record.geometry):
                self._logger.warning(f"not indexing record {record.id!r}: {reason}")
                continue
            centroid = to_shape(record.geometry).centroid
            if centroid.is_empty:
                # degenerate shapes; fall back to the first vertex
                centroids.append(next(vertices(record.geometry)))
            else:
                centroids.append(Coordinate(lon=centroid.x, lat=centroid.y))
            indexed.append(record)

        points = [shapely.Point(c.lon, c.lat) for c in centroids]

        self._records = indexed
        self._centroids = centroids
        self._tree = shapely.STRtree(points) if points else None

        self._logger.info(f"indexed {len(indexed)} record centroids")

    def centroid(self, record_id: str | int) -> Coordinate | None:
        """The indexed centroid of a record, or ``None`` if it is not indexed."""
        for record, centroid in zip(self._records, self._centroids):
            if record.id == record_id:
                return centroid
        return None

    def query(
        self,
        lat: float,
        lon: float,
        radius_m: float = DEFAULT_NEARBY_RADIUS_M,
    ) -> list[NearbyRecord]:
        """
        Look up the records nearest to a coordinate.

        Records at the same distance are ordered by their ID.

        Raises:
            InvalidReferenceError: if the coordinate is not finite or out of range
            ValueError: if ``radius_m`` is not finite > 0
        """
        origin = _check_lookup(lat, lon, radius_m)

        if self._tree is None:
            return []

        candidates: set[int] = set()
        for box in _search_boxes(origin, radius_m):
            candidates.update(int(idx) for idx in self._tree.query(box))

        hits = []
        for idx in candidates:
            dist = distance_m(origin, self._centroids[idx])
            if dist <= radius_m:
                hits.append((dist, idx))

        hits.sort(key=lambda hit: (hit[0], str(self._records[hit[1]].id)))

        self._logger.debug(f"{len(hits)}/{len(candidates)} candidates within {radius_m}m")

        return [_nearby_record(self._records[idx], dist) for dist, idx in hits[:NEARBY_LIMIT]]

    async def __call__(
        self,
        lat: float,
        lon: float,
        radius_m: float = DEFAULT_NEARBY_RADIUS_M,
    ) -> list[NearbyRecord]:
        """Same as ``query()``."""
        return self.query(lat, lon, radius_m)

    def __len__(self) -> int:
        return len(self._records)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({len(self._records)} records)"


class NearbyClient(NearbyQuery):
    """
    Nearby lookups through the RPC endpoint of the database's REST gateway.

    The lookup is a ``POST {url}/rpc/{rpc_function}`` with a JSON body of
    ``{"lat": …, "lon": …, "radius_m": …}``. The database function is expected to query
    a spatially indexed, periodically refreshed materialized view of record centroids,
    and to respond with a JSON array of rows with the keys ``id``, ``label``, ``category``,
    ``is_official``, ``distance_m`` and ``geometry`` (a GeoJSON geometry, or JSON text
    encoding one, as produced by ``ST_AsGeoJSON``).

    The client double-checks the contract on every response: rows farther away than
    ``radius_m`` are dropped, and rows are sorted by distance and capped to
    ``NEARBY_LIMIT`` if the server did not do so.

    Args:
        url: The base URL of the REST gateway, f.e. ``"https://<project>.supabase.co/rest/v1"``.
        api_key: If set, sent in the ``apikey`` and ``Authorization`` headers.
        rpc_function: The name of the database function.
        timeout_secs: If set, requests time out after this duration in seconds.
        user_agent: A string used for the User-Agent header.
        logger: The logger to use for all logging output related to this client.
    """

    __slots__ = (
        "_api_key",
        "_logger",
        "_maybe_session",
        "_rpc_function",
        "_timeout_secs",
        "_url",
        "_user_agent",
    )

    def __init__(  # noqa: PLR0913
        self,
        url: str,
        api_key: str | None = None,
        rpc_function: str = DEFAULT_RPC_FUNCTION,
        timeout_secs: float | None = 10.0,
        user_agent: str = DEFAULT_USER_AGENT,
        logger: logging.Logger = _DEFAULT_LOGGER,
    ) -> None:
        if timeout_secs is not None and not (math.isfinite(timeout_secs) and timeout_secs > 0.0):
            msg = "'timeout_secs' must be finite > 0"
            raise ValueError(msg)

        self._url = url.rstrip("/")
        self._api_key = api_key
        self._rpc_function = rpc_function
        self._timeout_secs = timeout_secs
        self._user_agent = user_agent
        self._logger = logger

        self._maybe_session: aiohttp.ClientSession | None = None

    @property
    def endpoint(self) -> str:
        """The URL lookups are posted to."""
        return f"{self._url}/rpc/{self._rpc_function}"

    def _session(self) -> aiohttp.ClientSession:
        """The session used for all requests of this client."""
        if not self._maybe_session or self._maybe_session.closed:
            headers = {"User-Agent": self._user_agent}
            if self._api_key:
                headers["apikey"] = self._api_key
                headers["Authorization"] = f"Bearer {self._api_key}"
            self._maybe_session = aiohttp.ClientSession(headers=headers)

        return self._maybe_session

    async def close(self) -> None:
        """Close the underlying session."""
        if self._maybe_session and not self._maybe_session.closed:
            await self._maybe_session.close()

    async def __aenter__(self) -> "NearbyClient":
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.close()

    async def __call__(
        self,
        lat: float,
        lon: float,
        radius_m: float = DEFAULT_NEARBY_RADIUS_M,
    ) -> list[NearbyRecord]:
        """
        Look up the records nearest to a coordinate.

        Raises:
            InvalidReferenceError: if the coordinate is not finite or out of range
            ValueError: if ``radius_m`` is not finite > 0
            CallError: if the request failed without a response
            CallTimeoutError: if the request timed out
            ResponseError: if the response has an error status, or its rows are malformed
        """
        origin = _check_lookup(lat, lon, radius_m)

        timeout = aiohttp.ClientTimeout(total=self._timeout_secs)
        body = {"lat": origin.lat, "lon": origin.lon, "radius_m": radius_m}

        self._logger.info(
            f"look up records within {radius_m}m of ({origin.lat:.4f}, {origin.lon:.4f})"
        )

        async with _map_request_error(timeout), self._session().post(
            url=self.endpoint,
            json=body,
            timeout=timeout,
        ) as response:
            return await _records_or_raise(response, radius_m, self._logger)


def _check_lookup(lat: float, lon: float, radius_m: float) -> Coordinate:
    try:
        origin = Coordinate(lon=float(lon), lat=float(lat))
    except (TypeError, ValueError, OverflowError) as err:
        raise InvalidReferenceError(lat=lat, lon=lon) from err
    if not origin.is_valid:
        raise InvalidReferenceError(lat=lat, lon=lon)
    if not (math.isfinite(radius_m) and radius_m > 0.0):
        msg = "'radius_m' must be finite > 0"
        raise ValueError(msg)
    return origin


def _search_boxes(origin: Coordinate, radius_m: float) -> list[BaseGeometry]:
    """
    Lon/lat boxes that contain every point within ``radius_m`` of ``origin``.

    Near the antimeridian, the area is split into two boxes.

    References:
        - http://janmatuschek.de/LatitudeLongitudeBoundingCoordinates
    """
    angular = radius_m / _EARTH_RADIUS_M
    lat = math.radians(origin.lat)

    south = max(-90.0, origin.lat - math.degrees(angular))
    north = min(90.0, origin.lat + math.degrees(angular))

    # the circle contains a pole, or it spans all meridians
    if north == 90.0 or south == -90.0 or math.sin(angular) >= math.cos(lat):
        return [shapely.box(-180.0, south, 180.0, north)]

    d_lon = math.degrees(math.asin(math.sin(angular) / math.cos(lat)))
    west, east = origin.lon - d_lon, origin.lon + d_lon

    boxes = [shapely.box(max(west, -180.0), south, min(east, 180.0), north)]
    if west < -180.0:
        boxes.append(shapely.box(west + 360.0, south, 180.0, north))
    if east > 180.0:
        boxes.append(shapely.box(-180.0, south, east - 360.0, north))
    return boxes


def _nearby_record(record: InfrastructureRecord, dist: float) -> NearbyRecord:
    return NearbyRecord(
        id=record.id,
        label=record.label,
        category=record.category,
        is_official=record.is_official,
        geometry=record.geometry,
        distance_m=dist,
    )


async def _records_or_raise(
    response: aiohttp.ClientResponse,
    radius_m: float,
    logger: logging.Logger,
) -> list[NearbyRecord]:
    """
    Map the rows of a lookup response to records.

    Rows with malformed geometries, and rows farther away than ``radius_m``, are dropped.
    Any other malformed row fails the lookup.

    Raises:
        ResponseError: if the response has an error status, is not a JSON array,
                       or has rows with missing or mistyped columns
    """
    text = await response.text()

    if response.status >= 400:
        raise ResponseError(status=response.status, body=text, cause=None)

    try:
        rows = json.loads(text)
    except JSONDecodeError as err:
        raise ResponseError(status=response.status, body=text, cause=err) from err

    if not isinstance(rows, list):
        cause = TypeError(f"expected array of rows, got {type(rows).__name__}")
        raise ResponseError(status=response.status, body=text, cause=cause)

    records = []

    for row in rows:
        try:
            record = _row_record(row)
        except (KeyError, TypeError, OverflowError) as err:
            raise ResponseError(status=response.status, body=text, cause=err) from err

        if record is not None:
            records.append(record)
        else:
            logger.warning(f"dropped row {row.get('id')!r} with malformed geometry")

    nb_rows = len(records)
    records = [r for r in records if r.distance_m <= radius_m]
    if len(records) < nb_rows:
        logger.warning(f"dropped {nb_rows - len(records)} rows farther away than {radius_m}m")

    if any(a.distance_m > b.distance_m for a, b in zip(records, records[1:])):
        logger.warning("rows are not ordered by distance")
        records.sort(key=lambda r: r.distance_m)

    if len(records) > NEARBY_LIMIT:
        logger.warning(f"got {len(records)} rows, expected at most {NEARBY_LIMIT}")
        del records[NEARBY_LIMIT:]

    return records


def _row_record(row: Any) -> NearbyRecord | None:
    if not isinstance(row, dict):
        msg = f"expected row object, got {type(row).__name__}"
        raise TypeError(msg)

    record_id = row["id"]
    if not isinstance(record_id, str | int) or isinstance(record_id, bool):
        msg = f"bad 'id' {record_id!r}"
        raise TypeError(msg)

    distance = row["distance_m"]
    if not isinstance(distance, int | float) or isinstance(distance, bool):
        msg = f"bad 'distance_m' {distance!r}"
        raise TypeError(msg)

    try:
        geometry = parse_geometry(row["geometry"])
    except ValueError:
        return None

    if invalid_reason(geometry):
        return None

    return NearbyRecord(
        id=record_id,
        label=str(row.get("label") or ""),
        category=str(row.get("category") or ""),
        is_official=bool(row.get("is_official", False)),
        geometry=geometry,
        distance_m=float(distance),
    )


@asynccontextmanager
async def _map_request_error(timeout: aiohttp.ClientTimeout) -> AsyncIterator[None]:
    """Context to make requests in; maps errors to our exception types."""
    try:
        yield
    except asyncio.TimeoutError as err:
        # checked first, since aiohttp timeouts can also be client errors
        raise CallTimeoutError(cause=err, after_secs=timeout.total or 0.0) from err
    except aiohttp.ClientError as err:
        raise CallError(cause=err) from err
