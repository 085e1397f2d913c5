"""HTTP client for the OSRM table and route services."""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Callable, Sequence

import httpx

from ...config import settings

# Public OSRM rejects long URLs; chunks are paired so one request carries up to 2x this many.
DEFAULT_MAX_COORDINATES_PER_REQUEST = 50
DEFAULT_MAX_PARALLEL_REQUESTS = 4
CRITICAL_CHUNK_FAILURE_RATE = 0.5

logger = logging.getLogger(__name__)


def _coordinate_path(coordinates: Sequence[tuple[float, float]]) -> str:
    return ";".join(f"{lon},{lat}" for lat, lon in coordinates)


class OSRMClient:
    def __init__(
        self,
        base_url: str | None = None,
        profile: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
        max_coordinates_per_request: int = DEFAULT_MAX_COORDINATES_PER_REQUEST,
        max_parallel_requests: int = DEFAULT_MAX_PARALLEL_REQUESTS,
    ) -> None:
        self.base_url = (base_url or settings.osrm_base_url or "").rstrip("/")
        if not self.base_url:
            raise ValueError("OSRM base URL is not configured.")
        self.profile = profile or settings.osrm_profile
        self.timeout = timeout if timeout is not None else settings.osrm_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.osrm_max_retries
        self.backoff_seconds = backoff_seconds if backoff_seconds is not None else settings.osrm_backoff_seconds
        self.max_coordinates_per_request = max_coordinates_per_request
        self.max_parallel_requests = max_parallel_requests

    def _get_client(self) -> httpx.Client:
        """Create a per-call client; chunk requests run on worker threads."""
        return httpx.Client(timeout=httpx.Timeout(self.timeout, connect=10.0))

    def _request(self, url: str, params: dict, validate: Callable[[dict], None]) -> dict:
        """GET with retries and exponential backoff.

        Network failures surface as ConnectionError once retries are exhausted;
        malformed payloads surface as ValueError.
        """
        client = self._get_client()
        try:
            attempt = 0
            while True:
                try:
                    response = client.get(url, params=params)
                    response.raise_for_status()
                    data = response.json()
                    validate(data)
                    return data
                except httpx.HTTPStatusError as exc:
                    if exc.response.status_code == 414:
                        raise ValueError(
                            "OSRM request URL too large. "
                            f"Try reducing max_coordinates_per_request (current: {self.max_coordinates_per_request})"
                        ) from exc
                    attempt += 1
                    if attempt > self.max_retries:
                        raise
                    time.sleep(self.backoff_seconds * attempt)
                except httpx.TimeoutException as exc:
                    attempt += 1
                    if attempt > self.max_retries:
                        logger.warning(f"OSRM request timed out after {self.max_retries} retries: {exc}")
                        raise ConnectionError(f"OSRM request to {self.base_url} timed out") from exc
                    wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                    logger.debug(f"OSRM timeout, retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries})")
                    time.sleep(wait_time)
                except (httpx.TransportError, OSError) as exc:
                    attempt += 1
                    if attempt > self.max_retries:
                        raise ConnectionError(f"Failed to connect to OSRM service at {self.base_url}: {exc}") from exc
                    wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                    logger.debug(f"OSRM network error, retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries}): {exc}")
                    time.sleep(wait_time)
                except ValueError:
                    attempt += 1
                    if attempt > self.max_retries:
                        raise
                    time.sleep(self.backoff_seconds * attempt)
        finally:
            client.close()

    def _table_single_request(
        self,
        coordinates: Sequence[tuple[float, float]],
        sources: Sequence[int] | None = None,
        destinations: Sequence[int] | None = None,
    ) -> dict:
        params: dict[str, Any] = {"annotations": "duration,distance"}
        if sources is not None:
            params["sources"] = ";".join(str(i) for i in sources)
        if destinations is not None:
            params["destinations"] = ";".join(str(i) for i in destinations)
        url = f"{self.base_url}/table/v1/{self.profile}/{_coordinate_path(coordinates)}"

        def validate(data: dict) -> None:
            if data.get("code", "Ok") != "Ok":
                raise ValueError(f"OSRM table request failed: {data.get('message', data.get('code'))}")
            if "durations" not in data or "distances" not in data:
                raise ValueError("OSRM response missing durations/distances.")

        return self._request(url, params, validate)

    def table(self, coordinates: Sequence[tuple[float, float]]) -> dict:
        """Return ``{"durations": seconds, "distances": meters}`` for every pair.

        Large coordinate lists are split into chunk pairs requested in parallel;
        cells from failed chunks are left as ``None``.
        """
        if len(coordinates) < 2:
            raise ValueError("At least two coordinates are required for OSRM table.")
        if len(coordinates) <= self.max_coordinates_per_request:
            return self._table_single_request(coordinates)

        started = time.time()
        size = self.max_coordinates_per_request
        ranges = [(i, min(i + size, len(coordinates))) for i in range(0, len(coordinates), size)]
        n = len(coordinates)
        durations: list[list[float | None]] = [[None] * n for _ in range(n)]
        distances: list[list[float | None]] = [[None] * n for _ in range(n)]

        def fetch(src: tuple[int, int], dst: tuple[int, int]) -> dict:
            chunk = list(coordinates[src[0] : src[1]]) + list(coordinates[dst[0] : dst[1]])
            src_count = src[1] - src[0]
            return self._table_single_request(
                chunk, list(range(src_count)), list(range(src_count, len(chunk)))
            )

        pairs = [(src, dst) for src in ranges for dst in ranges]
        failed = 0
        logger.info(f"Chunking OSRM table request: {n} coordinates in {len(pairs)} requests")
        with ThreadPoolExecutor(max_workers=self.max_parallel_requests) as executor:
            futures = {executor.submit(fetch, src, dst): (src, dst) for src, dst in pairs}
            for future in as_completed(futures):
                src, dst = futures[future]
                try:
                    result = future.result()
                except (ConnectionError, ValueError, httpx.HTTPError) as exc:
                    failed += 1
                    logger.warning(f"OSRM chunk [{src[0]}:{src[1]}] -> [{dst[0]}:{dst[1]}] failed: {exc}")
                    continue
                for local_src, row_index in enumerate(range(*src)):
                    for local_dst, col_index in enumerate(range(*dst)):
                        durations[row_index][col_index] = result["durations"][local_src][local_dst]
                        distances[row_index][col_index] = result["distances"][local_src][local_dst]

        failure_rate = failed / len(pairs)
        if failure_rate > CRITICAL_CHUNK_FAILURE_RATE:
            raise ConnectionError(
                f"Critical failure: {failed}/{len(pairs)} OSRM chunk requests failed ({failure_rate * 100:.1f}%)."
            )
        if failed:
            logger.warning(f"Partial failure: {failed}/{len(pairs)} OSRM chunk requests failed")
        logger.info(f"Completed OSRM table request in {time.time() - started:.2f}s")
        return {"durations": durations, "distances": distances}

    def route(self, coordinates: Sequence[tuple[float, float]]) -> dict:
        """Return the OSRM route response with full polyline geometry."""
        if len(coordinates) < 2:
            raise ValueError("At least two coordinates are required for OSRM route.")
        params = {"overview": "full", "geometries": "polyline", "steps": "false"}
        url = f"{self.base_url}/route/v1/{self.profile}/{_coordinate_path(coordinates)}"

        def validate(data: dict) -> None:
            if data.get("code") != "Ok" or not data.get("routes"):
                raise ValueError(f"OSRM route request failed: {data.get('message', 'no route found')}")

        return self._request(url, params, validate)


def decode_polyline(polyline: str, precision: int = 5) -> list[tuple[float, float]]:
    """Decode an encoded polyline string into (lat, lon) pairs."""
    coordinates: list[tuple[float, float]] = []
    factor = 10 ** precision
    index = 0
    lat = 0
    lon = 0

    def next_value() -> int:
        nonlocal index
        shift = 0
        result = 0
        while True:
            b = ord(polyline[index]) - 63
            index += 1
            result |= (b & 0x1F) << shift
            shift += 5
            if b < 0x20:
                break
        return ~(result >> 1) if (result & 1) else (result >> 1)

    while index < len(polyline):
        lat += next_value()
        lon += next_value()
        coordinates.append((lat / factor, lon / factor))
    return coordinates


def check_health(base_url: str | None = None) -> bool:
    """Probe the table service with two fixed coordinates."""
    base = base_url or settings.osrm_base_url
    if not base:
        return False
    try:
        url = f"{base.rstrip('/')}/table/v1/{settings.osrm_profile}/-97.7431,30.2672;-97.7331,30.2772"
        response = httpx.get(url, params={"annotations": "duration"}, timeout=5.0)
        response.raise_for_status()
        data = response.json()
        return isinstance(data.get("durations"), list)
    except (httpx.HTTPError, ValueError):
        return False
