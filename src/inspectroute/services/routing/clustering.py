"""Geographic day clustering for multi-day route plans."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np
from sklearn.cluster import KMeans

from ...config import settings
from ..geospatial import bearing_degrees, haversine_miles, spherical_centroid
from .models import OptimizationConstraints, RouteStop

EARTH_RADIUS_MILES = 3959.0
BALANCE_WEIGHT_THRESHOLD = 0.6
MAX_SPREAD_RATIO = 3.0
MAX_BEARING_SPAN_DEGREES = 100.0
COHESION_RADIUS_EXPANSION = 1.5
ESTIMATED_TRAVEL_MINUTES_PER_STOP = 15

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Cluster:
    members: List[RouteStop] = field(default_factory=list)

    @property
    def centroid(self) -> tuple[float, float]:
        return spherical_centroid([(m.latitude, m.longitude) for m in self.members])

    def __len__(self) -> int:
        return len(self.members)


def find_optimal_clusters(count: int, max_per_cluster: Optional[int]) -> int:
    if count == 0:
        return 0
    if not max_per_cluster:
        return 1
    return max(1, math.ceil(count / max_per_cluster))


def _distance_to(stop: RouteStop, point: tuple[float, float]) -> float:
    return haversine_miles(stop.latitude, stop.longitude, point[0], point[1])


class DayClusterer:
    """Partition stops into day-sized, geographically compact clusters.

    K-Means runs on an equirectangular projection centred on the home base.
    Tightness scales the number of clusters; balance weight controls how hard
    day sizes are evened out at the expense of compactness.
    """

    def __init__(
        self,
        constraints: OptimizationConstraints,
        home: tuple[float, float],
        *,
        default_visit_duration: int = 30,
        random_state: int | None = None,
    ) -> None:
        self.constraints = constraints
        self.home = home
        self.default_visit_duration = default_visit_duration
        self.random_state = settings.clustering_random_state if random_state is None else random_state

    def _project(self, stops: Sequence[RouteStop]) -> np.ndarray:
        """Convert lat/lon to approximate Cartesian miles around the home base."""
        lat_ref = np.radians(self.home[0])
        lon_ref = np.radians(self.home[1])
        lats = np.radians(np.array([s.latitude for s in stops], dtype=float))
        lons = np.radians(np.array([s.longitude for s in stops], dtype=float))
        x = EARTH_RADIUS_MILES * (lons - lon_ref) * np.cos(lat_ref)
        y = EARTH_RADIUS_MILES * (lats - lat_ref)
        return np.column_stack([x, y])

    def _kmeans(self, stops: Sequence[RouteStop], k: int) -> list[Cluster]:
        if k <= 1 or len(stops) <= 1:
            return [Cluster(list(stops))]
        coordinates = self._project(stops)
        distinct = len(np.unique(coordinates, axis=0))
        k = min(k, len(stops), max(distinct, 1))
        if k <= 1:
            return [Cluster(list(stops))]
        model = KMeans(n_clusters=k, n_init=10, random_state=self.random_state)
        labels = model.fit_predict(coordinates)
        clusters = [Cluster([stop for stop, label in zip(stops, labels) if label == cid]) for cid in range(k)]
        return [cluster for cluster in clusters if cluster.members]

    def cluster(self, stops: Sequence[RouteStop]) -> list[Cluster]:
        if not stops:
            return []
        ceiling = self.constraints.facility_ceiling
        base = find_optimal_clusters(len(stops), ceiling)
        tightness = min(max(self.constraints.clustering_tightness, 0.0), 1.0)
        k = max(base, math.floor(base * (0.5 + tightness)))
        k = min(k, len(stops))

        clusters = self._kmeans(stops, k)
        clusters = self._split_overloaded(clusters)
        clusters = self._redistribute(clusters)
        clusters = self._validate_cohesion(clusters)
        clusters = self._merge_adjacent(clusters)
        clusters = self._split_overloaded(clusters)
        clusters.sort(key=lambda c: _distance_to_home(c, self.home))
        logger.info(
            "Clustered %d stops into %d day clusters (tightness=%.2f, balance=%.2f)",
            len(stops),
            len(clusters),
            self.constraints.clustering_tightness,
            self.constraints.cluster_balance_weight,
        )
        return clusters

    def _split_overloaded(self, clusters: list[Cluster], max_iterations: int = 10) -> list[Cluster]:
        """Split clusters above the facility ceiling until none remain."""
        ceiling = self.constraints.facility_ceiling
        if ceiling is None:
            return clusters
        for _ in range(max_iterations):
            overloaded = [c for c in clusters if len(c) > ceiling]
            if not overloaded:
                return clusters
            result: list[Cluster] = []
            for cluster in clusters:
                if len(cluster) <= ceiling:
                    result.append(cluster)
                    continue
                parts = self._kmeans(cluster.members, math.ceil(len(cluster) / ceiling))
                if len(parts) <= 1:
                    parts = _chunk(cluster, ceiling)
                result.extend(parts)
            clusters = result
        # K-Means can keep producing lopsided parts; fall back to chunking.
        result = []
        for cluster in clusters:
            result.extend(_chunk(cluster, ceiling) if len(cluster) > ceiling else [cluster])
        return result

    def _redistribute(self, clusters: list[Cluster]) -> list[Cluster]:
        weight = self.constraints.cluster_balance_weight
        if weight < BALANCE_WEIGHT_THRESHOLD or len(clusters) < 2:
            return clusters

        ceiling = self.constraints.facility_ceiling
        tolerance = max(0.0, 1.0 - weight)
        total = sum(len(c) for c in clusters)
        max_iterations = total

        for _ in range(max_iterations):
            avg = total / len(clusters)
            lower, upper = avg * (1 - tolerance), avg * (1 + tolerance)
            largest = max(clusters, key=len)
            smallest = min(clusters, key=len)
            if len(largest) <= upper and len(smallest) >= lower:
                break
            if len(largest) <= len(smallest) + 1:
                break
            if ceiling is not None and len(smallest) >= ceiling:
                break

            target = smallest.centroid
            candidate = min(largest.members, key=lambda stop: _distance_to(stop, target))
            if _distance_to(candidate, target) > _cohesion_radius(smallest) * COHESION_RADIUS_EXPANSION:
                break
            largest.members.remove(candidate)
            smallest.members.append(candidate)
        return clusters

    def _validate_cohesion(self, clusters: list[Cluster]) -> list[Cluster]:
        validated: list[Cluster] = []
        for cluster in clusters:
            if len(cluster) <= 1:
                validated.append(cluster)
                continue

            centroid = cluster.centroid
            distances = [_distance_to(stop, centroid) for stop in cluster.members]
            average = sum(distances) / len(distances)
            if max(distances) > average * MAX_SPREAD_RATIO:
                ranked = [stop for _, stop in sorted(zip(distances, cluster.members), key=lambda item: item[0])]
                midpoint = len(ranked) // 2
                validated.extend(c for c in (Cluster(ranked[:midpoint]), Cluster(ranked[midpoint:])) if c.members)
                continue

            bearings = [
                bearing_degrees(self.home[0], self.home[1], stop.latitude, stop.longitude)
                for stop in cluster.members
            ]
            if _bearing_span(bearings) > MAX_BEARING_SPAN_DEGREES:
                mean = _circular_mean(bearings)
                left = [s for s, b in zip(cluster.members, bearings) if _signed_delta(mean, b) < 0]
                right = [s for s, b in zip(cluster.members, bearings) if _signed_delta(mean, b) >= 0]
                if left and right:
                    validated.extend([Cluster(left), Cluster(right)])
                    continue
            validated.append(cluster)
        return validated

    def _merge_adjacent(self, clusters: list[Cluster]) -> list[Cluster]:
        """Combine small neighbouring clusters to reduce the number of days."""
        ceiling = self.constraints.facility_ceiling
        minutes_ceiling = self.constraints.minutes_ceiling
        merged: list[Cluster] = []
        processed: set[int] = set()
        for i, current in enumerate(clusters):
            if i in processed:
                continue
            processed.add(i)
            current = Cluster(list(current.members))
            for j in range(i + 1, len(clusters)):
                if j in processed:
                    continue
                candidate = clusters[j]
                combined = len(current) + len(candidate)
                if ceiling is None or combined > ceiling:
                    continue
                a, b = current.centroid, candidate.centroid
                centroid_distance = haversine_miles(a[0], a[1], b[0], b[1])
                average_spread = (_average_pair_distance(current) + _average_pair_distance(candidate)) / 2
                if average_spread > 0 and centroid_distance > average_spread * 2:
                    continue
                if minutes_ceiling is not None:
                    estimate = combined * (self.default_visit_duration + ESTIMATED_TRAVEL_MINUTES_PER_STOP)
                    if estimate > minutes_ceiling:
                        continue
                current.members.extend(candidate.members)
                processed.add(j)
            merged.append(current)
        return merged


def _chunk(cluster: Cluster, size: int) -> list[Cluster]:
    members = cluster.members
    return [Cluster(members[i : i + size]) for i in range(0, len(members), size)]


def _distance_to_home(cluster: Cluster, home: tuple[float, float]) -> float:
    centroid = cluster.centroid
    return haversine_miles(home[0], home[1], centroid[0], centroid[1])


def _cohesion_radius(cluster: Cluster) -> float:
    """95th percentile member distance from the centroid."""
    if not cluster.members:
        return 0.0
    centroid = cluster.centroid
    distances = sorted(_distance_to(stop, centroid) for stop in cluster.members)
    index = min(int(math.floor(len(distances) * 0.95)), len(distances) - 1)
    return distances[index]


def _average_pair_distance(cluster: Cluster) -> float:
    members = cluster.members
    if len(members) <= 1:
        return 0.0
    total = 0.0
    count = 0
    for i in range(len(members)):
        for j in range(i + 1, len(members)):
            total += haversine_miles(
                members[i].latitude, members[i].longitude, members[j].latitude, members[j].longitude
            )
            count += 1
    return total / count


def _signed_delta(reference: float, bearing: float) -> float:
    return (bearing - reference + 540.0) % 360.0 - 180.0


def _circular_mean(bearings: Sequence[float]) -> float:
    sin_sum = sum(math.sin(math.radians(b)) for b in bearings)
    cos_sum = sum(math.cos(math.radians(b)) for b in bearings)
    return (math.degrees(math.atan2(sin_sum, cos_sum)) + 360.0) % 360.0


def _bearing_span(bearings: Sequence[float]) -> float:
    """Smallest arc that contains every bearing."""
    if len(bearings) <= 1:
        return 0.0
    ordered = sorted(bearings)
    gaps = [b - a for a, b in zip(ordered, ordered[1:])]
    gaps.append(360.0 - ordered[-1] + ordered[0])
    return 360.0 - max(gaps)
