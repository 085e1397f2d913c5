import pytest

from inspectroute.services.routing.clustering import DayClusterer, _bearing_span, find_optimal_clusters
from inspectroute.services.routing.models import OptimizationConstraints, RouteStop

HOME = (31.9, -102.1)


def _stop(fid: str, lat: float, lon: float, index: int) -> RouteStop:
    return RouteStop(facility_id=fid, name=f"Facility {fid}", latitude=lat, longitude=lon, visit_duration=30, index=index)


def test_find_optimal_clusters():
    assert find_optimal_clusters(0, 4) == 0
    assert find_optimal_clusters(10, 4) == 3
    assert find_optimal_clusters(5, None) == 1


def test_bearing_span_wraps_through_north():
    assert _bearing_span([350.0, 10.0]) == pytest.approx(20.0)
    assert _bearing_span([90.0]) == 0.0


def test_separated_groups_are_not_mixed():
    north = [_stop(f"N{i}", 32.4 + 0.01 * i, -102.1 + 0.01 * i, i + 1) for i in range(4)]
    south = [_stop(f"S{i}", 31.4 - 0.01 * i, -102.1 - 0.01 * i, i + 5) for i in range(4)]
    clusterer = DayClusterer(OptimizationConstraints(max_facilities_per_day=4), HOME, random_state=0)

    clusters = clusterer.cluster(north + south)

    assert len(clusters) == 2
    for cluster in clusters:
        prefixes = {stop.facility_id[0] for stop in cluster.members}
        assert len(prefixes) == 1


def test_clusters_never_exceed_facility_ceiling():
    stops = [_stop(f"F{i}", 31.9 + 0.03 * (i % 6), -102.1 + 0.04 * (i // 6), i + 1) for i in range(17)]
    clusterer = DayClusterer(
        OptimizationConstraints(max_facilities_per_day=5, cluster_balance_weight=0.9), HOME, random_state=0
    )

    clusters = clusterer.cluster(stops)

    assert all(len(cluster) <= 5 for cluster in clusters)
    members = sorted(stop.facility_id for cluster in clusters for stop in cluster.members)
    assert members == sorted(stop.facility_id for stop in stops)


def test_identical_coordinates_collapse_into_one_cluster():
    stops = [_stop(f"F{i}", 32.0, -102.0, i + 1) for i in range(3)]
    clusterer = DayClusterer(OptimizationConstraints(max_facilities_per_day=8), HOME, random_state=0)

    clusters = clusterer.cluster(stops)

    assert len(clusters) == 1
    assert len(clusters[0]) == 3
