import math

from disaster_map_ingest.clustering import (
    HIGHLIGHT_RADIUS_KM,
    MIN_AREA_RADIUS_KM,
    MapPoint,
    build_overlay,
    circle_polygon,
    detect_isolated_areas,
    max_severity,
    points_from_posts,
)
from disaster_map_ingest.database import PostStore
from disaster_map_ingest.models import AnalysisResult, GeoPoint, PostCandidate


def test_lone_non_severe_point_is_not_an_area() -> None:
    assert detect_isolated_areas([MapPoint(5.0, 95.5, "Sedang")]) == []
    overlay = build_overlay([MapPoint(5.0, 95.5, "Aman")])
    assert overlay.areas == [] and overlay.highlights == []


def test_lone_severe_point_gets_area_and_highlight() -> None:
    overlay = build_overlay([MapPoint(5.0, 95.5, "Parah", "https://www.instagram.com/p/A/")])
    assert len(overlay.areas) == 1
    area = overlay.areas[0]
    assert area.count == 1
    assert area.severity == "Parah"
    assert area.radius_km == MIN_AREA_RADIUS_KM
    assert area.label == "Area Terisolasi"
    assert len(overlay.highlights) == 1
    assert overlay.highlights[0].radius_km == HIGHLIGHT_RADIUS_KM
    assert overlay.highlights[0].post_url == "https://www.instagram.com/p/A/"


def test_nearby_points_merge_with_max_severity() -> None:
    points = [
        MapPoint(5.00, 95.50, "Aman"),
        MapPoint(5.02, 95.50, "Sedang"),
        MapPoint(5.00, 95.53, "Aman"),
    ]
    areas = detect_isolated_areas(points)
    assert len(areas) == 1
    area = areas[0]
    assert area.count == 3
    assert area.severity == "Sedang"
    assert area.label == "Area Terdampak"
    assert math.isclose(area.center.lat, 5.00666666, rel_tol=1e-6)


def test_radius_grows_with_spread() -> None:
    areas = detect_isolated_areas([MapPoint(5.0, 95.5, "Aman"), MapPoint(5.0, 95.54, "Aman")])
    assert len(areas) == 1
    # members sit 0.02 degrees from the centroid
    assert math.isclose(areas[0].radius_km, 0.02 * 111.0, rel_tol=1e-6)


def test_threshold_is_strict() -> None:
    far = detect_isolated_areas([MapPoint(5.0, 95.5, "Aman"), MapPoint(5.0, 96.0, "Aman")], threshold_degrees=0.5)
    assert far == []


def test_membership_is_not_transitive_and_order_dependent() -> None:
    a = MapPoint(5.00, 95.50, "Aman")
    b = MapPoint(5.00, 95.54, "Aman")
    c = MapPoint(5.00, 95.58, "Aman")
    # a seeds and takes b; c is beyond a's radius and stays alone.
    assert [area.count for area in detect_isolated_areas([a, b, c])] == [2]
    # b seeds and takes both.
    assert [area.count for area in detect_isolated_areas([b, a, c])] == [3]


def test_max_severity() -> None:
    assert max_severity(["Aman", None, "Parah", "Sedang"]) == "Parah"
    assert max_severity([]) == "Aman"


def test_circle_polygon_ring() -> None:
    center = GeoPoint(lat=4.0, lng=96.0)
    ring = circle_polygon(center, 2.0)
    assert len(ring) == 37
    assert math.isclose(ring[0].lat, ring[-1].lat, abs_tol=1e-9)
    assert math.isclose(ring[0].lng, ring[-1].lng, abs_tol=1e-9)
    assert math.isclose(ring[9].lat - center.lat, 2.0 / 111.0, rel_tol=1e-6)


def test_points_from_posts_skips_unplaced(store: PostStore) -> None:
    placed = store.create_post(PostCandidate(post_url="https://www.instagram.com/p/A/", latitude=5.0, longitude=95.5))
    store.create_analysis(placed.id, AnalysisResult(severity="Parah"))
    store.create_post(PostCandidate(post_url="https://www.instagram.com/p/B/"))
    points = points_from_posts(store.list_posts_with_analysis())
    assert points == [MapPoint(5.0, 95.5, "Parah", "https://www.instagram.com/p/A/")]
