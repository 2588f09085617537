from disaster_map_ingest.url_canonical import canonicalize_post_url


def test_strips_tracking_params_and_fragment() -> None:
    url = "http://Instagram.com/p/DCx1yZ/?igsh=abc123&utm_source=ig_web#comments"
    assert canonicalize_post_url(url) == "https://www.instagram.com/p/DCx1yZ/"


def test_profile_scoped_post_link_maps_to_post_path() -> None:
    assert canonicalize_post_url("https://www.instagram.com/kabaraceh/p/DCx1yZ") == (
        "https://www.instagram.com/p/DCx1yZ/"
    )


def test_reel_path_gets_trailing_slash() -> None:
    assert canonicalize_post_url("www.instagram.com/reel/Abc_-9") == "https://www.instagram.com/reel/Abc_-9/"


def test_non_tracking_query_is_kept() -> None:
    assert canonicalize_post_url("https://example.org/a?id=7&fbclid=x") == "https://example.org/a?id=7"
