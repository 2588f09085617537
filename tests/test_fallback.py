from disaster_map_ingest.fallback import Strategy, first_result


def test_first_result_returns_first_non_empty_hit() -> None:
    strategies = [
        Strategy(name="none", run=lambda _v: None),
        Strategy(name="blank", run=lambda _v: "   "),
        Strategy(name="upper", run=lambda v: v.upper()),
        Strategy(name="never", run=lambda _v: "unused"),
    ]
    hit = first_result(strategies, "aceh")
    assert hit is not None
    assert hit.name == "upper"
    assert hit.value == "ACEH"


def test_raising_strategy_is_treated_as_miss() -> None:
    def boom(_value: str) -> str:
        raise RuntimeError("backend down")

    hit = first_result([Strategy("boom", boom), Strategy("ok", lambda v: v)], "Medan")
    assert hit is not None
    assert hit.name == "ok"


def test_all_misses_return_none() -> None:
    assert first_result([Strategy("a", lambda _v: None)], "x") is None
    assert first_result([], "x") is None
