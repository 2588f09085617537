from disaster_map_ingest.llm_utils import (
    extract_gemini_text,
    extract_json_object,
    extract_responses_text,
    strip_wrapping_quotes,
)


def test_extract_json_object_strict_and_fenced() -> None:
    assert extract_json_object('{"severity": "Parah"}') == {"severity": "Parah"}
    assert extract_json_object('```json\n{"severity": "Sedang"}\n```') == {"severity": "Sedang"}


def test_extract_json_object_from_free_text() -> None:
    text = 'Here is the analysis: {"severity": "Aman", "confidence": 0.8} hope it helps'
    assert extract_json_object(text) == {"severity": "Aman", "confidence": 0.8}


def test_extract_json_object_failures_return_none() -> None:
    assert extract_json_object("") is None
    assert extract_json_object("no json here") is None
    assert extract_json_object("{not valid}") is None
    assert extract_json_object("[1, 2]") is None


def test_extract_responses_text() -> None:
    assert extract_responses_text({"output_text": " hi "}) == "hi"
    payload = {"output": [{"content": [{"text": "a"}, {"text": "b"}]}]}
    assert extract_responses_text(payload) == "a\nb"


def test_extract_gemini_text_uses_first_candidate() -> None:
    payload = {
        "candidates": [
            {"content": {"parts": [{"text": "Sukamaju"}]}},
            {"content": {"parts": [{"text": "ignored"}]}},
        ]
    }
    assert extract_gemini_text(payload) == "Sukamaju"


def test_strip_wrapping_quotes() -> None:
    assert strip_wrapping_quotes('  "jalan arnan" ') == "jalan arnan"
    assert strip_wrapping_quotes("`Medan`") == "Medan"


def test_extractors_skip_malformed_blocks() -> None:
    assert extract_responses_text({"output": ["oops"]}) == ""
    assert extract_responses_text({"output": [{"content": ["x", {"text": "ok"}]}]}) == "ok"
    assert extract_responses_text({"output": {"content": []}}) == ""
    assert extract_gemini_text({"candidates": ["oops"]}) == ""
    assert extract_gemini_text({"candidates": [{"content": "text"}, {"content": {"parts": [7, {"text": "Agam"}]}}]}) == "Agam"
