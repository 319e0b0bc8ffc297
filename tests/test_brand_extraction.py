from __future__ import annotations

import pytest

from canvas_studio.brand_extraction import parse_extracted_guide, summarize_page
from canvas_studio.errors import ApiError

PAGE = """<!doctype html>
<html>
<head>
  <title>Acme &amp; Co</title>
  <meta name="description" content="Rockets, delivered.">
  <meta name="theme-color" content="#0EA5E9">
  <meta property="og:site_name" content="Acme">
  <style>body { color: #333; background: #FFFFFF } a { color: #0ea5e9 } b { color: #0ea5e9 }</style>
  <script>var secret = "do not send";</script>
</head>
<body><h1>Fast   rockets</h1><p>For everyone.</p></body>
</html>"""


def test_summarize_page_collects_brand_signals() -> None:
    text, raw = summarize_page(PAGE)

    assert raw["title"] == "Acme & Co"
    assert raw["description"] == "Rockets, delivered."
    assert raw["siteName"] == "Acme"
    assert raw["colors"][0] == "#0ea5e9"
    assert set(raw["colors"]) == {"#0ea5e9", "#333333", "#ffffff"}
    assert "Fast rockets For everyone." in text
    assert "do not send" not in text


def test_parse_fills_every_section() -> None:
    reply = '{"name": "Acme", "colors": {"primary": ["#aabbcc", {"hex": "nope"}], "forbidden": "no red"}}'
    guide = parse_extracted_guide(reply, "image")

    assert guide["colors"]["primary"] == [{"hex": "#AABBCC", "name": ""}]
    assert guide["colors"]["forbidden"] == ["no red"]
    assert guide["colors"]["secondary"] == []
    assert guide["visualStyle"] == {"styleKeywords": [], "mood": [], "description": "", "avoidKeywords": []}
    assert guide["metadata"]["extractedFrom"] == "image"
    assert "sourceUrl" not in guide


def test_parse_tolerates_prose_around_json() -> None:
    reply = 'Here is the guide:\n{"name": "Acme", "industry": "Aerospace"}\nHope that helps!'
    guide = parse_extracted_guide(reply, "url", source_url="https://acme.example")
    assert guide["industry"] == "Aerospace"
    assert guide["sourceUrl"] == "https://acme.example"


def test_brand_name_overrides_extracted_name() -> None:
    assert parse_extracted_guide('{"name": "ACME INC"}', "image", brand_name="Acme")["name"] == "Acme"


@pytest.mark.parametrize("reply", ["no json here", "[1, 2]", '{"description": "nameless"}', None])
def test_unusable_reply_is_extraction_failure(reply: str | None) -> None:
    with pytest.raises(ApiError) as exc:
        parse_extracted_guide(reply, "image")
    assert exc.value.code == "EXTRACTION_FAILED"
    assert exc.value.status_code == 422
