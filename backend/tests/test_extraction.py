"""Tests for LLM event extraction: prompt building, JSON parsing and backfill."""

import json

import pytest

from conftest import FakeLLM, make_result
from deadline.exceptions import LLMResponseError
from deadline.services.content_extractor import ScrapedArticle
from deadline.services.extraction import (
    MAX_ARTICLE_CHARS,
    EventExtractionClient,
    format_articles,
    parse_llm_json,
)
from deadline.services.extraction_schemas import backfill_required_fields


def article(index: int, length: int) -> ScrapedArticle:
    return ScrapedArticle(
        url=f"https://site{index}.com/story",
        title=f"Story {index}",
        content=f"A{index}-" + "x" * length,
        source=f"site{index}.com",
    )


class TestParseLLMJson:
    def test_plain_object(self):
        assert parse_llm_json('{"location": "Dhaka"}') == {"location": "Dhaka"}

    def test_object_wrapped_in_prose_and_fences(self):
        response = 'Here is the JSON:\n```json\n{"location": "Dhaka", "timeline": []}\n```\nDone.'
        assert parse_llm_json(response) == {"location": "Dhaka", "timeline": []}

    def test_no_object_raises(self):
        with pytest.raises(LLMResponseError):
            parse_llm_json("I could not find anything.")

    def test_invalid_json_raises(self):
        with pytest.raises(LLMResponseError):
            parse_llm_json('{"location": "Dhaka",}')

    def test_empty_response_raises(self):
        with pytest.raises(LLMResponseError):
            parse_llm_json("")


class TestBackfill:
    def test_missing_victims_gets_empty_default(self):
        data = backfill_required_fields({"location": "Dhaka"})

        assert data["victims"] == {"individuals": [], "groups": []}
        assert data["accused"] == {"individuals": [], "organizations": []}
        assert data["details"] == {"overview": "", "keyPoints": []}
        assert data["timeline"] == []
        assert data["title"] == ""
        assert data["headline"] == ""
        assert data["location"] == "Dhaka"

    def test_nested_keys_backfilled_and_values_kept(self):
        data = backfill_required_fields({
            "accused": {"individuals": [{"name": "R. Khan"}]},
            "details": {"overview": "Narrative"},
        })

        assert data["accused"] == {"individuals": [{"name": "R. Khan"}], "organizations": []}
        assert data["details"] == {"overview": "Narrative", "keyPoints": []}

    def test_null_fields_replaced(self):
        assert backfill_required_fields({"timeline": None})["timeline"] == []

    def test_defaults_are_not_shared(self):
        first = backfill_required_fields({})
        first["victims"]["individuals"].append({"name": "X"})

        assert backfill_required_fields({})["victims"]["individuals"] == []


def test_format_articles_ranks_by_length_and_caps():
    articles = [article(i, 100 * i) for i in range(1, 21)]
    rendered = format_articles(articles)

    # 15 longest, longest first
    assert rendered.count("=== ARTICLE") == 15
    assert rendered.index("A20-") < rendered.index("A19-")
    assert "A5-" not in rendered
    assert "x" * (MAX_ARTICLE_CHARS + 1) not in rendered


@pytest.mark.asyncio
async def test_extract_builds_prompt_and_backfills():
    llm = FakeLLM(text="Sure!\n" + json.dumps({"headline": "Fire kills 12", "location": "Mirpur, Dhaka"}))
    client = EventExtractionClient(llm)

    data = await client.extract(
        [article(1, 500)],
        [make_result("https://site1.com/story")],
        "mirpur factory fire",
    )

    assert data["headline"] == "Fire kills 12"
    assert data["victims"] == {"individuals": [], "groups": []}
    prompt = llm.prompts[0]
    assert 'Extract verified facts about: "mirpur factory fire"' in prompt
    assert "Snippet for https://site1.com/story" in prompt
    assert "=== ARTICLE 1: SITE1.COM ===" in prompt


@pytest.mark.asyncio
async def test_extract_propagates_parse_failure():
    client = EventExtractionClient(FakeLLM(text="no json here"))

    with pytest.raises(LLMResponseError):
        await client.extract([article(1, 500)], [], "q")
