"""Structured event extraction: scraped articles -> LLM -> event details JSON."""

import json
from typing import Any

from loguru import logger

from deadline.exceptions import LLMResponseError
from deadline.services.content_extractor import ScrapedArticle
from deadline.services.extraction_schemas import backfill_required_fields
from deadline.services.llm import LLMProvider
from deadline.services.search import SearchResult


MAX_ARTICLES = 15
MAX_ARTICLE_CHARS = 3500
MAX_SNIPPETS = 10


EVENT_DETAILS_SCHEMA = """{
  "title": "30-40 word title: all accused names/organizations (or their count if 3+), all victim names (or their count if 3+), and what happened.",

  "headline": "25-35 word headline. Lead with the most newsworthy element, active voice, strong verbs. NO location.",

  "location": "Complete address: venue, area, city, district, state",

  "details": {
    "overview": "600-800 word narrative in a single paragraph: background, parties, chronology, consequences, legal proceedings, status, implications. Use **bold** 2-3 times max for key words (2-3 words each).",
    "keyPoints": [
      {"label": "1-2 words", "value": "Max 9 words with exact facts"}
    ]
  },

  "accused": {
    "individuals": [
      {
        "name": "Full accurate name (REQUIRED, first field)",
        "summary": "3-4 compact sentences: aliases, age, occupation/employer, role in the incident, actions, relationship to victims, history, custody status.",
        "details": [{"label": "Accused", "value": "Accused party information"}]
      }
    ],
    "organizations": [
      {
        "name": "Full organization name (REQUIRED, first field, include count if a group)",
        "summary": "3-4 compact sentences: type, jurisdiction, leadership, role, failures, violations, response.",
        "details": [{"label": "Accused", "value": "Accused party information"}]
      }
    ]
  },

  "victims": {
    "individuals": [
      {
        "name": "Full name or description (REQUIRED, first field)",
        "summary": "3-4 sentences: age/gender, occupation, relationship to accused, harm suffered, treatment, condition, family impact, compensation.",
        "details": [{"label": "Victim", "value": "Victim party information"}]
      }
    ],
    "groups": [
      {
        "name": "Group description (REQUIRED, first field, include count)",
        "summary": "3-4 compact sentences: size, composition, community, collective harm, legal action, support.",
        "details": [{"label": "Victims", "value": "Victim party information"}]
      }
    ]
  },

  "timeline": [
    {
      "date": "March 15, 2024",
      "context": "15-25 words",
      "events": [
        {
          "time": "2:30 PM",
          "description": "150-200 words: actions, people and roles, venue, evidence, statements, legal filings, amounts, official responses, aftermath.",
          "participants": "Name (Role, Age, Occupation), ...",
          "evidence": "Exhaustive list with specifics"
        }
      ]
    }
  ]
}"""


def build_analysis_prompt(query: str, article_content: str, top_snippets: str) -> str:
    """Build the details extraction prompt."""
    return f"""Extract verified facts about: "{query}"

Return ONLY valid JSON (no markdown, no code blocks, no text). Start with {{ and end with }}.

FORMATTING RULES:
- Use exact numbers, complete names and titles, full statute sections, exact currency symbols (₹, Rs, $), precise dates and times
- Escape all quotes with a backslash
- Include ONLY information present in the sources; skip what is unavailable
- Each fact appears once, in its most logical place
- **bold** only in overview (2-3 instances for key words, names, facts, amounts or crimes) and once per party summary
- NO bold in title, headline or any other field
- For groups, include the count in the name field
- keyPoints: 4-6 facts NOT already in the overview
- Party details: 2-3 label/value pairs NOT already in the summary
- Timeline: chronological, one entry per date; critical dates 4-6 events, routine dates 1-2

JSON STRUCTURE:

{EVENT_DETAILS_SCHEMA}

SOURCES:
{top_snippets}

ARTICLES:
{article_content}

Return ONLY JSON starting with {{ and ending with }}."""


def format_articles(articles: list[ScrapedArticle]) -> str:
    """Rank articles by content length and render the top ones for the prompt."""
    ranked = sorted(articles, key=lambda a: len(a.content), reverse=True)[:MAX_ARTICLES]
    blocks = []
    for index, article in enumerate(ranked, start=1):
        blocks.append(
            f"=== ARTICLE {index}: {article.source.upper()} ===\n"
            f"Title: {article.title}\n"
            f"URL: {article.url}\n"
            f"Content: {article.content[:MAX_ARTICLE_CHARS]}\n"
            "---"
        )
    return "\n\n".join(blocks)


def format_snippets(results: list[SearchResult]) -> str:
    """Render the top search snippets as corroborating context."""
    return "\n".join(
        f"{index}. [{result.display_link}] {result.title}: {result.snippet}"
        for index, result in enumerate(results[:MAX_SNIPPETS], start=1)
    )


def parse_llm_json(response: str) -> dict[str, Any]:
    """
    Parse a JSON object out of a model response.

    Models sometimes wrap the object in prose or code fences, so the text
    between the first "{" and the last "}" is parsed.
    """
    cleaned = (response or "").strip()
    start = cleaned.find("{")
    end = cleaned.rfind("}") + 1

    if start == -1 or end == 0 or end <= start:
        logger.error(f"[LLM] No JSON object in response: {cleaned[:500]}")
        raise LLMResponseError("Invalid JSON response from LLM - no JSON object found")

    json_string = cleaned[start:end]
    try:
        parsed = json.loads(json_string)
    except json.JSONDecodeError as e:
        logger.error(f"[LLM] Invalid JSON from LLM: {json_string[:500]}")
        raise LLMResponseError(f"Invalid JSON format from LLM response: {e}") from e

    if not isinstance(parsed, dict):
        raise LLMResponseError("LLM response JSON is not an object")

    return parsed


class EventExtractionClient:
    """Turns scraped articles and search snippets into structured event data."""

    def __init__(self, llm: LLMProvider):
        self.llm = llm

    async def extract(
        self,
        articles: list[ScrapedArticle],
        search_results: list[SearchResult],
        query: str,
    ) -> dict[str, Any]:
        """
        Extract structured event data.

        Raises:
            LLMResponseError: if the response holds no parseable JSON object.
        """
        prompt = build_analysis_prompt(
            query,
            format_articles(articles),
            format_snippets(search_results),
        )
        logger.info(f"[EXTRACT] Prompt built from {min(len(articles), MAX_ARTICLES)} articles ({len(prompt)} chars)")

        response = await self.llm.complete(prompt)
        data = backfill_required_fields(parse_llm_json(response))

        logger.info(f"[EXTRACT] Parsed fields: {', '.join(sorted(data))}")
        return data
