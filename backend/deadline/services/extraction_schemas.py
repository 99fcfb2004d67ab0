"""Schemas for LLM extraction output: event details defaults and update analysis."""

import copy
from typing import Any

from pydantic import BaseModel, Field


# ---- Event details (free-form JSON, backfilled to a fixed shape) ----

EMPTY_OVERVIEW = {"overview": "", "keyPoints": []}
EMPTY_ACCUSED = {"individuals": [], "organizations": []}
EMPTY_VICTIMS = {"individuals": [], "groups": []}

# Every top-level field the details prompt asks for, with its empty default
REQUIRED_FIELD_DEFAULTS: dict[str, Any] = {
    "title": "",
    "headline": "",
    "location": "",
    "details": EMPTY_OVERVIEW,
    "accused": EMPTY_ACCUSED,
    "victims": EMPTY_VICTIMS,
    "timeline": [],
}


def backfill_required_fields(data: dict[str, Any]) -> dict[str, Any]:
    """
    Fill in every required field missing from an LLM response.

    Missing top-level fields get their empty default; dict-shaped fields that
    are present also get any missing sub-keys. Existing values are kept as is.
    """
    result = dict(data)
    for field, default in REQUIRED_FIELD_DEFAULTS.items():
        value = result.get(field)
        if field not in result or value is None:
            result[field] = copy.deepcopy(default)
        elif isinstance(default, dict) and isinstance(value, dict):
            merged = dict(value)
            for key, sub_default in default.items():
                merged.setdefault(key, copy.deepcopy(sub_default))
            result[field] = merged
    return result


# ---- Update analysis (validated by instructor) ----


class DateUpdate(BaseModel):
    """One development of the case, grouped by publication date.

    Fields are optional so an incomplete entry can be dropped on its own
    instead of failing the whole response.
    """

    date: str | None = Field(
        None,
        description="Publication date of the articles this update summarizes, YYYY-MM-DD.",
    )
    title: str | None = Field(
        None,
        description="Specific, newsworthy description of what happened (not the case name).",
    )
    description: str | None = Field(
        None,
        description=(
            "2-4 compact sentences with the key facts, numbers, names and outcomes. "
            "Use **bold** exactly once on a 2-3 word key phrase."
        ),
    )


class UpdateAnalysis(BaseModel):
    """LLM verdict on the new articles found for an event."""

    status: str = Field(
        "Injustice",
        description='"Justice" only if the articles clearly state justice was delivered, otherwise "Injustice".',
    )
    updates: list[DateUpdate] = Field(
        default_factory=list,
        description="One update per publication date, oldest first.",
    )
