"""Operator endpoints that run the enrichment pipeline synchronously."""

import json
from typing import Any

from fastapi import APIRouter, Depends, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from loguru import logger

from deadline.auth import api_key_matches, request_api_key
from deadline.config import Settings, get_settings
from deadline.dependencies import get_detail_pipeline, get_update_detector
from deadline.exceptions import EventNotFound, UpdateExtractionFailed
from deadline.services.details import DetailExtractionPipeline, DetailExtractionResult
from deadline.services.updates import UpdateDetector, UpdateOutcome, UpdateResult

router = APIRouter(prefix="/search", tags=["search"])

DETAILS_ERROR = "Internal server error during detailed event analysis"


async def read_json_body(request: Request) -> dict[str, Any]:
    """JSON object body of a POST request; anything else reads as empty."""
    if request.method != "POST":
        return {}
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return {}
    return body if isinstance(body, dict) else {}


def request_event_id(request: Request, body: dict[str, Any]) -> Any:
    if request.method == "GET":
        return request.query_params.get("event_id")
    return body.get("event_id")


def parse_event_id(value: Any) -> int | None:
    """Positive integer event id, or None if the value is not one."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip()) or None
    return None


def validate_request(
    request: Request,
    body: dict[str, Any],
    settings: Settings,
    extra: dict[str, Any] | None = None,
) -> int | JSONResponse:
    """
    Authenticate, then validate event_id.

    Returns the event id, or the 401/400 response to send back.
    """
    extra = extra or {}
    if not api_key_matches(request_api_key(request, body), settings):
        return JSONResponse(
            {"error": "Unauthorized: Invalid API key", **extra},
            status_code=status.HTTP_401_UNAUTHORIZED,
        )

    raw_event_id = request_event_id(request, body)
    if raw_event_id is None or raw_event_id == "":
        return JSONResponse(
            {"error": "event_id is required", **extra},
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    event_id = parse_event_id(raw_event_id)
    if event_id is None:
        return JSONResponse(
            {"error": "event_id must be a valid number", **extra},
            status_code=status.HTTP_400_BAD_REQUEST,
        )
    return event_id


# =============================================================================
# DETAILS
# =============================================================================


def details_get_body(result: DetailExtractionResult) -> dict[str, Any]:
    return {
        "success": True,
        "message": "Event analyzed and saved successfully with detailed information",
        "event_id": result.event_id,
        "event_title": result.event_title,
        "query_used": result.query_used,
        "articles_scraped": result.articles_scraped,
        "images_found": result.images_found,
        "sources_analyzed": result.sources_analyzed,
        "analysis_summary": {
            "location": result.data.get("location", ""),
            "accused_count": result.party_count("accused"),
            "victims_count": result.party_count("victims"),
            "timeline_events": len(result.data.get("timeline") or []),
            "details_length": result.details_length,
            "total_content_analyzed": result.total_content_analyzed,
        },
    }


def details_post_body(result: DetailExtractionResult) -> dict[str, Any]:
    return {
        "success": True,
        "event_id": result.event_id,
        "event_title": result.event_title,
        "query_used": result.query_used,
        "data": result.data,
        "articles_scraped": result.articles_scraped,
        "images_found": result.images_found,
        "sources_analyzed": result.sources_analyzed,
        "details_length": result.details_length,
    }


async def run_details(
    request: Request,
    pipeline: DetailExtractionPipeline,
    settings: Settings,
) -> JSONResponse:
    body = await read_json_body(request)
    validated = validate_request(request, body, settings)
    if isinstance(validated, JSONResponse):
        return validated
    event_id = validated

    try:
        result = await pipeline.run(event_id)
    except EventNotFound as e:
        return JSONResponse(
            {"error": "Event not found", "details": str(e)},
            status_code=status.HTTP_404_NOT_FOUND,
        )
    except Exception as e:
        logger.exception(f"[DETAILS] Event {event_id} failed: {e}")
        return JSONResponse(
            {"error": DETAILS_ERROR, "details": str(e)},
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    body_builder = details_get_body if request.method == "GET" else details_post_body
    return JSONResponse(jsonable_encoder(body_builder(result)))


@router.get("/details")
async def extract_details_get(
    request: Request,
    pipeline: DetailExtractionPipeline = Depends(get_detail_pipeline),
    settings: Settings = Depends(get_settings),
):
    """Run detail extraction for `event_id` (query parameters)."""
    return await run_details(request, pipeline, settings)


@router.post("/details")
async def extract_details_post(
    request: Request,
    pipeline: DetailExtractionPipeline = Depends(get_detail_pipeline),
    settings: Settings = Depends(get_settings),
):
    """Run detail extraction for `event_id` (JSON body)."""
    return await run_details(request, pipeline, settings)


# =============================================================================
# UPDATES
# =============================================================================


def updates_body(result: UpdateResult) -> dict[str, Any]:
    debug = result.debug.model_dump(mode="json")

    if result.outcome == UpdateOutcome.no_new_updates:
        return {
            "message": "No new updates found since last update",
            "last_updated": result.last_updated,
            "total_search_results": result.total_search_results,
            "new_articles_found": 0,
            "debug": debug,
        }

    return {
        "success": True,
        "message": f"{len(result.updates)} updates created successfully",
        "updates": [record.model_dump() for record in result.updates],
        "analysis": result.analysis.model_dump() if result.analysis else None,
        "status": result.status,
        "last_updated": result.last_updated,
        "new_articles_processed": result.new_articles_processed,
        "total_search_results": result.total_search_results,
        "updates_by_date": len(result.updates),
        "debug": debug,
    }


async def run_updates(
    request: Request,
    detector: UpdateDetector,
    settings: Settings,
) -> JSONResponse:
    body = await read_json_body(request)
    validated = validate_request(request, body, settings, {"debug": detector.debug.model_dump(mode="json")})
    if isinstance(validated, JSONResponse):
        return validated
    event_id = validated

    try:
        result = await detector.run(event_id)
    except EventNotFound as e:
        return JSONResponse(
            {"error": "Event not found", "details": str(e), "debug": detector.debug.model_dump(mode="json")},
            status_code=status.HTTP_404_NOT_FOUND,
        )
    except UpdateExtractionFailed as e:
        logger.error(f"[UPDATES] Event {event_id}: {e}")
        return JSONResponse(
            {
                "error": "Update extraction failed despite new articles",
                "details": str(e),
                "debug": detector.debug.model_dump(mode="json"),
            },
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
    except Exception as e:
        logger.exception(f"[UPDATES] Event {event_id} failed: {e}")
        return JSONResponse(
            {"error": "Internal server error", "details": str(e), "debug": detector.debug.model_dump(mode="json")},
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    return JSONResponse(jsonable_encoder(updates_body(result)))


@router.get("/updates")
async def detect_updates_get(
    request: Request,
    detector: UpdateDetector = Depends(get_update_detector),
    settings: Settings = Depends(get_settings),
):
    """Run the update detector for `event_id` (query parameters)."""
    return await run_updates(request, detector, settings)


@router.post("/updates")
async def detect_updates_post(
    request: Request,
    detector: UpdateDetector = Depends(get_update_detector),
    settings: Settings = Depends(get_settings),
):
    """Run the update detector for `event_id` (JSON body)."""
    return await run_updates(request, detector, settings)
