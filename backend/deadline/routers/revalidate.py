"""On-demand cache revalidation of the public website."""

from typing import Any

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from deadline.auth import api_key_matches, request_api_key
from deadline.config import Settings, get_settings
from deadline.dependencies import get_revalidator
from deadline.models import utcnow
from deadline.routers.search import parse_event_id, read_json_body
from deadline.services.revalidation import EVENTS_LIST_TAG, CacheRevalidator, event_tags

router = APIRouter(tags=["revalidate"])


def is_truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)


async def revalidate(request: Request, revalidator: CacheRevalidator, settings: Settings) -> JSONResponse:
    body = await read_json_body(request)
    if not api_key_matches(request_api_key(request, body), settings):
        return JSONResponse(
            {"success": False, "message": "Invalid API key"},
            status_code=status.HTTP_401_UNAUTHORIZED,
        )

    source = request.query_params if request.method == "GET" else body
    event_id = parse_event_id(source.get("event_id"))
    revalidate_main = is_truthy(source.get("revalidate_main"))

    tags: list[str] = []
    message = ""
    if event_id is not None:
        tags.extend(event_tags(event_id))
        message = f"Cache revalidated for event {event_id}"
    if revalidate_main:
        tags.append(EVENTS_LIST_TAG)
        message = (
            f"Cache revalidated for event {event_id} and main events list"
            if event_id is not None
            else "Cache revalidated for main events list"
        )

    if not tags:
        return JSONResponse(
            {"success": False, "message": "Missing event_id or revalidate_main parameter"},
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    if not await revalidator.revalidate(tags):
        return JSONResponse(
            {"success": False, "message": "Failed to revalidate cache"},
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    return JSONResponse(
        {
            "success": True,
            "message": message,
            "revalidated": True,
            "tags": tags,
            "timestamp": utcnow().isoformat(),
        }
    )


@router.get("/revalidate")
async def revalidate_get(
    request: Request,
    revalidator: CacheRevalidator = Depends(get_revalidator),
    settings: Settings = Depends(get_settings),
):
    return await revalidate(request, revalidator, settings)


@router.post("/revalidate")
async def revalidate_post(
    request: Request,
    revalidator: CacheRevalidator = Depends(get_revalidator),
    settings: Settings = Depends(get_settings),
):
    return await revalidate(request, revalidator, settings)
