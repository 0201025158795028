"""Clients for the course platform and the form builder.

Both are external services. A failed call is logged and treated as
"nothing known" so a page can still render.
"""

from typing import Optional

import httpx
from libs.common.config import get_settings
from libs.common.logging import get_logger
from libs.common.service_client import internal_get

logger = get_logger(__name__)

CALLING_SERVICE = "learning"


def course_id_from_ref(external_ref: Optional[dict]) -> Optional[int]:
    try:
        course_id = int((external_ref or {}).get("course_id") or 0)
    except (TypeError, ValueError):
        return None
    return course_id or None


# ---------------------------------------------------------------------------
# Course platform
# ---------------------------------------------------------------------------


async def get_course_progress_percent(user_id: str, course_id: int) -> float:
    """Live progress (0-100) of ``user_id`` in a course; 0 when unknown."""
    settings = get_settings()
    try:
        resp = await internal_get(
            service_url=settings.COURSE_PLATFORM_URL,
            path=f"/courses/{course_id}/progress/{user_id}",
            calling_service=CALLING_SERVICE,
        )
    except httpx.HTTPError as exc:
        logger.warning("Course progress lookup failed for course %s: %s", course_id, exc)
        return 0.0
    if resp.status_code != 200:
        return 0.0
    percent = resp.json().get("percent") or 0
    return max(0.0, min(100.0, float(percent)))


async def get_course_url(course_id: int) -> Optional[str]:
    settings = get_settings()
    try:
        resp = await internal_get(
            service_url=settings.COURSE_PLATFORM_URL,
            path=f"/courses/{course_id}",
            calling_service=CALLING_SERVICE,
        )
    except httpx.HTTPError as exc:
        logger.warning("Course permalink lookup failed for course %s: %s", course_id, exc)
        return None
    if resp.status_code != 200:
        return None
    return resp.json().get("url")


# ---------------------------------------------------------------------------
# Form builder
# ---------------------------------------------------------------------------


async def get_form_embed(form_id: int, hidden_fields: dict) -> Optional[str]:
    """Rendered form markup with ``hidden_fields`` pre-filled, or None."""
    settings = get_settings()
    try:
        resp = await internal_get(
            service_url=settings.FORM_BUILDER_URL,
            path=f"/forms/{form_id}/embed",
            calling_service=CALLING_SERVICE,
            params={k: str(v) for k, v in hidden_fields.items() if v is not None},
        )
    except httpx.HTTPError as exc:
        logger.warning("Form embed failed for form %s: %s", form_id, exc)
        return None
    if resp.status_code != 200:
        return None
    return resp.json().get("html")
