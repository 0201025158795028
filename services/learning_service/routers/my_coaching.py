from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Form, Query, status
from fastapi.responses import RedirectResponse
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.learning_service.schemas.pages import MyCoachingPage
from services.learning_service.services import my_coaching
from services.learning_service.services.views import parse_id
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["learning-coaching"])
logger = get_logger(__name__)


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def _redirect(code: str, enrollment: Optional[str] = None) -> RedirectResponse:
    return RedirectResponse(
        my_coaching.redirect_target(code, parse_id(enrollment)),
        status_code=status.HTTP_303_SEE_OTHER,
    )


@router.get("/my-coaching", response_model=MyCoachingPage)
async def my_coaching_page(
    enrollment: Optional[str] = Query(None),
    hl_msg: Optional[str] = Query(None),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    return await my_coaching.build_my_coaching_page(
        db, current_user, enrollment_id=parse_id(enrollment), hl_msg=hl_msg
    )


@router.post("/my-coaching/schedule")
async def schedule_session(
    hl_schedule_session_nonce: str = Form(""),
    enrollment_id: Optional[str] = Form(None),
    session_title: Optional[str] = Form(None),
    meeting_url: Optional[str] = Form(None),
    session_datetime: Optional[str] = Form(None),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    code = await my_coaching.schedule_from_form(
        db,
        current_user,
        nonce=hl_schedule_session_nonce,
        enrollment_id=parse_id(enrollment_id),
        session_title=session_title,
        meeting_url=meeting_url,
        session_datetime=_parse_datetime(session_datetime),
    )
    return _redirect(code, enrollment_id)


@router.post("/my-coaching/cancel")
async def cancel_session(
    hl_cancel_session_nonce: str = Form(""),
    session_id: Optional[str] = Form(None),
    enrollment_id: Optional[str] = Form(None),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    code = await my_coaching.cancel_from_form(
        db, current_user, nonce=hl_cancel_session_nonce, session_id=parse_id(session_id)
    )
    return _redirect(code, enrollment_id)


@router.post("/my-coaching/reschedule")
async def reschedule_session(
    hl_reschedule_session_nonce: str = Form(""),
    session_id: Optional[str] = Form(None),
    new_datetime: Optional[str] = Form(None),
    enrollment_id: Optional[str] = Form(None),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    code = await my_coaching.reschedule_from_form(
        db,
        current_user,
        nonce=hl_reschedule_session_nonce,
        session_id=parse_id(session_id),
        new_datetime=_parse_datetime(new_datetime),
    )
    return _redirect(code, enrollment_id)
