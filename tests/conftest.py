from typing import Callable

import pytest

from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from services.learning_service.app.main import app
from services.learning_service.services import integrations


@pytest.fixture(autouse=True)
def no_external_calls(monkeypatch):
    """
    Keep tests off the network: the course platform and form builder are
    replaced with fixed answers. Tests that care can patch again.
    """

    async def _course_progress(user_id, course_id):
        return 0.0

    async def _course_url(course_id):
        return f"https://courses.test/course/{course_id}"

    async def _form_embed(form_id, hidden_fields):
        return f"<form data-form-id='{form_id}'></form>"

    monkeypatch.setattr(integrations, "get_course_progress_percent", _course_progress)
    monkeypatch.setattr(integrations, "get_course_url", _course_url)
    monkeypatch.setattr(integrations, "get_form_embed", _form_embed)


@pytest.fixture
def as_user() -> Callable[..., AuthUser]:
    """
    Switch the authenticated caller for API tests.

    Usage:
        user = as_user("teacher-1")
        admin = as_user("admin-1", role="admin")
    """

    def _login(user_id: str, role: str = "authenticated", **extra) -> AuthUser:
        user = AuthUser(user_id=user_id, role=role, **extra)
        app.dependency_overrides[get_current_user] = lambda: user
        return user

    yield _login
    app.dependency_overrides.pop(get_current_user, None)
