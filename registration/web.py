"""Browser-facing registration form and submission handler."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Optional

import anyio
from fastapi import FastAPI, Request, status
from fastapi.responses import HTMLResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from .config import Settings, load_settings
from .service import RegistrationResult, RegistrationService
from .store import UserStore
from .validation import PASSWORD_MIN_LENGTH, RegistrationError, RegistrationSubmission

TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"
STATIC_DIR = Path(__file__).resolve().parent / "static"

FORM_FIELDS = ("name", "email", "password")

logger = logging.getLogger("registration.web")

_ERROR_STATUS: Dict[RegistrationError, int] = {
    RegistrationError.INVALID_METHOD: status.HTTP_405_METHOD_NOT_ALLOWED,
    RegistrationError.EMAIL_TAKEN: status.HTTP_409_CONFLICT,
    RegistrationError.ENCODING_FAILED: status.HTTP_500_INTERNAL_SERVER_ERROR,
    RegistrationError.SAVE_FAILED: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_for_result(result: RegistrationResult) -> int:
    if result.error is None:
        return status.HTTP_201_CREATED
    return _ERROR_STATUS.get(result.error, status.HTTP_400_BAD_REQUEST)


def create_app(
    *,
    store: Optional[UserStore] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """Create the registration web application."""

    if settings is None:
        settings = load_settings()
    if store is None:
        store = UserStore(settings.store_path)
        store.initialize()

    service = RegistrationService(store)

    app = FastAPI(
        title="User Registration",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=settings.trusted_proxies)
    app.state.store = store
    app.state.service = service
    app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")

    templates = Jinja2Templates(directory=str(TEMPLATE_DIR))
    templates.env.globals["password_min_length"] = PASSWORD_MIN_LENGTH

    def _render_result(request: Request, result: RegistrationResult):
        return templates.TemplateResponse(
            request,
            "result.html",
            {
                "message": result.message,
                "category": "success" if result.ok else "error",
            },
            status_code=status_for_result(result),
        )

    @app.get("/", response_class=HTMLResponse, name="show_form")
    async def show_form(request: Request):
        return templates.TemplateResponse(request, "form.html", {})

    @app.api_route(
        "/register",
        methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
        response_class=HTMLResponse,
        name="register",
    )
    async def register(request: Request):
        fields = {name: "" for name in FORM_FIELDS}
        if request.method == "POST":
            form = await request.form()
            for name in FORM_FIELDS:
                value = form.get(name)
                if isinstance(value, str):
                    fields[name] = value

        submission = RegistrationSubmission(method=request.method, **fields)
        result = await anyio.to_thread.run_sync(service.register, submission)
        if result.error is RegistrationError.INVALID_METHOD:
            logger.warning("Registration endpoint called with %s", request.method)
        return _render_result(request, result)

    return app


__all__ = ["create_app", "status_for_result"]
