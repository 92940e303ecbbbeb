from __future__ import annotations

import logging
import secrets
from pathlib import Path
from typing import Annotated, Any

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile, status
from fastapi.responses import JSONResponse, RedirectResponse, Response
from fastapi.templating import Jinja2Templates
from pydantic import ValidationError as PydanticValidationError
from starlette.concurrency import run_in_threadpool

from oceanus.domain.access import (
    ACCESS_DENIED_PATH,
    LOGIN_PATH,
    PUBLIC_PATHS,
    ROOT_PATH,
    ROUTES_BY_PATH,
    RouteOutcome,
    authorize,
    landing_path,
    normalize_path,
    visible_routes,
)
from oceanus.domain.errors import AuthError, NotFoundError, ValidationError
from oceanus.domain.models import LoginRequest, ReportCreate, ReportFormat, SessionState, UploadRequest
from oceanus.domain.state_machine import DatasetStatus
from oceanus.infra.audit import list_audit_logs, set_audit_context
from oceanus.infra.events import list_events
from oceanus.services.ai_service import AiService
from oceanus.services.dashboard_service import DashboardService
from oceanus.services.dataset_service import DatasetService
from oceanus.services.identity_service import IdentityService
from oceanus.services.reporting_service import ReportingService
from oceanus.services.session_store import SessionStore
from oceanus.services.taxonomy_service import TaxonomyService

logger = logging.getLogger(__name__)

router = APIRouter()
templates = Jinja2Templates(directory=str(Path(__file__).resolve().parents[2] / "web" / "templates"))

SESSION_COOKIE_NAME = "oceanus_session"
CSRF_COOKIE_NAME = "oceanus_csrf"
CSRF_MAX_AGE_SECONDS = 60 * 60 * 8
UPLOAD_TYPES = ("Ocean Data", "Fish Data", "Otolith Data", "eDNA")


def get_session_store(request: Request) -> SessionStore:
    return SessionStore(request.cookies.get(SESSION_COOKIE_NAME))


Store = Annotated[SessionStore, Depends(get_session_store)]


def _new_csrf_token() -> str:
    return secrets.token_urlsafe(24)


def _set_session_cookie(response: Response, session_id: str, max_age: int) -> None:
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=session_id,
        httponly=True,
        samesite="lax",
        max_age=max_age,
        path="/",
    )


def _clear_session_cookie(response: Response) -> None:
    response.delete_cookie(key=SESSION_COOKIE_NAME, path="/")


def _set_csrf_cookie(response: Response, csrf_token: str) -> None:
    response.set_cookie(
        key=CSRF_COOKIE_NAME,
        value=csrf_token,
        httponly=False,
        samesite="strict",
        max_age=CSRF_MAX_AGE_SECONDS,
        path="/",
    )


def _verify_csrf(request: Request, csrf_token: str) -> None:
    csrf_cookie = request.cookies.get(CSRF_COOKIE_NAME)
    if not csrf_cookie or not csrf_token:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="invalid csrf token")
    if not secrets.compare_digest(csrf_cookie, csrf_token):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="invalid csrf token")


def _redirect(target: str, *, clear_session: bool = False) -> RedirectResponse:
    response = RedirectResponse(url=target, status_code=status.HTTP_303_SEE_OTHER)
    if clear_session:
        _clear_session_cookie(response)
    return response


def _render(
    request: Request,
    *,
    template_name: str,
    context: dict[str, Any],
    status_code: int = status.HTTP_200_OK,
) -> Response:
    csrf_token = request.cookies.get(CSRF_COOKIE_NAME) or _new_csrf_token()
    response = templates.TemplateResponse(
        request=request,
        name=template_name,
        context={**context, "csrf_token": csrf_token},
        status_code=status_code,
    )
    if not request.cookies.get(CSRF_COOKIE_NAME):
        _set_csrf_cookie(response, csrf_token)
    return response


def _render_page(
    request: Request,
    session: SessionState,
    *,
    template_name: str,
    title: str,
    status_code: int = status.HTTP_200_OK,
    **extra: Any,
) -> Response:
    active_path = request.url.path
    nav_items = [
        {"path": item.path, "label": item.label, "active": item.path == active_path}
        for item in visible_routes(session.role)
    ]
    context: dict[str, Any] = {
        "page_title": title,
        "user": session.user,
        "nav_items": nav_items,
        "breadcrumbs": [title],
    }
    context.update(extra)
    return _render(request, template_name=template_name, context=context, status_code=status_code)


def _render_not_found(request: Request) -> Response:
    return _render(
        request,
        template_name="not_found.html",
        context={"page_title": "Page not found", "path": request.url.path},
        status_code=status.HTTP_404_NOT_FOUND,
    )


def _guard(request: Request, store: SessionStore, path: str | None = None) -> tuple[SessionState, Response | None]:
    session = store.get()
    decision = authorize(session, path or request.url.path)
    if decision.outcome == RouteOutcome.NOT_FOUND:
        return session, _render_not_found(request)
    if session.user is not None:
        request.state.claims = {"sub": session.user.id, "role": session.user.role}
    if decision.outcome == RouteOutcome.REDIRECT:
        if decision.target == ACCESS_DENIED_PATH:
            set_audit_context(
                request,
                action="console.access_denied",
                resource=normalize_path(path or request.url.path),
            )
        stale_cookie = not session.is_authenticated and store.session_id is not None
        return session, _redirect(decision.target, clear_session=stale_cookie)
    return session, None


def _render_login(
    request: Request,
    *,
    email: str = "",
    error_message: str | None = None,
    status_code: int = status.HTTP_200_OK,
) -> Response:
    return _render(
        request,
        template_name="login.html",
        context={"page_title": "Sign in", "email": email, "error_message": error_message},
        status_code=status_code,
    )


@router.get(ROOT_PATH)
def ui_root(request: Request, store: Store) -> Response:
    _, response = _guard(request, store, ROOT_PATH)
    if response is None:
        return _redirect(LOGIN_PATH)
    return response


@router.get(LOGIN_PATH)
def ui_login(request: Request, store: Store) -> Response:
    session = store.get()
    if session.is_authenticated:
        return _redirect(landing_path(session.role))
    return _render_login(request)


@router.post(LOGIN_PATH)
def ui_login_submit(
    request: Request,
    store: Store,
    email: str = Form(default=""),
    password: str = Form(default=""),
    remember_me: bool = Form(default=False),
    csrf_token: str = Form(default=""),
) -> Response:
    try:
        _verify_csrf(request, csrf_token)
    except HTTPException as exc:
        return _render_login(request, email=email, error_message=str(exc.detail), status_code=exc.status_code)

    try:
        payload = LoginRequest(email=email, password=password, remember_me=remember_me)
    except PydanticValidationError:
        return _render_login(
            request,
            email=email,
            error_message="Enter a valid email address and password.",
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    try:
        result = IdentityService().login(payload)
    except AuthError:
        return _render_login(
            request,
            email=email,
            error_message="Invalid credentials",
            status_code=status.HTTP_401_UNAUTHORIZED,
        )

    session_id = store.login(result.token, result.user, expires_in=result.expires_in)
    request.state.claims = {"sub": result.user.id, "role": result.role}
    response = _redirect(landing_path(result.role))
    _set_session_cookie(response, session_id, result.expires_in)
    _set_csrf_cookie(response, _new_csrf_token())
    return response


@router.post("/auth/logout")
def ui_logout(request: Request, store: Store, csrf_token: str = Form(default="")) -> Response:
    _verify_csrf(request, csrf_token)
    store.logout()
    logger.info("console session closed")
    response = _redirect(LOGIN_PATH, clear_session=True)
    _set_csrf_cookie(response, _new_csrf_token())
    return response


@router.get(ACCESS_DENIED_PATH)
def ui_access_denied(request: Request, store: Store) -> Response:
    session = store.get()
    if not session.is_authenticated:
        return _render(
            request,
            template_name="access_denied.html",
            context={"page_title": "Access denied", "home_path": LOGIN_PATH},
            status_code=status.HTTP_403_FORBIDDEN,
        )
    return _render_page(
        request,
        session,
        template_name="access_denied.html",
        title="Access denied",
        home_path=landing_path(session.role),
        status_code=status.HTTP_403_FORBIDDEN,
    )


@router.get("/dashboard")
def ui_dashboard(request: Request, store: Store) -> Response:
    session, denied = _guard(request, store)
    if denied is not None:
        return denied
    return _render_page(
        request,
        session,
        template_name="dashboard.html",
        title=ROUTES_BY_PATH["/dashboard"].label,
        summary=DashboardService().summary(),
    )


@router.get("/upload")
def ui_upload(request: Request, store: Store) -> Response:
    session, denied = _guard(request, store)
    if denied is not None:
        return denied
    return _render_upload(request, session)


def _has_file(item: UploadFile) -> bool:
    return bool(item.filename)


def _render_upload(
    request: Request,
    session: SessionState,
    *,
    form: dict[str, str] | None = None,
    error_message: str | None = None,
    uploaded: Any = None,
    status_code: int = status.HTTP_200_OK,
) -> Response:
    return _render_page(
        request,
        session,
        template_name="upload.html",
        title=ROUTES_BY_PATH["/upload"].label,
        upload_types=UPLOAD_TYPES,
        form=form or {},
        error_message=error_message,
        uploaded=uploaded,
        status_code=status_code,
    )


@router.post("/upload")
def ui_upload_submit(
    request: Request,
    store: Store,
    name: str = Form(default=""),
    dataset_type: str = Form(default=UPLOAD_TYPES[0], alias="type"),
    location: str = Form(default=""),
    description: str = Form(default=""),
    csrf_token: str = Form(default=""),
    files: list[UploadFile] = File(default=[]),
) -> Response:
    session, denied = _guard(request, store, "/upload")
    if denied is not None:
        return denied
    if session.user is None:
        return _redirect(LOGIN_PATH)
    _verify_csrf(request, csrf_token)

    form = {"name": name, "type": dataset_type, "location": location, "description": description}
    selected = [item for item in files if _has_file(item)]
    if not name.strip() or not location.strip() or not selected:
        logger.info("upload form rejected for user %s", session.user.id)
        return _render_upload(
            request,
            session,
            form=form,
            error_message="Please fill in all required fields and select files.",
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    total_bytes = sum(item.size or 0 for item in selected)
    try:
        payload = UploadRequest(
            name=name,
            type=dataset_type,
            location=location,
            size=f"{total_bytes / (1024 * 1024):.1f} MB",
            metadata={"description": description, "files": [item.filename for item in selected]},
        )
        dataset = DatasetService().create_upload(payload, owner_id=session.user.id)
    except (PydanticValidationError, ValidationError):
        logger.info("upload form rejected for user %s", session.user.id)
        return _render_upload(
            request,
            session,
            form=form,
            error_message="Name and location must be at most 200 characters, type at most 64.",
            status_code=status.HTTP_400_BAD_REQUEST,
        )
    return _render_upload(request, session, uploaded=dataset)


@router.get("/explorer")
def ui_explorer(
    request: Request,
    store: Store,
    search: str = Query(default=""),
    dataset_type: str = Query(default="all", alias="type"),
    dataset_status: str = Query(default="all", alias="status"),
    location: str = Query(default="all"),
) -> Response:
    session, denied = _guard(request, store)
    if denied is not None:
        return denied
    status_filter = DatasetStatus(dataset_status) if dataset_status in set(DatasetStatus) else None
    datasets = DatasetService().list_datasets(
        search=search or None,
        dataset_type=None if dataset_type == "all" else dataset_type,
        status=status_filter,
        location=None if location == "all" else location,
    )
    return _render_page(
        request,
        session,
        template_name="explorer.html",
        title=ROUTES_BY_PATH["/explorer"].label,
        datasets=datasets,
        filters={"search": search, "type": dataset_type, "status": dataset_status, "location": location},
        upload_types=UPLOAD_TYPES,
        statuses=[item.value for item in DatasetStatus],
    )


@router.get("/visualize")
def ui_visualize(request: Request, store: Store) -> Response:
    session, denied = _guard(request, store)
    if denied is not None:
        return denied
    return _render_page(
        request,
        session,
        template_name="visualize.html",
        title=ROUTES_BY_PATH["/visualize"].label,
        series=DashboardService().visualization_series(),
    )


@router.get("/ai-tools")
def ui_ai_tools(request: Request, store: Store) -> Response:
    session, denied = _guard(request, store)
    if denied is not None:
        return denied
    return _render_page(request, session, template_name="ai_tools.html", title=ROUTES_BY_PATH["/ai-tools"].label)


@router.post("/ai-tools/dna-match")
def ui_ai_dna_match(
    request: Request,
    store: Store,
    sequence: str = Form(default=""),
    csrf_token: str = Form(default=""),
) -> Response:
    session, denied = _guard(request, store, "/ai-tools")
    if denied is not None:
        return denied
    if session.user is None:
        return _redirect(LOGIN_PATH)
    _verify_csrf(request, csrf_token)
    try:
        result = AiService().dna_match(sequence, user_id=session.user.id)
    except ValidationError as exc:
        return _render_page(
            request,
            session,
            template_name="ai_tools.html",
            title=ROUTES_BY_PATH["/ai-tools"].label,
            error_message=str(exc),
            status_code=status.HTTP_400_BAD_REQUEST,
        )
    return _render_page(
        request,
        session,
        template_name="ai_tools.html",
        title=ROUTES_BY_PATH["/ai-tools"].label,
        dna_result=result,
        sequence=sequence,
    )


@router.post("/ai-tools/species-predict")
async def ui_ai_species_predict(
    request: Request,
    store: Store,
    csrf_token: str = Form(default=""),
    image: UploadFile | None = File(default=None),
) -> Response:
    session, denied = _guard(request, store, "/ai-tools")
    if denied is not None:
        return denied
    if session.user is None:
        return _redirect(LOGIN_PATH)
    _verify_csrf(request, csrf_token)
    image_bytes = await image.read() if image is not None else None
    result = await run_in_threadpool(
        AiService().species_predict,
        image_name=image.filename if image is not None else None,
        image_bytes=image_bytes,
        user_id=session.user.id,
    )
    return _render_page(
        request,
        session,
        template_name="ai_tools.html",
        title=ROUTES_BY_PATH["/ai-tools"].label,
        species_result=result,
    )


@router.get("/taxonomy")
def ui_taxonomy(request: Request, store: Store) -> Response:
    session, denied = _guard(request, store)
    if denied is not None:
        return denied
    service = TaxonomyService()
    return _render_page(
        request,
        session,
        template_name="taxonomy.html",
        title=ROUTES_BY_PATH["/taxonomy"].label,
        tree=service.tree(),
        species_rows=service.species_paths(),
    )


def _render_reports(
    request: Request,
    session: SessionState,
    *,
    error_message: str | None = None,
    generated: Any = None,
    status_code: int = status.HTTP_200_OK,
) -> Response:
    service = ReportingService()
    return _render_page(
        request,
        session,
        template_name="reports.html",
        title=ROUTES_BY_PATH["/reports"].label,
        report_types=service.report_types(),
        reports=service.list_reports(),
        datasets=DatasetService().list_datasets(),
        formats=[item.value for item in ReportFormat],
        error_message=error_message,
        generated=generated,
        status_code=status_code,
    )


@router.get("/reports")
def ui_reports(request: Request, store: Store) -> Response:
    session, denied = _guard(request, store)
    if denied is not None:
        return denied
    return _render_reports(request, session)


@router.post("/reports")
def ui_reports_submit(
    request: Request,
    store: Store,
    report_type: str = Form(default="", alias="type"),
    title: str = Form(default=""),
    report_format: str = Form(default=ReportFormat.PDF.value, alias="format"),
    datasets: list[str] = Form(default=[]),
    csrf_token: str = Form(default=""),
) -> Response:
    session, denied = _guard(request, store, "/reports")
    if denied is not None:
        return denied
    if session.user is None:
        return _redirect(LOGIN_PATH)
    _verify_csrf(request, csrf_token)
    try:
        payload = ReportCreate(type=report_type or None, title=title or None, datasets=datasets, format=report_format)
        report = ReportingService().generate(payload, created_by=session.user.id)
    except PydanticValidationError:
        return _render_reports(
            request,
            session,
            error_message="Unsupported report format.",
            status_code=status.HTTP_400_BAD_REQUEST,
        )
    except ValidationError as exc:
        return _render_reports(request, session, error_message=str(exc), status_code=status.HTTP_400_BAD_REQUEST)
    return _render_reports(request, session, generated=report)


@router.get("/admin")
def ui_admin(request: Request, store: Store, search: str = Query(default="")) -> Response:
    session, denied = _guard(request, store)
    if denied is not None:
        return denied
    datasets = DatasetService().list_datasets()
    status_counts = {item.value: 0 for item in DatasetStatus}
    for item in datasets:
        status_counts[item.status.value] += 1
    return _render_page(
        request,
        session,
        template_name="admin.html",
        title=ROUTES_BY_PATH["/admin"].label,
        users=IdentityService().list_users(search=search or None),
        search=search,
        status_counts=status_counts,
        audit_logs=list_audit_logs(limit=20),
        events=list_events(limit=10),
    )


@router.get("/profile")
def ui_profile(request: Request, store: Store) -> Response:
    session, denied = _guard(request, store)
    if denied is not None:
        return denied
    if session.user is None:
        return _redirect(LOGIN_PATH)
    try:
        user = IdentityService().get_user(session.user.id)
    except NotFoundError:
        # the session outlived its account
        logger.warning("session %s refers to missing user %s", store.session_id, session.user.id)
        store.logout()
        return _redirect(LOGIN_PATH, clear_session=True)
    return _render_page(
        request,
        session,
        template_name="profile.html",
        title=ROUTES_BY_PATH["/profile"].label,
        profile=user,
    )


@router.get("/{unknown_path:path}", include_in_schema=False)
def ui_not_found(request: Request, unknown_path: str) -> Response:
    if unknown_path.startswith("api/"):
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": "Not Found"})
    canonical = normalize_path(request.url.path)
    if canonical != request.url.path and (canonical in ROUTES_BY_PATH or canonical in PUBLIC_PATHS):
        return _redirect(canonical)
    return _render_not_found(request)
