from __future__ import annotations

from flask import Blueprint, current_app, redirect, render_template, request, url_for

from ..errors import PortalError, StoreError, ValidationError
from ..extensions import get_store, query_cache
from ..logging import get_logger
from ..models import WEEKDAYS
from ..services.auth_service import faculty_required, get_context, login_required, redirect_with_query
from ..services.repository import (
    EntryRepository,
    ResourceRepository,
    ScholarshipRepository,
    TimetableRepository,
    dashboard_stats,
)
from ..services.schedule_service import group_by_weekday, schedule_class


bp = Blueprint("portal", __name__)

logger = get_logger(__name__)

PAGES = {
    "resources": {
        "repo": ResourceRepository,
        "template": "resources.html",
        "title": "Resources",
        "subtitle": ("Manage learning materials", "Access learning materials"),
        "fields": ("title", "description", "link"),
    },
    "scholarships": {
        "repo": ScholarshipRepository,
        "template": "scholarships.html",
        "title": "Scholarships",
        "subtitle": ("Manage scholarship opportunities", "Explore scholarship opportunities"),
        "fields": ("name", "description", "link"),
    },
    "timetable": {
        "repo": TimetableRepository,
        "template": "timetable.html",
        "title": "Timetable",
        "subtitle": ("Manage class schedules", "View your class schedule"),
        "fields": ("day", "start_time", "end_time", "subject"),
    },
}


def _repo(page: str) -> EntryRepository:
    return PAGES[page]["repo"](get_store(), query_cache())


def _list_url(page: str) -> str:
    return url_for(f"portal.{page}")


def _render_listing(page: str, error: str | None = None, form: dict | None = None, status: int = 200):
    ctx = get_context()
    cfg = PAGES[page]
    rows = None
    load_error = None
    try:
        rows = _repo(page).list()
    except StoreError as e:
        logger.error("listing_failed", page=page, error=str(e))
        load_error = f"Could not load {cfg['title'].lower()}. Please try again."

    extra = {}
    if page == "timetable":
        extra["grouped"] = group_by_weekday(rows or [])
        extra["weekdays"] = WEEKDAYS
        extra["break_minutes"] = current_app.config["BREAK_MINUTES"]

    return (
        render_template(
            cfg["template"],
            page_title=cfg["title"],
            page_subtitle=cfg["subtitle"][0 if ctx.is_faculty else 1],
            active_page=page,
            rows=rows,
            owner_column=cfg["repo"].owner_column,
            load_error=load_error,
            error=error or request.args.get("error"),
            notice=request.args.get("notice"),
            form=form or {},
            **extra,
        ),
        status,
    )


def _create(page: str, added: str):
    ctx = get_context()
    form = {k: (request.form.get(k) or "").strip() for k in PAGES[page]["fields"]}
    repo = _repo(page)
    try:
        if page == "timetable":
            schedule_class(repo, form, ctx.principal, current_app.config["BREAK_MINUTES"])
        else:
            repo.create(form, ctx.principal)
    except ValidationError as e:
        return _render_listing(page, error=str(e), form=form, status=400)
    except PortalError as e:
        return redirect(redirect_with_query(_list_url(page), "error", str(e) or f"Failed to add {repo.noun}"))
    return redirect(redirect_with_query(_list_url(page), "notice", added))


def _delete(page: str, entry_id: str, deleted: str):
    ctx = get_context()
    repo = _repo(page)
    try:
        repo.delete(entry_id, ctx.principal)
    except PortalError as e:
        return redirect(redirect_with_query(_list_url(page), "error", str(e) or f"Failed to delete {repo.noun}"))
    return redirect(redirect_with_query(_list_url(page), "notice", deleted))


@bp.get("/")
@login_required
def dashboard():
    ctx = get_context()
    stats = None
    load_error = None
    try:
        stats = dashboard_stats(get_store(), query_cache())
    except StoreError as e:
        logger.error("dashboard_stats_failed", error=str(e))
        load_error = "Could not load portal statistics."

    welcome_name = (ctx.principal.display_name if ctx.principal else "") or "User"
    return render_template(
        "dashboard.html",
        page_title="Dashboard",
        page_subtitle=(
            "Manage your academic resources and schedules"
            if ctx.is_faculty
            else "Access your learning materials and schedules"
        ),
        active_page="dashboard",
        welcome_name=welcome_name,
        stats=stats,
        load_error=load_error,
    )


@bp.get("/resources")
@login_required
def resources():
    return _render_listing("resources")


@bp.post("/resources/new")
@faculty_required("portal.resources")
def resource_create():
    return _create("resources", "Resource added successfully")


@bp.post("/resources/<entry_id>/delete")
@faculty_required("portal.resources")
def resource_delete(entry_id: str):
    return _delete("resources", entry_id, "Resource deleted successfully")


@bp.get("/scholarships")
@login_required
def scholarships():
    return _render_listing("scholarships")


@bp.post("/scholarships/new")
@faculty_required("portal.scholarships")
def scholarship_create():
    return _create("scholarships", "Scholarship added successfully")


@bp.post("/scholarships/<entry_id>/delete")
@faculty_required("portal.scholarships")
def scholarship_delete(entry_id: str):
    return _delete("scholarships", entry_id, "Scholarship deleted successfully")


@bp.get("/timetable")
@login_required
def timetable():
    return _render_listing("timetable")


@bp.post("/timetable/new")
@faculty_required("portal.timetable")
def timetable_create():
    return _create("timetable", "Class added successfully")


@bp.post("/timetable/<entry_id>/delete")
@faculty_required("portal.timetable")
def timetable_delete(entry_id: str):
    return _delete("timetable", entry_id, "Class deleted successfully")
