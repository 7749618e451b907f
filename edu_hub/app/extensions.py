from __future__ import annotations

from flask import Flask, current_app

from .logging import setup_logging
from .services.db_service import get_db
from .services.identity_service import IdentityService
from .services.query_cache import QueryCache
from .services.role_service import RoleCache, RoleResolver
from .services.store_service import TableStore


def get_store() -> TableStore:
    return TableStore(get_db)


def init_extensions(app: Flask) -> None:
    setup_logging(json_output=app.config["LOG_JSON"], log_level=app.config["LOG_LEVEL"])

    identity = IdentityService(get_store)
    roles = RoleCache(max_entries=app.config["ROLE_CACHE_SIZE"])
    identity.on_session_change(roles.on_session_change)

    app.extensions["identity"] = identity
    app.extensions["role_cache"] = roles
    app.extensions["role_resolver"] = RoleResolver(
        get_store,
        identity,
        attempts=app.config["ROLE_RETRY_ATTEMPTS"],
        wait=app.config["ROLE_RETRY_WAIT"],
        max_wait=app.config["ROLE_RETRY_MAX_WAIT"],
    )
    app.extensions["query_cache"] = QueryCache()


def identity() -> IdentityService:
    return current_app.extensions["identity"]


def role_cache() -> RoleCache:
    return current_app.extensions["role_cache"]


def role_resolver() -> RoleResolver:
    return current_app.extensions["role_resolver"]


def query_cache() -> QueryCache:
    return current_app.extensions["query_cache"]
