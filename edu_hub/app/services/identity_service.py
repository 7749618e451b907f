from __future__ import annotations

import json
import secrets
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from flask import session
from werkzeug.security import check_password_hash, generate_password_hash

from ..errors import AuthenticationError
from ..logging import get_logger
from ..models import Role
from .store_service import TableStore

logger = get_logger(__name__)

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"

SESSION_KEY = "access_token"


def _now_iso() -> str:
    return datetime.utcnow().isoformat(timespec="seconds")


@dataclass(frozen=True)
class Session:
    token: str
    user_id: str
    email: str
    user_metadata: dict = field(default_factory=dict)


SessionListener = Callable[[str, "Session | None"], None]


class IdentityService:
    """Accounts, sign-in sessions and per-user metadata.

    The Flask session cookie only carries the opaque session token; the
    session itself lives in ``auth_sessions`` so signing out revokes it.
    """

    def __init__(self, store_factory: Callable[[], TableStore]):
        self._store_factory = store_factory
        self._listeners: list[SessionListener] = []

    @property
    def store(self) -> TableStore:
        return self._store_factory()

    def on_session_change(self, callback: SessionListener) -> Callable[[], None]:
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _emit(self, event: str, sess: Session | None) -> None:
        for cb in list(self._listeners):
            cb(event, sess)

    def sign_up(self, email: str, password: str, full_name: str, role: str) -> Session:
        email = (email or "").strip().lower()
        full_name = (full_name or "").strip()
        if not email or not password or not full_name:
            raise AuthenticationError("Please fill in all fields.")
        if len(password) < 6:
            raise AuthenticationError("Password must be at least 6 characters.")
        if Role.accepted(role) is None:
            raise AuthenticationError("Please choose student or faculty.")

        store = self.store
        if store.select("auth_users", {"email": email}):
            raise AuthenticationError("An account with this email already exists.")

        user_id = uuid.uuid4().hex
        now = _now_iso()
        metadata = {"full_name": full_name, "role": role}
        store.insert(
            "auth_users",
            {
                "id": user_id,
                "email": email,
                "password_hash": generate_password_hash(password),
                "user_metadata": json.dumps(metadata),
                "created_at": now,
            },
        )
        self.provision_profile(user_id, metadata)
        logger.info("user_signed_up", user_id=user_id, role=role)
        return self.sign_in(email, password)

    def provision_profile(self, user_id: str, metadata: dict) -> None:
        """Create the profile row that mirrors the account's sign-up metadata."""
        self.store.insert(
            "profiles",
            {
                "id": user_id,
                "full_name": metadata.get("full_name") or "",
                "role": metadata.get("role"),
                "created_at": _now_iso(),
            },
        )

    def sign_in(self, email: str, password: str) -> Session:
        email = (email or "").strip().lower()
        if not email or not password:
            raise AuthenticationError("Please enter email and password.")

        store = self.store
        rows = store.select("auth_users", {"email": email})
        if not rows or not check_password_hash(rows[0]["password_hash"], password):
            raise AuthenticationError("Invalid email or password.")
        user = rows[0]

        token = secrets.token_urlsafe(32)
        store.insert("auth_sessions", {"token": token, "user_id": user["id"], "created_at": _now_iso()})
        session[SESSION_KEY] = token

        sess = Session(token, user["id"], user["email"], _load_metadata(user))
        logger.info("user_signed_in", user_id=sess.user_id)
        self._emit(SIGNED_IN, sess)
        return sess

    def sign_out(self) -> None:
        token = session.pop(SESSION_KEY, None)
        if not token:
            return
        rows = self.store.select("auth_sessions", {"token": token})
        if rows:
            self.store.delete("auth_sessions", {"token": token})
            logger.info("user_signed_out", user_id=rows[0]["user_id"])
        self._emit(SIGNED_OUT, Session(token, rows[0]["user_id"] if rows else "", ""))

    def get_current_session(self) -> Session | None:
        token = session.get(SESSION_KEY)
        if not token:
            return None
        rows = self.store.select("auth_sessions", {"token": token})
        users = self.store.select("auth_users", {"id": rows[0]["user_id"]}) if rows else []
        if not users:
            # revoked elsewhere, or the account is gone
            session.pop(SESSION_KEY, None)
            logger.info("session_dropped", reason="revoked" if not rows else "no_account")
            self._emit(SIGNED_OUT, Session(token, rows[0]["user_id"] if rows else "", ""))
            return None
        user = users[0]
        return Session(token, user["id"], user["email"], _load_metadata(user))

    def get_user_metadata(self, user_id: str) -> dict:
        users = self.store.select("auth_users", {"id": user_id})
        if not users:
            return {}
        return _load_metadata(users[0])


def _load_metadata(user: dict) -> dict:
    try:
        data = json.loads(user.get("user_metadata") or "{}")
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}
