from __future__ import annotations

import threading
import time
from typing import Callable

from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..errors import PortalError, RoleResolutionFailure, StoreError
from ..logging import get_logger
from ..models import Role
from .identity_service import IdentityService, Session
from .store_service import TableStore

logger = get_logger(__name__)


class ProfileNotProvisioned(RoleResolutionFailure):
    """The profile row has not been written yet; worth asking again."""

    pass


class RoleResolver:
    """Decide whether a principal is student or faculty.

    The profile row is authoritative. It is created right after sign-up, so
    a missing row (or a failing read) is retried with exponential backoff
    before falling back to the role recorded in the account metadata.
    """

    def __init__(
        self,
        store_factory: Callable[[], TableStore],
        identity: IdentityService,
        attempts: int = 4,
        wait: float = 0.1,
        max_wait: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._store_factory = store_factory
        self._identity = identity
        self.attempts = max(1, int(attempts))
        self.wait = wait
        self.max_wait = max_wait
        self._sleep = sleep

    def _profile_role(self, principal_id: str) -> Role:
        rows = self._store_factory().select("profiles", {"id": principal_id})
        if not rows:
            raise ProfileNotProvisioned(f"No profile for {principal_id}")
        role = Role.accepted(rows[0].get("role"))
        if role is None:
            raise RoleResolutionFailure(f"Profile role {rows[0].get('role')!r} is not usable")
        return role

    def _metadata_role(self, principal_id: str) -> Role:
        try:
            metadata = self._identity.get_user_metadata(principal_id)
        except StoreError as e:
            logger.warning("role_metadata_unavailable", user_id=principal_id, error=str(e))
            return Role.UNKNOWN
        return Role.accepted(metadata.get("role")) or Role.UNKNOWN

    def resolve(self, principal_id: str) -> Role:
        if not principal_id:
            return Role.UNKNOWN

        retrying = Retrying(
            stop=stop_after_attempt(self.attempts),
            wait=wait_exponential(multiplier=self.wait, max=self.max_wait),
            retry=retry_if_exception_type((ProfileNotProvisioned, StoreError)),
            sleep=self._sleep,
            reraise=True,
        )
        try:
            role = retrying(self._profile_role, principal_id)
            logger.debug("role_resolved", user_id=principal_id, role=role.value, source="profile")
            return role
        except PortalError as e:
            logger.info("role_profile_fallback", user_id=principal_id, reason=str(e))

        role = self._metadata_role(principal_id)
        logger.debug("role_resolved", user_id=principal_id, role=role.value, source="metadata")
        return role


class RoleCache:
    """Roles resolved once per session and kept in process memory.

    At most ``max_entries`` sessions are remembered; the oldest is evicted
    first, so sessions whose cookie simply disappears do not pile up.
    """

    def __init__(self, max_entries: int = 1024):
        self._roles: dict[str, Role] = {}
        self.max_entries = max(1, int(max_entries))
        self._lock = threading.Lock()

    def peek(self, token: str) -> Role:
        with self._lock:
            return self._roles.get(token, Role.PENDING)

    def get_or_resolve(self, token: str, principal_id: str, resolver: RoleResolver) -> Role:
        with self._lock:
            cached = self._roles.get(token)
        if cached is not None:
            return cached
        role = resolver.resolve(principal_id)
        with self._lock:
            self._roles.pop(token, None)
            self._roles[token] = role
            while len(self._roles) > self.max_entries:
                self._roles.pop(next(iter(self._roles)))
        return role

    def forget(self, token: str) -> None:
        with self._lock:
            self._roles.pop(token, None)

    def on_session_change(self, event: str, sess: Session | None) -> None:
        # Sign-in re-derives, sign-out clears; both drop whatever was cached.
        if sess is not None:
            self.forget(sess.token)
