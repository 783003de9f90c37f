"""Identity collaborator: a local email/password provider plus lazy profiles."""

from __future__ import annotations

import logging
import uuid
from typing import Callable, Optional

import bcrypt

from gastos.domain import DEFAULT_USER_NAME, Profile, Session
from gastos.events import SIGNED_IN, SIGNED_OUT, Event
from gastos.functional import Either, Right, failure
from gastos.store import RecordStore

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed_password: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8"), hashed_password.encode("utf-8"))


def default_display_name(name: Optional[str], email: Optional[str]) -> str:
    if name and name.strip():
        return name.strip()
    if email and email.split("@")[0]:
        return email.split("@")[0]
    return DEFAULT_USER_NAME


def ensure_profile(store: RecordStore, session: Session) -> Profile:
    """Return the session user's profile, creating it on first login."""
    profile = store.get_profile(session.user_id)
    if profile is not None:
        return profile

    name = default_display_name(session.name, session.email)
    created = store.insert_profile(session.user_id, name)
    if created.is_left():
        # lost a race with another client creating the same profile
        logger.warning("Profile creation failed: %s", created.get_error()["message"])
        profile = store.get_profile(session.user_id)
        if profile is not None:
            return profile
        raise RuntimeError(created.get_error()["message"])
    logger.info("Created profile for user %s", session.user_id)
    return created.get_or_else(None)


class LocalIdentityProvider:
    """Email/password sign-in against credentials kept in the record store."""

    def __init__(self, store: RecordStore):
        self.store = store
        self._session: Optional[Session] = None

    def current_session(self) -> Optional[Session]:
        return self._session

    def on_auth_state_change(self, handler: Callable[[str, Optional[Session]], None]) -> Callable[[], None]:
        """Call ``handler(event_name, session)`` on every sign-in and sign-out.

        Returns a function that removes the subscription.
        """
        def _adapter(event: Event, payload: dict) -> dict:
            handler(event.name, payload.get("session"))
            return {}

        unsubscribe_in = self.store.events.subscribe(SIGNED_IN, _adapter)
        unsubscribe_out = self.store.events.subscribe(SIGNED_OUT, _adapter)

        def _unsubscribe() -> None:
            unsubscribe_in()
            unsubscribe_out()

        return _unsubscribe

    def sign_up(self, email: str, password: str, name: str = "") -> Either[dict, Session]:
        email = (email or "").strip().lower()
        if "@" not in email:
            return failure("invalid_email", f"{email!r} is not an email address", email=email)
        if len(password or "") < MIN_PASSWORD_LENGTH:
            return failure("weak_password", f"Password must have at least {MIN_PASSWORD_LENGTH} characters")
        if self.store.get_credentials(email) is not None:
            return failure("duplicate", f"An account for {email} already exists", email=email)

        user_id = str(uuid.uuid4())
        stored = self.store.insert_credentials(user_id, email, hash_password(password))
        if stored.is_left():
            return stored

        session = Session(user_id=user_id, name=default_display_name(name, email), email=email)
        ensure_profile(self.store, session)
        return Right(self._start(session))

    def sign_in(self, email: str, password: str) -> Either[dict, Session]:
        email = (email or "").strip().lower()
        creds = self.store.get_credentials(email)
        if creds is None or not verify_password(password or "", creds["password_hash"]):
            logger.info("Rejected sign-in for %s", email)
            return failure("invalid_credentials", "Email o contraseña incorrectos")

        profile = self.store.get_profile(creds["user_id"])
        session = Session(
            user_id=creds["user_id"],
            name=profile.name if profile else default_display_name(None, email),
            email=email,
        )
        ensure_profile(self.store, session)
        return Right(self._start(session))

    def sign_out(self) -> None:
        if self._session is None:
            return
        self._session = None
        self.store.events.publish(SIGNED_OUT, {"session": None})

    def _start(self, session: Session) -> Session:
        self._session = session
        self.store.events.publish(SIGNED_IN, {"session": session})
        return session
