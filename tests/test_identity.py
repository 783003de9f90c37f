from gastos.domain import Session
from gastos.events import SIGNED_IN, SIGNED_OUT
from gastos.identity import (
    LocalIdentityProvider,
    default_display_name,
    ensure_profile,
    hash_password,
    verify_password,
)
from gastos.store import InMemoryStore


def test_password_hashing_round_trip():
    hashed = hash_password("secreto1")
    assert hashed != "secreto1"
    assert verify_password("secreto1", hashed)
    assert not verify_password("otro", hashed)


def test_default_display_name_fallbacks():
    assert default_display_name(" Ana ", "ana@example.com") == "Ana"
    assert default_display_name(None, "luis.p@example.com") == "luis.p"
    assert default_display_name("", None) == "Usuario"


def test_ensure_profile_creates_once():
    store = InMemoryStore()
    session = Session(user_id="u1", name="", email="eva@example.com")
    first = ensure_profile(store, session)
    second = ensure_profile(store, Session(user_id="u1", name="Cambiado", email="eva@example.com"))
    assert first.name == "eva"
    assert second == first


def test_sign_up_sign_in_and_out():
    store = InMemoryStore()
    idp = LocalIdentityProvider(store)
    events = []
    unsubscribe = idp.on_auth_state_change(lambda name, session: events.append((name, session)))

    session = idp.sign_up("Ana@Example.com", "secreto1", "Ana").get_or_else(None)
    assert session.email == "ana@example.com"
    assert store.get_profile(session.user_id).name == "Ana"
    assert idp.current_session() == session

    idp.sign_out()
    assert idp.current_session() is None

    again = idp.sign_in("ana@example.com", "secreto1").get_or_else(None)
    assert again.user_id == session.user_id
    assert again.name == "Ana"

    assert [name for name, _ in events] == [SIGNED_IN, SIGNED_OUT, SIGNED_IN]
    assert events[1][1] is None

    unsubscribe()
    idp.sign_out()
    assert len(events) == 3


def test_sign_up_validation():
    idp = LocalIdentityProvider(InMemoryStore())
    assert idp.sign_up("no-email", "secreto1").get_error()["error"] == "invalid_email"
    assert idp.sign_up("a@b.com", "123").get_error()["error"] == "weak_password"
    assert idp.sign_up("a@b.com", "secreto1").is_right()
    assert idp.sign_up("A@b.com", "secreto1").get_error()["error"] == "duplicate"


def test_sign_in_rejects_bad_credentials():
    idp = LocalIdentityProvider(InMemoryStore())
    idp.sign_up("a@b.com", "secreto1")
    idp.sign_out()
    assert idp.sign_in("a@b.com", "nope").get_error()["error"] == "invalid_credentials"
    assert idp.sign_in("x@b.com", "secreto1").get_error()["error"] == "invalid_credentials"
    assert idp.current_session() is None
