from pathlib import Path

import streamlit as st
from streamlit.testing.v1 import AppTest

from gastos import config
from gastos.events import EXPENSES_CHANGED
from gastos.store import InMemoryStore

APP = Path(__file__).parent.parent / "app" / "main.py"
SEED = Path(__file__).parent.parent / "data" / "seed.json"


def click(at, label):
    next(b for b in at.button if b.label == label).click().run()
    return at.run()


def test_sign_out_and_back_in_reloads_expenses(monkeypatch):
    store = InMemoryStore.from_seed(str(SEED))
    seeded = len(store.fetch_expenses())
    monkeypatch.setattr(config, "open_store", lambda backend=None: store)
    st.cache_resource.clear()

    at = AppTest.from_file(str(APP), default_timeout=30).run()
    at.text_input(key="signup_name").input("Ana")
    at.text_input(key="signup_email").input("ana@example.com")
    at.text_input(key="signup_password").input("secreto123")
    click(at, "Crear cuenta")
    assert not at.exception
    assert len(at.session_state["snapshot"].expenses) == seeded
    assert store.events.subscriber_count(EXPENSES_CHANGED) == 1

    click(at, "Cerrar sesión")
    assert store.events.subscriber_count(EXPENSES_CHANGED) == 0

    at.text_input(key="signin_email").input("ana@example.com")
    at.text_input(key="signin_password").input("secreto123")
    click(at, "Ingresar")
    assert not at.exception
    assert len(at.session_state["snapshot"].expenses) == seeded
    assert store.events.subscriber_count(EXPENSES_CHANGED) == 1
