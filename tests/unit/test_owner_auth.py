"""Firebase owner token verification."""

from __future__ import annotations

from dataclasses import replace

import pytest
from app.config import get_settings
from app.core import firebase
from app.core.firebase import CurrentOwner, initialize_firebase, verify_owner_token
from firebase_admin import auth


@pytest.fixture
def firebase_ready(monkeypatch):
  monkeypatch.setattr(firebase.firebase_admin, "get_app", lambda: object())


def test_verified_token_maps_to_the_owner(firebase_ready, monkeypatch) -> None:
  monkeypatch.setattr(firebase.auth, "verify_id_token", lambda token: {"uid": "owner-1", "email": "pastor@example.com"})
  assert verify_owner_token("token") == CurrentOwner(owner_id="owner-1", email="pastor@example.com")


def test_rejected_token_returns_none(firebase_ready, monkeypatch) -> None:
  def _reject(token):
    raise auth.InvalidIdTokenError("bad token")

  monkeypatch.setattr(firebase.auth, "verify_id_token", _reject)
  assert verify_owner_token("token") is None


def test_token_without_uid_is_rejected(firebase_ready, monkeypatch) -> None:
  monkeypatch.setattr(firebase.auth, "verify_id_token", lambda token: {"email": "pastor@example.com"})
  assert verify_owner_token("token") is None


def test_missing_project_leaves_authentication_disabled(monkeypatch) -> None:
  def _no_app():
    raise ValueError("no app")

  monkeypatch.setattr(firebase.firebase_admin, "get_app", _no_app)
  settings = replace(get_settings(), firebase_project_id=None)

  assert initialize_firebase(settings) is False
