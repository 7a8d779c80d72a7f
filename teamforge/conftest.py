"""
Shared pytest fixtures: an isolated SQLite database per test and token helpers.
"""

import time

import jwt
import pytest

from teamforge.config import ALGORITHM, SECRET_KEY
from teamforge.db import dispose_engine, init_engine
from teamforge.migrate import run_migrations


@pytest.fixture
def db(tmp_path):
    """Point the engine at a fresh migrated SQLite file for one test."""
    init_engine(f"sqlite:///{tmp_path / 'teamforge_test.db'}")
    run_migrations()
    yield
    dispose_engine()


def generate_test_token(user_id: str, email: str = None, expires_in: int = 3600) -> str:
    """Mint a token the way the identity provider would."""
    now = int(time.time())
    payload = {
        "sub": user_id,
        "exp": now + expires_in,
        "iat": now,
    }
    if email:
        payload["email"] = email
    return jwt.encode(payload, SECRET_KEY, algorithm=ALGORITHM)


def auth_headers(user_id: str) -> dict:
    return {"Authorization": f"Bearer {generate_test_token(user_id)}"}


@pytest.fixture
def headers_for():
    """Factory fixture: headers_for("user-a") -> Authorization header dict."""
    return auth_headers
