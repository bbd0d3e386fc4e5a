"""
Tests for login and the current-user dependency that supplies comment authors.
"""
import pytest
from fastapi.testclient import TestClient

import AuthAndUser as auth


@pytest.fixture
def stored_user(monkeypatch):
    user = auth.UserInDB(
        id="user-carol",
        username="carol",
        display_name="Carol",
        hashed_password=auth.get_password_hash("correct horse"),
    )
    monkeypatch.setattr(auth, "get_user", lambda username: user if username == "carol" else None)
    return user


def test_password_hash_verifies():
    hashed = auth.get_password_hash("s3cret")
    assert auth.verify_password("s3cret", hashed)
    assert not auth.verify_password("wrong", hashed)


def test_login_issues_token_used_for_comments(anonymous_client: TestClient, stored_user):
    response = anonymous_client.post("/token", data={"username": "carol", "password": "correct horse"})
    assert response.status_code == 200
    token = response.json()["access_token"]

    response = anonymous_client.post(
        "/comments/",
        json={"postId": "p1", "text": "signed in", "userId": "someone-else"},
        headers={"Authorization": f"Bearer {token}"},
    )

    assert response.status_code == 201
    assert response.json()["authorId"] == "user-carol"
    assert response.json()["authorName"] == "Carol"


def test_login_rejects_bad_password(anonymous_client: TestClient, stored_user):
    response = anonymous_client.post("/token", data={"username": "carol", "password": "nope"})
    assert response.status_code == 401


def test_invalid_token_rejected(anonymous_client: TestClient, stored_user):
    response = anonymous_client.post(
        "/comments/",
        json={"postId": "p1", "text": "hi"},
        headers={"Authorization": "Bearer not.a.jwt"},
    )
    assert response.status_code == 401


def test_disabled_user_rejected(anonymous_client: TestClient, monkeypatch):
    disabled = auth.UserInDB(id="u-d", username="dave", disabled=True, hashed_password="x")
    monkeypatch.setattr(auth, "get_user", lambda username: disabled)
    token = auth.create_access_token({"sub": "dave"})

    response = anonymous_client.post(
        "/comments/",
        json={"postId": "p1", "text": "hi"},
        headers={"Authorization": f"Bearer {token}"},
    )
    assert response.status_code == 400
