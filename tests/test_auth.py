import time

import jwt
import pytest

from app.core.security import SecurityService
from app.core.settings import settings
from app.db.store import StoreFactory, close_client
from tests.fakes import FakeClient, auth_header


class TestSecurityService:
    @pytest.fixture
    def secret(self, monkeypatch):
        monkeypatch.setattr(settings, "SUPABASE_JWT_SECRET", "posyandu-test-secret-0123456789abcdef")
        return "posyandu-test-secret-0123456789abcdef"

    def _token(self, secret, **claims):
        payload = {"sub": "user-1", "email": "ibu@posyandu.id", "aud": "authenticated", "exp": int(time.time()) + 60}
        payload.update(claims)
        return jwt.encode(payload, secret, algorithm="HS256")

    async def test_decodes_valid_token(self, secret):
        payload = await SecurityService().decode_access_token(self._token(secret))

        assert payload["sub"] == "user-1"

    async def test_rejects_expired_token(self, secret):
        with pytest.raises(ValueError, match="Token expired"):
            await SecurityService().decode_access_token(self._token(secret, exp=int(time.time()) - 10))

    async def test_rejects_wrong_audience(self, secret):
        with pytest.raises(ValueError, match="Invalid token"):
            await SecurityService().decode_access_token(self._token(secret, aud="anon"))

    def test_extract_bearer(self):
        assert SecurityService.extract_bearer("Bearer abc") == "abc"
        assert SecurityService.extract_bearer("bearer  abc ") == "abc"
        assert SecurityService.extract_bearer("Basic abc") is None
        assert SecurityService.extract_bearer(None) is None

    def test_locally_signed_token_authenticates(self, client, db, secret):
        user = db.add_user(role="pengguna")
        token = self._token(secret, sub=user.id, email=user.email)

        res = client.get("/api/v1/users/me", headers={"Authorization": f"Bearer {token}"})

        assert res.status_code == 200
        assert res.json()["data"]["id"] == user.id


class TestRegister:
    def test_register_creates_profile(self, client, db):
        res = client.post(
            "/api/v1/auth/register",
            json={"email": "rina@posyandu.id", "password": "rahasia1", "full_name": "Rina", "phone": "081234567890"},
        )

        assert res.status_code == 201
        body = res.json()
        assert body["code"] == "REGISTER_SUCCESS"
        assert body["data"]["access_token"]
        profile = body["data"]["user"]["profile"]
        assert profile["role"] == "pengguna"
        assert profile["phone"] == "081234567890"

    def test_register_pending_confirmation(self, client, db):
        db.require_email_confirmation = True

        res = client.post(
            "/api/v1/auth/register",
            json={"email": "rina@posyandu.id", "password": "rahasia1", "full_name": "Rina"},
        )

        assert res.json()["code"] == "REGISTER_PENDING_CONFIRMATION"
        assert res.json()["data"]["requires_confirmation"] is True
        assert db.find("profiles") == []

    def test_register_rejects_invalid_phone(self, client):
        res = client.post(
            "/api/v1/auth/register",
            json={"email": "rina@posyandu.id", "password": "rahasia1", "full_name": "Rina", "phone": "12345"},
        )

        assert res.status_code == 422
        body = res.json()
        assert body["code"] == "VALIDATION_ERROR"
        assert body["message"].startswith("phone:")

    def test_duplicate_email(self, client, db):
        db.add_user(email="rina@posyandu.id")

        res = client.post(
            "/api/v1/auth/register",
            json={"email": "rina@posyandu.id", "password": "rahasia1", "full_name": "Rina"},
        )

        assert res.status_code == 400
        assert res.json()["code"] == "REGISTER_ERROR"


class TestLogin:
    def test_login_with_email(self, client, db):
        user = db.add_user(email="sari@posyandu.id", password="rahasia1", role="admin")

        res = client.post("/api/v1/auth/login", json={"email": "sari@posyandu.id", "password": "rahasia1"})

        assert res.status_code == 200
        data = res.json()["data"]
        assert data["user"]["id"] == user.id
        assert data["user"]["role"] == "admin"
        assert data["refresh_token"]

    def test_login_with_phone(self, client, db):
        user = db.add_user(email="sari@posyandu.id", password="rahasia1", phone="081234567890")

        res = client.post("/api/v1/auth/login", json={"phone": "+6281234567890", "password": "rahasia1"})

        assert res.status_code == 200
        assert res.json()["data"]["user"]["id"] == user.id

    def test_wrong_password(self, client, db):
        db.add_user(email="sari@posyandu.id", password="rahasia1")

        res = client.post("/api/v1/auth/login", json={"email": "sari@posyandu.id", "password": "salah123"})

        assert res.status_code == 401
        assert res.json()["code"] == "INVALID_CREDENTIALS"

    def test_unknown_phone(self, client):
        res = client.post("/api/v1/auth/login", json={"phone": "081200000000", "password": "rahasia1"})

        assert res.status_code == 401

    def test_refresh(self, client, db):
        user = db.add_user()

        res = client.post("/api/v1/auth/refresh", json={"refresh_token": user.refresh_token})

        assert res.status_code == 200
        assert res.json()["data"]["user"]["id"] == user.id

    def test_refresh_invalid(self, client):
        res = client.post("/api/v1/auth/refresh", json={"refresh_token": "nope"})

        assert res.status_code == 401
        assert res.json()["code"] == "INVALID_REFRESH_TOKEN"

    def test_logout_revokes_with_service_role(self, client, db, user):
        res = client.post("/api/v1/auth/logout", headers=auth_header(user))

        assert res.json()["data"] == {"revoked": True}
        assert user.token not in db.tokens


class TestClientLifecycle:
    def test_user_client_closed_after_request(self, client, db, user):
        res = client.get("/api/v1/notes", headers=auth_header(user))

        assert res.status_code == 200
        assert db.closed == ["user"]

    def test_anonymous_request_keeps_shared_client_open(self, client, db):
        client.get("/api/v1/schedules")

        assert db.closed == []

    def test_session_client_closed_after_login(self, client, db):
        db.add_user(email="sari@posyandu.id", password="rahasia1")

        client.post("/api/v1/auth/login", json={"email": "sari@posyandu.id", "password": "rahasia1"})

        assert "session" in db.closed
        assert "anon" not in db.closed

    async def test_factory_closes_shared_clients(self, db):
        factory = StoreFactory("https://fake.supabase.co", "anon-key", FakeClient(db, "anon"), FakeClient(db, "admin"))

        await factory.aclose()

        assert db.closed == ["anon", "admin"]

    async def test_close_failure_is_not_raised(self, db):
        class _Broken:
            async def aclose(self):
                raise RuntimeError("already closed")

        broken = FakeClient(db, "user")
        broken._postgrest = _Broken()

        await close_client(broken)


class TestIdentityProfile:
    def test_invalid_token(self, client):
        res = client.get("/api/v1/users/me", headers={"Authorization": "Bearer bogus"})

        assert res.status_code == 401
        assert res.json()["code"] == "UNAUTHORIZED"

    def test_create_missing_profile(self, client, db):
        identity = db.add_identity("baru@posyandu.id")

        first = client.post("/api/v1/auth/create-missing-profile", headers=auth_header(identity))
        second = client.post("/api/v1/auth/create-missing-profile", headers=auth_header(identity))

        assert first.json()["code"] == "PROFILE_CREATED"
        assert first.json()["data"]["profile"]["full_name"] == "baru"
        assert second.json()["code"] == "PROFILE_EXISTS"
        assert len(db.find("profiles", id=identity.id)) == 1

    def test_current_user_requires_profile(self, client, db):
        identity = db.add_identity("baru@posyandu.id")

        res = client.get("/api/v1/progress/modules", headers=auth_header(identity))

        assert res.status_code == 404
        assert res.json()["code"] == "PROFILE_NOT_FOUND"

    def test_put_me_creates_profile_when_missing(self, client, db):
        identity = db.add_identity("baru@posyandu.id")

        res = client.put("/api/v1/users/me", json={"full_name": "Ibu Baru"}, headers=auth_header(identity))

        assert res.json()["code"] == "PROFILE_CREATED"
        assert db.find("profiles", id=identity.id)[0]["role"] == "pengguna"

    def test_put_me_never_changes_role(self, client, db, user):
        res = client.put(
            "/api/v1/users/me",
            json={"full_name": "Ibu Rina Baru", "role": "admin"},
            headers=auth_header(user),
        )

        assert res.json()["code"] == "PROFILE_UPDATED"
        assert db.find("profiles", id=user.id)[0]["role"] == "pengguna"

    def test_rls_denied_update_retries_with_service_role(self, client, db, user):
        db.fail("profiles", "update", code="42501", message="permission denied for table profiles")

        res = client.put("/api/v1/users/me", json={"full_name": "Ibu Rina Baru"}, headers=auth_header(user))

        assert res.status_code == 200
        assert db.find("profiles", id=user.id)[0]["full_name"] == "Ibu Rina Baru"
        assert ("admin", "profiles", "update") in db.calls

    def test_rls_denied_without_service_role(self, client, db, factory, user):
        factory.admin = None
        db.fail("profiles", "update", code="42501", message="permission denied for table profiles")

        res = client.put("/api/v1/users/me", json={"full_name": "Ibu Rina Baru"}, headers=auth_header(user))

        assert res.status_code == 500
        assert res.json()["code"] == "PROFILE_WRITE_ERROR"

    def test_missing_role_column_retries_without_role(self, client, db):
        identity = db.add_identity("baru@posyandu.id")
        db.fail("profiles", "insert", code="PGRST204", message="Could not find the 'role' column")

        res = client.post("/api/v1/auth/create-missing-profile", headers=auth_header(identity))

        assert res.json()["code"] == "PROFILE_CREATED"
        profile = db.find("profiles", id=identity.id)[0]
        assert "role" not in profile

    def test_change_password(self, client, db):
        user = db.add_user(email="sari@posyandu.id", password="rahasia1")

        res = client.post(
            "/api/v1/users/me/change-password",
            json={"current_password": "rahasia1", "new_password": "rahasia2"},
            headers=auth_header(user),
        )

        assert res.status_code == 200
        assert db.users[user.id].password == "rahasia2"

    def test_change_password_wrong_current(self, client, db):
        user = db.add_user(email="sari@posyandu.id", password="rahasia1")

        res = client.post(
            "/api/v1/users/me/change-password",
            json={"current_password": "salah123", "new_password": "rahasia2"},
            headers=auth_header(user),
        )

        assert res.status_code == 401
        assert res.json()["code"] == "INVALID_CURRENT_PASSWORD"


class TestProfilePhoto:
    def test_upload_photo(self, client, db, user):
        res = client.post(
            "/api/v1/users/me/profile-photo",
            files={"photo": ("me.jpg", b"jpeg-bytes", "image/jpeg")},
            headers=auth_header(user),
        )

        assert res.status_code == 200
        url = res.json()["data"]["profil_url"]
        assert "/profile_photos/" in url
        assert db.find("profiles", id=user.id)[0]["profil_url"] == url

    def test_photo_must_be_image(self, client, user):
        res = client.post(
            "/api/v1/users/me/profile-photo",
            files={"photo": ("cv.pdf", b"%PDF", "application/pdf")},
            headers=auth_header(user),
        )

        assert res.status_code == 400
        assert res.json()["code"] == "UNSUPPORTED_FILE_TYPE"

    def test_delete_without_photo(self, client, user):
        res = client.delete("/api/v1/users/me/profile-photo", headers=auth_header(user))

        assert res.status_code == 404
        assert res.json()["code"] == "PROFILE_PHOTO_NOT_FOUND"
