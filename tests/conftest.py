import pytest
from fastapi.testclient import TestClient

from app.core.settings import settings
from app.db.store import get_store_factory
from app.main import app
from tests.fakes import FakeDB, FakeStoreFactory, FakeUser


@pytest.fixture(autouse=True)
def _settings(monkeypatch):
    # token được xác thực qua auth.get_user của fake
    monkeypatch.setattr(settings, "SUPABASE_JWT_SECRET", "")


@pytest.fixture
def db() -> FakeDB:
    return FakeDB()


@pytest.fixture
def factory(db) -> FakeStoreFactory:
    return FakeStoreFactory(db)


@pytest.fixture
def client(factory):
    app.dependency_overrides[get_store_factory] = lambda: factory
    try:
        yield TestClient(app, raise_server_exceptions=False)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def user(db) -> FakeUser:
    return db.add_user(role="pengguna", full_name="Ibu Rina")


@pytest.fixture
def admin(db) -> FakeUser:
    return db.add_user(role="admin", full_name="Bidan Sari")


@pytest.fixture
def superadmin(db) -> FakeUser:
    return db.add_user(role="superadmin", full_name="Kepala Puskesmas")


@pytest.fixture
def content(db):
    """Module đã publish với 3 sub-materi (order 1, 2, 3) và 2 poin ở sub-materi đầu."""
    module = db.insert("modules", title="Gizi Balita", slug="gizi-balita", description="Dasar gizi", published=True)
    subs = [
        db.insert(
            "sub_materis",
            module_id=module["id"],
            title=f"Materi {i}",
            content="Isi materi yang cukup panjang",
            order_index=i,
            published=True,
        )
        for i in (1, 2, 3)
    ]
    poins = [
        db.insert(
            "poin_details",
            sub_materi_id=subs[0]["id"],
            title=f"Poin {i}",
            content_html="<p>isi</p>",
            order_index=i,
        )
        for i in (1, 2)
    ]
    return {"module": module, "subs": subs, "poins": poins}
