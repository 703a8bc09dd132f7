from tests.fakes import auth_header


def _note(db, user, title, pinned=False, archived=False, **extra):
    return db.insert(
        "notes",
        user_id=user.id,
        title=title,
        content=f"Isi {title}",
        pinned=pinned,
        archived=archived,
        tags=[],
        updated_at=db.timestamp(),
        **extra,
    )


class TestNotes:
    def test_create_note(self, client, db, user, content):
        res = client.post(
            "/api/v1/notes",
            json={"title": "Catatan gizi", "content": "MPASI mulai 6 bulan", "module_id": content["module"]["id"]},
            headers=auth_header(user),
        )

        assert res.status_code == 201
        note = res.json()["data"]
        assert note["user_id"] == user.id
        assert note["tags"] == []
        assert note["module_id"] == content["module"]["id"]

    def test_empty_content_rejected(self, client, user):
        res = client.post("/api/v1/notes", json={"content": ""}, headers=auth_header(user))

        assert res.status_code == 422

    def test_list_orders_pinned_then_recent(self, client, db, user):
        _note(db, user, "Lama")
        _note(db, user, "Disematkan", pinned=True)
        _note(db, user, "Baru")
        _note(db, user, "Arsip", archived=True)

        data = client.get("/api/v1/notes", headers=auth_header(user)).json()["data"]

        assert [n["title"] for n in data["notes"]] == ["Disematkan", "Baru", "Lama"]
        assert data["pagination"]["total"] == 3
        assert data["filters"] == {"search": None, "pinned": None, "archived": False}

    def test_list_archived_only(self, client, db, user):
        _note(db, user, "Aktif")
        _note(db, user, "Arsip", archived=True)

        data = client.get("/api/v1/notes", params={"archived": "true"}, headers=auth_header(user)).json()["data"]

        assert [n["title"] for n in data["notes"]] == ["Arsip"]

    def test_search(self, client, db, user):
        _note(db, user, "Imunisasi campak")
        _note(db, user, "Gizi")

        data = client.get("/api/v1/notes", params={"q": "campak"}, headers=auth_header(user)).json()["data"]

        assert [n["title"] for n in data["notes"]] == ["Imunisasi campak"]
        assert data["filters"]["search"] == "campak"

    def test_other_users_notes_are_invisible(self, client, db, user):
        other = db.add_user()
        note = _note(db, other, "Rahasia")

        listed = client.get("/api/v1/notes", headers=auth_header(user)).json()["data"]
        res = client.get(f"/api/v1/notes/{note['id']}", headers=auth_header(user))

        assert listed["notes"] == []
        assert res.status_code == 404
        assert res.json()["code"] == "NOTE_NOT_FOUND"

    def test_update_note(self, client, db, user):
        note = _note(db, user, "Lama")

        res = client.put(f"/api/v1/notes/{note['id']}", json={"title": "Baru", "tags": ["gizi"]}, headers=auth_header(user))

        assert res.status_code == 200
        assert res.json()["data"]["title"] == "Baru"
        assert res.json()["data"]["tags"] == ["gizi"]

    def test_update_without_changes(self, client, db, user):
        note = _note(db, user, "Lama")

        res = client.put(f"/api/v1/notes/{note['id']}", json={}, headers=auth_header(user))

        assert res.status_code == 400
        assert res.json()["code"] == "NO_CHANGES"

    def test_toggle_pin_and_archive(self, client, db, user):
        note = _note(db, user, "Catatan")

        pinned = client.post(f"/api/v1/notes/{note['id']}/toggle-pin", headers=auth_header(user)).json()["data"]
        unpinned = client.post(f"/api/v1/notes/{note['id']}/toggle-pin", headers=auth_header(user)).json()["data"]
        archived = client.post(f"/api/v1/notes/{note['id']}/toggle-archive", headers=auth_header(user)).json()["data"]

        assert pinned["pinned"] is True
        assert unpinned["pinned"] is False
        assert archived["archived"] is True

    def test_delete_note(self, client, db, user):
        note = _note(db, user, "Catatan")

        res = client.delete(f"/api/v1/notes/{note['id']}", headers=auth_header(user))

        assert res.json()["data"] == {"id": note["id"], "title": "Catatan"}
        assert db.find("notes", id=note["id"]) == []

    def test_requires_authentication(self, client):
        assert client.get("/api/v1/notes").status_code == 401


class TestSchedules:
    def test_public_list_sorted_by_date(self, client, db):
        db.insert("posyandu_schedules", title="Penimbangan Mei", date="2025-05-10T08:00:00+07:00")
        db.insert("posyandu_schedules", title="Imunisasi April", date="2025-04-12T08:00:00+07:00")

        res = client.get("/api/v1/schedules")

        assert res.status_code == 200
        assert [s["title"] for s in res.json()["data"]["items"]] == ["Imunisasi April", "Penimbangan Mei"]

    def test_admin_creates_schedule(self, client, db, admin):
        res = client.post(
            "/api/v1/schedules",
            json={"title": "Posyandu Melati", "location": "Balai Desa", "date": "2025-06-01T08:00:00+07:00"},
            headers=auth_header(admin),
        )

        assert res.status_code == 201
        assert res.json()["data"]["created_by"] == admin.id
        assert len(db.find("posyandu_schedules")) == 1

    def test_user_cannot_create(self, client, user):
        res = client.post(
            "/api/v1/schedules",
            json={"title": "Posyandu Melati", "date": "2025-06-01T08:00:00+07:00"},
            headers=auth_header(user),
        )

        assert res.status_code == 403

    def test_update_and_delete(self, client, db, admin):
        schedule = db.insert("posyandu_schedules", title="Posyandu Melati", date="2025-06-01T08:00:00+07:00")

        updated = client.put(
            f"/api/v1/schedules/{schedule['id']}", json={"location": "Puskesmas"}, headers=auth_header(admin)
        ).json()["data"]
        deleted = client.delete(f"/api/v1/schedules/{schedule['id']}", headers=auth_header(admin)).json()["data"]

        assert updated["location"] == "Puskesmas"
        assert deleted == {"id": schedule["id"], "title": "Posyandu Melati"}
        assert db.find("posyandu_schedules") == []

    def test_missing_schedule(self, client, admin):
        res = client.delete(
            "/api/v1/schedules/0b7d8a52-4a52-4f0e-a4b4-1a6a1b2a7d11", headers=auth_header(admin)
        )

        assert res.status_code == 404
        assert res.json()["code"] == "SCHEDULE_NOT_FOUND"
