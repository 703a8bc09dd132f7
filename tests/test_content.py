from tests.fakes import auth_header


class TestModules:
    def test_anonymous_sees_only_published(self, client, db):
        db.insert("modules", title="Publik", slug="publik", description="", published=True)
        db.insert("modules", title="Draft", slug="draft", description="", published=False)

        res = client.get("/api/v1/modules")

        assert res.status_code == 200
        body = res.json()
        assert body["code"] == "MODULE_FETCH_SUCCESS"
        assert [m["title"] for m in body["data"]["items"]] == ["Publik"]
        assert body["data"]["pagination"]["total"] == 1

    def test_admin_sees_drafts(self, client, db, admin):
        db.insert("modules", title="Publik", slug="publik", description="", published=True)
        db.insert("modules", title="Draft", slug="draft", description="", published=False)

        items = client.get("/api/v1/modules", headers=auth_header(admin)).json()["data"]["items"]

        assert {m["title"] for m in items} == {"Publik", "Draft"}

    def test_search_and_pagination(self, client, db):
        for i in range(3):
            db.insert("modules", title=f"Gizi {i}", slug=f"gizi-{i}", description="", published=True)
        db.insert("modules", title="Imunisasi", slug="imunisasi", description="", published=True)

        data = client.get("/api/v1/modules", params={"search": "gizi", "limit": 2}).json()["data"]

        assert len(data["items"]) == 2
        assert data["pagination"] == {
            "page": 1,
            "limit": 2,
            "total": 3,
            "totalPages": 2,
            "hasNextPage": True,
            "hasPrevPage": False,
        }

    def test_unpublished_detail_forbidden_for_user(self, client, db, user):
        module = db.insert("modules", title="Draft", slug="draft", description="", published=False)

        res = client.get(f"/api/v1/modules/{module['id']}", headers=auth_header(user))

        assert res.status_code == 403
        assert res.json() == {
            "error": True,
            "code": "MODULE_NOT_PUBLISHED",
            "message": "Modul belum dipublikasi",
        }

    def test_unpublished_detail_visible_to_admin(self, client, db, admin):
        module = db.insert("modules", title="Draft", slug="draft", description="", published=False)
        db.insert("sub_materis", module_id=module["id"], title="Draft materi", content="x" * 20, order_index=1, published=False)

        data = client.get(f"/api/v1/modules/{module['id']}", headers=auth_header(admin)).json()["data"]

        assert data["title"] == "Draft"
        assert len(data["materials"]) == 1

    def test_detail_hides_unpublished_materials(self, client, content):
        content["subs"][2]["published"] = False

        data = client.get(f"/api/v1/modules/{content['module']['id']}").json()["data"]

        assert [m["order_index"] for m in data["materials"]] == [1, 2]

    def test_missing_module(self, client):
        res = client.get("/api/v1/modules/0b7d8a52-4a52-4f0e-a4b4-1a6a1b2a7d11")

        assert res.status_code == 404
        assert res.json()["code"] == "MODULE_NOT_FOUND"

    def test_create_generates_unique_slug(self, client, db, admin):
        db.insert("modules", title="Gizi Anak", slug="gizi-anak", description="", published=True)

        res = client.post(
            "/api/v1/modules",
            json={"title": "Gizi Anak", "description": "Modul baru"},
            headers=auth_header(admin),
        )

        assert res.status_code == 201
        slug = res.json()["data"]["slug"]
        assert slug.startswith("gizi-anak-")
        assert slug != "gizi-anak"

    def test_create_requires_admin(self, client, user):
        res = client.post("/api/v1/modules", json={"title": "Gizi Anak"}, headers=auth_header(user))

        assert res.status_code == 403
        assert res.json()["code"] == "FORBIDDEN"

    def test_update_without_changes(self, client, db, admin, content):
        res = client.put(f"/api/v1/modules/{content['module']['id']}", json={}, headers=auth_header(admin))

        assert res.status_code == 400
        assert res.json()["code"] == "NO_CHANGES"

    def test_update_and_delete(self, client, db, admin, content):
        module_id = content["module"]["id"]
        updated = client.put(
            f"/api/v1/modules/{module_id}", json={"published": False}, headers=auth_header(admin)
        ).json()["data"]
        assert updated["published"] is False

        res = client.delete(f"/api/v1/modules/{module_id}", headers=auth_header(admin))
        assert res.status_code == 200
        assert db.find("modules", id=module_id) == []


class TestMaterials:
    def test_list_by_module_in_order(self, client, content):
        data = client.get("/api/v1/materials", params={"module_id": content["module"]["id"]}).json()["data"]

        assert [m["title"] for m in data["items"]] == ["Materi 1", "Materi 2", "Materi 3"]

    def test_unpublished_detail_for_user(self, client, content, user):
        sub = content["subs"][1]
        sub["published"] = False

        res = client.get(f"/api/v1/materials/{sub['id']}", headers=auth_header(user))

        assert res.status_code == 403
        assert res.json()["code"] == "SUB_MATERI_NOT_PUBLISHED"

    def test_create_appends_order_index(self, client, db, admin, content):
        res = client.post(
            "/api/v1/materials",
            json={
                "module_id": content["module"]["id"],
                "title": "Materi baru",
                "content": "Konten materi baru yang cukup",
            },
            headers=auth_header(admin),
        )

        assert res.status_code == 201
        assert res.json()["data"]["order_index"] == 4

    def test_create_for_missing_module(self, client, admin):
        res = client.post(
            "/api/v1/materials",
            json={
                "module_id": "0b7d8a52-4a52-4f0e-a4b4-1a6a1b2a7d11",
                "title": "Materi baru",
                "content": "Konten materi baru yang cukup",
            },
            headers=auth_header(admin),
        )

        assert res.status_code == 404
        assert res.json()["code"] == "MODULE_NOT_FOUND"


class TestPoins:
    def test_poin_route_not_shadowed_by_material_detail(self, client, content):
        poin = content["poins"][0]

        res = client.get(f"/api/v1/materials/poins/{poin['id']}")

        assert res.status_code == 200
        data = res.json()["data"]
        assert data["title"] == "Poin 1"
        assert data["media"] == []
        assert "user_progress" not in data

    def test_list_includes_user_progress(self, client, content, user):
        sub = content["subs"][0]

        data = client.get(f"/api/v1/materials/{sub['id']}/poins", headers=auth_header(user)).json()["data"]

        assert data["total"] == 2
        assert data["poin_details"][0]["user_progress"] == {"is_completed": False, "completed_at": None}

    def test_poin_of_unpublished_sub_materi(self, client, content, user):
        content["subs"][0]["published"] = False

        res = client.get(f"/api/v1/materials/poins/{content['poins'][0]['id']}", headers=auth_header(user))

        assert res.status_code == 403
        assert res.json()["code"] == "SUB_MATERI_NOT_PUBLISHED"

    def test_create_auto_order_index(self, client, admin, content):
        sub = content["subs"][0]

        res = client.post(
            f"/api/v1/materials/{sub['id']}/poins",
            json={"title": "Poin baru", "content_html": "<p>baru</p>"},
            headers=auth_header(admin),
        )

        assert res.status_code == 201
        assert res.json()["data"]["order_index"] == 3

    def test_order_index_conflict(self, client, admin, content):
        sub = content["subs"][0]

        res = client.post(
            f"/api/v1/materials/{sub['id']}/poins",
            json={"title": "Poin baru", "order_index": 2},
            headers=auth_header(admin),
        )

        assert res.status_code == 409
        assert res.json()["code"] == "ORDER_INDEX_CONFLICT"

    def test_delete_blocked_by_progress(self, client, db, admin, user, content):
        poin = content["poins"][0]
        db.insert("user_poin_progress", user_id=user.id, poin_id=poin["id"], is_completed=True)

        res = client.delete(f"/api/v1/materials/poins/{poin['id']}", headers=auth_header(admin))

        assert res.status_code == 409
        assert res.json()["code"] == "POIN_HAS_PROGRESS"

    def test_delete_poin(self, client, db, admin, content):
        poin = content["poins"][1]

        res = client.delete(f"/api/v1/materials/poins/{poin['id']}", headers=auth_header(admin))

        assert res.json()["data"] == {"deletedId": poin["id"], "title": "Poin 2"}
        assert db.find("poin_details", id=poin["id"]) == []


class TestQuizzes:
    def _quiz(self, db, content, published=True):
        return db.insert(
            "materis_quizzes",
            sub_materi_id=content["subs"][0]["id"],
            module_id=content["module"]["id"],
            title="Kuis",
            description="",
            passing_score=70,
            published=published,
        )

    def test_public_quiz_hides_correct_answers(self, client, db, content):
        quiz = self._quiz(db, content)
        db.insert(
            "materis_quiz_questions",
            quiz_id=quiz["id"],
            question_text="Apa itu ASI?",
            options=["A", "B"],
            correct_answer_index=1,
            order_index=1,
        )

        data = client.get(f"/api/v1/quizzes/{quiz['id']}").json()["data"]

        assert data["question_count"] == 1
        assert "correct_answer_index" not in data["questions"][0]

    def test_draft_quiz_hidden_from_user(self, client, db, content, user):
        quiz = self._quiz(db, content, published=False)

        res = client.get(f"/api/v1/quizzes/{quiz['id']}", headers=auth_header(user))

        assert res.status_code == 404

    def test_by_module_with_user_status(self, client, db, content, user):
        quiz = self._quiz(db, content)
        db.insert(
            "user_quiz_attempts",
            user_id=user.id,
            quiz_id=quiz["id"],
            score=80,
            is_passed=True,
            started_at=db.timestamp(),
            completed_at=db.timestamp(),
        )

        data = client.get(
            f"/api/v1/quizzes/module/{content['module']['id']}", headers=auth_header(user)
        ).json()["data"]

        assert data["total"] == 1
        assert data["quizzes"][0]["user_status"]["is_passed"] is True
        assert data["quizzes"][0]["user_status"]["score"] == 80

    def test_admin_creates_quiz_with_questions(self, client, db, admin, content):
        res = client.post(
            "/api/v1/quizzes",
            json={
                "sub_materi_id": content["subs"][1]["id"],
                "title": "Kuis Materi 2",
                "questions": [
                    {"question_text": "Pertanyaan satu", "options": ["Ya", "Tidak"], "correct_answer_index": 0},
                    {"question_text": "Pertanyaan dua", "options": ["A", "B", "C"], "correct_answer_index": 2},
                ],
            },
            headers=auth_header(admin),
        )

        assert res.status_code == 201
        data = res.json()["data"]
        assert data["module_id"] == content["module"]["id"]
        assert [q["order_index"] for q in data["questions"]] == [1, 2]

    def test_question_options_bounds(self, client, db, admin, content):
        quiz = self._quiz(db, content)

        too_many = client.post(
            f"/api/v1/quizzes/{quiz['id']}/questions",
            json={"question_text": "Pertanyaan", "options": ["A", "B", "C", "D", "E"], "correct_answer_index": 0},
            headers=auth_header(admin),
        )
        out_of_range = client.post(
            f"/api/v1/quizzes/{quiz['id']}/questions",
            json={"question_text": "Pertanyaan", "options": ["A", "B"], "correct_answer_index": 2},
            headers=auth_header(admin),
        )

        assert too_many.status_code == 422
        assert out_of_range.status_code == 422

    def test_update_question_checks_correct_index(self, client, db, admin, content):
        quiz = self._quiz(db, content)
        question = db.insert(
            "materis_quiz_questions",
            quiz_id=quiz["id"],
            question_text="Pertanyaan",
            options=["A", "B", "C"],
            correct_answer_index=2,
            order_index=1,
        )

        res = client.put(
            f"/api/v1/quizzes/{quiz['id']}/questions/{question['id']}",
            json={"options": ["A", "B"]},
            headers=auth_header(admin),
        )

        assert res.status_code == 400
        assert res.json()["code"] == "INVALID_CORRECT_ANSWER"
