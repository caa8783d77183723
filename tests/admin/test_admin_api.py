"""Admin endpoints: dashboard, users, memberships, content and uploads."""

import asyncio
from datetime import datetime, timezone

from httpx import AsyncClient
from sqlalchemy import func, select

from tests.conftest import expired_window, grant_membership, make_category, make_technique, make_user
from whbjj.db.models import Tag, UserFavorite, UserNote, UserProgress
from whbjj.memberships.service import add_months, as_utc


class TestDashboard:
    async def test_dashboard_totals(self, client: AsyncClient, database, admin):
        paid = await make_user(database, username="paid", email="paid@example.com")
        lapsed = await make_user(database, username="lapsed", email="lapsed@example.com")
        await grant_membership(database, paid["id"])
        await grant_membership(database, lapsed["id"], **expired_window())
        await make_category(database, "Guard")
        popular = await make_technique(database, title="Popular")
        await make_technique(database, title="Quiet")
        await client.get(f"/api/techniques/{popular}", headers=admin["headers"])

        response = await client.get("/api/admin/dashboard", headers=admin["headers"])
        assert response.status_code == 200
        data = response.json()
        assert data["total_users"] == 3
        assert data["active_members"] == 1
        assert data["total_techniques"] == 2
        assert data["total_categories"] == 1
        assert len(data["recent_users"]) == 3
        assert data["popular_techniques"][0]["title"] == "Popular"

        months = data["registrations_by_month"]
        assert len(months) == 12
        now = datetime.now(timezone.utc)
        assert months[-1] == {"month": f"{now.year:04d}-{now.month:02d}", "count": 3}


class TestUsers:
    async def test_list_search_and_role_filter(self, client: AsyncClient, database, admin):
        await make_user(database, username="kalani", email="kalani@example.com")
        await make_user(database, username="makoa", email="makoa@example.com")

        everyone = await client.get("/api/admin/users", headers=admin["headers"])
        assert everyone.json()["count"] == 3

        search = await client.get("/api/admin/users", params={"search": "KALA"}, headers=admin["headers"])
        assert [u["username"] for u in search.json()["rows"]] == ["kalani"]

        admins = await client.get("/api/admin/users", params={"role": "admin"}, headers=admin["headers"])
        assert [u["username"] for u in admins.json()["rows"]] == ["admin1"]

        by_name = await client.get("/api/admin/users", params={"sort": "username"}, headers=admin["headers"])
        assert [u["username"] for u in by_name.json()["rows"]] == ["admin1", "kalani", "makoa"]

    async def test_list_reports_derived_membership_state(self, client: AsyncClient, database, admin, member):
        await grant_membership(database, member["id"], **expired_window())
        response = await client.get("/api/admin/users", params={"search": member["username"]}, headers=admin["headers"])
        row = response.json()["rows"][0]
        assert row["membership"]["status"] == "active"
        assert row["membership"]["effective_status"] == "expired"
        assert row["has_membership"] is False

    async def test_promote_to_admin(self, client: AsyncClient, admin, member):
        response = await client.put(f"/api/admin/users/{member['id']}", headers=admin["headers"], json={"role": "admin"})
        assert response.status_code == 200
        assert response.json()["user"]["role"] == "admin"

        # Role is read from the stored user, so the old member token now passes the admin gate.
        dashboard = await client.get("/api/admin/dashboard", headers=member["headers"])
        assert dashboard.status_code == 200

    async def test_update_duplicate_username(self, client: AsyncClient, admin, member):
        response = await client.put(
            f"/api/admin/users/{member['id']}", headers=admin["headers"], json={"username": "admin1"}
        )
        assert response.status_code == 400

    async def test_update_unknown_user(self, client: AsyncClient, admin):
        response = await client.put("/api/admin/users/9999", headers=admin["headers"], json={"first_name": "x"})
        assert response.status_code == 404


class TestMembership:
    async def test_create_defaults(self, client: AsyncClient, admin, member):
        response = await client.put(f"/api/admin/users/{member['id']}/membership", headers=admin["headers"], json={})
        assert response.status_code == 200
        data = response.json()
        assert data["created"] is True
        assert data["message"] == "Membership created successfully"
        membership = data["membership"]
        assert membership["status"] == "active"
        assert membership["membership_type"] == "monthly"
        start = as_utc(datetime.fromisoformat(membership["start_date"]))
        end = as_utc(datetime.fromisoformat(membership["end_date"]))
        assert end == add_months(start, 1)

    async def test_annual_term(self, client: AsyncClient, admin, member):
        response = await client.put(
            f"/api/admin/users/{member['id']}/membership",
            headers=admin["headers"],
            json={"membership_type": "annual", "start_date": "2026-02-28T00:00:00Z"},
        )
        membership = response.json()["membership"]
        assert as_utc(datetime.fromisoformat(membership["end_date"])) == datetime(2027, 2, 28, tzinfo=timezone.utc)

    async def test_update_overwrites_only_provided_fields(self, client: AsyncClient, database, admin, member):
        await grant_membership(database, member["id"], membership_type="quarterly")
        response = await client.put(
            f"/api/admin/users/{member['id']}/membership",
            headers=admin["headers"],
            json={"status": "cancelled"},
        )
        data = response.json()
        assert data["created"] is False
        assert data["membership"]["status"] == "cancelled"
        assert data["membership"]["membership_type"] == "quarterly"

    async def test_end_before_start_rejected(self, client: AsyncClient, admin, member):
        response = await client.put(
            f"/api/admin/users/{member['id']}/membership",
            headers=admin["headers"],
            json={"start_date": "2026-05-01T00:00:00Z", "end_date": "2026-04-01T00:00:00Z"},
        )
        assert response.status_code == 400

    async def test_invalid_type_rejected(self, client: AsyncClient, admin, member):
        response = await client.put(
            f"/api/admin/users/{member['id']}/membership",
            headers=admin["headers"],
            json={"membership_type": "lifetime"},
        )
        assert response.status_code == 400

    async def test_unknown_user(self, client: AsyncClient, admin):
        response = await client.put("/api/admin/users/9999/membership", headers=admin["headers"], json={})
        assert response.status_code == 404


class TestCategories:
    async def test_crud(self, client: AsyncClient, admin):
        headers = admin["headers"]
        created = await client.post("/api/admin/categories", headers=headers, json={"name": "Takedowns"})
        assert created.status_code == 201
        category_id = created.json()["id"]

        renamed = await client.put(
            f"/api/admin/categories/{category_id}", headers=headers, json={"name": "Wrestling"}
        )
        assert renamed.json()["name"] == "Wrestling"

        listing = await client.get("/api/admin/categories", headers=headers)
        assert [c["name"] for c in listing.json()] == ["Wrestling"]

        deleted = await client.delete(f"/api/admin/categories/{category_id}", headers=headers)
        assert deleted.status_code == 200

    async def test_duplicate_name(self, client: AsyncClient, database, admin):
        await make_category(database, "Guard")
        response = await client.post("/api/admin/categories", headers=admin["headers"], json={"name": "Guard"})
        assert response.status_code == 400
        assert response.json()["message"] == "Category already exists"

    async def test_delete_blocked_while_in_use(self, client: AsyncClient, database, admin):
        category_id = await make_category(database, "Guard")
        await make_technique(database, title="Armbar", category_id=category_id)
        await make_technique(database, title="Triangle", category_id=category_id)

        response = await client.delete(f"/api/admin/categories/{category_id}", headers=admin["headers"])
        assert response.status_code == 409
        assert response.json() == {"message": "Cannot delete category that is in use", "technique_count": 2}

    async def test_delete_unknown(self, client: AsyncClient, admin):
        response = await client.delete("/api/admin/categories/9999", headers=admin["headers"])
        assert response.status_code == 404


class TestBeltLevels:
    async def test_seeded_in_rank_order(self, client: AsyncClient, admin):
        response = await client.get("/api/admin/belt-levels", headers=admin["headers"])
        assert [(b["name"], b["order_rank"]) for b in response.json()] == [
            ("White", 1),
            ("Blue", 2),
            ("Purple", 3),
            ("Brown", 4),
            ("Black", 5),
        ]

    async def test_create_update_delete(self, client: AsyncClient, admin):
        headers = admin["headers"]
        created = await client.post("/api/admin/belt-levels", headers=headers, json={"name": "Coral", "order_rank": 6})
        assert created.status_code == 201
        belt_id = created.json()["id"]

        updated = await client.put(f"/api/admin/belt-levels/{belt_id}", headers=headers, json={"order_rank": 7})
        assert updated.json() == {"id": belt_id, "name": "Coral", "order_rank": 7}

        deleted = await client.delete(f"/api/admin/belt-levels/{belt_id}", headers=headers)
        assert deleted.status_code == 200

    async def test_delete_blocked_while_in_use(self, client: AsyncClient, database, admin):
        belts = await client.get("/api/admin/belt-levels", headers=admin["headers"])
        white = belts.json()[0]["id"]
        await make_technique(database, belt_level_id=white)

        response = await client.delete(f"/api/admin/belt-levels/{white}", headers=admin["headers"])
        assert response.status_code == 409
        assert response.json()["technique_count"] == 1


class TestTechniques:
    async def test_create_with_tags(self, client: AsyncClient, admin):
        response = await client.post(
            "/api/admin/techniques",
            headers=admin["headers"],
            json={
                "title": "Scissor Sweep",
                "video_url": "/uploads/videos/sweep.mp4",
                "difficulty_level": "beginner",
                "tags": [" sweep ", "guard", "", "sweep"],
            },
        )
        assert response.status_code == 201
        data = response.json()
        assert data["tags"] == ["guard", "sweep"]
        assert data["instructor"] == "Larry Hope"
        assert data["is_published"] is True
        assert data["view_count"] == 0

    async def test_create_with_unknown_category(self, client: AsyncClient, admin):
        response = await client.post(
            "/api/admin/techniques",
            headers=admin["headers"],
            json={"title": "X", "video_url": "/v.mp4", "difficulty_level": "beginner", "category_id": 9999},
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Category not found"

    async def test_create_invalid_difficulty(self, client: AsyncClient, admin):
        response = await client.post(
            "/api/admin/techniques",
            headers=admin["headers"],
            json={"title": "X", "video_url": "/v.mp4", "difficulty_level": "expert"},
        )
        assert response.status_code == 400

    async def test_tag_name_length_cap(self, client: AsyncClient, database, admin):
        body = {"title": "Heel Hook", "video_url": "/v.mp4", "difficulty_level": "advanced"}

        too_long = await client.post(
            "/api/admin/techniques", headers=admin["headers"], json={**body, "tags": ["x" * 51]}
        )
        assert too_long.status_code == 400
        assert too_long.json()["message"] == "Validation error"

        # Surrounding whitespace does not count towards the cap.
        at_cap = await client.post(
            "/api/admin/techniques", headers=admin["headers"], json={**body, "tags": [f" {'x' * 50} "]}
        )
        assert at_cap.status_code == 201
        assert at_cap.json()["tags"] == ["x" * 50]

        technique_id = await make_technique(database, tags=["gi"])
        update = await client.put(
            f"/api/admin/techniques/{technique_id}", headers=admin["headers"], json={"tags": ["gi", "y" * 51]}
        )
        assert update.status_code == 400
        unchanged = await client.get(f"/api/admin/techniques/{technique_id}", headers=admin["headers"])
        assert unchanged.json()["tags"] == ["gi"]

    async def test_simultaneous_creates_share_new_tag(self, client: AsyncClient, db_session, admin):
        def create(title: str):
            return client.post(
                "/api/admin/techniques",
                headers=admin["headers"],
                json={"title": title, "video_url": "/v.mp4", "difficulty_level": "beginner", "tags": ["leglock"]},
            )

        responses = await asyncio.gather(create("Heel Hook"), create("Kneebar"))
        assert [r.status_code for r in responses] == [201, 201]
        assert all(r.json()["tags"] == ["leglock"] for r in responses)

        count = (await db_session.execute(select(func.count()).select_from(Tag).where(Tag.name == "leglock"))).scalar()
        assert count == 1

    async def test_tag_update_semantics(self, client: AsyncClient, database, db_session, admin):
        technique_id = await make_technique(database, tags=["gi", "guard"])
        headers = admin["headers"]
        url = f"/api/admin/techniques/{technique_id}"

        untouched = await client.put(url, headers=headers, json={"title": "Renamed"})
        assert untouched.json()["title"] == "Renamed"
        assert untouched.json()["tags"] == ["gi", "guard"]

        replaced = await client.put(url, headers=headers, json={"tags": ["nogi", "gi"]})
        assert replaced.json()["tags"] == ["gi", "nogi"]

        cleared = await client.put(url, headers=headers, json={"tags": []})
        assert cleared.json()["tags"] == []

        # Tags are shared rows, found or created by name, never duplicated.
        tag_names = (await db_session.execute(select(Tag.name).order_by(Tag.name))).scalars().all()
        assert tag_names == ["gi", "guard", "nogi"]

    async def test_update_ignores_null_for_required_fields(self, client: AsyncClient, database, admin):
        technique_id = await make_technique(database, title="Keep me")
        response = await client.put(
            f"/api/admin/techniques/{technique_id}", headers=admin["headers"], json={"title": None}
        )
        assert response.status_code == 200
        assert response.json()["title"] == "Keep me"

    async def test_admin_listing_includes_unpublished(self, client: AsyncClient, database, admin):
        await make_technique(database, title="Live")
        await make_technique(database, title="Draft", is_published=False)
        headers = admin["headers"]

        everything = await client.get("/api/admin/techniques", params={"sort": "title"}, headers=headers)
        assert [t["title"] for t in everything.json()["rows"]] == ["Draft", "Live"]

        drafts = await client.get("/api/admin/techniques", params={"published": "false"}, headers=headers)
        assert [t["title"] for t in drafts.json()["rows"]] == ["Draft"]

    async def test_delete_removes_engagement(self, client: AsyncClient, database, db_session, admin, paid_member):
        technique_id = await make_technique(database, tags=["gi"])
        member_headers = paid_member["headers"]
        await client.post(f"/api/techniques/{technique_id}/favorite", headers=member_headers)
        await client.post(f"/api/techniques/{technique_id}/progress", headers=member_headers, json={})
        await client.post(f"/api/users/notes/{technique_id}", headers=member_headers, json={"note": "x"})

        response = await client.delete(f"/api/admin/techniques/{technique_id}", headers=admin["headers"])
        assert response.status_code == 200

        for model in (UserFavorite, UserProgress, UserNote):
            count = (
                await db_session.execute(select(func.count()).select_from(model).where(model.technique_id == technique_id))
            ).scalar()
            assert count == 0

        missing = await client.get(f"/api/admin/techniques/{technique_id}", headers=admin["headers"])
        assert missing.status_code == 404


class TestUploads:
    async def test_upload_video(self, client: AsyncClient, app, admin):
        response = await client.post(
            "/api/admin/upload/video",
            headers=admin["headers"],
            files={"video": ("armbar.mp4", b"fake-video-bytes", "video/mp4")},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Video uploaded successfully"
        assert data["url"].startswith("/uploads/videos/")
        assert data["url"].endswith("-armbar.mp4")

        stored = app.state.storage.root / "videos" / data["filename"]
        assert stored.read_bytes() == b"fake-video-bytes"

        served = await client.get(data["url"])
        assert served.status_code == 200
        assert served.content == b"fake-video-bytes"

    async def test_upload_thumbnail(self, client: AsyncClient, admin):
        response = await client.post(
            "/api/admin/upload/thumbnail",
            headers=admin["headers"],
            files={"thumbnail": ("thumb.png", b"\x89PNG", "image/png")},
        )
        assert response.status_code == 200
        assert response.json()["url"].startswith("/uploads/thumbnails/")

    async def test_missing_file(self, client: AsyncClient, admin):
        response = await client.post(
            "/api/admin/upload/video",
            headers=admin["headers"],
            files={"other": ("x.txt", b"x", "text/plain")},
        )
        assert response.status_code == 400
        assert response.json()["message"] == "No video file uploaded"

    async def test_upload_requires_admin(self, client: AsyncClient, paid_member):
        response = await client.post(
            "/api/admin/upload/video",
            headers=paid_member["headers"],
            files={"video": ("armbar.mp4", b"x", "video/mp4")},
        )
        assert response.status_code == 403
