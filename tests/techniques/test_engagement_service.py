"""Engagement tracker service tests."""

from datetime import datetime, timedelta, timezone

import pytest

from tests.conftest import make_technique, make_user
from whbjj.content.service import favorite_ids
from whbjj.engagement.service import (
    delete_note,
    list_favorites,
    record_view,
    toggle_favorite,
    update_progress,
    upsert_note,
)
from whbjj.errors import NotFound, ValidationError
from whbjj.memberships.service import as_utc


class TestToggleFavorite:
    async def test_toggle_is_its_own_inverse(self, database, db_session):
        user = await make_user(database)
        technique_id = await make_technique(database)

        assert await toggle_favorite(db_session, user["id"], technique_id) is True
        assert await toggle_favorite(db_session, user["id"], technique_id) is False
        assert await favorite_ids(db_session, user["id"]) == set()

        assert await toggle_favorite(db_session, user["id"], technique_id) is True
        rows, total = await list_favorites(db_session, user["id"])
        assert total == 1
        assert rows[0].technique_id == technique_id

    async def test_unknown_technique(self, database, db_session):
        user = await make_user(database)
        with pytest.raises(NotFound):
            await toggle_favorite(db_session, user["id"], 424242)


class TestProgress:
    async def test_last_viewed_never_decreases(self, database, db_session):
        user = await make_user(database)
        technique_id = await make_technique(database)
        base = datetime(2026, 1, 10, 12, 0, tzinfo=timezone.utc)

        progress = await update_progress(db_session, user["id"], technique_id, status="in_progress", now=base)
        first = as_utc(progress.last_viewed)

        progress = await update_progress(db_session, user["id"], technique_id, now=base + timedelta(minutes=5))
        second = as_utc(progress.last_viewed)

        # A clock that jumps backwards must not move last_viewed back.
        progress = await update_progress(db_session, user["id"], technique_id, now=base - timedelta(days=1))
        third = as_utc(progress.last_viewed)

        assert first <= second <= third
        assert third == base + timedelta(minutes=5)
        assert progress.status == "in_progress"

    async def test_record_view_creates_not_started_row(self, database, db_session):
        user = await make_user(database)
        technique_id = await make_technique(database)

        progress = await record_view(db_session, user["id"], technique_id)
        assert progress.status == "not_started"
        assert progress.progress_percentage == 0
        assert progress.last_viewed is not None

    async def test_invalid_values_rejected(self, database, db_session):
        user = await make_user(database)
        technique_id = await make_technique(database)
        with pytest.raises(ValidationError):
            await update_progress(db_session, user["id"], technique_id, status="halfway")
        with pytest.raises(ValidationError):
            await update_progress(db_session, user["id"], technique_id, progress_percentage=101)


class TestNotes:
    async def test_upsert_reports_created_then_updated(self, database, db_session):
        user = await make_user(database)
        technique_id = await make_technique(database)

        note, created = await upsert_note(db_session, user["id"], technique_id, "first")
        assert created is True
        same, created = await upsert_note(db_session, user["id"], technique_id, "second")
        assert created is False
        assert same.id == note.id
        assert same.note == "second"

    async def test_delete_missing_note(self, database, db_session):
        user = await make_user(database)
        technique_id = await make_technique(database)
        with pytest.raises(NotFound):
            await delete_note(db_session, user["id"], technique_id)
