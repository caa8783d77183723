"""Tag normalisation and find-or-create."""

import pytest
from sqlalchemy import select

from whbjj.content.service import find_or_create_tags, normalize_tag_names
from whbjj.db.models import Tag
from whbjj.errors import ValidationError


def test_normalize_trims_drops_blanks_and_duplicates():
    assert normalize_tag_names([" guard ", "", "sweep", "guard", "  "]) == ["guard", "sweep"]


def test_normalize_is_case_sensitive():
    assert normalize_tag_names(["Gi", "gi"]) == ["Gi", "gi"]


async def test_find_or_create_reuses_existing_rows(db_session):
    first = await find_or_create_tags(db_session, ["guard", "sweep"])
    await db_session.commit()

    second = await find_or_create_tags(db_session, ["sweep", "nogi", "sweep "])
    await db_session.commit()

    assert [t.name for t in second] == ["sweep", "nogi"]
    assert second[0].id == first[1].id

    names = (await db_session.execute(select(Tag.name).order_by(Tag.name))).scalars().all()
    assert names == ["guard", "nogi", "sweep"]


async def test_find_or_create_empty(db_session):
    assert await find_or_create_tags(db_session, ["", "  "]) == []


async def test_find_or_create_rejects_overlong_names(db_session):
    with pytest.raises(ValidationError) as excinfo:
        await find_or_create_tags(db_session, ["guard", "x" * 51])
    assert excinfo.value.extra == {"tags": ["x" * 51]}

    names = (await db_session.execute(select(Tag.name))).scalars().all()
    assert names == []
