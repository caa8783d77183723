"""Content repository: techniques, categories, belt levels and tags."""

from __future__ import annotations

from dataclasses import dataclass
from functools import partial
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import ColumnElement, delete, func, or_, select, update

from whbjj.config import get_settings
from whbjj.db.inserts import insert_or_reload
from whbjj.db.models import (
    DIFFICULTY_LEVELS,
    TAG_NAME_MAX_LENGTH,
    BeltLevel,
    Category,
    Tag,
    Technique,
    UserFavorite,
    UserNote,
    UserProgress,
)
from whbjj.errors import Conflict, NotFound, ValidationError
from whbjj.pagination import clamp_page

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

BELT_SEED_DATA: list[dict[str, Any]] = [
    {"name": "White", "order_rank": 1},
    {"name": "Blue", "order_rank": 2},
    {"name": "Purple", "order_rank": 3},
    {"name": "Brown", "order_rank": 4},
    {"name": "Black", "order_rank": 5},
]

REQUIRED_FIELDS = frozenset({"title", "video_url", "difficulty_level", "is_featured", "is_published"})

SORT_ORDERS: dict[str, tuple[ColumnElement[Any], ...]] = {
    "newest": (Technique.created_at.desc(), Technique.id.desc()),
    "oldest": (Technique.created_at.asc(), Technique.id.asc()),
    "title": (Technique.title.asc(), Technique.id.asc()),
    "title_asc": (Technique.title.asc(), Technique.id.asc()),
    "title_desc": (Technique.title.desc(), Technique.id.desc()),
    "popular": (Technique.view_count.desc(), Technique.id.desc()),
}


@dataclass
class TechniqueFilters:
    """Listing filters shared by the member and admin technique listings."""

    search: str | None = None
    category_id: int | None = None
    belt_level_id: int | None = None
    difficulty: str | None = None
    position: str | None = None
    featured: bool | None = None
    published: bool | None = None
    sort: str = "newest"
    limit: int = 20
    offset: int = 0


# ---------------------------------------------------------------------------
# Techniques: reads
# ---------------------------------------------------------------------------


def _technique_conditions(filters: TechniqueFilters) -> list[ColumnElement[bool]]:
    conditions: list[ColumnElement[bool]] = []
    if filters.published is not None:
        conditions.append(Technique.is_published.is_(filters.published))
    if filters.category_id is not None:
        conditions.append(Technique.category_id == filters.category_id)
    if filters.belt_level_id is not None:
        conditions.append(Technique.belt_level_id == filters.belt_level_id)
    if filters.difficulty:
        conditions.append(Technique.difficulty_level == filters.difficulty)
    if filters.position:
        conditions.append(Technique.position == filters.position)
    if filters.featured:
        conditions.append(Technique.is_featured.is_(True))
    if filters.search:
        term = filters.search.strip()
        conditions.append(
            or_(
                Technique.title.icontains(term, autoescape=True),
                Technique.description.icontains(term, autoescape=True),
            )
        )
    return conditions


async def list_techniques(db: AsyncSession, filters: TechniqueFilters) -> tuple[list[Technique], int]:
    """
    Filtered, sorted, paginated technique listing.

    Returns:
        Tuple of (page of techniques, total matching count).
    """
    conditions = _technique_conditions(filters)
    limit, offset = clamp_page(filters.limit, filters.offset)
    order = SORT_ORDERS.get(filters.sort, SORT_ORDERS["newest"])

    total = (await db.execute(select(func.count(Technique.id)).where(*conditions))).scalar() or 0
    result = await db.execute(select(Technique).where(*conditions).order_by(*order).limit(limit).offset(offset))
    return list(result.scalars().all()), total


async def get_technique(db: AsyncSession, technique_id: int) -> Technique | None:
    """Fetch a technique with category, belt level and tags loaded fresh."""
    result = await db.execute(
        select(Technique).where(Technique.id == technique_id).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def require_technique(db: AsyncSession, technique_id: int) -> Technique:
    """Fetch a technique or raise NotFound."""
    technique = await get_technique(db, technique_id)
    if technique is None:
        msg = "Technique not found"
        raise NotFound(msg)
    return technique


async def increment_view_count(db: AsyncSession, technique: Technique) -> None:
    """Atomically add one view."""
    await db.execute(
        update(Technique)
        .where(Technique.id == technique.id)
        .values(view_count=Technique.view_count + 1, updated_at=Technique.updated_at)
        .execution_options(synchronize_session=False)
    )
    await db.refresh(technique, attribute_names=["view_count"])


async def related_techniques(db: AsyncSession, technique: Technique, limit: int = 4) -> list[Technique]:
    """Published techniques sharing category, belt level or position, most viewed first."""
    shared: list[ColumnElement[bool]] = []
    if technique.category_id is not None:
        shared.append(Technique.category_id == technique.category_id)
    if technique.belt_level_id is not None:
        shared.append(Technique.belt_level_id == technique.belt_level_id)
    if technique.position:
        shared.append(Technique.position == technique.position)
    if not shared:
        return []

    result = await db.execute(
        select(Technique)
        .where(Technique.id != technique.id)
        .where(Technique.is_published.is_(True))
        .where(or_(*shared))
        .order_by(Technique.view_count.desc(), Technique.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def favorite_ids(db: AsyncSession, user_id: int, technique_ids: Iterable[int] | None = None) -> set[int]:
    """IDs among ``technique_ids`` (or all) the user has favorited."""
    query = select(UserFavorite.technique_id).where(UserFavorite.user_id == user_id)
    if technique_ids is not None:
        ids = list(technique_ids)
        if not ids:
            return set()
        query = query.where(UserFavorite.technique_id.in_(ids))
    result = await db.execute(query)
    return set(result.scalars().all())


async def filter_options(db: AsyncSession) -> dict[str, Any]:
    """Values the client offers in its technique filters."""
    categories = (await db.execute(select(Category).order_by(Category.name))).scalars().all()
    belt_levels = (await db.execute(select(BeltLevel).order_by(BeltLevel.order_rank))).scalars().all()
    positions = (
        await db.execute(
            select(Technique.position)
            .where(Technique.position.is_not(None))
            .distinct()
            .order_by(Technique.position)
        )
    ).scalars().all()
    return {
        "categories": list(categories),
        "belt_levels": list(belt_levels),
        "positions": list(positions),
        "difficulty_levels": list(DIFFICULTY_LEVELS),
    }


# ---------------------------------------------------------------------------
# Tags
# ---------------------------------------------------------------------------


def normalize_tag_names(names: Iterable[str]) -> list[str]:
    """Trim, drop blanks and de-duplicate while keeping first-seen order."""
    seen: dict[str, None] = {}
    for name in names:
        cleaned = name.strip()
        if cleaned and cleaned not in seen:
            seen[cleaned] = None
    return list(seen)


async def find_or_create_tags(db: AsyncSession, names: Iterable[str]) -> list[Tag]:
    """Resolve tag names to rows, creating the missing ones."""
    wanted = normalize_tag_names(names)
    if not wanted:
        return []
    too_long = [name for name in wanted if len(name) > TAG_NAME_MAX_LENGTH]
    if too_long:
        msg = f"Tag names must be at most {TAG_NAME_MAX_LENGTH} characters"
        raise ValidationError(msg, tags=too_long)

    result = await db.execute(select(Tag).where(Tag.name.in_(wanted)))
    existing = {tag.name: tag for tag in result.scalars().all()}
    for name in wanted:
        if name not in existing:
            existing[name], _ = await insert_or_reload(db, Tag(name=name), partial(_tag_named, db, name))
    return [existing[name] for name in wanted]


async def _tag_named(db: AsyncSession, name: str) -> Tag | None:
    return (await db.execute(select(Tag).where(Tag.name == name))).scalar_one_or_none()


# ---------------------------------------------------------------------------
# Techniques: writes
# ---------------------------------------------------------------------------


async def _check_references(db: AsyncSession, category_id: int | None, belt_level_id: int | None) -> None:
    if category_id is not None and await db.get(Category, category_id) is None:
        msg = "Category not found"
        raise ValidationError(msg)
    if belt_level_id is not None and await db.get(BeltLevel, belt_level_id) is None:
        msg = "Belt level not found"
        raise ValidationError(msg)


async def create_technique(db: AsyncSession, fields: dict[str, Any], tags: Sequence[str] | None = None) -> Technique:
    """Create a technique and attach its tags in the caller's transaction."""
    await _check_references(db, fields.get("category_id"), fields.get("belt_level_id"))
    if not fields.get("instructor"):
        fields["instructor"] = get_settings().default_instructor

    technique = Technique(**fields)
    technique.tags = await find_or_create_tags(db, tags or [])
    db.add(technique)
    await db.flush()
    logger.info("technique_created", technique_id=technique.id, title=technique.title)
    return await require_technique(db, technique.id)


async def update_technique(
    db: AsyncSession,
    technique: Technique,
    fields: dict[str, Any],
    tags: Sequence[str] | None = None,
) -> Technique:
    """
    Apply provided fields; replace the tag set when ``tags`` is not None.

    Tag replacement happens in the same transaction as the field update, so a
    failure never leaves the technique half-tagged.
    """
    fields = {key: value for key, value in fields.items() if value is not None or key not in REQUIRED_FIELDS}
    await _check_references(db, fields.get("category_id"), fields.get("belt_level_id"))
    for key, value in fields.items():
        setattr(technique, key, value)
    if tags is not None:
        technique.tags = await find_or_create_tags(db, tags)
    await db.flush()
    logger.info("technique_updated", technique_id=technique.id, fields=sorted(fields), tags_replaced=tags is not None)
    return await require_technique(db, technique.id)


async def delete_technique(db: AsyncSession, technique: Technique) -> None:
    """Delete a technique together with its engagement rows and tag links."""
    for model in (UserFavorite, UserProgress, UserNote):
        await db.execute(delete(model).where(model.technique_id == technique.id))
    await db.delete(technique)
    await db.flush()
    logger.info("technique_deleted", technique_id=technique.id)


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------


async def list_categories(db: AsyncSession) -> list[Category]:
    result = await db.execute(select(Category).order_by(Category.name))
    return list(result.scalars().all())


async def _require(db: AsyncSession, model: type[Category] | type[BeltLevel], entity_id: int, label: str) -> Any:
    entity = await db.get(model, entity_id)
    if entity is None:
        msg = f"{label} not found"
        raise NotFound(msg)
    return entity


async def _name_taken(db: AsyncSession, model: type[Category] | type[BeltLevel], name: str, exclude_id: int | None) -> bool:
    query = select(model.id).where(model.name == name)
    if exclude_id is not None:
        query = query.where(model.id != exclude_id)
    return (await db.execute(query.limit(1))).scalar_one_or_none() is not None


async def create_category(db: AsyncSession, name: str, description: str | None = None) -> Category:
    """Create a category with a unique name."""
    if await _name_taken(db, Category, name, None):
        msg = "Category already exists"
        raise ValidationError(msg)
    category = Category(name=name, description=description)
    db.add(category)
    await db.flush()
    logger.info("category_created", category_id=category.id, name=name)
    return category


async def update_category(
    db: AsyncSession,
    category_id: int,
    name: str | None = None,
    description: str | None = None,
) -> Category:
    """Rename or re-describe a category."""
    category: Category = await _require(db, Category, category_id, "Category")
    if name is not None and name != category.name:
        if await _name_taken(db, Category, name, category.id):
            msg = "Category name already exists"
            raise ValidationError(msg)
        category.name = name
    if description is not None:
        category.description = description
    await db.flush()
    return category


async def delete_category(db: AsyncSession, category_id: int) -> None:
    """Delete a category unless techniques still reference it."""
    category: Category = await _require(db, Category, category_id, "Category")
    in_use = (
        await db.execute(select(func.count(Technique.id)).where(Technique.category_id == category.id))
    ).scalar() or 0
    if in_use:
        msg = "Cannot delete category that is in use"
        raise Conflict(msg, technique_count=in_use)
    await db.delete(category)
    await db.flush()
    logger.info("category_deleted", category_id=category_id)


# ---------------------------------------------------------------------------
# Belt levels
# ---------------------------------------------------------------------------


async def list_belt_levels(db: AsyncSession) -> list[BeltLevel]:
    result = await db.execute(select(BeltLevel).order_by(BeltLevel.order_rank))
    return list(result.scalars().all())


async def create_belt_level(db: AsyncSession, name: str, order_rank: int) -> BeltLevel:
    """Create a belt level with a unique name."""
    if await _name_taken(db, BeltLevel, name, None):
        msg = "Belt level already exists"
        raise ValidationError(msg)
    belt = BeltLevel(name=name, order_rank=order_rank)
    db.add(belt)
    await db.flush()
    return belt


async def update_belt_level(
    db: AsyncSession,
    belt_level_id: int,
    name: str | None = None,
    order_rank: int | None = None,
) -> BeltLevel:
    belt: BeltLevel = await _require(db, BeltLevel, belt_level_id, "Belt level")
    if name is not None and name != belt.name:
        if await _name_taken(db, BeltLevel, name, belt.id):
            msg = "Belt level name already exists"
            raise ValidationError(msg)
        belt.name = name
    if order_rank is not None:
        belt.order_rank = order_rank
    await db.flush()
    return belt


async def delete_belt_level(db: AsyncSession, belt_level_id: int) -> None:
    """Delete a belt level unless techniques still reference it."""
    belt: BeltLevel = await _require(db, BeltLevel, belt_level_id, "Belt level")
    in_use = (
        await db.execute(select(func.count(Technique.id)).where(Technique.belt_level_id == belt.id))
    ).scalar() or 0
    if in_use:
        msg = "Cannot delete belt level that is in use"
        raise Conflict(msg, technique_count=in_use)
    await db.delete(belt)
    await db.flush()


async def seed_belt_levels(db: AsyncSession) -> int:
    """Insert missing standard belt levels. Returns number inserted."""
    existing = set((await db.execute(select(BeltLevel.name))).scalars().all())
    inserted = 0
    for belt_data in BELT_SEED_DATA:
        if belt_data["name"] not in existing:
            db.add(BeltLevel(**belt_data))
            inserted += 1
    await db.commit()
    logger.info("belt_levels_seeded", inserted=inserted)
    return inserted
