import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.database import commit_unique
from marketplace.errors import DuplicateEntryError, NotFoundError
from marketplace.models.category import Category
from marketplace.schemas.category import CategoryCreate


async def create_category(
    db: AsyncSession, admin_id: uuid.UUID, data: CategoryCreate
) -> Category:
    name = data.name.strip()
    existing = await db.execute(select(Category.category_id).where(Category.name == name))
    if existing.first() is not None:
        raise DuplicateEntryError()

    category = Category(
        category_id=uuid.uuid4(),
        name=name,
        image_url=data.image_url,
        created_by=admin_id,
    )
    db.add(category)
    await commit_unique(db)
    await db.refresh(category)
    return category


async def get_category(db: AsyncSession, category_id: uuid.UUID) -> Category:
    result = await db.execute(select(Category).where(Category.category_id == category_id))
    category = result.scalar_one_or_none()
    if category is None:
        raise NotFoundError("Category not found")
    return category
