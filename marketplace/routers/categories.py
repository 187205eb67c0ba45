import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.auth.middleware import AuthenticatedPrincipal, require_admin
from marketplace.auth.rate_limit import check_rate_limit
from marketplace.database import get_db
from marketplace.schemas.category import CategoryCreate, CategoryResponse
from marketplace.schemas.envelope import Envelope, single_response
from marketplace.services import category as category_service

router = APIRouter(
    prefix="/categories", tags=["categories"], dependencies=[Depends(check_rate_limit)]
)


@router.post(
    "",
    response_model=Envelope[CategoryResponse],
    response_model_exclude_none=True,
    status_code=201,
)
async def create_category(
    data: CategoryCreate,
    auth: AuthenticatedPrincipal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> Envelope[CategoryResponse]:
    category = await category_service.create_category(db, auth.principal_id, data)
    return single_response(CategoryResponse.model_validate(category), "Category created.")


@router.get(
    "/{category_id}",
    response_model=Envelope[CategoryResponse],
    response_model_exclude_none=True,
)
async def get_category(
    category_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
) -> Envelope[CategoryResponse]:
    category = await category_service.get_category(db, category_id)
    return single_response(CategoryResponse.model_validate(category))
