from typing import Any, List, Sequence, Tuple

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from roomgate.core.exceptions import ValidationException


def validate_page(page: int, limit: int, max_limit: int) -> None:
    if page < 1:
        raise ValidationException(detail="page must be at least 1")
    if limit < 1:
        raise ValidationException(detail="limit must be greater than 0")
    if limit > max_limit:
        raise ValidationException(detail=f"limit must not exceed {max_limit}")


async def fetch_page(
    db: AsyncSession,
    query: Select,
    page: int,
    limit: int,
    options: Sequence[Any] = (),
) -> Tuple[List[Any], int]:
    """
    Run ``query`` for one page of ORM rows and count the full result.

    Loader ``options`` are applied to the page query only, never to the
    count subquery.
    """
    total = await db.scalar(
        select(func.count()).select_from(query.order_by(None).subquery())
    )
    result = await db.execute(
        query.options(*options).offset((page - 1) * limit).limit(limit)
    )
    return list(result.scalars().all()), total or 0
