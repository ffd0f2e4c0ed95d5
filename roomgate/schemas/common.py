import math
from typing import Generic, List, TypeVar

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

T = TypeVar("T")
DataT = TypeVar("DataT")
MetaT = TypeVar("MetaT")


class APIModel(BaseModel):
    """Base schema: snake_case in Python, camelCase on the wire."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class Page(APIModel, Generic[T]):
    items: List[T]
    total_docs: int
    limit: int
    page: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool

    @classmethod
    def build(cls, items: List[T], total_docs: int, page: int, limit: int) -> "Page[T]":
        total_pages = math.ceil(total_docs / limit) if limit else 0
        return cls(
            items=items,
            total_docs=total_docs,
            limit=limit,
            page=page,
            total_pages=total_pages,
            has_next_page=page < total_pages,
            has_prev_page=page > 1,
        )


class Envelope(APIModel, Generic[DataT, MetaT]):
    """Result payload plus precomputed capability flags for the caller."""
    data: DataT
    meta: MetaT
