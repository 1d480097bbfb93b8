"""
Schemas shared by every listing endpoint.
"""

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    """One page of a filtered listing plus the unpaged total."""
    items: list[T]
    total: int
    page: int
    page_size: int
