"""Catalog tree records served by the catalog store."""

from typing import Optional

from pydantic import BaseModel, Field


class CatalogEntry(BaseModel):
    """
    A node in the product tree.

    Children point at their parent through ``parent_id``; parents never list
    their children. ``aliases`` holds only this node's own terms; the
    effective alias set (own plus every ancestor's) is computed by the
    catalog index at lookup time.
    """
    id: str
    name: str
    parent_id: Optional[str] = None
    aliases: list[str] = Field(default_factory=list)
    size: Optional[str] = None
    sellable: bool = False
    active: bool = True
    price: Optional[float] = None
    link: Optional[str] = None
    wholesale_min_qty: Optional[int] = None
    wholesale_price: Optional[float] = None
    percentage: Optional[int] = None
    color: Optional[str] = None

    @property
    def is_retail(self) -> bool:
        return self.price is not None

    @property
    def is_wholesale_only(self) -> bool:
        return self.price is None and self.wholesale_price is not None


class UseCase(BaseModel):
    """A usage scenario ("cochera", "invernadero") and the products that fit it."""
    id: str
    name: str
    keywords: list[str] = Field(default_factory=list)
    product_ids: list[str] = Field(default_factory=list)
    priority: int = 0
    available: bool = True
