from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from showcase.models.catalog import ProductCategory


def normalize_tags(values: list[str]) -> list[str]:
    """Lowercase, trim and de-duplicate tags, keeping first-seen order."""
    seen: dict[str, None] = {}
    for value in values:
        tag = str(value or "").strip().lower()
        if tag:
            seen.setdefault(tag, None)
    return list(seen)


class MediaVariantPair(BaseModel):
    model_config = ConfigDict(frozen=True)

    thumbnail: str = Field(min_length=1)
    full: str = Field(min_length=1)


class ProductDraft(BaseModel):
    """Scalar fields of a product as submitted by an administrator, before media is attached."""

    name: str = Field(min_length=1, max_length=160)
    description: str = ""
    category: ProductCategory
    sizes: list[str] = Field(default_factory=list)
    colors: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    is_new_collection: bool = False
    sold_out: bool = False

    @field_validator("name")
    @classmethod
    def _strip_name(cls, name: str) -> str:
        cleaned = name.strip()
        if not cleaned:
            raise ValueError("Name must not be blank")
        return cleaned

    @field_validator("sizes", "colors")
    @classmethod
    def _strip_items(cls, values: list[str]) -> list[str]:
        return [item.strip() for item in values if item and item.strip()]

    @field_validator("tags")
    @classmethod
    def _normalize_tags(cls, values: list[str]) -> list[str]:
        return normalize_tags(values)


class ProductCreate(ProductDraft):
    media: list[MediaVariantPair] = Field(default_factory=list)


class ProductUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    sold_out: bool | None = None


class ProductRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str
    category: ProductCategory
    sizes: list[str]
    colors: list[str]
    tags: list[str]
    media: list[MediaVariantPair]
    is_new_collection: bool
    sold_out: bool
    created_at: datetime


class ProductPage(BaseModel):
    items: list[ProductRead]
    total: int
    has_more: bool
