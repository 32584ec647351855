import enum
import json
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Enum, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.engine import Dialect
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import TypeDecorator, TypeEngine

from showcase.db.base import Base


class ProductCategory(str, enum.Enum):
    tops = "Tops"
    dresses = "Dresses"
    ethnic_wear = "Ethnic Wear"
    bottoms = "Bottoms"
    accessories = "Accessories"


# Rows written by older revisions hold either a JSON list, a JSON string that
# itself encodes the list, or text that is not JSON at all. Readers go through
# CatalogRepository's decode step.
class MediaColumnType(TypeDecorator):
    """JSONB on PostgreSQL, JSON text elsewhere; undecodable text is returned as-is."""

    impl = Text
    cache_ok = True

    def load_dialect_impl(self, dialect: Dialect) -> TypeEngine[Any]:
        if dialect.name == "postgresql":
            return dialect.type_descriptor(JSONB())
        return dialect.type_descriptor(Text())

    def process_bind_param(self, value: Any, dialect: Dialect) -> Any:
        if value is None or dialect.name == "postgresql":
            return value
        return json.dumps(value)

    def process_result_value(self, value: Any, dialect: Dialect) -> Any:
        if not isinstance(value, str) or dialect.name == "postgresql":
            return value
        try:
            return json.loads(value)
        except ValueError:
            return value


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CatalogProduct(Base):
    __tablename__ = "catalog_products"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category: Mapped[ProductCategory] = mapped_column(
        Enum(ProductCategory, values_callable=lambda members: [m.value for m in members], native_enum=False),
        nullable=False,
        index=True,
    )
    sizes: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    colors: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    tags: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    media: Mapped[Any] = mapped_column(MediaColumnType(), nullable=False, default=list)
    is_new_collection: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    sold_out: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
