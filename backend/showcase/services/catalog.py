from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, TypeVar

from sqlalchemy import Text, cast, delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from showcase.db.session import SessionLocal, is_healthy
from showcase.models.catalog import CatalogProduct, ProductCategory
from showcase.schemas.catalog import MediaVariantPair, ProductCreate, ProductPage, ProductRead, ProductUpdate
from showcase.services.pagination import PageRequest, build_page, catalog_ordering, expected_page_length
from showcase.services.resilience import NonRetryableError, ResilientExecutor

logger = logging.getLogger(__name__)
T = TypeVar("T")

# Constraint violations fail the same way on every attempt.
STORE_GIVE_UP_ON: tuple[type[BaseException], ...] = (IntegrityError,)


class ProductNotFoundError(NonRetryableError, LookupError):
    def __init__(self, product_id: int) -> None:
        super().__init__(f"Product {product_id} not found")
        self.product_id = product_id


@dataclass(slots=True)
class ProductFilters:
    category: ProductCategory | None = None
    new_collection_only: bool = False


def list_categories() -> list[str]:
    return [category.value for category in ProductCategory]


# Media field decoding


def _pair_from_item(item: Any) -> MediaVariantPair | None:
    if isinstance(item, str):
        # Earliest rows stored one data URL per asset.
        return MediaVariantPair(thumbnail=item, full=item) if item else None
    if isinstance(item, dict):
        thumbnail = item.get("thumbnail") or item.get("full")
        full = item.get("full") or item.get("thumbnail")
        if isinstance(thumbnail, str) and isinstance(full, str) and thumbnail and full:
            return MediaVariantPair(thumbnail=thumbnail, full=full)
    return None


def _pairs_from_list(items: list[Any]) -> list[MediaVariantPair]:
    pairs: list[MediaVariantPair] = []
    for item in items:
        pair = _pair_from_item(item)
        if pair is not None:
            pairs.append(pair)
    return pairs


def _parse_media_text(raw: str | bytes) -> list[Any] | None:
    value: Any = raw
    # A JSON string that itself encodes the list is unwrapped once more.
    for _ in range(2):
        if isinstance(value, bytes):
            value = value.decode("utf-8", errors="strict")
        if not isinstance(value, str):
            break
        try:
            value = json.loads(value)
        except ValueError:
            return None
    return value if isinstance(value, list) else None


def decode_media(raw: Any) -> list[MediaVariantPair] | None:
    """Normalize a stored media value.

    Returns None when the value is a shape this function cannot interpret and the
    caller should fall back to the raw column text.
    """
    if raw is None:
        return []
    if isinstance(raw, list):
        return _pairs_from_list(raw)
    if isinstance(raw, (str, bytes)):
        items = _parse_media_text(raw)
        return _pairs_from_list(items) if items is not None else None
    return None


def _string_list(value: Any) -> list[str]:
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, list):
        return [str(item) for item in value if item is not None]
    return []


def _to_read(row: CatalogProduct, media: list[MediaVariantPair]) -> ProductRead:
    return ProductRead(
        id=row.id,
        name=row.name,
        description=row.description or "",
        category=row.category,
        sizes=_string_list(row.sizes),
        colors=_string_list(row.colors),
        tags=_string_list(row.tags),
        media=media,
        is_new_collection=bool(row.is_new_collection),
        sold_out=bool(row.sold_out),
        created_at=row.created_at,
    )


class CatalogRepository:
    """Sole reader/writer of catalog rows; every method is one retried unit of work."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        executor: ResilientExecutor | None = None,
    ) -> None:
        self.session_factory = session_factory or SessionLocal
        self.executor = executor or ResilientExecutor(is_healthy, give_up_on=STORE_GIVE_UP_ON)

    async def _run(self, work: Callable[[AsyncSession], Awaitable[T]], *, label: str) -> T:
        async def operation() -> T:
            async with self.session_factory() as session:
                return await work(session)

        return await self.executor.execute(operation, label=label)

    async def _load_media(self, session: AsyncSession, row: CatalogProduct) -> list[MediaVariantPair]:
        try:
            media = decode_media(row.media)
        except (ValueError, UnicodeDecodeError):
            media = None
        if media is None:
            raw_text = await session.scalar(
                select(cast(CatalogProduct.media, Text)).where(CatalogProduct.id == row.id)
            )
            try:
                media = decode_media(raw_text) if isinstance(raw_text, str) else None
            except (ValueError, UnicodeDecodeError):
                media = None
        if media is None:
            logger.warning(
                "catalog_media_decode_failed",
                extra={"product_id": row.id, "raw_type": type(row.media).__name__},
            )
            return []
        return media

    async def list_products(self, filters: ProductFilters, page: PageRequest) -> ProductPage:
        conditions = []
        if filters.category is not None:
            conditions.append(CatalogProduct.category == filters.category)
        if filters.new_collection_only:
            conditions.append(CatalogProduct.is_new_collection.is_(True))

        async def work(session: AsyncSession) -> ProductPage:
            total = int(await session.scalar(select(func.count()).select_from(CatalogProduct).where(*conditions)) or 0)
            length = expected_page_length(page, total)
            if length == 0:
                return build_page([], total, page)
            result = await session.execute(
                select(CatalogProduct)
                .where(*conditions)
                .order_by(*catalog_ordering(CatalogProduct))
                .offset(page.offset)
                .limit(length)
            )
            items = [_to_read(row, await self._load_media(session, row)) for row in result.scalars().all()]
            return build_page(items, total, page)

        return await self._run(work, label="catalog.list")

    async def get_product(self, product_id: int) -> ProductRead | None:
        async def work(session: AsyncSession) -> ProductRead | None:
            row = await session.get(CatalogProduct, product_id)
            if row is None:
                return None
            return _to_read(row, await self._load_media(session, row))

        return await self._run(work, label="catalog.get")

    async def create_product(self, payload: ProductCreate) -> ProductRead:
        media = [pair.model_dump() for pair in payload.media]

        async def work(session: AsyncSession) -> ProductRead:
            row = CatalogProduct(
                name=payload.name,
                description=payload.description,
                category=payload.category,
                sizes=list(payload.sizes),
                colors=list(payload.colors),
                tags=list(payload.tags),
                media=media,
                is_new_collection=payload.is_new_collection,
                sold_out=payload.sold_out,
                created_at=datetime.now(timezone.utc),
            )
            session.add(row)
            await session.commit()
            await session.refresh(row)
            return _to_read(row, list(payload.media))

        product = await self._run(work, label="catalog.create")
        logger.info("catalog_product_created", extra={"product_id": product.id, "media_count": len(product.media)})
        return product

    async def update_product(self, product_id: int, payload: ProductUpdate) -> ProductRead:
        changes = payload.model_dump(exclude_unset=True, exclude_none=True)

        async def work(session: AsyncSession) -> ProductRead:
            row = await session.get(CatalogProduct, product_id)
            if row is None:
                raise ProductNotFoundError(product_id)
            if "sold_out" in changes:
                row.sold_out = bool(changes["sold_out"])
            await session.commit()
            return _to_read(row, await self._load_media(session, row))

        return await self._run(work, label="catalog.update")

    async def delete_product(self, product_id: int) -> None:
        async def work(session: AsyncSession) -> None:
            existing = await session.scalar(select(CatalogProduct.id).where(CatalogProduct.id == product_id))
            if existing is None:
                raise ProductNotFoundError(product_id)
            await session.execute(delete(CatalogProduct).where(CatalogProduct.id == product_id))
            await session.commit()

        await self._run(work, label="catalog.delete")
        logger.info("catalog_product_deleted", extra={"product_id": product_id})
