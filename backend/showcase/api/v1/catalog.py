import json

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from pydantic import ValidationError

from showcase.core.config import settings
from showcase.core.dependencies import get_catalog_repository, require_admin
from showcase.models.catalog import ProductCategory
from showcase.schemas.catalog import ProductDraft, ProductPage, ProductRead, ProductUpdate
from showcase.services import ingestion
from showcase.services.catalog import CatalogRepository, ProductFilters, ProductNotFoundError, list_categories
from showcase.services.pagination import PageRequest, page_request

router = APIRouter(prefix="/catalog", tags=["catalog"])


def _page(page: int, page_size: int | None) -> PageRequest:
    try:
        return page_request(page, page_size)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


def _category(raw: str) -> ProductCategory:
    try:
        return ProductCategory(raw)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid category")


def _parse_list_field(raw: str | None, field: str) -> list[str]:
    value = (raw or "").strip()
    if not value:
        return []
    if value.startswith("["):
        try:
            parsed = json.loads(value)
        except ValueError:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid {field}")
        if not isinstance(parsed, list) or not all(isinstance(item, str) for item in parsed):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid {field}")
        return parsed
    return [part.strip() for part in value.split(",") if part.strip()]


def _validation_detail(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        loc = ".".join(str(item) for item in error.get("loc", ()))
        parts.append(f"{loc}: {error.get('msg')}" if loc else str(error.get("msg")))
    return "; ".join(parts) or "Invalid product"


async def _read_uploads(files: list[UploadFile]) -> list[ingestion.UploadedMedia]:
    max_bytes = int(settings.upload_max_bytes or 0)
    uploads: list[ingestion.UploadedMedia] = []
    for file in files:
        content = await file.read(max_bytes + 1 if max_bytes else -1)
        uploads.append(ingestion.UploadedMedia(blob=content, content_type=file.content_type, filename=file.filename))
    return uploads


@router.get("/categories", response_model=list[str])
async def get_categories() -> list[str]:
    return list_categories()


@router.get("/products", response_model=ProductPage)
async def list_products(
    page: int = Query(default=1, ge=1),
    page_size: int | None = Query(default=None, ge=1),
    category: str | None = Query(default=None),
    new_collection: bool = Query(default=False),
    repository: CatalogRepository = Depends(get_catalog_repository),
) -> ProductPage:
    filters = ProductFilters(category=_category(category) if category else None, new_collection_only=new_collection)
    return await repository.list_products(filters, _page(page, page_size))


@router.get("/products/new-collection", response_model=ProductPage)
async def list_new_collection(
    page: int = Query(default=1, ge=1),
    page_size: int | None = Query(default=None, ge=1),
    repository: CatalogRepository = Depends(get_catalog_repository),
) -> ProductPage:
    return await repository.list_products(ProductFilters(new_collection_only=True), _page(page, page_size))


@router.get("/products/category/{category}", response_model=ProductPage)
async def list_by_category(
    category: str,
    page: int = Query(default=1, ge=1),
    page_size: int | None = Query(default=None, ge=1),
    repository: CatalogRepository = Depends(get_catalog_repository),
) -> ProductPage:
    return await repository.list_products(ProductFilters(category=_category(category)), _page(page, page_size))


@router.get("/products/{product_id}", response_model=ProductRead)
async def get_product(
    product_id: int,
    repository: CatalogRepository = Depends(get_catalog_repository),
) -> ProductRead:
    product = await repository.get_product(product_id)
    if product is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return product


# Admin endpoints


@router.post("/products", response_model=ProductRead, status_code=status.HTTP_201_CREATED)
async def create_product(
    name: str = Form(...),
    category: str = Form(...),
    description: str = Form(default=""),
    sizes: str | None = Form(default=None),
    colors: str | None = Form(default=None),
    tags: str | None = Form(default=None),
    is_new_collection: bool = Form(default=False),
    sold_out: bool = Form(default=False),
    files: list[UploadFile] | None = File(default=None),
    repository: CatalogRepository = Depends(get_catalog_repository),
    _: str = Depends(require_admin),
) -> ProductRead:
    try:
        draft = ProductDraft(
            name=name,
            description=description,
            category=_category(category),
            sizes=_parse_list_field(sizes, "sizes"),
            colors=_parse_list_field(colors, "colors"),
            tags=_parse_list_field(tags, "tags"),
            is_new_collection=is_new_collection,
            sold_out=sold_out,
        )
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=_validation_detail(exc))

    uploads = await _read_uploads(files or [])
    try:
        payload = await ingestion.assemble_product(draft, uploads)
    except ingestion.UploadRejectedError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return await repository.create_product(payload)


@router.patch("/products/{product_id}", response_model=ProductRead)
async def update_product(
    product_id: int,
    payload: ProductUpdate,
    repository: CatalogRepository = Depends(get_catalog_repository),
    _: str = Depends(require_admin),
) -> ProductRead:
    try:
        return await repository.update_product(product_id, payload)
    except ProductNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")


@router.delete("/products/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_product(
    product_id: int,
    repository: CatalogRepository = Depends(get_catalog_repository),
    _: str = Depends(require_admin),
) -> None:
    try:
        await repository.delete_product(product_id)
    except ProductNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return None
