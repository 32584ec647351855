from showcase.db.base import Base  # noqa: F401
from showcase.models.catalog import CatalogProduct, ProductCategory  # noqa: F401

__all__ = [
    "Base",
    "CatalogProduct",
    "ProductCategory",
]
