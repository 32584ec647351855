from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from showcase.core.config import settings
from showcase.schemas.catalog import MediaVariantPair, ProductCreate, ProductDraft
from showcase.services import media as media_service

logger = logging.getLogger(__name__)


class UploadRejectedError(ValueError):
    pass


@dataclass(slots=True, frozen=True)
class UploadedMedia:
    blob: bytes
    content_type: str | None
    filename: str | None = None


def validate_uploads(files: Sequence[UploadedMedia]) -> None:
    max_files = max(0, int(settings.upload_max_files))
    if len(files) > max_files:
        raise UploadRejectedError(f"Too many files (max {max_files})")
    max_bytes = int(settings.upload_max_bytes or 0)
    for upload in files:
        if max_bytes and len(upload.blob) > max_bytes:
            raise UploadRejectedError(f"File too large: {upload.filename or 'upload'}")


async def _transcode_one(index: int, upload: UploadedMedia, limiter: asyncio.Semaphore) -> MediaVariantPair | None:
    kind = media_service.media_kind_for(upload.content_type)
    if kind is None:
        logger.debug(
            "media_upload_skipped",
            extra={"index": index, "upload_name": upload.filename, "content_type": upload.content_type},
        )
        return None
    async with limiter:
        try:
            return await media_service.transcode(upload.blob, kind)
        except (media_service.TranscodeError, media_service.UnsupportedMediaError) as exc:
            logger.warning(
                "media_transcode_failed",
                extra={
                    "index": index,
                    "upload_name": upload.filename,
                    "content_type": upload.content_type,
                    "error": str(exc),
                },
            )
            return None


async def ingest(files: Sequence[UploadedMedia]) -> list[MediaVariantPair]:
    """Transcode uploads concurrently; the result keeps upload order and omits failures."""
    if not files:
        return []
    limiter = asyncio.Semaphore(max(1, int(settings.ingest_max_concurrency)))
    results = await asyncio.gather(*(_transcode_one(idx, upload, limiter) for idx, upload in enumerate(files)))
    media = [pair for pair in results if pair is not None]
    logger.info("media_ingested", extra={"received": len(files), "accepted": len(media)})
    return media


async def assemble_product(draft: ProductDraft, files: Sequence[UploadedMedia]) -> ProductCreate:
    validate_uploads(files)
    media = await ingest(files)
    return ProductCreate(**draft.model_dump(), media=media)
