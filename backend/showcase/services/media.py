from __future__ import annotations

import asyncio
import base64
import enum
import logging
import tempfile
from io import BytesIO
from pathlib import Path
from uuid import uuid4

import anyio
from PIL import Image, ImageOps, UnidentifiedImageError

from showcase.core.config import settings
from showcase.schemas.catalog import MediaVariantPair

logger = logging.getLogger(__name__)


class MediaKind(str, enum.Enum):
    image = "image"
    video = "video"


class UnsupportedMediaError(ValueError):
    pass


class TranscodeError(RuntimeError):
    pass


def media_kind_for(content_type: str | None) -> MediaKind | None:
    ctype = str(content_type or "").split(";", 1)[0].strip().lower()
    if ctype.startswith("image/"):
        return MediaKind.image
    if ctype.startswith("video/"):
        return MediaKind.video
    return None


def to_data_url(payload: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(payload).decode('ascii')}"


async def transcode(blob: bytes, kind: MediaKind | None) -> MediaVariantPair:
    """Derive the thumbnail/full pair for one uploaded asset.

    Raises UnsupportedMediaError when ``kind`` is not a known media kind and
    TranscodeError when decoding or re-encoding fails.
    """
    if not isinstance(kind, MediaKind):
        raise UnsupportedMediaError(f"Unsupported media kind: {kind!r}")
    if not blob:
        raise TranscodeError("Empty media payload")
    if kind == MediaKind.image:
        return await anyio.to_thread.run_sync(transcode_image, blob)
    return await transcode_video(blob)


# Images


def _bounded_size(size: tuple[int, int], max_width: int) -> tuple[int, int]:
    width, height = size
    if width <= max_width:
        return width, height
    scaled_height = max(1, round(height * max_width / width))
    return max_width, scaled_height


def _flatten(img: Image.Image) -> Image.Image:
    if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
        rgba = img.convert("RGBA")
        canvas = Image.new("RGB", rgba.size, (255, 255, 255))
        canvas.paste(rgba, mask=rgba.getchannel("A"))
        return canvas
    return img.convert("RGB")


def _encode_jpeg(img: Image.Image, *, max_width: int, quality: int) -> bytes:
    target = _bounded_size(img.size, max_width)
    out = img if target == img.size else img.resize(target, Image.Resampling.LANCZOS)
    buf = BytesIO()
    out.save(buf, format="JPEG", quality=quality, optimize=True, progressive=True)
    return buf.getvalue()


def _load_image(blob: bytes) -> Image.Image:
    max_pixels = int(settings.upload_image_max_pixels or 0)
    with Image.open(BytesIO(blob)) as img:
        width, height = img.size
        if max_pixels and width * height > max_pixels:
            raise TranscodeError("Image too large")
        img.seek(0)
        img.load()
        oriented = ImageOps.exif_transpose(img)
        return _flatten(oriented)


def transcode_image(blob: bytes) -> MediaVariantPair:
    try:
        img = _load_image(blob)
        thumbnail = _encode_jpeg(
            img, max_width=settings.media_thumbnail_width, quality=settings.media_thumbnail_quality
        )
        full = _encode_jpeg(img, max_width=settings.media_full_width, quality=settings.media_full_quality)
    except TranscodeError:
        raise
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError, SyntaxError) as exc:
        raise TranscodeError(f"Image could not be decoded: {exc}") from exc
    except MemoryError as exc:
        raise TranscodeError("Image exhausted available memory") from exc
    return MediaVariantPair(thumbnail=to_data_url(thumbnail, "image/jpeg"), full=to_data_url(full, "image/jpeg"))


# Videos


def _scratch_dir() -> Path:
    root = Path(settings.media_scratch_dir or tempfile.gettempdir())
    root.mkdir(parents=True, exist_ok=True)
    return root


def _ffmpeg_args(source: Path, destination: Path, *, bitrate: str, height: int) -> list[str]:
    return [
        settings.ffmpeg_binary,
        "-hide_banner",
        "-loglevel",
        "error",
        "-y",
        "-i",
        str(source),
        "-vf",
        # libx264 needs even frame dimensions; the source height is rounded down, never up.
        f"scale=-2:'min({int(height)},trunc(ih/2)*2)'",
        "-c:v",
        "libx264",
        "-b:v",
        bitrate,
        "-c:a",
        "aac",
        "-movflags",
        "+faststart",
        str(destination),
    ]


async def _run_ffmpeg(args: list[str]) -> None:
    timeout = max(1, int(settings.media_video_timeout_seconds))
    try:
        proc = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        raise TranscodeError(f"ffmpeg could not be started: {exc}") from exc
    try:
        _, err = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        raise TranscodeError("ffmpeg timed out")
    except asyncio.CancelledError:
        proc.kill()
        await asyncio.shield(proc.wait())
        raise
    if proc.returncode != 0:
        raise TranscodeError((err.decode("utf-8", errors="ignore") or "ffmpeg failed").strip()[-500:])


async def _render_video(source: Path, destination: Path, *, bitrate: str, height: int) -> str:
    await _run_ffmpeg(_ffmpeg_args(source, destination, bitrate=bitrate, height=height))
    try:
        payload = await anyio.Path(destination).read_bytes()
    except FileNotFoundError:
        payload = b""
    if not payload:
        raise TranscodeError("ffmpeg produced no output")
    return to_data_url(payload, "video/mp4")


async def transcode_video(blob: bytes) -> MediaVariantPair:
    scratch = _scratch_dir()
    token = uuid4().hex
    source = scratch / f"{token}-input"
    thumb_path = scratch / f"{token}-thumb.mp4"
    full_path = scratch / f"{token}-full.mp4"
    try:
        await anyio.Path(source).write_bytes(blob)
        # Both renders must finish before the scratch files are removed.
        results = await asyncio.gather(
            _render_video(
                source,
                thumb_path,
                bitrate=settings.media_video_thumbnail_bitrate,
                height=settings.media_video_thumbnail_height,
            ),
            _render_video(
                source,
                full_path,
                bitrate=settings.media_video_full_bitrate,
                height=settings.media_video_full_height,
            ),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result
        thumbnail, full = results
    except OSError as exc:
        raise TranscodeError(f"Video scratch I/O failed: {exc}") from exc
    finally:
        for path in (source, thumb_path, full_path):
            try:
                path.unlink(missing_ok=True)
            except OSError:
                logger.warning("media_scratch_cleanup_failed", extra={"path": str(path)})
    return MediaVariantPair(thumbnail=thumbnail, full=full)
