import asyncio
import base64
import shutil
import subprocess
from io import BytesIO
from pathlib import Path

import pytest
from PIL import Image

from showcase.core.config import settings
from showcase.services import media
from showcase.services.media import MediaKind, TranscodeError, UnsupportedMediaError


def _image_bytes(size: tuple[int, int], *, mode: str = "RGB", fmt: str = "PNG") -> bytes:
    buf = BytesIO()
    color = (200, 30, 30, 128) if mode == "RGBA" else (200, 30, 30)
    Image.new(mode, size, color=color).save(buf, format=fmt)
    return buf.getvalue()


def _decode_data_url(value: str) -> tuple[str, bytes]:
    header, _, payload = value.partition(",")
    assert header.startswith("data:") and header.endswith(";base64")
    return header[len("data:") : -len(";base64")], base64.b64decode(payload)


def _image_size(value: str) -> tuple[int, int]:
    mime, payload = _decode_data_url(value)
    assert mime == "image/jpeg"
    with Image.open(BytesIO(payload)) as img:
        assert img.format == "JPEG"
        return img.size


@pytest.mark.parametrize(
    ("content_type", "expected"),
    [
        ("image/png", MediaKind.image),
        ("IMAGE/JPEG", MediaKind.image),
        ("image/webp; q=0.9", MediaKind.image),
        ("video/mp4", MediaKind.video),
        ("video/quicktime", MediaKind.video),
        ("application/pdf", None),
        ("text/plain", None),
        ("", None),
        (None, None),
    ],
)
def test_media_kind_for_uses_declared_content_type(content_type, expected) -> None:
    assert media.media_kind_for(content_type) == expected


@pytest.mark.anyio
async def test_transcode_image_bounds_both_variants() -> None:
    pair = await media.transcode(_image_bytes((2400, 1200)), MediaKind.image)

    assert _image_size(pair.thumbnail) == (settings.media_thumbnail_width, settings.media_thumbnail_width // 2)
    assert _image_size(pair.full) == (settings.media_full_width, settings.media_full_width // 2)


@pytest.mark.anyio
async def test_transcode_image_never_upscales_small_sources() -> None:
    pair = await media.transcode(_image_bytes((120, 90)), MediaKind.image)

    assert _image_size(pair.thumbnail) == (120, 90)
    assert _image_size(pair.full) == (120, 90)


@pytest.mark.anyio
async def test_transcode_image_between_bounds_only_shrinks_thumbnail() -> None:
    pair = await media.transcode(_image_bytes((600, 400)), MediaKind.image)

    assert _image_size(pair.thumbnail) == (300, 200)
    assert _image_size(pair.full) == (600, 400)


@pytest.mark.anyio
async def test_transcode_image_thumbnail_is_smaller_than_full() -> None:
    pair = await media.transcode(_image_bytes((1600, 1600)), MediaKind.image)

    assert len(pair.thumbnail) < len(pair.full)
    assert pair.thumbnail != pair.full


@pytest.mark.anyio
async def test_transcode_image_flattens_transparency_to_jpeg() -> None:
    pair = await media.transcode(_image_bytes((40, 40), mode="RGBA"), MediaKind.image)

    _, payload = _decode_data_url(pair.full)
    with Image.open(BytesIO(payload)) as img:
        assert img.mode == "RGB"


@pytest.mark.anyio
async def test_transcode_rejects_unknown_kind() -> None:
    with pytest.raises(UnsupportedMediaError):
        await media.transcode(_image_bytes((10, 10)), None)
    with pytest.raises(UnsupportedMediaError):
        await media.transcode(_image_bytes((10, 10)), "image")  # type: ignore[arg-type]


@pytest.mark.anyio
@pytest.mark.parametrize("blob", [b"definitely-not-an-image", b"\x89PNG\r\n\x1a\n-truncated", b""])
async def test_transcode_corrupt_image_raises_transcode_error(blob: bytes) -> None:
    with pytest.raises(TranscodeError):
        await media.transcode(blob, MediaKind.image)


@pytest.mark.anyio
async def test_transcode_image_over_pixel_limit_fails(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "upload_image_max_pixels", 100)

    with pytest.raises(TranscodeError, match="too large"):
        await media.transcode(_image_bytes((20, 20)), MediaKind.image)


def test_ffmpeg_args_bound_height_without_upscaling(tmp_path: Path) -> None:
    args = media._ffmpeg_args(tmp_path / "in", tmp_path / "out.mp4", bitrate="400k", height=480)

    assert args[0] == settings.ffmpeg_binary
    assert "scale=-2:'min(480,trunc(ih/2)*2)'" in args
    assert args[args.index("-b:v") + 1] == "400k"
    assert args[-1] == str(tmp_path / "out.mp4")


@pytest.mark.anyio
async def test_transcode_video_renders_two_bitrates_and_cleans_scratch(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(settings, "media_scratch_dir", str(tmp_path))
    seen: list[list[str]] = []

    async def _fake_ffmpeg(args: list[str]) -> None:
        seen.append(args)
        source = Path(args[args.index("-i") + 1])
        assert source.read_bytes() == b"raw-video"
        bitrate = args[args.index("-b:v") + 1]
        Path(args[-1]).write_bytes(f"mp4-{bitrate}".encode())

    monkeypatch.setattr(media, "_run_ffmpeg", _fake_ffmpeg)

    pair = await media.transcode(b"raw-video", MediaKind.video)

    assert _decode_data_url(pair.thumbnail) == ("video/mp4", b"mp4-400k")
    assert _decode_data_url(pair.full) == ("video/mp4", b"mp4-800k")
    assert len(seen) == 2
    assert list(tmp_path.iterdir()) == []


@pytest.mark.anyio
async def test_transcode_video_failure_still_removes_scratch_files(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(settings, "media_scratch_dir", str(tmp_path))

    async def _fake_ffmpeg(args: list[str]) -> None:
        Path(args[-1]).write_bytes(b"partial")
        if args[args.index("-b:v") + 1] == settings.media_video_thumbnail_bitrate:
            raise TranscodeError("codec exploded")

    monkeypatch.setattr(media, "_run_ffmpeg", _fake_ffmpeg)

    with pytest.raises(TranscodeError, match="codec exploded"):
        await media.transcode(b"raw-video", MediaKind.video)

    assert list(tmp_path.iterdir()) == []


@pytest.mark.anyio
async def test_transcode_video_empty_output_is_an_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "media_scratch_dir", str(tmp_path))

    async def _fake_ffmpeg(args: list[str]) -> None:
        return None

    monkeypatch.setattr(media, "_run_ffmpeg", _fake_ffmpeg)

    with pytest.raises(TranscodeError, match="no output"):
        await media.transcode(b"raw-video", MediaKind.video)
    assert list(tmp_path.iterdir()) == []


@pytest.mark.anyio
async def test_transcode_video_without_ffmpeg_binary(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "media_scratch_dir", str(tmp_path))
    monkeypatch.setattr(settings, "ffmpeg_binary", str(tmp_path / "missing-ffmpeg"))

    with pytest.raises(TranscodeError, match="could not be started"):
        await media.transcode(b"raw-video", MediaKind.video)
    assert list(tmp_path.iterdir()) == []


def test_ffmpeg_args_round_odd_source_height_down_to_even(tmp_path: Path) -> None:
    for bitrate, height in (("400k", 480), ("800k", 720)):
        args = media._ffmpeg_args(tmp_path / "in", tmp_path / "out.mp4", bitrate=bitrate, height=height)
        scale = args[args.index("-vf") + 1]
        assert scale == f"scale=-2:'min({height},trunc(ih/2)*2)'"


def _ffmpeg_with_x264() -> str | None:
    binary = shutil.which("ffmpeg")
    if binary is None:
        return None
    encoders = subprocess.run([binary, "-hide_banner", "-encoders"], capture_output=True, text=True, check=False)
    return binary if "libx264" in encoders.stdout else None


@pytest.mark.anyio
@pytest.mark.skipif(_ffmpeg_with_x264() is None, reason="ffmpeg with libx264 not installed")
@pytest.mark.parametrize("size", ["320x241", "641x361"])
async def test_transcode_video_with_odd_dimensions(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, size: str) -> None:
    clip = tmp_path / "clip.mkv"
    subprocess.run(
        [
            _ffmpeg_with_x264() or "ffmpeg",
            "-hide_banner",
            "-loglevel",
            "error",
            "-f",
            "lavfi",
            "-i",
            f"testsrc=size={size}:rate=10",
            "-t",
            "1",
            "-c:v",
            "ffv1",
            str(clip),
        ],
        check=True,
    )
    scratch = tmp_path / "scratch"
    monkeypatch.setattr(settings, "media_scratch_dir", str(scratch))

    pair = await media.transcode(clip.read_bytes(), MediaKind.video)

    for variant in (pair.thumbnail, pair.full):
        mime, payload = _decode_data_url(variant)
        assert mime == "video/mp4"
        assert payload
    assert list(scratch.iterdir()) == []


class _HangingProcess:
    returncode = None

    def __init__(self) -> None:
        self.killed = False
        self.reaped = False

    async def communicate(self) -> tuple[bytes, bytes]:
        await asyncio.sleep(3600)
        return b"", b""

    def kill(self) -> None:
        self.killed = True

    async def wait(self) -> int:
        self.reaped = True
        return -9


@pytest.mark.anyio
async def test_cancelled_ffmpeg_run_kills_and_reaps_child(monkeypatch: pytest.MonkeyPatch) -> None:
    proc = _HangingProcess()

    async def _spawn(*args, **kwargs):  # type: ignore[no-untyped-def]
        return proc

    monkeypatch.setattr(media.asyncio, "create_subprocess_exec", _spawn)
    task = asyncio.create_task(media._run_ffmpeg(["ffmpeg", "-i", "in"]))
    await asyncio.sleep(0.01)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert proc.killed is True
    assert proc.reaped is True
