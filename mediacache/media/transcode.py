"""Image and video transcoding.

Image work is CPU-bound and runs in a thread pool so it never blocks the
event loop. Video re-encoding runs as an ffmpeg subprocess through a
temporary input/output file pair.
"""

import asyncio
import contextlib
import io
import tempfile
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, TypeVar

import pillow_heif
from PIL import Image, ImageOps

from mediacache.core.config import Settings
from mediacache.core.logging import get_logger
from mediacache.media.errors import TranscodeFailure, UnsupportedFormat
from mediacache.media.models import (
    JPEG_MIME_TYPE,
    MP4_MIME_TYPE,
    MediaKind,
    RemoteEntry,
    TranscodeResult,
)

logger = get_logger(__name__)

T = TypeVar("T")

HEIF_JPEG_QUALITY = 100
STDERR_TAIL = 500


@dataclass(frozen=True)
class TranscodeOptions:
    """Resize and re-encode parameters."""

    image_box: tuple[int, int] | None = (1920, 1080)
    image_quality: int = 80
    raw_mime_types: frozenset[str] = field(default_factory=frozenset)
    video_box: tuple[int, int] | None = None
    video_preset: str = "veryfast"
    video_crf: int = 23
    ffmpeg_binary: str = "ffmpeg"
    tmp_dir: str | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "TranscodeOptions":
        return cls(
            image_box=settings.image_resize_box,
            image_quality=settings.IMAGE_JPEG_QUALITY,
            raw_mime_types=frozenset(m.lower() for m in settings.IMAGE_RAW_MIME_TYPES),
            video_box=settings.video_target_box,
            video_preset=settings.VIDEO_PRESET,
            video_crf=settings.VIDEO_CRF,
            ffmpeg_binary=settings.FFMPEG_BINARY,
            tmp_dir=settings.TRANSCODE_TMP_DIR,
        )

    def image_target(self, mime_type: str) -> tuple[int, int] | None:
        """Resize box for an image mime type, None to keep the bytes as-is."""
        if mime_type.lower() in self.raw_mime_types:
            return None
        return self.image_box


def heif_to_jpeg(data: bytes, quality: int = HEIF_JPEG_QUALITY) -> bytes:
    """Convert HEIC/HEIF bytes to a JPEG."""
    try:
        heif = pillow_heif.open_heif(io.BytesIO(data), convert_hdr_to_8bit=True)
        image = heif.to_pillow().convert("RGB")
        output = io.BytesIO()
        image.save(output, format="JPEG", quality=quality)
    except Exception as e:
        raise TranscodeFailure(f"HEIF conversion failed: {e}") from e
    return output.getvalue()


def resize_to_jpeg(data: bytes, box: tuple[int, int], quality: int) -> bytes:
    """Crop-to-cover resize into ``box`` and re-encode as JPEG."""
    try:
        with Image.open(io.BytesIO(data)) as source:
            image = ImageOps.exif_transpose(source)
            fitted = ImageOps.fit(
                image.convert("RGB"), box, method=Image.Resampling.LANCZOS
            )
            output = io.BytesIO()
            fitted.save(output, format="JPEG", quality=quality, optimize=True)
    except Exception as e:
        raise TranscodeFailure(f"Image resize failed: {e}") from e
    return output.getvalue()


class Transcoder:
    """Applies the format-specific transformation for one remote file."""

    def __init__(
        self,
        options: TranscodeOptions | None = None,
        executor: ThreadPoolExecutor | None = None,
    ) -> None:
        self.options = options or TranscodeOptions()
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=4, thread_name_prefix="transcode"
        )

    async def _run(self, func: Callable[..., T], *args: object) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, func, *args)

    async def transcode(self, entry: RemoteEntry, data: bytes) -> TranscodeResult:
        """Dispatch on the entry's media kind.

        Raises:
            UnsupportedFormat: The entry is neither an image nor an mp4
            TranscodeFailure: Decoding or encoding failed
        """
        kind = entry.kind
        if kind.is_image:
            return await self.transcode_image(kind, entry.mime_type, data)
        if kind is MediaKind.VIDEO:
            return await self.transcode_video(data)
        raise UnsupportedFormat(f"Unsupported mime type {entry.mime_type}")

    async def to_jpeg(self, data: bytes) -> bytes:
        """Full-quality HEIF to JPEG conversion, off the event loop."""
        return await self._run(heif_to_jpeg, data)

    async def transcode_image(
        self, kind: MediaKind, mime_type: str, data: bytes
    ) -> TranscodeResult:
        box = self.options.image_target(mime_type)

        full_jpeg = None
        if kind is MediaKind.HEIF:
            data = full_jpeg = await self.to_jpeg(data)
            mime_type = JPEG_MIME_TYPE
            if box is None:
                return TranscodeResult(
                    data=data, mime_type=JPEG_MIME_TYPE, full_jpeg=full_jpeg
                )

        if box is None:
            return TranscodeResult(data=data, mime_type=mime_type, transcoded=False)

        resized = await self._run(
            resize_to_jpeg, data, box, self.options.image_quality
        )
        return TranscodeResult(
            data=resized, mime_type=JPEG_MIME_TYPE, full_jpeg=full_jpeg
        )

    async def transcode_video(self, data: bytes) -> TranscodeResult:
        box = self.options.video_box
        if box is None:
            return TranscodeResult(data=data, mime_type=MP4_MIME_TYPE, transcoded=False)

        width, height = box
        video_filter = (
            f"scale={width}:{height}:force_original_aspect_ratio=decrease,"
            f"pad={width}:{height}:(ow-iw)/2:(oh-ih)/2"
        )

        # The directory and both files are removed on success and failure
        with tempfile.TemporaryDirectory(
            prefix="mediacache-", dir=self.options.tmp_dir
        ) as workdir:
            source = Path(workdir) / "input.mp4"
            target = Path(workdir) / "output.mp4"
            await asyncio.to_thread(source.write_bytes, data)

            command = [
                self.options.ffmpeg_binary,
                "-hide_banner",
                "-loglevel",
                "error",
                "-y",
                "-i",
                str(source),
                "-vf",
                video_filter,
                "-c:v",
                "libx264",
                "-preset",
                self.options.video_preset,
                "-crf",
                str(self.options.video_crf),
                "-c:a",
                "aac",
                "-movflags",
                "+faststart",
                str(target),
            ]
            try:
                process = await asyncio.create_subprocess_exec(
                    *command,
                    stdout=asyncio.subprocess.DEVNULL,
                    stderr=asyncio.subprocess.PIPE,
                )
            except FileNotFoundError as e:
                raise TranscodeFailure(
                    f"ffmpeg not found: {self.options.ffmpeg_binary}"
                ) from e

            try:
                _, stderr = await process.communicate()
            except BaseException:
                # Cancelled mid-encode: the child must not outlive its workdir
                with contextlib.suppress(ProcessLookupError):
                    process.kill()
                await process.wait()
                raise

            if process.returncode != 0 or not target.exists():
                detail = (stderr or b"").decode(errors="replace")[-STDERR_TAIL:]
                raise TranscodeFailure(
                    f"ffmpeg exited with status {process.returncode}: {detail}"
                )

            output = await asyncio.to_thread(target.read_bytes)

        return TranscodeResult(data=output, mime_type=MP4_MIME_TYPE)

    def close(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)
