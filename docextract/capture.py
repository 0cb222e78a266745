from __future__ import annotations

import argparse
import asyncio
import io
import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Protocol

import httpx

logger = logging.getLogger(__name__)

DEFAULT_SCAN_INTERVAL_SECONDS = 3.0
FRAME_WIDTH = 800
FRAME_JPEG_QUALITY = 70
FRAME_EXTENSIONS = {".jpg", ".jpeg", ".png"}


class PermissionState(str, Enum):
    IDLE = "idle"
    REQUESTED = "requested"
    GRANTED = "granted"
    DENIED = "denied"


class Camera(Protocol):
    async def request_permission(self) -> bool:
        ...

    async def capture(self) -> bytes:
        ...


class Recognizer(Protocol):
    async def recognize(self, frame: bytes) -> str:
        ...


class DirectoryCamera:
    """Replays the images of a directory as camera frames, in name order, wrapping around."""

    def __init__(self, frames_dir: Path) -> None:
        self.frames_dir = Path(frames_dir)
        self.frames: list[Path] = []
        self._position = 0

    async def request_permission(self) -> bool:
        self.frames = sorted(
            path for path in self.frames_dir.glob("*") if path.suffix.lower() in FRAME_EXTENSIONS
        )
        return bool(self.frames)

    async def capture(self) -> bytes:
        if not self.frames:
            raise RuntimeError(f"No frames available in {self.frames_dir}")
        frame = self.frames[self._position % len(self.frames)]
        self._position += 1
        return await asyncio.to_thread(frame.read_bytes)


@dataclass(frozen=True)
class ScanRecord:
    text: str
    captured_at: str

    def to_dict(self) -> dict:
        return {"text": self.text, "captured_at": self.captured_at}


def shrink_frame(frame: bytes, *, width: int = FRAME_WIDTH, quality: int = FRAME_JPEG_QUALITY) -> bytes:
    from PIL import Image

    with Image.open(io.BytesIO(frame)) as image:
        rgb = image.convert("RGB")
        if rgb.width > width:
            height = max(1, int(rgb.height * (width / float(rgb.width))))
            rgb = rgb.resize((width, height))
        output = io.BytesIO()
        rgb.save(output, format="JPEG", quality=quality)
    return output.getvalue()


class LocalRecognizer:
    """Runs tesseract on the device side, after shrinking the frame."""

    def __init__(self, lang: str = "eng") -> None:
        self.lang = lang

    def _recognize_sync(self, frame: bytes) -> str:
        import pytesseract
        from PIL import Image

        with Image.open(io.BytesIO(shrink_frame(frame))) as image:
            return pytesseract.image_to_string(image, lang=self.lang) or ""

    async def recognize(self, frame: bytes) -> str:
        return await asyncio.to_thread(self._recognize_sync, frame)


class RemoteRecognizer:
    """Submits frames to the extraction service's OCR endpoint."""

    def __init__(
        self,
        base_url: str,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
        shrink: bool = True,
    ) -> None:
        self.endpoint = base_url.rstrip("/") + "/api/test-ocr"
        self.client = client or httpx.AsyncClient(timeout=timeout)
        self.shrink = shrink

    async def recognize(self, frame: bytes) -> str:
        payload = await asyncio.to_thread(shrink_frame, frame) if self.shrink else frame
        response = await self.client.post(
            self.endpoint,
            files={"file": ("frame.jpg", payload, "image/jpeg")},
        )
        response.raise_for_status()
        body = response.json()
        return (body.get("data") or {}).get("text") or ""

    async def aclose(self) -> None:
        await self.client.aclose()


class CaptureLoop:
    """Periodic capture-and-recognize loop with a single-flight guard.

    Ticks that arrive while a capture is still in flight are skipped, never
    queued. Stopping cancels the timer only; an in-flight capture finishes and
    its text is still recorded.
    """

    def __init__(
        self,
        camera: Camera,
        recognizer: Recognizer,
        *,
        interval_seconds: float = DEFAULT_SCAN_INTERVAL_SECONDS,
        history_size: int = 20,
    ) -> None:
        self.camera = camera
        self.recognizer = recognizer
        self.interval_seconds = interval_seconds
        self.permission = PermissionState.IDLE
        self.is_processing = False
        self.latest_text = ""
        self.history: deque[ScanRecord] = deque(maxlen=history_size)
        self.skipped_ticks = 0
        self._timer: asyncio.Task | None = None
        self._inflight: set[asyncio.Task] = set()

    @property
    def is_scanning(self) -> bool:
        return self._timer is not None and not self._timer.done()

    async def request_permission(self) -> PermissionState:
        self.permission = PermissionState.REQUESTED
        try:
            granted = await self.camera.request_permission()
        except Exception:  # noqa: BLE001
            logger.exception("Error requesting camera permission")
            granted = False
        self.permission = PermissionState.GRANTED if granted else PermissionState.DENIED
        return self.permission

    def start(self) -> bool:
        if self.permission != PermissionState.GRANTED:
            logger.warning("Cannot start scanning without camera permission (%s)", self.permission.value)
            return False
        if not self.is_scanning:
            self._timer = asyncio.get_running_loop().create_task(self._run_timer())
        return True

    def stop(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def toggle(self) -> bool:
        if self.is_scanning:
            self.stop()
            return False
        return self.start()

    async def _run_timer(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            task = asyncio.get_running_loop().create_task(self.tick())
            self._inflight.add(task)
            task.add_done_callback(self._inflight.discard)

    async def tick(self) -> bool:
        if self.is_processing:
            self.skipped_ticks += 1
            return False

        self.is_processing = True
        try:
            frame = await self.camera.capture()
            text = (await self.recognizer.recognize(frame)).strip()
            if text:
                self.latest_text = text
                self.history.append(ScanRecord(text=text, captured_at=datetime.now(timezone.utc).isoformat()))
        except Exception:  # noqa: BLE001
            logger.exception("Error capturing frame")
        finally:
            self.is_processing = False
        return True

    async def wait_for_inflight(self) -> None:
        if self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    async def close(self) -> None:
        self.stop()
        await self.wait_for_inflight()


async def run_capture(
    camera: Camera,
    recognizer: Recognizer,
    *,
    interval_seconds: float = DEFAULT_SCAN_INTERVAL_SECONDS,
    scans: int = 1,
) -> CaptureLoop:
    """Scan for ``scans`` timer periods, then stop and wait for the last capture."""

    loop = CaptureLoop(camera, recognizer, interval_seconds=interval_seconds)
    if await loop.request_permission() != PermissionState.GRANTED:
        logger.warning("Camera permission denied, nothing to scan")
        return loop

    loop.start()
    try:
        await asyncio.sleep(interval_seconds * scans)
    finally:
        await loop.close()
    return loop


async def _run_from_args(args: argparse.Namespace) -> CaptureLoop:
    camera = DirectoryCamera(args.frames_dir)
    if args.server:
        recognizer = RemoteRecognizer(args.server)
        try:
            return await run_capture(camera, recognizer, interval_seconds=args.interval, scans=args.scans)
        finally:
            await recognizer.aclose()
    return await run_capture(
        camera,
        LocalRecognizer(args.lang),
        interval_seconds=args.interval,
        scans=args.scans,
    )


def main() -> None:
    parser = argparse.ArgumentParser(description="Scan a directory of frames for text.")
    parser.add_argument("frames_dir", type=Path)
    parser.add_argument("--server", help="Base URL of the extraction service; OCR runs locally when omitted.")
    parser.add_argument("--interval", type=float, default=DEFAULT_SCAN_INTERVAL_SECONDS)
    parser.add_argument("--scans", type=int, default=1)
    parser.add_argument("--lang", default="eng")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    loop = asyncio.run(_run_from_args(args))
    if not loop.history:
        print("No text recognized.")
    for record in loop.history:
        print(f"[{record.captured_at}] {record.text}")


if __name__ == "__main__":
    main()
