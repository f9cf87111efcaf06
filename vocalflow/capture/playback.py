# vocalflow/capture/playback.py

import asyncio
from pathlib import Path

import cv2
from loguru import logger


def _play(path: Path, window_title: str) -> bool:
    capture = cv2.VideoCapture(str(path))
    if not capture.isOpened():
        logger.error(f"Clip could not be opened: {path}")
        return False

    fps = capture.get(cv2.CAP_PROP_FPS) or 30
    delay_ms = max(int(1000 / fps), 1)
    try:
        while True:
            ok, frame = capture.read()
            if not ok:
                break
            cv2.imshow(window_title, frame)
            # q / Esc skips the rest of the clip
            if cv2.waitKey(delay_ms) & 0xFF in (ord("q"), 27):
                break
    finally:
        capture.release()
        cv2.destroyWindow(window_title)
    return True


async def play_clip(path: Path, window_title: str = "VocalFlow") -> bool:
    """Show a recorded clip (video only) in an OpenCV window."""
    logger.debug(f"Playing clip: {path}")
    return await asyncio.to_thread(_play, Path(path), window_title)
