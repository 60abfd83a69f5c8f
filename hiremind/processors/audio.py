from typing import Any, Awaitable, Callable, Dict, Optional

import numpy as np
import structlog

from ..core.config import Settings, get_settings
from ..core.interfaces import SpeechCapture

logger = structlog.get_logger(__name__)

Send = Callable[[str, Dict[str, Any]], Awaitable[None]]


def rms_level(data: bytes) -> float:
    """Root-mean-square level of little-endian float32 PCM samples."""
    usable = len(data) - len(data) % 4
    if usable <= 0:
        return 0.0
    samples = np.frombuffer(data[:usable], dtype="<f4")
    if not np.all(np.isfinite(samples)):
        samples = np.nan_to_num(samples, nan=0.0, posinf=1.0, neginf=-1.0)
    return float(np.sqrt(np.mean(np.square(samples, dtype=np.float64))))


class BrowserSpeechCapture(SpeechCapture):
    """
    Speech capture backed by the browser's recognizer.

    The browser does the recognition and streams cumulative transcripts back;
    this adapter tells it when to listen, filters what it reports and tracks
    the microphone level for speech-start detection.
    """

    def __init__(self,
                 send: Send,
                 *,
                 on_transcript: Optional[Callable[[str], None]] = None,
                 on_speech_start: Optional[Callable[[], None]] = None,
                 settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self._send = send
        self.on_transcript = on_transcript
        self.on_speech_start = on_speech_start
        self.threshold = settings.SPEECH_LEVEL_THRESHOLD
        self.level = 0.0
        self._active = False
        self._transcript = ""
        self._speaking = False

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def transcript(self) -> str:
        return self._transcript

    @property
    def is_speech_detected(self) -> bool:
        return self._speaking

    def reset(self) -> None:
        self._transcript = ""

    async def start(self) -> None:
        if self._active:
            return
        self.reset()
        self._active = True
        await self._send("start_listening", {})
        logger.debug("speech_capture_started")

    async def stop(self) -> None:
        if not self._active:
            return
        self._active = False
        await self._send("stop_listening", {})
        logger.debug("speech_capture_stopped", transcript_length=len(self._transcript))

    def receive_transcript(self, text: str) -> bool:
        """Accept a cumulative transcript from the browser. Returns False if it was ignored."""
        if not self._active:
            return False
        text = (text or "").strip()
        # recognizers resend shorter interim results; the transcript only grows within a turn
        if len(text) <= len(self._transcript):
            return False
        self._transcript = text
        if self.on_transcript is not None:
            self.on_transcript(text)
        return True

    def receive_audio(self, data: bytes) -> float:
        level = rms_level(data)
        self.receive_level(level)
        return level

    def receive_level(self, level: float) -> None:
        self.level = max(0.0, float(level))
        if self.level >= self.threshold:
            if not self._speaking:
                self._speaking = True
                logger.debug("speech_started", level=round(self.level, 4))
                if self.on_speech_start is not None:
                    self.on_speech_start()
        else:
            self._speaking = False
