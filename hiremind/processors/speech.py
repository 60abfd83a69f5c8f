import asyncio
import base64
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx
import structlog

from ..core.config import Settings, get_settings
from ..core.exceptions import SynthesisError
from ..core.interfaces import SpeechSynthesizer

logger = structlog.get_logger(__name__)

Send = Callable[[str, Dict[str, Any]], Awaitable[None]]


class ElevenLabsClient:
    """Remote text-to-speech. `None` from `synthesize` means: use the local voice."""

    def __init__(self, settings: Optional[Settings] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings or get_settings()
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.settings.ELEVENLABS_API_KEY)

    async def synthesize(self, text: str) -> Optional[bytes]:
        if not self.enabled:
            logger.debug("tts_not_configured")
            return None

        url = f"{self.settings.ELEVENLABS_URL}/{self.settings.TTS_VOICE_ID}"
        headers = {
            "Accept": "audio/mpeg",
            "Content-Type": "application/json",
            "xi-api-key": self.settings.ELEVENLABS_API_KEY,
        }
        payload = {
            "text": text,
            "model_id": self.settings.TTS_MODEL_ID,
            "voice_settings": {
                "stability": 0.5,
                "similarity_boost": 0.75,
                "style": 0.5,
                "use_speaker_boost": True,
            },
        }
        try:
            async with httpx.AsyncClient(timeout=self.settings.TTS_TIMEOUT_SECONDS,
                                         transport=self._transport) as client:
                resp = await client.post(url, headers=headers, json=payload)
        except httpx.HTTPError as exc:
            logger.warning("tts_request_failed", error=str(exc))
            return None

        if resp.status_code != 200:
            logger.warning("tts_rejected", status=resp.status_code, body=resp.text[:200])
            return None
        return resp.content


class BrowserSpeechSynthesizer(SpeechSynthesizer):
    """
    Speaks through the candidate's browser.

    Audio from the remote voice is pushed to the page base64-encoded; without
    it the page is told to use its built-in voice. `speak` returns when the
    page reports that playback ended.
    """

    def __init__(self, send: Send, tts: Optional[ElevenLabsClient] = None,
                 settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._send = send
        self.tts = tts
        self._playback: Optional[asyncio.Future] = None
        self._utterance = 0

    @property
    def is_speaking(self) -> bool:
        return self._playback is not None

    async def speak(self, text: str) -> None:
        if self.is_speaking:
            await self.cancel()

        self._utterance += 1
        utterance = self._utterance
        playback = asyncio.get_running_loop().create_future()
        self._playback = playback

        audio = await self.tts.synthesize(text) if self.tts is not None else None
        if playback.done():
            # cancelled while the audio was being fetched
            return
        if audio:
            await self._send("speak", {
                "utterance": utterance,
                "text": text,
                "audio": base64.b64encode(audio).decode("ascii"),
                "mime_type": "audio/mpeg",
            })
        else:
            await self._send("speak", {"utterance": utterance, "text": text, "use_local_voice": True})

        # a cancelled speak() keeps its playback registered so cancel() can still silence the page
        try:
            await asyncio.wait_for(asyncio.shield(playback),
                                   timeout=self.settings.SPEECH_PLAYBACK_TIMEOUT_SECONDS)
        except asyncio.TimeoutError:
            self._clear(playback)
            await self._send("cancel_speech", {"utterance": utterance})
            raise SynthesisError("Playback did not finish in time")
        except SynthesisError:
            self._clear(playback)
            raise
        self._clear(playback)

    def playback_ended(self, utterance: Optional[int] = None) -> None:
        if self._matches(utterance):
            self._playback.set_result(None)

    def playback_failed(self, reason: str = "", utterance: Optional[int] = None) -> None:
        if self._matches(utterance):
            logger.warning("playback_failed", reason=reason)
            self._playback.set_exception(SynthesisError(reason or "Speech playback failed"))

    async def cancel(self) -> None:
        playback, self._playback = self._playback, None
        if playback is None:
            return
        if not playback.done():
            playback.set_result(None)
        await self._send("cancel_speech", {"utterance": self._utterance})
        logger.debug("speech_cancelled", utterance=self._utterance)

    def _clear(self, playback: asyncio.Future) -> None:
        if self._playback is playback:
            self._playback = None

    def _matches(self, utterance: Optional[int]) -> bool:
        if self._playback is None or self._playback.done():
            return False
        return utterance is None or utterance == self._utterance
