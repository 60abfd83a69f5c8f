"""Live interview room.

One WebSocket connection drives one `ConversationController`. The browser
reports what it hears and plays; the server answers with `{"type", "data"}`
envelopes carrying controller events (`state`, `question`, `turn_estimate`,
`turn_finalized`, `message`, `analysis`, `error`) and device commands
(`start_listening`, `stop_listening`, `speak`, `cancel_speech`,
`acquire_devices`, `release_devices`).
"""
import asyncio
import base64
import json
from typing import Any, Dict

import structlog
from fastapi import WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from ...application.controller import ConversationController
from ...core.config import Settings
from ...core.exceptions import HireMindError, InvalidMessageError
from ...core.logging import clear_session
from ...managers.questions import QuestionService
from ...managers.scoring import ScoringService
from ...processors.audio import BrowserSpeechCapture
from ...processors.devices import BrowserMediaDevices
from ...processors.speech import BrowserSpeechSynthesizer
from ...processors.video import BehavioralMetricsTracker
from .dependencies import manager_for
from .schemas import InterviewCreate

logger = structlog.get_logger(__name__)


class InterviewConnection:
    def __init__(self, websocket: WebSocket, settings: Settings, *, store, manager, tts):
        self.websocket = websocket
        self.settings = settings
        self._closed = False
        self._send_lock = asyncio.Lock()

        self.capture = BrowserSpeechCapture(self.send, settings=settings)
        self.synthesizer = BrowserSpeechSynthesizer(self.send, tts=tts, settings=settings)
        self.devices = BrowserMediaDevices(self.send)
        self.metrics = BehavioralMetricsTracker()
        self.controller = ConversationController(
            store=store,
            questions=QuestionService(manager, store, settings),
            classifier=manager,
            scorer=ScoringService(manager, settings),
            synthesizer=self.synthesizer,
            capture=self.capture,
            devices=self.devices,
            metrics=self.metrics,
            settings=settings,
            emit=self.send,
        )
        self.capture.on_transcript = self.controller.handle_transcript
        self.capture.on_speech_start = self.controller.handle_speech_start

        self._handlers = {
            "permissions": self.on_permissions,
            "begin": self.on_begin,
            "setup": self.on_setup,
            "transcript": self.on_transcript,
            "audio": self.on_audio,
            "speech_level": self.on_speech_level,
            "playback_ended": self.on_playback_ended,
            "playback_failed": self.on_playback_failed,
            "face_metrics": self.on_face_metrics,
            "skip": self.on_skip,
            "retry_save": self.on_retry_save,
            "retry_analysis": self.on_retry_analysis,
            "end": self.on_end,
        }

    async def send(self, event: str, data: Dict[str, Any]) -> None:
        if self._closed:
            return
        try:
            async with self._send_lock:
                await self.websocket.send_json({"type": event, "data": data})
        except (WebSocketDisconnect, RuntimeError, OSError) as e:
            self._closed = True
            logger.info("socket_send_failed", event=event, error=str(e))

    async def send_error(self, error: HireMindError) -> None:
        await self.send("error", {
            "code": error.code,
            "message": error.message,
            "retryable": error.retryable,
        })

    async def run(self) -> None:
        await self.send("state", {"state": self.controller.state.value, "previous": None})
        try:
            while True:
                raw = await self.websocket.receive_text()
                await self.dispatch(raw)
        except WebSocketDisconnect:
            logger.info("client_disconnected", state=self.controller.state.value)
        finally:
            self._closed = True
            await self.controller.end()
            clear_session()

    async def dispatch(self, raw: str) -> None:
        try:
            message = json.loads(raw)
        except json.JSONDecodeError:
            await self.send_error(InvalidMessageError("Message is not valid JSON"))
            return
        if not isinstance(message, dict) or not isinstance(message.get("type"), str):
            await self.send_error(InvalidMessageError("Message must be an object with a 'type'"))
            return

        handler = self._handlers.get(message["type"])
        if handler is None:
            await self.send_error(InvalidMessageError(f"Unknown message type: {message['type']}"))
            return

        data = message.get("data") or {}
        if not isinstance(data, dict):
            await self.send_error(InvalidMessageError("'data' must be an object"))
            return
        try:
            await handler(data)
        except HireMindError as e:
            logger.info("client_action_rejected", action=message["type"], code=e.code)
            await self.send_error(e)
        except ValidationError as e:
            await self.send_error(InvalidMessageError(f"Invalid {message['type']} payload: {e.errors()[0]['msg']}"))
        except (KeyError, TypeError, ValueError) as e:
            await self.send_error(InvalidMessageError(f"Invalid {message['type']} payload: {e}"))

    # handlers

    async def on_permissions(self, data):
        permissions = self.devices.update_permissions(data.get("microphone"), data.get("camera"))
        await self.send("permissions", {
            "microphone": permissions.microphone.value,
            "camera": permissions.camera.value,
        })

    async def on_begin(self, data):
        if data:
            self.devices.update_permissions(data.get("microphone"), data.get("camera"))
        await self.controller.begin()

    async def on_setup(self, data):
        request = InterviewCreate.model_validate(data).to_request()
        session = await self.controller.start(request)
        await self.send("session", {"id": session.id, "question_count": session.question_count})

    async def on_transcript(self, data):
        self.capture.receive_transcript(str(data["text"]))

    async def on_audio(self, data):
        self.capture.receive_audio(base64.b64decode(data["audio"], validate=True))

    async def on_speech_level(self, data):
        self.capture.receive_level(float(data["level"]))

    async def on_playback_ended(self, data):
        self.synthesizer.playback_ended(data.get("utterance"))

    async def on_playback_failed(self, data):
        self.synthesizer.playback_failed(str(data.get("reason", "")), data.get("utterance"))

    async def on_face_metrics(self, data):
        self.metrics.add_sample(
            eye_contact=data.get("eye_contact"),
            smile=data.get("smile"),
            stillness=data.get("stillness"),
            confidence=data.get("confidence"),
        )

    async def on_skip(self, data):
        await self.controller.skip()

    async def on_retry_save(self, data):
        remaining = await self.controller.retry_unsaved()
        await self.send("save_status", {"unsaved": remaining})

    async def on_retry_analysis(self, data):
        await self.controller.retry_analysis()

    async def on_end(self, data):
        await self.controller.end()


async def interview_socket(websocket: WebSocket):
    app = websocket.app
    await websocket.accept()
    connection = InterviewConnection(
        websocket,
        app.state.settings,
        store=app.state.store,
        manager=manager_for(app),
        tts=app.state.tts,
    )
    await connection.run()
