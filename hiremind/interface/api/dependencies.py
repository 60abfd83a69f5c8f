from fastapi import FastAPI, Request

from ...core.config import Settings
from ...core.interfaces import SessionStore
from ...managers.interview import OpenAIInterviewManager
from ...processors.speech import ElevenLabsClient


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> SessionStore:
    return request.app.state.store


def manager_for(app: FastAPI):
    # built on first use so the app starts without LLM credentials
    if app.state.manager is None:
        app.state.manager = OpenAIInterviewManager(app.state.settings)
    return app.state.manager


def get_manager(request: Request):
    return manager_for(request.app)


def get_tts(request: Request) -> ElevenLabsClient:
    return request.app.state.tts
