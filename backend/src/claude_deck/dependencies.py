"""FastAPI dependencies resolving the objects created in the app lifespan."""

from fastapi import Request

from .config import Settings
from .services.database import SessionStore


def get_store(request: Request) -> SessionStore:
    return request.app.state.store


def get_settings(request: Request) -> Settings:
    return request.app.state.settings
