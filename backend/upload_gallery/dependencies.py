"""FastAPI dependencies for the per-app clients kept on app.state."""
from fastapi import Request

from upload_gallery.config import Settings
from upload_gallery.services.object_storage import ObjectStorage


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_storage(request: Request) -> ObjectStorage:
    return request.app.state.storage
