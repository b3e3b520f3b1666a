"""Service layer: update queries, publish and delete."""

from .publish import PublishRequest, upload_release
from .updates import UpdateService

__all__ = ["PublishRequest", "UpdateService", "upload_release"]
