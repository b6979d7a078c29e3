"""Remote worker clients: narrative, metadata pinning, art, rewards."""

from mojomint.services.base import (
    RemoteServiceConnectionError,
    RemoteServiceError,
    ServiceClient,
)
from mojomint.services.image import GeneratedImage, ImageClient, build_image_prompt
from mojomint.services.metadata import MetadataPinClient
from mojomint.services.narrative import NarrativeClient
from mojomint.services.rewards import RewardClient

__all__ = [
    "GeneratedImage",
    "ImageClient",
    "MetadataPinClient",
    "NarrativeClient",
    "RemoteServiceConnectionError",
    "RemoteServiceError",
    "RewardClient",
    "ServiceClient",
    "build_image_prompt",
]
