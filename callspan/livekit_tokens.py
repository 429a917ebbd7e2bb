from __future__ import annotations

from dataclasses import dataclass

from livekit import api

from callspan.core.exceptions import ConfigurationError
from callspan.core.settings import settings


@dataclass(frozen=True)
class LiveKitToken:
    token: str
    room_name: str
    identity: str


def create_observer_token(*, room_name: str, identity: str | None = None) -> LiveKitToken:
    """Mint a join token for a participant that only watches the room."""
    if not room_name:
        raise ValueError("room_name must not be empty")
    if not settings.livekit.LIVEKIT_API_KEY or not settings.livekit.LIVEKIT_API_SECRET:
        raise ConfigurationError("LIVEKIT_API_KEY and LIVEKIT_API_SECRET must be set")

    identity = identity or settings.livekit.LIVEKIT_OBSERVER_IDENTITY
    token = (
        api.AccessToken(settings.livekit.LIVEKIT_API_KEY, settings.livekit.LIVEKIT_API_SECRET)
        .with_identity(identity)
        .with_name(identity)
        .with_grants(
            api.VideoGrants(
                room_join=True,
                room=room_name,
                can_publish=False,
                can_publish_data=False,
                can_subscribe=True,
            )
        )
        .to_jwt()
    )
    return LiveKitToken(token=token, room_name=room_name, identity=identity)
