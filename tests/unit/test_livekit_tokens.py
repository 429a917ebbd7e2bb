from unittest.mock import patch

import pytest

from callspan.core.exceptions import ConfigurationError
from callspan.livekit_tokens import create_observer_token


def test_create_observer_token():
    with patch("callspan.livekit_tokens.settings") as mock_settings:
        mock_settings.livekit.LIVEKIT_API_KEY = "devkey"
        mock_settings.livekit.LIVEKIT_API_SECRET = "devsecret-devsecret-devsecret-32b"
        mock_settings.livekit.LIVEKIT_OBSERVER_IDENTITY = "observer"

        token = create_observer_token(room_name="standup")

    assert token.room_name == "standup"
    assert token.identity == "observer"
    assert token.token.count(".") == 2


def test_create_observer_token_requires_credentials():
    with patch("callspan.livekit_tokens.settings") as mock_settings:
        mock_settings.livekit.LIVEKIT_API_KEY = None
        mock_settings.livekit.LIVEKIT_API_SECRET = None

        with pytest.raises(ConfigurationError):
            create_observer_token(room_name="standup")


def test_create_observer_token_rejects_empty_room():
    with pytest.raises(ValueError):
        create_observer_token(room_name="")
