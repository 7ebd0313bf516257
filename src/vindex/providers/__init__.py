"""Video intelligence provider clients."""

from __future__ import annotations

from vindex.providers.twelvelabs import TwelveLabsClient, user_facing_message

__all__ = [
    "TwelveLabsClient",
    "user_facing_message",
]
