from typing import Any, Dict, Optional


def _snowflake(value: Any) -> Optional[int]:
    try:
        return int(value) if value not in (None, "") else None
    except (TypeError, ValueError):
        return None


class DispatchSettings:
    """Typed accessors for the ``dispatch`` and ``age_gate`` config sections."""

    def __init__(self, data: Dict[str, Any] | None = None, age_gate: Dict[str, Any] | None = None) -> None:
        self.data: Dict[str, Any] = data or {}
        self.age_gate: Dict[str, Any] = age_gate or {}

    @property
    def channel_id(self) -> Optional[int]:
        return _snowflake(self.data.get("channel_id"))

    @property
    def guild_channels(self) -> Dict[int, int]:
        """Guild ID -> channel ID overrides for submissions that name a guild."""
        mapping = self.data.get("guild_channels")
        if not isinstance(mapping, dict):
            return {}
        result: Dict[int, int] = {}
        for guild_id, channel_id in mapping.items():
            guild, channel = _snowflake(guild_id), _snowflake(channel_id)
            if guild is not None and channel is not None:
                result[guild] = channel
        return result

    @property
    def timeout_seconds(self) -> float:
        return float(self.data.get("timeout_seconds", 10.0))

    @property
    def footer_text(self) -> str:
        return str(self.data.get("footer_text") or "Feed Relay")

    @property
    def embed_color(self) -> int:
        try:
            return int(self.data.get("embed_color", 0xE1306C))
        except (TypeError, ValueError):
            return 0xE1306C

    @property
    def age_gated_channel_id(self) -> Optional[int]:
        return _snowflake(self.age_gate.get("channel_id"))

    @property
    def require_restricted_channel(self) -> bool:
        """When True, age-gated posts are only delivered to the age-gated channel."""
        return bool(self.age_gate.get("require_restricted_channel", True))

    @property
    def content_warning(self) -> str:
        return str(self.age_gate.get("content_warning") or "Age-restricted content (21+)")
