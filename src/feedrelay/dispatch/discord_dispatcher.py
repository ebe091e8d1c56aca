"""
Posting canonical posts to Discord channels with py-cord.

Failure classification decides whether the feed provider should redeliver:
the client not being ready, missing channel configuration, Discord 5xx
responses and network errors are transient; an unknown channel, missing
permissions and other 4xx responses are permanent.
"""

from __future__ import annotations

from typing import Optional

import discord

from feedrelay.configuration.dispatch_settings import DispatchSettings
from feedrelay.datatypes.outcome_datatypes import ClassificationResult, DispatchResult
from feedrelay.datatypes.post_datatypes import CanonicalPost
from feedrelay.dispatch.post_embed import create_post_embed
from feedrelay.util.logger import get_logger

logger = get_logger("discord_dispatcher")


class DiscordDispatcher:
    """Sends one embed per post to the configured channel.

    Args:
        client: The running py-cord client.
        settings: Channel routing, timeout and embed styling.
        provider_display_name: Provider name shown in embed titles.
    """

    def __init__(
        self,
        client: discord.Client,
        settings: DispatchSettings,
        provider_display_name: str = "Instagram",
    ) -> None:
        self.client = client
        self.settings = settings
        self.provider_display_name = provider_display_name

    @property
    def is_ready(self) -> bool:
        return self.client.is_ready()

    def accepts_age_gated(self, post: CanonicalPost) -> bool:
        """True if an age-gated post has somewhere to go."""
        if self.settings.age_gated_channel_id is not None:
            return True
        return not self.settings.require_restricted_channel

    def resolve_channel_id(self, post: CanonicalPost, classification: ClassificationResult) -> Optional[int]:
        """Pick the destination channel for ``post``."""
        if classification.requires_age_gate and self.settings.age_gated_channel_id is not None:
            return self.settings.age_gated_channel_id
        if post.target_guild_id is not None:
            override = self.settings.guild_channels.get(post.target_guild_id)
            if override is not None:
                return override
        return self.settings.channel_id

    async def _get_channel(self, channel_id: int) -> discord.abc.Messageable:
        channel = self.client.get_channel(channel_id)
        if channel is None:
            channel = await self.client.fetch_channel(channel_id)
        return channel

    async def dispatch(self, post: CanonicalPost, classification: ClassificationResult) -> DispatchResult:
        if not self.is_ready:
            return DispatchResult.transient("Discord client is not ready")

        if classification.requires_age_gate and not self.accepts_age_gated(post):
            return DispatchResult.permanent("No age-restricted channel configured")

        channel_id = self.resolve_channel_id(post, classification)
        if channel_id is None:
            logger.error("[DISPATCH] No channel configured for %s", post.post_id)
            return DispatchResult.transient("No destination channel configured")

        embed = create_post_embed(
            post,
            classification,
            provider_display_name=self.provider_display_name,
            color=self.settings.embed_color,
            footer_text=self.settings.footer_text,
            content_warning=self.settings.content_warning,
        )

        try:
            channel = await self._get_channel(channel_id)
            message = await channel.send(embed=embed)
        except discord.NotFound:
            logger.error("[DISPATCH] Channel %s not found", channel_id)
            return DispatchResult.permanent(f"Channel {channel_id} not found")
        except discord.Forbidden:
            logger.error("[DISPATCH] Missing permissions to post in channel %s", channel_id)
            return DispatchResult.permanent(f"Missing permissions for channel {channel_id}")
        except discord.HTTPException as exc:
            if exc.status >= 500 or exc.status == 429:
                logger.warning("[DISPATCH] Discord error %s for %s: %s", exc.status, post.post_id, exc.text)
                return DispatchResult.transient(f"Discord error {exc.status}")
            logger.error("[DISPATCH] Discord rejected %s (%s): %s", post.post_id, exc.status, exc.text)
            return DispatchResult.permanent(f"Discord rejected the message ({exc.status})")
        except (OSError, discord.DiscordException) as exc:
            logger.warning("[DISPATCH] Network error posting %s: %s", post.post_id, exc)
            return DispatchResult.transient(f"Network error: {exc}")

        logger.info("[DISPATCH] Posted %s to channel %s (message %s)", post.post_id, channel_id, message.id)
        return DispatchResult.success(message_id=message.id, channel_id=channel_id)
