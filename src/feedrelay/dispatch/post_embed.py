"""
Embed creation for relayed posts.
"""

import discord

from feedrelay.datatypes.outcome_datatypes import ClassificationResult
from feedrelay.datatypes.post_datatypes import CanonicalPost
from feedrelay.util.format_utils import truncate_to_limit

EMBED_DESCRIPTION_LIMIT = 2000
EMBED_TITLE_LIMIT = 256
CONTENT_WARNING_FIELD = "⚠️ Content Warnings"


def create_post_embed(
    post: CanonicalPost,
    classification: ClassificationResult,
    provider_display_name: str = "Instagram",
    color: int = 0xE1306C,
    footer_text: str = "Feed Relay",
    content_warning: str | None = None,
) -> discord.Embed:
    """
    Create the embed announcing one post.

    Args:
        post: The post to announce.
        classification: Classifier verdict; age-gated posts get a warning field.
        provider_display_name: Shown in the embed title.
        color: Brand colour of the embed.
        footer_text: Footer line.
        content_warning: Warning text shown for age-gated posts.

    Returns:
        discord.Embed: Embed linking back to the original post, with the first
        image attached when there is one.
    """
    embed = discord.Embed(
        title=truncate_to_limit(f"📸 New {provider_display_name} Post", EMBED_TITLE_LIMIT),
        url=post.link,
        description=truncate_to_limit(post.body_text or post.title, EMBED_DESCRIPTION_LIMIT),
        color=discord.Color(color),
        timestamp=post.published_at,
    )

    if post.author:
        embed.set_author(name=post.author)

    images = post.images
    if images:
        embed.set_image(url=images[0].url)

    if classification.requires_age_gate:
        warning = content_warning or "Age-restricted content"
        if classification.categories:
            warning = f"{warning}\nTopics: {', '.join(classification.categories)}"
        embed.add_field(name=CONTENT_WARNING_FIELD, value=warning, inline=False)

    embed.set_footer(text=footer_text)
    return embed
