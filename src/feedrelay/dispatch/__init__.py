"""
Delivery of accepted posts to the chat platform.

- **dispatcher.py**: The `Dispatcher` protocol the pipeline depends on.
- **discord_dispatcher.py**: py-cord implementation posting embeds to channels.
- **post_embed.py**: Builds the embed for one post.
"""
