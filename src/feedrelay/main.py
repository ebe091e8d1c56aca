"""
Feed Relay
==========

Receives feed-update webhooks and manual submissions over HTTP, moderates
their content and relays what qualifies to a Discord channel. The Discord
client and the HTTP server share one event loop.
"""

import os
import sys
from pathlib import Path

def resolve_base_dir() -> Path:
    """Determine the base directory of the project.
    Resolution order:
    1. FEEDRELAY_HOME environment variable, if set.
    2. If running in a frozen/compiled context (e.g., PyInstaller, Nuitka), use the executable's directory.
    3. Otherwise, assume running from source and use the grandparent of this file's directory.
    """
    if env_home := os.getenv("FEEDRELAY_HOME"):
        return Path(env_home).resolve()

    if getattr(sys, "frozen", False) or getattr(sys, "compiled", False):
        return Path(sys.argv[0]).resolve().parent

    return Path(__file__).resolve().parents[2]

BASE_DIR = resolve_base_dir()
os.chdir(BASE_DIR)

import asyncio
import discord
import uvicorn
from dotenv import load_dotenv

from feedrelay.configuration.app_configuration import AppConfig
from feedrelay.database.db_connection import ConnectionManager
from feedrelay.dispatch.discord_dispatcher import DiscordDispatcher
from feedrelay.ingestion.item_normalizer import ItemNormalizer
from feedrelay.moderation.content_classifier import ContentClassifier
from feedrelay.moderation.lexicon import load_lexicon
from feedrelay.pipeline.dedup_guard import DedupGuard
from feedrelay.pipeline.feed_processor import FeedProcessor
from feedrelay.pipeline.processing_stats import ProcessingStats
from feedrelay.security.rate_limiter import RateLimiter
from feedrelay.security.signature_verifier import SignatureVerifier
from feedrelay.util.logger import get_logger, handle_exception
from feedrelay.web.app import RelayServices, create_app


logger = get_logger("main")

SECONDS_PER_HOUR = 3600


def load_environment() -> tuple[str, str | None, str]:
    """Load environment variables.

    Returns
    -------
    tuple
        Discord bot token, webhook shared secret (may be None) and the
        environment name.

    Raises
    ------
    SystemExit
        If the required ``DISCORD_BOT_TOKEN`` variable is missing.
    """
    load_dotenv(dotenv_path=BASE_DIR / ".env")
    token = os.getenv("DISCORD_BOT_TOKEN")
    if not token:
        logger.critical("'DISCORD_BOT_TOKEN' environment variable not set. Relay cannot start.")
        sys.exit(1)

    secret = os.getenv("FEED_WEBHOOK_SECRET") or None
    if not secret:
        logger.critical("'FEED_WEBHOOK_SECRET' is not set; webhook requests will be refused.")
    return token, secret, os.getenv("FEEDRELAY_ENV", "production")


def build_intents() -> discord.Intents:
    """The relay only posts messages, so the default intents are enough."""
    intents = discord.Intents.default()
    intents.guilds = True
    return intents


def build_services(
    config: AppConfig,
    client: discord.Client,
    webhook_secret: str | None,
    environment: str,
) -> RelayServices:
    """Create every long-lived service once and wire them together."""
    classifier_settings = config.classifier
    classifier = ContentClassifier(
        load_lexicon(classifier_settings.lexicon_path),
        term_weight=classifier_settings.term_weight,
        age_gate_threshold=classifier_settings.age_gate_threshold,
        field_weights=classifier_settings.field_weights,
        body_snippet_length=classifier_settings.body_snippet_length,
    )

    dispatch_settings = config.dispatch
    dispatcher = DiscordDispatcher(client, dispatch_settings, config.provider_display_name)

    feed_throttle = None
    if config.max_posts_per_feed_per_hour > 0:
        feed_throttle = RateLimiter(SECONDS_PER_HOUR, config.max_posts_per_feed_per_hour)

    db = ConnectionManager()
    processor = FeedProcessor(
        normalizer=ItemNormalizer(
            provider=config.provider_name,
            title_max_length=config.title_max_length,
            default_author=config.manual_default_author,
        ),
        classifier=classifier,
        dedup=DedupGuard(db),
        dispatcher=dispatcher,
        stats=ProcessingStats(),
        dispatch_timeout=dispatch_settings.timeout_seconds,
        feed_throttle=feed_throttle,
    )

    return RelayServices(
        verifier=SignatureVerifier(webhook_secret),
        rate_limiter=RateLimiter(config.rate_limit_window_seconds, config.rate_limit_max_requests),
        processor=processor,
        db=db,
        database_path=config.database_path,
        signature_header=config.signature_header,
        manual_allowed_domains=config.manual_allowed_domains,
        trust_forwarded_for=config.trust_forwarded_for,
        retention_days=config.retention_days,
        environment=environment,
    )


async def start_bot(client: discord.Client, token: str) -> None:
    """Connect the Discord client and keep it running."""
    logger.info("Attempting to connect to Discord…")
    try:
        await client.start(token)
    except asyncio.CancelledError:
        logger.info("Discord client start cancelled; shutting down")
        raise
    finally:
        logger.info("Discord client start routine finished.")


async def shutdown_runtime(client: discord.Client, services: RelayServices | None = None) -> None:
    """Close the Discord client and the database connection."""
    if not client.is_closed():
        try:
            await client.close()
        except Exception as exc:
            logger.exception("Error while closing the Discord client: %s", exc)

    if services is not None:
        try:
            await services.db.close()
        except Exception as exc:
            logger.exception("Error while closing the database: %s", exc)

    logger.info("Shutdown complete.")


async def async_main() -> int:
    """Bootstrap configuration, services, the Discord client and the HTTP server.

    Returns
    -------
    int
        Process exit code.
    """
    token, secret, environment = load_environment()
    config = AppConfig()

    client = discord.Client(intents=build_intents())

    @client.event
    async def on_ready():
        logger.info("Logged in to Discord as %s", client.user)

    try:
        services = build_services(config, client, secret, environment)
    except Exception as exc:
        logger.critical("Failed to initialize relay services: %s", exc)
        await shutdown_runtime(client)
        return 1

    server = uvicorn.Server(
        uvicorn.Config(
            create_app(services),
            host=config.server_host,
            port=config.server_port,
            log_config=None,
        )
    )

    bot_task = asyncio.create_task(start_bot(client, token), name="discord-client")
    server_task = asyncio.create_task(server.serve(), name="http-server")
    exit_code = 0

    try:
        done, pending = await asyncio.wait({bot_task, server_task}, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            if not task.cancelled() and task.exception() is not None:
                logger.critical("%s stopped with an error: %s", task.get_name(), task.exception())
                exit_code = 1
    finally:
        # The server closes the database in its lifespan; stop it before the client.
        server.should_exit = True
        await asyncio.gather(server_task, return_exceptions=True)
        await shutdown_runtime(client, services)
        await asyncio.gather(bot_task, return_exceptions=True)

    return exit_code


def main() -> int:
    """Entrypoint that runs the async runtime and returns the process exit code."""
    sys.excepthook = handle_exception
    logger.info("Starting Feed Relay…")
    try:
        return asyncio.run(async_main())
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user.")
        return 0
    except SystemExit as exit_exc:
        code = exit_exc.code
        if isinstance(code, int):
            return code
        return 1
    except Exception as exc:
        logger.critical("An unexpected error occurred while running the relay: %s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
