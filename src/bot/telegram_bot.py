#!/usr/bin/env python3
"""
TrackNerd Telegram Bot

Looks up artists through the enrichment orchestrator:
  /artist <name> → bio + fun facts (partial content is still shown)

Commands:
  /start      - Welcome message
  /artist     - Enrich an artist by name
  /cache      - Show cache statistics
  /clearcache - Drop every cached entry

Usage:
  TELEGRAM_BOT_TOKEN=your_token python -m bot.telegram_bot
"""

import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Optional

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from telegram import Update
from telegram.ext import (
    Application,
    CommandHandler,
    MessageHandler,
    filters,
    ContextTypes,
)

from bot.formatting import format_enrichment, split_message
from enrichment.config import load_config
from enrichment.container import EnrichmentServices, build_services

logging.basicConfig(
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    level=logging.INFO,
)
logger = logging.getLogger(__name__)

# Built in main(); owned by this process for its lifetime
services: Optional[EnrichmentServices] = None
enrich_timeout: Optional[float] = None


async def start_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handle /start command."""
    await update.message.reply_text(
        "Hey, I'm TrackNerd. Send me an artist name and I'll dig up a bio and fun facts.\n\n"
        "Commands:\n"
        "/artist <name> - Look up an artist\n"
        "/cache - Cache statistics\n"
        "/clearcache - Clear cached artist info"
    )


async def reply_with_enrichment(update: Update, name: str):
    logger.info("Enrichment request from %s: %s", update.effective_user.id, name[:100])

    # enrich() blocks on its worker threads; keep the event loop free
    result = await asyncio.to_thread(services.orchestrator.enrich, name, enrich_timeout)

    for chunk in split_message(format_enrichment(result)):
        await update.message.reply_text(chunk)


async def artist_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handle /artist <name>."""
    name = " ".join(context.args or []).strip()
    if not name:
        await update.message.reply_text("Usage: /artist <name>")
        return
    await reply_with_enrichment(update, name)


async def cache_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handle /cache command."""
    stats = services.cache.get_stats()
    await update.message.reply_text(
        "Enrichment cache:\n"
        f"  Entries: {stats.total_entries} ({stats.expired_entries} expired)\n"
        f"  Hit rate: {stats.hit_rate_percent}% ({stats.hits}/{stats.hits + stats.misses})\n"
        f"  Writes: {stats.writes} | Evictions: {stats.evictions}"
    )


async def clear_cache_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handle /clearcache command."""
    cleared = services.cache.clear_all()
    await update.message.reply_text(f"Cleared {cleared} cached entries.")


async def handle_message(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Any plain text message is treated as an artist name."""
    message = update.message.text
    if not message:
        return
    await reply_with_enrichment(update, message)


def main():
    """Start the bot."""
    global services, enrich_timeout

    token = os.environ.get("TELEGRAM_BOT_TOKEN")
    if not token:
        logger.error("TELEGRAM_BOT_TOKEN not set")
        sys.exit(1)

    config = load_config(os.environ.get("ENRICHMENT_CONFIG", "config/enrichment.defaults.yml"))
    logging.getLogger().setLevel(config.log_level)

    services = build_services(config)
    enrich_timeout = config.enrich_timeout_sec
    services.start()

    logger.info("Starting TrackNerd Telegram bot...")

    app = Application.builder().token(token).build()

    # Commands
    app.add_handler(CommandHandler("start", start_command))
    app.add_handler(CommandHandler("artist", artist_command))
    app.add_handler(CommandHandler("cache", cache_command))
    app.add_handler(CommandHandler("clearcache", clear_cache_command))

    # All text messages
    app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, handle_message))

    try:
        logger.info("Bot is running. Polling for messages...")
        app.run_polling(allowed_updates=Update.ALL_TYPES)
    finally:
        services.close()


if __name__ == "__main__":
    main()
