#!/usr/bin/env python

import argparse
import configparser
import logging

from telegram.ext import Application, CommandHandler, MessageHandler, filters

from teleblog.config import load_config
from teleblog.handlers import (
    help_command, menu_command, post_init, post_shutdown, posts_command,
    start_command, unknown_command,
)
from teleblog.store import create_store


def main():
    parser = argparse.ArgumentParser(description="TeleBlog Lite Telegram bot and Mini App API")
    parser.add_argument("-c", "--config", type=str, default="config.ini", help="Path to config file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    # httpx logs every getUpdates poll at INFO, and the URL contains the bot token.
    logging.getLogger("httpx").setLevel(logging.WARNING)

    config_file = configparser.ConfigParser()
    config_file.read(args.config)
    config = load_config(config_file)

    app = (
        Application.builder()
        .token(config.bot_token)
        .post_init(post_init)
        .post_shutdown(post_shutdown)
        .build()
    )
    app.bot_data["config"] = config
    app.bot_data["store"] = create_store(config)

    app.add_handler(CommandHandler("start", start_command))
    app.add_handler(CommandHandler("help", help_command))
    app.add_handler(CommandHandler("menu", menu_command))
    app.add_handler(CommandHandler("posts", posts_command))
    app.add_handler(MessageHandler(filters.COMMAND, unknown_command))

    logging.getLogger(__name__).info("Bot started (data source: %s)", config.data_source)
    app.run_polling()


if __name__ == "__main__":
    main()
