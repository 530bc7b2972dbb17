import logging

from telegram import BotCommand, InlineKeyboardButton, InlineKeyboardMarkup, Update, WebAppInfo
from telegram.error import TelegramError
from telegram.ext import ContextTypes

from .config import Config
from .posts import format_latest_posts
from .store import StoreError, StoreState


logger = logging.getLogger(__name__)

LATEST_POSTS_COUNT = 3

START_TEXT = """Welcome to TeleBlog Lite!

A lightweight blogging platform right inside Telegram. Read articles, follow writers, and start your own blog!

Tap the button below to get started:"""

HELP_TEXT = """TeleBlog Lite Bot Help

Available commands:
/start - Launch the TeleBlog Lite app
/menu - Show main options
/posts - Browse latest articles
/help - Show this help message"""

MENU_TEXT = """TeleBlog Lite Main Menu

What would you like to do?"""

UNKNOWN_TEXT = """Unknown command

I didn't recognize that command. Here's what I can do:

/start - Launch TeleBlog Lite
/menu - Show main options
/help - Get assistance"""

BOT_COMMANDS = [
    BotCommand("start", "Launch the TeleBlog Lite app"),
    BotCommand("menu", "Show main options"),
    BotCommand("posts", "Browse latest articles"),
    BotCommand("help", "Show help"),
]


def webapp_link(config: Config, ref: str = "") -> str:
    """Mini App URL, optionally tagged with the bot entry point it came from."""
    if not ref:
        return config.webapp_url
    sep = "&" if "?" in config.webapp_url else "?"
    return f"{config.webapp_url}{sep}ref={ref}"


def _webapp_keyboard(config: Config, rows: list[tuple[str, str]]) -> InlineKeyboardMarkup | None:
    """One Mini App button per (label, ref) row, or None when no URL is set."""
    if not config.webapp_url:
        return None
    return InlineKeyboardMarkup([
        [InlineKeyboardButton(label, web_app=WebAppInfo(url=webapp_link(config, ref)))]
        for label, ref in rows
    ])


async def start_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start command."""
    config: Config = context.bot_data["config"]
    keyboard = _webapp_keyboard(config, [("Open TeleBlog Lite", "")])
    await update.message.reply_text(START_TEXT, reply_markup=keyboard)


async def help_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /help command."""
    await update.message.reply_text(HELP_TEXT)


async def menu_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /menu command: Mini App entry points."""
    config: Config = context.bot_data["config"]
    keyboard = _webapp_keyboard(config, [
        ("Read Articles", "bot_menu"),
        ("Start Writing", "bot_write"),
        ("Featured Content", "bot_featured"),
    ])
    await update.message.reply_text(MENU_TEXT, reply_markup=keyboard)


async def posts_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /posts command: list the latest published posts."""
    config: Config = context.bot_data["config"]
    store = context.bot_data["store"]

    try:
        posts = await store.list_published_posts(limit=LATEST_POSTS_COUNT)
    except StoreError as e:
        logger.error("Loading posts for /posts failed: %s", e)
        await update.message.reply_text("Sorry, articles are unavailable right now. Try again later.")
        return

    keyboard = _webapp_keyboard(config, [("Read Latest Posts", "bot_posts")])
    await update.message.reply_text(format_latest_posts(posts), reply_markup=keyboard)


async def unknown_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Fallback for any command without a handler."""
    config: Config = context.bot_data["config"]
    keyboard = _webapp_keyboard(config, [("Open App", "")])
    await update.message.reply_text(UNKNOWN_TEXT, reply_markup=keyboard)


async def post_init(app) -> None:
    """Connect the store, register bot commands and start the HTTP API if configured."""
    config: Config = app.bot_data["config"]
    store = app.bot_data["store"]

    state = await store.start()
    if state is not StoreState.READY:
        logger.warning("Store is %s; /auth and /posts will fail until restart", state.value)

    try:
        await app.bot.set_my_commands(BOT_COMMANDS)
    except TelegramError as e:
        logger.warning("Failed to set bot commands: %s", e)

    if config.api_port > 0:
        from aiohttp import web as aio_web
        from .web_api import create_web_app

        web_app = create_web_app(config, store, cors_origin=config.cors_origin)
        runner = aio_web.AppRunner(web_app)
        await runner.setup()
        site = aio_web.TCPSite(runner, "0.0.0.0", config.api_port)
        await site.start()
        app.bot_data["_api_runner"] = runner
        logger.info("HTTP API started on port %d", config.api_port)


async def post_shutdown(app) -> None:
    """Clean up the HTTP API server and the store session."""
    runner = app.bot_data.get("_api_runner")
    if runner:
        await runner.cleanup()
    store = app.bot_data.get("store")
    if store:
        await store.close()
