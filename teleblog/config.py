import os
from dataclasses import dataclass


DATA_SOURCES = ("supabase", "demo")

# Secrets may come from the environment so they never have to live in a file
# that gets deployed next to the Mini App frontend.
ENV_OVERRIDES = {
    ("TELEGRAM", "bot_token"): "TELEBLOG_BOT_TOKEN",
    ("TELEGRAM", "webapp_url"): "TELEBLOG_WEBAPP_URL",
    ("AUTH", "jwt_secret"): "TELEBLOG_JWT_SECRET",
    ("STORE", "data_source"): "TELEBLOG_DATA_SOURCE",
    ("STORE", "supabase_url"): "TELEBLOG_SUPABASE_URL",
    ("STORE", "supabase_service_key"): "TELEBLOG_SUPABASE_SERVICE_KEY",
}


@dataclass
class Config:
    bot_token: str
    jwt_secret: str
    webapp_url: str = ""
    max_age_seconds: int = 0
    api_port: int = 0
    cors_origin: str = "*"
    data_source: str = "supabase"
    supabase_url: str = ""
    supabase_service_key: str = ""
    posts_per_page: int = 10


def _get(config, section: str, key: str, default: str = "", environ=None) -> str:
    """Read section/key, letting the matching environment variable win."""
    environ = os.environ if environ is None else environ
    env_name = ENV_OVERRIDES.get((section, key))
    if env_name and environ.get(env_name, "").strip():
        return environ[env_name].strip()
    if config.has_section(section):
        return config[section].get(key, default).strip()
    return default


def _get_int(config, section: str, key: str, default: int) -> int:
    raw = _get(config, section, key, "")
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"[{section}] {key} must be an integer, got {raw!r}")


def load_config(config, environ=None) -> Config:
    """Build a Config from a parsed configparser object plus env overrides."""
    bot_token = _get(config, "TELEGRAM", "bot_token", environ=environ)
    if not bot_token:
        raise ValueError("bot token missing: set [TELEGRAM] bot_token or TELEBLOG_BOT_TOKEN")

    jwt_secret = _get(config, "AUTH", "jwt_secret", environ=environ)
    if not jwt_secret:
        raise ValueError("JWT secret missing: set [AUTH] jwt_secret or TELEBLOG_JWT_SECRET")

    data_source = _get(config, "STORE", "data_source", "supabase", environ=environ).lower()
    if data_source not in DATA_SOURCES:
        raise ValueError(f"unknown data_source {data_source!r}, expected one of {DATA_SOURCES}")

    supabase_url = _get(config, "STORE", "supabase_url", environ=environ).rstrip("/")
    supabase_service_key = _get(config, "STORE", "supabase_service_key", environ=environ)
    if data_source == "supabase" and not (supabase_url and supabase_service_key):
        raise ValueError("data_source = supabase requires supabase_url and supabase_service_key")

    return Config(
        bot_token=bot_token,
        jwt_secret=jwt_secret,
        webapp_url=_get(config, "TELEGRAM", "webapp_url", environ=environ),
        max_age_seconds=_get_int(config, "AUTH", "max_age_seconds", 0),
        api_port=_get_int(config, "API", "port", 0),
        cors_origin=_get(config, "API", "cors_origin", "*") or "*",
        data_source=data_source,
        supabase_url=supabase_url,
        supabase_service_key=supabase_service_key,
        posts_per_page=_get_int(config, "APP", "posts_per_page", 10),
    )
