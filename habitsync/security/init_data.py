from __future__ import annotations

from datetime import datetime, timezone
from typing import Mapping, Optional

from aiogram.utils.web_app import WebAppInitData, WebAppUser, safe_parse_webapp_init_data
from loguru import logger

DEBUG_INIT_DATA = "debug-mode"
DEBUG_TELEGRAM_ID = 1


class InitDataError(ValueError):
    """The Telegram initData credential is missing, forged or stale."""


def extract_init_data(headers: Mapping[str, str], query: Optional[Mapping[str, str]] = None) -> str:
    """
    Pulls the raw initData string from Authorization (optionally prefixed
    with "Bearer " or "tma "), X-TG-INIT-DATA, or a query parameter.
    """
    auth = (headers.get("authorization") or "").strip()
    if auth:
        lower = auth.lower()
        if lower.startswith("bearer "):
            return auth[7:].strip()
        if lower.startswith("tma "):
            return auth[4:].strip()
        return auth

    header = (headers.get("x-tg-init-data") or "").strip()
    if header:
        return header

    for key in ("tgWebAppData", "initData", "init_data"):
        value = (query or {}).get(key)
        if value and value.strip():
            return value
    return ""


def verify_init_data(
    init_data: str,
    bot_token: str,
    max_age_seconds: int,
    now: Optional[datetime] = None,
) -> WebAppUser:
    """
    Checks the HMAC signature of Telegram WebApp initData and its freshness.

    The signature check (sorted data-check string, key derived from the bot
    token, constant-time comparison) is aiogram's. Returns the signed user.
    """
    if not init_data:
        raise InitDataError("Missing initData")
    if not bot_token:
        raise InitDataError("Server misconfigured (bot token missing)")

    try:
        parsed: WebAppInitData = safe_parse_webapp_init_data(token=bot_token, init_data=init_data)
    except ValueError as exc:
        logger.warning("Rejected initData: {}", exc)
        raise InitDataError("Invalid initData") from exc

    auth_date = parsed.auth_date
    if auth_date.tzinfo is None:
        auth_date = auth_date.replace(tzinfo=timezone.utc)
    age = ((now or datetime.now(timezone.utc)) - auth_date).total_seconds()
    if age < 0 or age > max_age_seconds:
        logger.warning("Rejected stale initData (age {}s)", int(age))
        raise InitDataError("Expired initData")

    if not parsed.user or not parsed.user.id:
        raise InitDataError("initData has no user")

    return parsed.user
