import os
import sys

# Корень репозитория в sys.path, чтобы импортировать habitsync и webapp_client
ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

# Настройки читаются при импорте habitsync.config
TEST_BOT_TOKEN = "123456:TEST-TOKEN"
os.environ.setdefault("TELEGRAM_BOT_TOKEN", TEST_BOT_TOKEN)
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import hashlib
import hmac
import json
from datetime import datetime
from urllib.parse import urlencode

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from habitsync.models.users import User  # noqa: F401
from habitsync.models.habit import Habit, Checkin  # noqa: F401


@pytest_asyncio.fixture
async def db_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine):
    session_factory = sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


def _sign_init_data(bot_token: str, auth_date: datetime, user: dict = None, **extra) -> str:
    """initData, подписанная так же, как это делает Telegram."""
    fields = {"auth_date": str(int(auth_date.timestamp())), "query_id": "AAH1", **extra}
    if user is not None:
        fields["user"] = json.dumps(user, separators=(",", ":"))
    check_string = "\n".join(f"{k}={v}" for k, v in sorted(fields.items()))
    secret = hmac.new(b"WebAppData", bot_token.encode(), hashlib.sha256).digest()
    fields["hash"] = hmac.new(secret, check_string.encode(), hashlib.sha256).hexdigest()
    return urlencode(fields)


@pytest.fixture
def sign_init_data():
    return _sign_init_data
