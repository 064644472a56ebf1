from __future__ import annotations

import logging
from urllib.parse import urlparse, urlunparse, parse_qsl, urlencode

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncEngine

from backend.settings import get_settings

logger = logging.getLogger(__name__)

# driver prefixes rewritten to the async drivers the engine runs on
_ASYNC_PREFIXES = (
    ("sqlite:///", "sqlite+aiosqlite:///"),
    ("postgres://", "postgresql+asyncpg://"),
    ("postgresql://", "postgresql+asyncpg://"),
    ("postgresql+psycopg2://", "postgresql+asyncpg://"),
)
# libpq options asyncpg does not understand
_DROPPED_QUERY_KEYS = {"sslmode", "channel_binding", "ssl"}
_LOCAL_HOSTS = {"localhost", "127.0.0.1"}

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker | None = None


def is_sqlite_url(database_url: str) -> bool:
    return str(database_url or "").startswith("sqlite")


def _normalize_database_url(database_url: str) -> str:
    url = str(database_url or "").strip()
    for prefix, replacement in _ASYNC_PREFIXES:
        if url.startswith(prefix):
            url = replacement + url[len(prefix):]
            break
    if not url or is_sqlite_url(url):
        return url
    try:
        parsed = urlparse(url)
    except ValueError:
        return url
    params = parse_qsl(parsed.query, keep_blank_values=True)
    query = [(key, value) for key, value in params if key not in _DROPPED_QUERY_KEYS]
    if any(key == "sslmode" for key, _ in params):
        query.append(("ssl", "true"))
    return urlunparse(parsed._replace(query=urlencode(query)))


def _postgres_connect_args(db_url: str) -> dict:
    try:
        host = urlparse(db_url).hostname or ""
    except ValueError:
        logger.debug("Could not read host from database URL; skipping SSL hint.")
        return {}
    if host and host not in _LOCAL_HOSTS:
        return {"ssl": True}
    return {}


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        db_url = _normalize_database_url(get_settings().database_url)
        if is_sqlite_url(db_url):
            _engine = create_async_engine(db_url, future=True)
        else:
            _engine = create_async_engine(
                db_url,
                connect_args=_postgres_connect_args(db_url),
                pool_pre_ping=True,
                pool_size=20,
                max_overflow=10,
                future=True,
            )
    return _engine


def get_sessionmaker() -> async_sessionmaker:
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(get_engine(), expire_on_commit=False)
    return _session_factory
