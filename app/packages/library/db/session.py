"""Database engine and session factory configuration."""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.packages.library.core.config import get_settings

settings = get_settings()


def _engine_kwargs(url: str) -> dict:
    # SQLite 连接需要允许跨线程使用（FastAPI 线程池 + 服务锁）
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


# ``echo`` mirrors SQL logs when enabled in settings for easier debugging.
engine = create_engine(
    settings.sql_database_url,
    echo=settings.database_echo,
    **_engine_kwargs(settings.sql_database_url),
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
