from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool
from billdesk.core.config import settings
import logging

logger = logging.getLogger(__name__)


def build_engine(url: str, echo: bool = False):
    """Crea el engine adecuado para la URL (PostgreSQL en servicio, SQLite en tests)."""
    if url.startswith("sqlite"):
        options = {"connect_args": {"check_same_thread": False}, "echo": echo}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # Una sola conexión compartida para que el esquema en memoria sobreviva
            options["poolclass"] = StaticPool
        return create_engine(url, **options)

    return create_engine(
        url,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
        echo=echo
    )


engine = build_engine(settings.database_url, echo=settings.DEBUG and settings.ENVIRONMENT == "development")

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Genera una sesión de base de datos por request."""
    db = SessionLocal()
    try:
        yield db
    except Exception as e:
        logger.error(f"Database session error: {e}")
        db.rollback()
        raise
    finally:
        db.close()
