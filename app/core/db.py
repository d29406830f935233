# app/core/db.py

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from app.core.config import settings
from app.utils.logger import get_logger

# --- Configure logging ---
logger = get_logger(__name__)

# --- Create database engine ---
connect_args = {"check_same_thread": False} if settings.db_url.startswith("sqlite") else {}
engine = create_engine(settings.db_url, pool_pre_ping=True, connect_args=connect_args)

# --- Create sessionmaker ---
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# --- Create declarative base ---
Base = declarative_base()

# --- Synchronous database session ---

def get_db():
    """
    Method for obtaining database session object
    """
    db = SessionLocal()
    try:
        yield db
        logger.info("Committing DB transaction")
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error("Error in DB transaction", error_message=str(e))
        raise e
    finally:
        db.close()


def init_db() -> None:
    """
    Create the tables owned by this service if they do not exist yet
    """
    # Imported for their side effect of registering tables on Base.metadata
    from app.api_logs import models as _api_log_models  # noqa: F401
    from app.oauth import models as _oauth_models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ensured", tables=sorted(Base.metadata.tables.keys()))
