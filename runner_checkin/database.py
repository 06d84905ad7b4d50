import os
import logging
from urllib.parse import urlparse

from dotenv import load_dotenv, find_dotenv

# SQLAlchemy imports
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import NullPool, StaticPool

# load .env: prefer runner_checkin/.env next to this file, fallback to project .env
env_path = os.path.join(os.path.dirname(__file__), ".env")
if not os.path.exists(env_path):
    env_path = find_dotenv()  # try locating a .env in parent folders
load_dotenv(env_path)

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def resolve_database_url() -> str:
    """
    Resolve the final DATABASE_URL to use.
    Accepted schemes:
      1. postgresql:// and postgresql+psycopg2:// (returned as-is)
      2. postgres:// (rewritten to postgresql:// for SQLAlchemy)
      3. sqlite:// for local development and tests
    Anything else raises with instructions.
    """
    raw = os.getenv("DATABASE_URL")
    if not raw:
        raise ValueError(
            "DATABASE_URL not set. Add DATABASE_URL pointing to your Postgres connection string "
            "(or sqlite:///./checkin.db for a local run)."
        )

    raw = raw.strip().strip('"').strip("'")
    if raw.startswith(("postgresql://", "postgresql+psycopg2://", "sqlite://")):
        return raw

    # Hosted Postgres providers often hand out "postgres://"
    if raw.startswith("postgres://"):
        logger.info("Rewrote 'postgres://' -> 'postgresql://' for SQLAlchemy")
        return raw.replace("postgres://", "postgresql://", 1)

    raise ValueError(
        f"Unsupported DATABASE_URL scheme '{raw.split(':', 1)[0]}'. "
        "Use 'postgresql://<user>:<pass>@<host>:5432/<db>' or 'sqlite:///<path>'."
    )


def is_sqlite_url(url: str) -> bool:
    return url.startswith("sqlite://")


def is_in_memory_sqlite(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:")


# Retrieve final DATABASE_URL
DATABASE_URL = None
try:
    DATABASE_URL = resolve_database_url()
except Exception as e:
    logger.error(str(e))
    raise

logger.info("Loaded DATABASE_URL from environment (value hidden)")

# Basic validation (do not log secrets)
if not is_sqlite_url(DATABASE_URL):
    try:
        parsed_url = urlparse(DATABASE_URL)
        if not parsed_url.scheme or not parsed_url.hostname or parsed_url.path in ("", "/"):
            raise ValueError("DATABASE_URL missing required parts")
    except Exception as e:
        logger.error(f"Invalid DATABASE_URL format: {e}")
        raise
    logger.info("Processed DATABASE_URL validated")

# Set USE_NULL_POOL=0 in .env to keep a local pool when not behind a pgbouncer-style pooler
use_null_pool = os.getenv("USE_NULL_POOL", "1") == "1"

if is_sqlite_url(DATABASE_URL):
    engine_kwargs = {"connect_args": {"check_same_thread": False}}
    if is_in_memory_sqlite(DATABASE_URL):
        # Every connection to an in-memory database is a new database
        engine_kwargs["poolclass"] = StaticPool
elif use_null_pool:
    engine_kwargs = {
        "poolclass": NullPool,  # No local pooling - let the hosted pooler handle it
    }
else:
    engine_kwargs = {
        "pool_size": 10,
        "max_overflow": 2,
        "pool_recycle": 300,      # Recycle connections every 5 minutes
        "pool_pre_ping": True,    # Verify connections before use
        "pool_timeout": 30,       # Timeout waiting for a connection
    }

try:
    engine = create_engine(DATABASE_URL, **engine_kwargs)
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    logger.info("Using sync SQLAlchemy engine (%s)", engine.dialect.name)
    Base = declarative_base()
except Exception as e:
    logger.error(f"Error initializing database: {e}")
    raise
