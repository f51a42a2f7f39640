from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base

from archive_partitions.config import settings

# Base for ALL models
Base = declarative_base()

_engine: Optional[Engine] = None


# -----------------------
# SQLAlchemy Engine
# -----------------------
def get_engine() -> Engine:
    """Create the engine on first use so importing models never needs a database."""
    global _engine
    if _engine is None:
        _engine = create_engine(
            settings.DATABASE_URL,
            future=True,
            echo=False,
            pool_pre_ping=True,
            pool_recycle=300,
        )
    return _engine
