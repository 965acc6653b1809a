"""SQLAlchemy database models and setup."""

from datetime import datetime
from typing import Optional

from sqlalchemy import Column, DateTime, Index, Integer, String, Text, create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from cnpj_pull.config import settings

Base = declarative_base()


class DBRegistryCache(Base):
    """Resolved registry payload per CNPJ."""

    __tablename__ = "registry_cache"

    cnpj = Column(String(14), primary_key=True)
    payload = Column(Text, nullable=False)  # JSON ResolvedEntity
    status = Column(String(100))
    source = Column(String(50))
    fetched_at = Column(DateTime, default=datetime.utcnow)
    expires_at = Column(DateTime, nullable=False)
    hit_count = Column(Integer, default=0, nullable=False)
    last_accessed_at = Column(DateTime)

    __table_args__ = (Index("idx_registry_cache_expires", "expires_at"),)


_session_factories: dict[str, sessionmaker] = {}


# Database initialization
def init_db(db_url: Optional[str] = None) -> sessionmaker:
    """Initialize database and return session maker."""
    url = db_url or settings.database_url
    if url in _session_factories:
        return _session_factories[url]

    connect_args = {}
    if url.startswith("sqlite"):
        # Sessions are opened from worker threads
        connect_args = {"check_same_thread": False, "timeout": 30}
    engine = create_engine(url, echo=False, connect_args=connect_args)
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine)
    _session_factories[url] = factory
    return factory
