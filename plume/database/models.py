import os
import time
from datetime import datetime, timezone

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    create_engine,
    text,
)
from sqlalchemy.exc import DisconnectionError, OperationalError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from plume.config import DB_CONNECT_RETRIES

Base = declarative_base()


def _utcnow():
    return datetime.now(timezone.utc)


def format_bytes(bytes_value):
    """Format bytes into human-readable string (e.g., '1.5 MB')"""
    if bytes_value is None:
        return None

    if bytes_value == 0:
        return "0 B"

    units = ['B', 'KB', 'MB', 'GB', 'TB']
    unit_index = 0
    size = float(bytes_value)

    while size >= 1024 and unit_index < len(units) - 1:
        size /= 1024
        unit_index += 1

    # Format with 1 decimal place for MB and above, no decimals for B and KB
    if unit_index <= 1:
        return f"{int(size)} {units[unit_index]}"
    else:
        return f"{size:.1f} {units[unit_index]}"


class CompressionSample(Base):
    """One historical compression outcome. Rows are only ever inserted or wiped."""

    __tablename__ = "compression_samples"

    id = Column(Integer, primary_key=True, autoincrement=True)
    input_format = Column(String(16), nullable=False)
    output_format = Column(String(16), nullable=False)
    size_bucket = Column(String(16), nullable=False)  # 'small', 'medium', 'large'
    quality_setting = Column(Integer, nullable=False)
    lossy_mode = Column(Boolean, nullable=False)
    original_size = Column(BigInteger, nullable=False)
    compressed_size = Column(BigInteger, nullable=False)
    reduction_percent = Column(Float, nullable=False)
    compression_duration_ms = Column(Integer, nullable=True)  # Missing for untimed recordings
    timestamp = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (
        Index("idx_samples_lookup", "input_format", "output_format", "size_bucket"),
    )


def create_db_engine(database_url):
    """
    Create an engine for the estimation database.

    SQLite files get their parent directory created; in-memory SQLite shares one
    connection so that worker threads see the same tables.
    """
    if database_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            return create_engine(
                database_url,
                connect_args=connect_args,
                poolclass=StaticPool,
                echo=False,
            )

        db_path = database_url.split("sqlite:///", 1)[-1]
        db_dir = os.path.dirname(db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)
        return create_engine(database_url, connect_args=connect_args, echo=False)

    return create_engine(database_url, pool_pre_ping=True, echo=False)


def create_session_factory(engine):
    """Bind a session factory and create the tables (no-op for existing tables)."""
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)


def create_session_with_retry(session_factory, max_retries=DB_CONNECT_RETRIES, retry_delay=0.2):
    """Create a database session with retry logic for connection failures."""
    max_retries = max(1, max_retries)
    for attempt in range(max_retries):
        session = None
        try:
            session = session_factory()
            # Test the connection with a simple query
            session.execute(text("SELECT 1"))
            return session
        except (OperationalError, DisconnectionError):
            if session is not None:
                session.close()

            if attempt < max_retries - 1:
                time.sleep(retry_delay)
                retry_delay = min(retry_delay * 1.5, 2)  # Exponential backoff capped at 2s
                continue
            raise
