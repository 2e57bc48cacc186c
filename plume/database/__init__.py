from .models import (
    Base,
    CompressionSample,
    create_db_engine,
    create_session_factory,
    create_session_with_retry,
    format_bytes,
)
