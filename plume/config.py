import os
import tempfile

# Estimation store
PLUME_DATA_DIR = os.getenv("PLUME_DATA_DIR", os.path.join(tempfile.gettempdir(), "plume"))
DATABASE_URL = os.getenv(
    "PLUME_DATABASE_URL",
    f"sqlite:///{os.path.join(PLUME_DATA_DIR, 'compression_stats.db')}",
)
ESTIMATION_BACKEND = os.getenv("PLUME_ESTIMATION_BACKEND", "sql")  # 'sql' or 'redis'
REDIS_URL = os.getenv("PLUME_REDIS_URL", "redis://localhost:6379/0")
DB_CONNECT_RETRIES = int(os.getenv("PLUME_DB_CONNECT_RETRIES", 3))

# Estimation
QUALITY_WINDOW = int(os.getenv("PLUME_QUALITY_WINDOW", 10))  # +/- quality points

# Progress animation
TICK_INTERVAL_MS = int(os.getenv("PLUME_TICK_INTERVAL_MS", 50))
DEFAULT_DURATION_MS = int(os.getenv("PLUME_DEFAULT_DURATION_MS", 1000))

# Logging
LOG_LEVEL = os.getenv("PLUME_LOG_LEVEL", "INFO").upper()
