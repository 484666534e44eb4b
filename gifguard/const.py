"""Constants for the gifguard service."""

# Default server configuration
DEFAULT_SERVER_HOST = "127.0.0.1"
DEFAULT_SERVER_PORT = 11600
DEFAULT_STORE_PATH = "data/gifguard.db"

# Logging configuration
DEFAULT_LOG_LEVEL = "INFO"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Library log levels
LIBRARY_LOG_LEVELS = {
    "uvicorn": "WARNING",
    "uvicorn.access": "WARNING",
    "fastapi": "WARNING",
    "httpx": "WARNING",
    "PIL": "WARNING",
}

# Matching and cache tunables
FINGERPRINT_CACHE_MAX_SIZE = 5000
DECISION_CACHE_MAX_SIZE = 1000
MATCH_THRESHOLD = 12  # bits, for 256-bit fingerprints

# Timing tunables (seconds)
RESOURCE_IDLE_TIMEOUT = 30.0
REQUEST_TIMEOUT = 10.0
RESOURCE_INIT_GRACE = 0.1
PERSIST_DEBOUNCE = 1.0

# Thumbnail download limits used by the worker
THUMBNAIL_DOWNLOAD_TIMEOUT = 8.0
THUMBNAIL_MAX_BYTES = 10 * 1024 * 1024

# Health check constants
HEALTH_STATUS_HEALTHY = "healthy"
HEALTH_STATUS_DEGRADED = "degraded"

# FastAPI app constants
APP_TITLE = "gifguard"
APP_DESCRIPTION = "Perceptual hash matching service for blocking repeated animated media"
APP_VERSION = "0.1.0"

# File names
CONFIG_FILE_NAME = "config.json"
