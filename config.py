import os

# Upload server the benchmark talks to
SERVER_URL = os.environ.get("FORMATBENCH_SERVER_URL", "http://localhost:8000")

# Per-request timeout in seconds
REQUEST_TIMEOUT = float(os.environ.get("FORMATBENCH_TIMEOUT", "60"))

# Reference upload server (main.py)
HOST = os.environ.get("HOST", "0.0.0.0")
PORT = int(os.environ.get("PORT", "8000"))
CORS_ORIGINS = [
    o.strip()
    for o in os.environ.get("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173").split(",")
    if o.strip()
]

# Uploads kept in memory before the oldest are evicted; 0 keeps everything
MAX_STORED_FILES = int(os.environ.get("FORMATBENCH_MAX_FILES", "500")) or None

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()


def get_server_url() -> str:
    """Get the configured upload server base URL."""
    return SERVER_URL


def get_cors_origins() -> list[str]:
    """Get the origins allowed to call the reference server."""
    return CORS_ORIGINS
