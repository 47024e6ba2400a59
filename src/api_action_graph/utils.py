"""Common utility functions."""

import uuid
from pathlib import Path
from urllib.parse import urlparse

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def get_project_root() -> Path:
    """Get the project root directory."""
    return Path(__file__).parent.parent.parent


def generate_action_id() -> str:
    """Generate a fresh, unique action identifier."""
    return f"action_{uuid.uuid4()}"


def get_origin(url: str) -> str:
    """Return the scheme://host[:port] origin of a URL."""
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}"


def is_absolute_http_url(url: str) -> bool:
    """Check whether a string is an absolute http(s) URL."""
    if not isinstance(url, str) or not url.strip():
        return False
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)
