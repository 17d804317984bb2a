import os
from datetime import datetime, timezone

from django.conf import settings

SUMMARY_IMAGE_NAME = "summary.png"


def get_cache_dir() -> str:
    """Return the absolute cache directory, creating it if absent."""
    path = os.path.abspath(settings.COUNTRIES_CACHE_DIR)
    os.makedirs(path, exist_ok=True)
    return path


def get_summary_image_path() -> str:
    """Return full path to the summary image in the writable cache."""
    return os.path.join(get_cache_dir(), SUMMARY_IMAGE_NAME)


def get_now():
    """Return current UTC datetime (aware)."""
    return datetime.now(timezone.utc)


def format_timestamp(value):
    """Human-readable UTC rendering used on the summary image."""
    if value is None:
        return "never"
    return value.astimezone(timezone.utc).strftime("%d %b %Y, %H:%M:%S UTC")
