import re
import logging
import config

logger = logging.getLogger("Helpers")

HEX_COLOR_RE = re.compile(r'^#?[0-9a-fA-F]{6}$')


def is_admin(user_obj):
    """Checks if a user (or raw ID) is the configured admin."""
    if isinstance(user_obj, (int, str)):
        try:
            return int(user_obj) == config.ADMIN_ID and config.ADMIN_ID != 0
        except ValueError:
            return False
    uid = getattr(user_obj, "id", None)
    return uid is not None and uid == config.ADMIN_ID and config.ADMIN_ID != 0


def format_uptime(seconds):
    seconds = int(max(0, seconds))
    hours = seconds // 3600
    minutes = (seconds // 60) % 60
    secs = seconds % 60
    return f"{hours}h {minutes}m {secs}s"


def chunk_text(text, size):
    """Splits text into consecutive pieces of at most `size` characters."""
    if not text:
        return []
    return [text[i:i + size] for i in range(0, len(text), size)]


def normalize_hex_color(value):
    """Returns '#RRGGBB' (upper case) or None if the value is not a hex color."""
    if not value:
        return None
    value = value.strip()
    if not HEX_COLOR_RE.match(value):
        return None
    return "#" + value.lstrip("#").upper()


def is_http_url(value):
    return bool(value) and re.match(r'^https?://\S+$', value.strip()) is not None


def truncate(text, limit):
    if text is None:
        return None
    return text if len(text) <= limit else text[:limit - 3] + "..."
