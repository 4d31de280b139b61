import re
from datetime import UTC, datetime

DATA_URL_RE = re.compile(r"^data:(.+?);base64,(.*)$", re.DOTALL)
CHARS_PER_TOKEN = 4


def build_data_url(mime_type: str, data: str) -> str:
    """Wrap base64 data into a data URL."""
    return f"data:{mime_type};base64,{data}"


def parse_data_url(url: str) -> tuple[str, str] | None:
    """Split a base64 data URL into (mime_type, data), or None if it is not one."""
    match = DATA_URL_RE.match(url)
    if not match:
        return None
    return match.group(1), match.group(2)


def is_http_url(url: str) -> bool:
    return url.startswith(("http://", "https://"))


def estimate_tokens(text: str | None) -> int:
    """Rough token estimate used for usage metadata."""
    if not text:
        return 0
    return max(1, len(text) // CHARS_PER_TOKEN)


def iso_timestamp() -> str:
    """Current UTC time as ISO-8601 with millisecond precision and a Z suffix."""
    return datetime.now(tz=UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")
