"""
Common utility functions and helpers.
"""
import re
import unicodedata
from urllib.parse import quote

DEFAULT_FILE_NAME = "lab-record"


def safe_filename(name: str, max_length: int = 120) -> str:
    """
    Reduce a user-supplied name to something safe for a download.

    Path separators, control characters and quotes are dropped and runs of
    whitespace collapse to one space.

    Args:
        name: Raw file name or record title
        max_length: Maximum length of the result

    Returns:
        Cleaned name, or ``lab-record`` when nothing usable is left
    """
    name = unicodedata.normalize("NFKC", name or "")
    name = re.sub(r'[\\/:*?"<>|\x00-\x1f\x7f]', "", name)
    name = re.sub(r"\s+", " ", name).strip(" .")
    if not name:
        return DEFAULT_FILE_NAME
    return name[:max_length].rstrip(" .") or DEFAULT_FILE_NAME


def content_disposition(filename: str) -> str:
    """
    Build an ``attachment`` Content-Disposition header value.

    Non-ASCII names get an RFC 5987 ``filename*`` next to an ASCII fallback.
    """
    ascii_name = filename.encode("ascii", "ignore").decode("ascii") or DEFAULT_FILE_NAME
    header = f'attachment; filename="{ascii_name}"'
    if ascii_name != filename:
        header += f"; filename*=UTF-8''{quote(filename)}"
    return header
