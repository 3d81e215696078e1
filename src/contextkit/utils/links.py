from collections.abc import Sequence
from urllib.parse import quote

from domain_models.constants import URL_PATH_SAFE_CHARS


def build_universal_link(prefix: str | None, identifier_path: Sequence[str]) -> str | None:
    """
    Build a deep link into a context.

    The path is joined with '/' and percent-encoded, keeping characters that are
    legal in a URL path, then appended verbatim to the prefix.

    Returns:
        The URL, or None when no prefix is configured.
    """
    if not prefix:
        return None
    path = "/".join(identifier_path)
    return prefix + quote(path, safe=URL_PATH_SAFE_CHARS)
