"""URL token codec for paths."""

from collections.abc import Sequence
from urllib.parse import parse_qs, quote, unquote, urlsplit

from branchfeed.tree.models import ChoiceToken, Path


TOKEN_SEPARATOR = ","

SHARE_QUERY_PARAM = "path"


def encode_path(path: Sequence[ChoiceToken]) -> str:
    """Encode a path as a compact URL token (e.g. 'A,B').

    Args:
        path: Validated path.

    Returns:
        Comma-joined tokens, empty for the root.
    """
    return TOKEN_SEPARATOR.join(token.value for token in path)


def decode_path(token: str | None, max_depth: int | None = None) -> Path:
    """Decode a URL token leniently.

    The token is URL-unescaped and split on commas. Each part is trimmed and
    upper-cased; anything that is not exactly 'A' or 'B' is dropped rather
    than rejecting the whole path.

    Args:
        token: Raw token from a URL, may be None or empty.
        max_depth: Truncate the result to this length, if given.

    Returns:
        Decoded path.
    """
    if not token:
        return ()
    parts = (part.strip().upper() for part in unquote(token).split(TOKEN_SEPARATOR))
    path = tuple(ChoiceToken(part) for part in parts if part in ("A", "B"))
    if max_depth is not None:
        path = path[: max(max_depth, 0)]
    return path


def build_share_url(base_url: str, story_id: str, path: Sequence[ChoiceToken] = ()) -> str:
    """Build a shareable story link that restores a path.

    Args:
        base_url: Site origin, e.g. 'https://branchfeed.app'.
        story_id: Story to link to.
        path: Path to restore, omitted from the URL when empty.

    Returns:
        URL such as '{base}/story/{id}?path=A,B'.
    """
    url = f"{base_url.rstrip('/')}/story/{quote(story_id, safe='')}"
    token = encode_path(path)
    if token:
        url = f"{url}?{SHARE_QUERY_PARAM}={quote(token, safe=TOKEN_SEPARATOR)}"
    return url


def path_from_share_url(url: str, max_depth: int | None = None) -> Path:
    """Read the path back from a share link.

    Args:
        url: Share URL.
        max_depth: Truncate the result to this length, if given.

    Returns:
        Decoded path, empty when the link carries none.
    """
    values = parse_qs(urlsplit(url).query).get(SHARE_QUERY_PARAM, [])
    return decode_path(values[0] if values else None, max_depth)
