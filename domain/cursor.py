import base64
import binascii
import json
import logging
from typing import NamedTuple, Optional

logger = logging.getLogger('uvicorn.error')

CURSOR_VERSION = 1


class SortKey(NamedTuple):
    created_at: str
    comment_id: str


def encode_cursor(key: SortKey) -> str:
    payload = json.dumps(
        {"v": CURSOR_VERSION, "c": key.created_at, "i": key.comment_id},
        separators=(",", ":"),
    )
    return base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii")


def decode_cursor(token: Optional[str]) -> Optional[SortKey]:
    """
    Turns a cursor back into the sort key it was made from.

    Anything that is not a cursor this module produced (garbage, an older
    version, a truncated token) comes back as None, meaning "start from the
    beginning". This never raises.
    """
    if not token or not isinstance(token, str):
        return None
    try:
        raw = base64.urlsafe_b64decode(token.encode("ascii"))
        data = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeError, ValueError) as e:
        logger.warning(f"Discarding undecodable comment cursor: {e}")
        return None
    if not isinstance(data, dict) or data.get("v") != CURSOR_VERSION:
        logger.warning(f"Discarding comment cursor with unknown format: {token[:32]}")
        return None
    created_at, comment_id = data.get("c"), data.get("i")
    if not isinstance(created_at, str) or not isinstance(comment_id, str):
        logger.warning(f"Discarding comment cursor with bad fields: {token[:32]}")
        return None
    return SortKey(created_at, comment_id)
