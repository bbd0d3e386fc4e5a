"""
Writing and paging through the comments of a post.
"""
import logging
import uuid
from typing import Callable, List, Optional

import AuthAndUser as auth
from domain.clock import MonotonicClock
from domain.comments import (
    DEFAULT_PAGE_SIZE,
    MAX_COMMENT_LENGTH,
    MAX_PAGE_SIZE,
    Comment,
    CommentPage,
    normalize_limit,
    validate_comment_input,
)
from domain.cursor import SortKey, decode_cursor, encode_cursor
from domain.errors import ValidationError
from services.comment_store import CommentStore

logger = logging.getLogger('uvicorn.error')


def new_comment_id() -> str:
    return uuid.uuid4().hex


class CommentWriter:

    def __init__(self, store: CommentStore, clock: Optional[Callable[[], str]] = None,
                 max_length: int = MAX_COMMENT_LENGTH):
        self.store = store
        self.clock = clock or MonotonicClock()
        self.max_length = max_length

    async def create(self, post_id, text, author: auth.User) -> Comment:
        """
        Validates and stores one comment, returning the stored record.

        The author always comes from the authenticated user. Whether
        ``post_id`` names an existing post is not checked here.

        Raises:
            ValidationError: input rejected; nothing was written.
            StorageError: the store failed; the caller decides on retries.
        """
        try:
            trimmed = validate_comment_input(post_id, text, self.max_length)
        except ValidationError as e:
            logger.warning(f"Rejected comment on post '{post_id}' by user '{author.username}': {e.reason}")
            raise

        comment = Comment(
            id=new_comment_id(),
            post_id=post_id,
            author_id=author.id,
            author_name=author.display_name or author.username,
            text=trimmed,
            created_at=self.clock(),
        )
        await self.store.insert(comment)
        logger.info(f"User '{author.username}' created comment '{comment.id}' on post '{post_id}'")
        return comment


class CommentReader:

    def __init__(self, store: CommentStore, default_limit: int = DEFAULT_PAGE_SIZE,
                 max_limit: int = MAX_PAGE_SIZE):
        self.store = store
        self.default_limit = default_limit
        self.max_limit = max_limit

    async def get_page(self, post_id, limit=None, cursor: Optional[str] = None) -> CommentPage:
        """
        One page of a post's comments, oldest first.

        ``limit`` falls back to the default when missing or unusable and is
        capped at ``max_limit``. A cursor that cannot be decoded restarts the
        scan from the first comment. ``next_cursor`` is None once the post has no more comments.
        """
        if not isinstance(post_id, str) or not post_id:
            raise ValidationError("post id required")
        page_size = normalize_limit(limit, self.default_limit, self.max_limit)
        start_after = decode_cursor(cursor)

        comments, has_more = await self.store.query_page(post_id, page_size, start_after)

        next_cursor = None
        if has_more and comments:
            last = comments[-1]
            next_cursor = encode_cursor(SortKey(last.created_at, last.id))
        return CommentPage(comments=comments, next_cursor=next_cursor)

    async def get_one(self, post_id: str, comment_id: str) -> Optional[Comment]:
        return await self.store.get(post_id, comment_id)


async def collect_comments(reader: CommentReader, post_id: str, page_size=None) -> List[Comment]:
    """Follows cursors until exhausted and concatenates every page."""
    all_comments: List[Comment] = []
    cursor = None
    while True:
        page = await reader.get_page(post_id, limit=page_size, cursor=cursor)
        all_comments.extend(page.comments)
        if page.next_cursor is None:
            return all_comments
        cursor = page.next_cursor
