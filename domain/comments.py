from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from domain.errors import ValidationError

MAX_COMMENT_LENGTH = 280
DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100


class Comment(BaseModel):
    id: str
    post_id: str = Field(alias="postId")
    author_id: str = Field(alias="authorId")
    author_name: str = Field(alias="authorName")  # captured at write time, never refreshed
    text: str
    created_at: str = Field(alias="createdAt")

    model_config = ConfigDict(populate_by_name=True, from_attributes=True, frozen=True)

    @property
    def sort_key(self):
        return self.created_at, self.id


class CommentCreate(BaseModel):
    # Author identity comes from the token only; stray fields like userId are dropped.
    post_id: Optional[Any] = Field(default=None, alias="postId")
    text: Optional[Any] = None

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class CommentPage(BaseModel):
    comments: List[Comment]
    next_cursor: Optional[str] = Field(default=None, alias="nextCursor")

    model_config = ConfigDict(populate_by_name=True)


def utf16_length(text: str) -> int:
    """Length in UTF-16 code units, so astral characters count as two."""
    return len(text.encode("utf-16-le")) // 2


def validate_comment_input(post_id, text, max_length: int = MAX_COMMENT_LENGTH) -> str:
    """
    Checks a new comment's input and returns the text to store.

    Rules are applied in order and the first failure wins:
    missing post id, missing text, whitespace-only text, and finally the
    length limit, which is measured on the untrimmed text.
    """
    if not isinstance(post_id, str) or not post_id:
        raise ValidationError("post id required")
    if not isinstance(text, str) or not text:
        raise ValidationError("text required")
    trimmed = text.strip()
    if not trimmed:
        raise ValidationError("text cannot be whitespace-only")
    if utf16_length(text) > max_length:
        raise ValidationError(f"exceeds {max_length} characters")
    return trimmed


def normalize_limit(raw, default: int = DEFAULT_PAGE_SIZE, maximum: int = MAX_PAGE_SIZE) -> int:
    """Unusable values fall back to the default; oversized ones are clamped to the maximum."""
    if raw is None or isinstance(raw, bool):
        return default
    try:
        limit = int(str(raw).strip())
    except ValueError:
        return default
    if limit <= 0:
        return default
    return min(limit, maximum)
