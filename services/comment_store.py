"""
Storage backends for comments.

A store is opened per request with ``async with`` and closed on every exit
path. Both backends keep comments in one table keyed by id and answer range
scans over a single post ordered by ``(created_at, id)``.
"""
import abc
import bisect
import inspect
import logging
import threading
from typing import Callable, Dict, List, Optional, Tuple

from google.api_core import exceptions as gcp_exceptions
from google.cloud import firestore
from google.cloud.firestore import AsyncClient
from google.cloud.firestore_v1 import FieldFilter
from pydantic import ValidationError as PydanticValidationError

from config import Settings
from domain.comments import Comment
from domain.cursor import SortKey
from domain.errors import StorageError

logger = logging.getLogger('uvicorn.error')


class CommentStore(abc.ABC):

    async def __aenter__(self) -> "CommentStore":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None

    @abc.abstractmethod
    async def insert(self, comment: Comment) -> None:
        ...

    @abc.abstractmethod
    async def get(self, post_id: str, comment_id: str) -> Optional[Comment]:
        ...

    @abc.abstractmethod
    async def query_page(
        self, post_id: str, limit: int, start_after: Optional[SortKey] = None
    ) -> Tuple[List[Comment], bool]:
        """
        Up to ``limit`` comments of one post strictly after ``start_after``,
        oldest first, plus whether at least one more comment follows them.
        """

    @abc.abstractmethod
    async def count(self, post_id: str) -> int:
        ...


# --- Firestore ---

class FirestoreCommentStore(CommentStore):

    def __init__(self, project: Optional[str], collection: str,
                 client_factory: Callable[..., AsyncClient] = firestore.AsyncClient):
        self._project = project
        self._collection_name = collection
        self._client_factory = client_factory
        self._client: Optional[AsyncClient] = None

    async def __aenter__(self) -> "FirestoreCommentStore":
        try:
            self._client = self._client_factory(project=self._project)
        except Exception as e:
            logger.exception(f"Failed to open Firestore client: {e}")
            raise StorageError("comment store unavailable") from e
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        client, self._client = self._client, None
        if client is None:
            return
        try:
            closing = client.close()
            if inspect.isawaitable(closing):
                await closing
        except Exception as e:
            logger.error(f"Error closing Firestore client: {e}")

    def _comment_from_doc(self, doc, data=None) -> Comment:
        data = dict(data if data is not None else doc.to_dict())
        data['id'] = doc.id
        try:
            return Comment(**data)
        except PydanticValidationError as validation_error:
            # A page never omits a stored comment.
            logger.error(f"Data validation error for comment {doc.id}: {validation_error}. Data: {data}")
            raise StorageError(f"stored comment {doc.id} is unreadable") from validation_error

    def _collection(self):
        if self._client is None:
            raise StorageError("comment store used outside of its session")
        return self._client.collection(self._collection_name)

    async def insert(self, comment: Comment) -> None:
        try:
            # create() refuses to overwrite, so an id can never be reused
            await self._collection().document(comment.id).create(comment.model_dump())
        except gcp_exceptions.GoogleAPIError as e:
            logger.exception(f"Firestore write failed for comment '{comment.id}': {e}")
            raise StorageError("could not store comment") from e

    async def get(self, post_id: str, comment_id: str) -> Optional[Comment]:
        try:
            doc = await self._collection().document(comment_id).get()
        except gcp_exceptions.GoogleAPIError as e:
            logger.exception(f"Firestore read failed for comment '{comment_id}': {e}")
            raise StorageError("could not read comment") from e
        if not doc.exists:
            return None
        data = doc.to_dict()
        if data.get("post_id") != post_id:
            return None
        return self._comment_from_doc(doc, data)

    async def query_page(self, post_id, limit, start_after=None):
        # Firestore only orders by what we ask for; the id ordering is the tiebreaker.
        query = (
            self._collection()
            .where(filter=FieldFilter("post_id", "==", post_id))
            .order_by("created_at", direction=firestore.Query.ASCENDING)
            .order_by("id", direction=firestore.Query.ASCENDING)
        )
        if start_after is not None:
            query = query.start_after({"created_at": start_after.created_at, "id": start_after.comment_id})
        query = query.limit(limit + 1)

        comments: List[Comment] = []
        try:
            async for doc in query.stream():
                comments.append(self._comment_from_doc(doc))
        except gcp_exceptions.GoogleAPIError as e:
            logger.exception(f"Firestore query failed for comments of post '{post_id}': {e}")
            raise StorageError("could not read comments") from e
        return comments[:limit], len(comments) > limit

    async def count(self, post_id: str) -> int:
        query = self._collection().where(filter=FieldFilter("post_id", "==", post_id)).count()
        try:
            results = await query.get()
        except gcp_exceptions.GoogleAPIError as e:
            logger.exception(f"Firestore count failed for post '{post_id}': {e}")
            raise StorageError("could not count comments") from e
        return int(results[0][0].value) if results else 0


# --- In-memory ---

class InMemoryCommentTable:
    """Process-local table shared by every InMemoryCommentStore made from it."""

    def __init__(self):
        self.available = True
        self._lock = threading.Lock()
        self._by_id: Dict[str, Comment] = {}
        self._by_post: Dict[str, List[Tuple[str, str]]] = {}

    def check(self):
        if not self.available:
            raise StorageError("comment store unavailable")

    def insert(self, comment: Comment) -> None:
        with self._lock:
            if comment.id in self._by_id:
                raise StorageError(f"comment id '{comment.id}' already exists")
            self._by_id[comment.id] = comment
            bisect.insort(self._by_post.setdefault(comment.post_id, []), comment.sort_key)

    def get(self, comment_id: str) -> Optional[Comment]:
        with self._lock:
            return self._by_id.get(comment_id)

    def scan(self, post_id: str, limit: int, start_after: Optional[Tuple[str, str]]) -> List[Comment]:
        with self._lock:
            keys = self._by_post.get(post_id, [])
            start = bisect.bisect_right(keys, tuple(start_after)) if start_after else 0
            return [self._by_id[key[1]] for key in keys[start:start + limit]]

    def count(self, post_id: str) -> int:
        with self._lock:
            return len(self._by_post.get(post_id, []))

    def total(self) -> int:
        with self._lock:
            return len(self._by_id)


class InMemoryCommentStore(CommentStore):

    def __init__(self, table: InMemoryCommentTable):
        self._table = table

    async def insert(self, comment: Comment) -> None:
        self._table.check()
        self._table.insert(comment)

    async def get(self, post_id: str, comment_id: str) -> Optional[Comment]:
        self._table.check()
        comment = self._table.get(comment_id)
        if comment is None or comment.post_id != post_id:
            return None
        return comment

    async def query_page(self, post_id, limit, start_after=None):
        self._table.check()
        comments = self._table.scan(post_id, limit + 1, start_after)
        return comments[:limit], len(comments) > limit

    async def count(self, post_id: str) -> int:
        self._table.check()
        return self._table.count(post_id)


def build_store_factory(settings: Settings) -> Callable[[], CommentStore]:
    """Returns a callable producing a fresh, unopened store for each request."""
    if settings.store_backend == "memory":
        table = InMemoryCommentTable()
        logger.info("Using in-memory comment store.")
        return lambda: InMemoryCommentStore(table)
    logger.info(f"Using Firestore comment store (collection '{settings.comments_collection}').")
    return lambda: FirestoreCommentStore(settings.gcp_project, settings.comments_collection)
