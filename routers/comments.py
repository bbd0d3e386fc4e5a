import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request, status

import AuthAndUser as auth
from config import Settings, get_settings
from domain.comments import Comment, CommentCreate, CommentPage
from services.comment_service import CommentReader, CommentWriter
from services.comment_store import CommentStore

logger = logging.getLogger('uvicorn.error')

router = APIRouter(tags=["comments"])


async def get_comment_store(request: Request):
    factory = getattr(request.app.state, 'comment_store_factory', None)
    if factory is None:
        logger.error("Comment store not initialized or unavailable.")
        raise HTTPException(status_code=503, detail="Database service unavailable")
    async with factory() as store:
        yield store


def get_comment_writer(
    request: Request,
    store: CommentStore = Depends(get_comment_store),
    settings: Settings = Depends(get_settings),
) -> CommentWriter:
    return CommentWriter(
        store,
        clock=getattr(request.app.state, 'comment_clock', None),
        max_length=settings.max_comment_length,
    )


def get_comment_reader(
    store: CommentStore = Depends(get_comment_store),
    settings: Settings = Depends(get_settings),
) -> CommentReader:
    return CommentReader(store, default_limit=settings.default_page_size, max_limit=settings.max_page_size)


@router.post("/comments/", response_model=Comment, status_code=status.HTTP_201_CREATED)
async def create_comment(
    current_user: Annotated[auth.User, Depends(auth.get_current_active_user)],
    comment_in: Optional[CommentCreate] = Body(default=None),
    writer: CommentWriter = Depends(get_comment_writer),
):
    comment_in = comment_in or CommentCreate()
    return await writer.create(comment_in.post_id, comment_in.text, current_user)


@router.post("/posts/{post_id}/comments/", response_model=Comment, status_code=status.HTTP_201_CREATED)
async def create_comment_on_post(
    post_id: str,
    current_user: Annotated[auth.User, Depends(auth.get_current_active_user)],
    comment_in: Optional[CommentCreate] = Body(default=None),
    writer: CommentWriter = Depends(get_comment_writer),
):
    text = comment_in.text if comment_in else None
    return await writer.create(post_id, text, current_user)


@router.get("/posts/{post_id}/comments/", response_model=CommentPage)
async def get_comments_for_post(
    post_id: str,
    limit: Optional[str] = Query(default=None),
    cursor: Optional[str] = Query(default=None),
    reader: CommentReader = Depends(get_comment_reader),
):
    return await reader.get_page(post_id, limit=limit, cursor=cursor)


@router.get("/posts/{post_id}/comments/{comment_id}", response_model=Comment)
async def get_comment_by_id(
    post_id: str,
    comment_id: str,
    reader: CommentReader = Depends(get_comment_reader),
):
    comment = await reader.get_one(post_id, comment_id)
    if comment is None:
        logger.warning(f"Comment {comment_id} not found in post {post_id}")
        raise HTTPException(status_code=404, detail=f"Comment with id {comment_id} not found in post {post_id}.")
    return comment
