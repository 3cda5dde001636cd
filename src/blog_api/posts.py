"""REST endpoints for the blog post resource."""

from typing import Any

import structlog
from fastapi import APIRouter, HTTPException, Request, Response

from blog_api.metrics import posts_created_total, posts_deleted_total, posts_updated_total
from blog_api.models import Post
from blog_api.post_store import PostNotFoundError, PostStore, PostValidationError

log = structlog.get_logger()

router = APIRouter(prefix="/posts", tags=["posts"])

NOT_FOUND_DETAIL = "Post not found"


def _store(request: Request) -> PostStore:
    store: PostStore = request.app.state.post_store
    return store


async def _json_object(request: Request, *, allow_empty: bool = False) -> dict[str, Any]:
    """Parse the request body as a JSON object or fail with 400."""
    if allow_empty and not await request.body():
        return {}
    try:
        body = await request.json()
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Request body must be valid JSON") from exc
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="Request body must be a JSON object")
    return body


@router.get("", response_model=list[Post])
async def list_posts(request: Request) -> list[Post]:
    return await _store(request).list_all()


@router.post("", status_code=201, response_model=Post)
async def create_post(request: Request) -> Post:
    body = await _json_object(request)
    try:
        post = await _store(request).create(
            author=body.get("author"),
            title=body.get("title"),
            content=body.get("content"),
            created=body.get("created"),
        )
    except PostValidationError as exc:
        posts_created_total.add(1, {"outcome": "invalid"})
        await log.ainfo("post_rejected", reason=str(exc))
        raise HTTPException(status_code=400, detail=exc.errors) from exc

    posts_created_total.add(1, {"outcome": "created"})
    await log.ainfo("post_created", post_id=post.id)
    return post


@router.put("/{post_id}", status_code=204, response_class=Response)
async def update_post(post_id: str, request: Request) -> Response:
    """Apply title and/or content changes. Other body keys are ignored."""
    body = await _json_object(request, allow_empty=True)
    try:
        await _store(request).update(post_id, body)
    except PostValidationError as exc:
        posts_updated_total.add(1, {"outcome": "invalid"})
        raise HTTPException(status_code=400, detail=exc.errors) from exc
    except PostNotFoundError as exc:
        posts_updated_total.add(1, {"outcome": "not_found"})
        await log.ainfo("post_not_found", post_id=post_id, op="update")
        raise HTTPException(status_code=404, detail=NOT_FOUND_DETAIL) from exc

    posts_updated_total.add(1, {"outcome": "updated"})
    await log.ainfo("post_updated", post_id=post_id)
    return Response(status_code=204)


@router.delete("/{post_id}", status_code=204, response_class=Response)
async def delete_post(post_id: str, request: Request) -> Response:
    try:
        await _store(request).remove(post_id)
    except PostNotFoundError as exc:
        posts_deleted_total.add(1, {"outcome": "not_found"})
        await log.ainfo("post_not_found", post_id=post_id, op="delete")
        raise HTTPException(status_code=404, detail=NOT_FOUND_DETAIL) from exc

    posts_deleted_total.add(1, {"outcome": "deleted"})
    await log.ainfo("post_deleted", post_id=post_id)
    return Response(status_code=204)
