from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from .. import models, schemas
from ..deps import (
    get_comment_repository,
    get_current_user,
    get_post_repository,
    pagination_params,
)
from ..errors import NotFound
from ..repositories import CommentRepository, PostRepository
from ..responses import dump, paginated_response, success_response

router = APIRouter(prefix="/posts", tags=["posts"])


@router.get("", dependencies=[Depends(get_current_user)])
def list_posts(
    tag: Optional[str] = Query(None),
    query: Optional[str] = Query(None),
    paging: dict = Depends(pagination_params),
    posts: PostRepository = Depends(get_post_repository),
):
    page = posts.list(tag=tag, query=query, **paging)
    items = [dump(schemas.PostOut, post) for post in page.items]
    return paginated_response(page, items, "Posts listed successfully.")


@router.post("")
def create_post(
    post_in: schemas.PostCreate,
    current_user: models.User = Depends(get_current_user),
    posts: PostRepository = Depends(get_post_repository),
):
    # Without an explicit author the caller writes the post.
    author_id = post_in.author or current_user.id
    post = posts.create(post_in, author_id)
    return success_response(
        dump(schemas.PostOut, post),
        "Post created successfully.",
        status_code=status.HTTP_201_CREATED,
    )


@router.get("/{post_id}", dependencies=[Depends(get_current_user)])
def get_post(post_id: str, posts: PostRepository = Depends(get_post_repository)):
    post = posts.get(post_id, with_comments=True)
    if not post:
        raise NotFound("Post not found.")
    return success_response(dump(schemas.PostDetailOut, post), "Post retrieved.")


@router.put("/{post_id}", dependencies=[Depends(get_current_user)])
def update_post(
    post_id: str,
    post_in: schemas.PostUpdate,
    posts: PostRepository = Depends(get_post_repository),
):
    post = posts.update(post_id, post_in)
    if not post:
        raise NotFound("Post not found.")
    return success_response(dump(schemas.PostOut, post), "Post updated successfully.")


@router.delete("/{post_id}", dependencies=[Depends(get_current_user)])
def delete_post(post_id: str, posts: PostRepository = Depends(get_post_repository)):
    if not posts.delete(post_id):
        raise NotFound("Post not found.")
    return success_response(message="Post deleted successfully.")


# Comments nested under a post


@router.post("/{post_id}/comments")
def add_comment(
    post_id: str,
    comment_in: schemas.CommentIn,
    current_user: models.User = Depends(get_current_user),
    comments: CommentRepository = Depends(get_comment_repository),
):
    comment = comments.create(post_id, current_user.id, comment_in.content)
    return success_response(
        dump(schemas.CommentOut, comment),
        "Comment added successfully.",
        status_code=status.HTTP_201_CREATED,
    )


@router.delete("/{post_id}/comments/{comment_id}", dependencies=[Depends(get_current_user)])
def delete_comment(
    post_id: str,
    comment_id: str,
    comments: CommentRepository = Depends(get_comment_repository),
):
    if not comments.delete(comment_id, post_id=post_id):
        raise NotFound("Comment not found.")
    return success_response(message="Comment deleted successfully.")
