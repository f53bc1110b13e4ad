from fastapi import APIRouter, Depends, status

from .. import models, schemas
from ..deps import get_comment_repository, get_current_user
from ..errors import NotFound
from ..repositories import CommentRepository
from ..responses import dump, success_response

router = APIRouter(prefix="/comments", tags=["comments"])


@router.post("")
def create_comment(
    comment_in: schemas.CommentCreate,
    current_user: models.User = Depends(get_current_user),
    comments: CommentRepository = Depends(get_comment_repository),
):
    comment = comments.create(comment_in.post_id, current_user.id, comment_in.content)
    return success_response(
        dump(schemas.CommentOut, comment),
        "Comment created successfully.",
        status_code=status.HTTP_201_CREATED,
    )


@router.delete("/{comment_id}", dependencies=[Depends(get_current_user)])
def delete_comment(comment_id: str, comments: CommentRepository = Depends(get_comment_repository)):
    if not comments.delete(comment_id):
        raise NotFound("Comment not found.")
    return success_response(message="Comment deleted successfully.")
