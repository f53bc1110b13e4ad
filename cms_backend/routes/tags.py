from fastapi import APIRouter, Depends, status

from .. import schemas
from ..deps import get_current_user, get_tag_repository
from ..errors import NotFound
from ..repositories import TagRepository
from ..responses import dump, success_response

router = APIRouter(prefix="/tags", tags=["tags"], dependencies=[Depends(get_current_user)])


@router.get("")
def list_tags(tags: TagRepository = Depends(get_tag_repository)):
    items = [
        {**dump(schemas.TagOut, tag), "posts_count": posts_count}
        for tag, posts_count in tags.list_with_counts()
    ]
    return success_response(items, "Tags listed successfully.")


@router.post("")
def create_tag(tag_in: schemas.TagIn, tags: TagRepository = Depends(get_tag_repository)):
    tag = tags.create(tag_in.name)
    return success_response(
        dump(schemas.TagOut, tag),
        "Tag created successfully.",
        status_code=status.HTTP_201_CREATED,
    )


@router.get("/{tag_id}")
def get_tag(tag_id: str, tags: TagRepository = Depends(get_tag_repository)):
    tag = tags.get(tag_id)
    if not tag:
        raise NotFound("Tag not found.")
    return success_response(dump(schemas.TagDetailOut, tag), "Tag retrieved.")


@router.put("/{tag_id}")
def update_tag(tag_id: str, tag_in: schemas.TagIn, tags: TagRepository = Depends(get_tag_repository)):
    tag = tags.update(tag_id, tag_in.name)
    if not tag:
        raise NotFound("Tag not found.")
    return success_response(dump(schemas.TagOut, tag), "Tag updated successfully.")


@router.delete("/{tag_id}")
def delete_tag(tag_id: str, tags: TagRepository = Depends(get_tag_repository)):
    if not tags.delete(tag_id):
        raise NotFound("Tag not found.")
    return success_response(message="Tag deleted successfully.")
