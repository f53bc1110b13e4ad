from fastapi import APIRouter, Depends, status

from .. import schemas
from ..deps import get_current_user, get_user_repository, pagination_params
from ..errors import NotFound
from ..repositories import UserRepository
from ..responses import dump, paginated_response, success_response

router = APIRouter(prefix="/users", tags=["users"], dependencies=[Depends(get_current_user)])


@router.get("")
def list_users(
    paging: dict = Depends(pagination_params),
    users: UserRepository = Depends(get_user_repository),
):
    page = users.list(**paging)
    items = [dump(schemas.UserOut, user) for user in page.items]
    return paginated_response(page, items, "Users listed successfully.")


@router.post("")
def create_user(user_in: schemas.UserCreate, users: UserRepository = Depends(get_user_repository)):
    user = users.create(user_in)
    return success_response(
        dump(schemas.UserOut, user),
        "User created successfully.",
        status_code=status.HTTP_201_CREATED,
    )


@router.get("/{user_id}")
def get_user(user_id: str, users: UserRepository = Depends(get_user_repository)):
    user = users.get(user_id)
    if not user:
        raise NotFound("User not found.")
    return success_response(dump(schemas.UserOut, user), "User retrieved.")


@router.put("/{user_id}")
def update_user(
    user_id: str,
    user_in: schemas.UserUpdate,
    users: UserRepository = Depends(get_user_repository),
):
    user = users.update(user_id, user_in)
    if not user:
        raise NotFound("User not found.")
    return success_response(dump(schemas.UserOut, user), "User updated successfully.")


@router.delete("/{user_id}")
def delete_user(user_id: str, users: UserRepository = Depends(get_user_repository)):
    if not users.delete(user_id):
        raise NotFound("User not found.")
    return success_response(message="User deleted successfully.")
