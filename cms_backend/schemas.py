import uuid
from datetime import datetime
from typing import Annotated, Any, List, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, EmailStr, Field, constr, field_validator

TagName = constr(strip_whitespace=True, min_length=1, max_length=50)


def _normalize_email(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().lower()
    return value


NormalizedEmail = Annotated[EmailStr, BeforeValidator(_normalize_email)]


# ----- Auth Schemas -----


class LoginIn(BaseModel):
    email: NormalizedEmail
    password: str = Field(..., min_length=1)


class RegisterIn(BaseModel):
    nome: str = Field(..., min_length=1, max_length=255)
    email: NormalizedEmail
    password: str = Field(..., min_length=6)
    telefone: Optional[str] = Field(None, max_length=20)


# ----- User Schemas -----


class UserCreate(RegisterIn):
    is_valid: Optional[bool] = None


class UserUpdate(BaseModel):
    nome: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[NormalizedEmail] = None
    password: Optional[str] = Field(None, min_length=6)
    telefone: Optional[str] = Field(None, max_length=20)
    is_valid: Optional[bool] = None


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    nome: str
    email: str
    telefone: Optional[str] = None
    is_valid: bool = True

    @field_validator("is_valid", mode="before")
    @classmethod
    def default_is_valid(cls, value):
        # Rows that never had the flag set count as valid.
        return True if value is None else value


class AuthorOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    nome: str
    telefone: Optional[str] = None
    email: str


class CommentUserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    nome: str
    email: str


# ----- Comment Schemas -----


class CommentIn(BaseModel):
    content: str = Field(..., min_length=1, max_length=1000)


class CommentCreate(CommentIn):
    post_id: uuid.UUID


class CommentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    content: str
    user: CommentUserOut
    post_id: uuid.UUID
    created_at: datetime


# ----- Post Schemas -----


class PostCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    content: str = Field(..., min_length=1)
    author: Optional[uuid.UUID] = None
    tags: List[TagName] = []


class PostUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    content: Optional[str] = Field(None, min_length=1)
    author: Optional[uuid.UUID] = None
    tags: Optional[List[TagName]] = None


class PostOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    title: str
    author: AuthorOut
    content: str
    tags: List[str] = []
    created_at: datetime
    updated_at: datetime

    @field_validator("tags", mode="before")
    @classmethod
    def tag_names(cls, value):
        return sorted(getattr(tag, "name", tag) for tag in value or [])


class PostDetailOut(PostOut):
    comments: List[CommentOut] = []


# ----- Tag Schemas -----


class TagIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)


class TagOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    created_at: datetime
    updated_at: datetime


class TagPostOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    title: str
    author_id: uuid.UUID
    created_at: datetime


class TagDetailOut(TagOut):
    posts: List[TagPostOut] = []
