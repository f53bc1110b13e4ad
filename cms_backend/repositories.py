"""ORM-backed stores.

Each repository wraps one request-scoped ``Session``. Write operations
commit exactly once; any database error rolls the whole unit back before it
is re-raised as an application error, so a post write never leaves a
half-created post or a half-synced tag set behind.
"""
import logging
import math
import uuid
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Tuple

from sqlalchemy import Select, func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload, selectinload

from . import models, schemas
from .errors import CMSError, Conflict, IntegrityViolation, InternalError, NotFound, ValidationFailed
from .security import hash_password

logger = logging.getLogger(__name__)


def parse_id(value) -> Optional[uuid.UUID]:
    """Return ``value`` as a UUID, or None when it cannot be one."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError, AttributeError):
        return None


@dataclass
class Page:
    items: list
    total: int
    page: int
    per_page: int

    @property
    def last_page(self) -> int:
        return max(1, math.ceil(self.total / self.per_page))

    @property
    def first_item(self) -> Optional[int]:
        if not self.items:
            return None
        return (self.page - 1) * self.per_page + 1

    @property
    def last_item(self) -> Optional[int]:
        if not self.items:
            return None
        return (self.page - 1) * self.per_page + len(self.items)


def paginate(db: Session, stmt: Select, page: int, per_page: int, options: tuple = ()) -> Page:
    """Run ``stmt`` for one page. Loader ``options`` apply to the page query only."""
    count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
    total = db.execute(count_stmt).scalar_one()
    rows = db.execute(stmt.options(*options).limit(per_page).offset((page - 1) * per_page))
    return Page(items=list(rows.scalars().unique().all()), total=total, page=page, per_page=per_page)


class Repository:
    def __init__(self, db: Session):
        self.db = db

    def commit(self, on_integrity_error: Optional[Callable[[], CMSError]] = None) -> None:
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            logger.warning("Integrity error, transaction rolled back: %s", exc.orig)
            if on_integrity_error is not None:
                raise on_integrity_error() from exc
            raise IntegrityViolation() from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Database commit failed")
            raise InternalError() from exc


# User CRUD


class UserRepository(Repository):
    def get(self, user_id) -> Optional[models.User]:
        user_id = parse_id(user_id)
        if user_id is None:
            return None
        return self.db.get(models.User, user_id)

    def get_by_email(self, email: str) -> Optional[models.User]:
        stmt = select(models.User).where(models.User.email == email)
        return self.db.execute(stmt).scalar_one_or_none()

    def email_taken(self, email: str, exclude_id: Optional[uuid.UUID] = None) -> bool:
        stmt = select(models.User.id).where(models.User.email == email)
        if exclude_id is not None:
            stmt = stmt.where(models.User.id != exclude_id)
        return self.db.execute(stmt).first() is not None

    def list(self, page: int = 1, per_page: int = 15) -> Page:
        stmt = select(models.User).order_by(models.User.created_at, models.User.id)
        return paginate(self.db, stmt, page, per_page)

    def create(self, user_in: schemas.RegisterIn) -> models.User:
        if self.email_taken(user_in.email):
            raise Conflict.for_field("email", "This email is already registered.")

        user = models.User(
            nome=user_in.nome,
            email=user_in.email,
            password_hash=hash_password(user_in.password),
            telefone=user_in.telefone,
            is_valid=getattr(user_in, "is_valid", None),
        )
        self.db.add(user)
        self.commit(lambda: Conflict.for_field("email", "This email is already registered."))
        self.db.refresh(user)
        return user

    def update(self, user_id, user_in: schemas.UserUpdate) -> Optional[models.User]:
        user = self.get(user_id)
        if user is None:
            return None

        if user_in.email is not None and user_in.email != user.email:
            if self.email_taken(user_in.email, exclude_id=user.id):
                raise Conflict.for_field("email", "This email is already in use.")
            user.email = user_in.email
        if user_in.nome is not None:
            user.nome = user_in.nome
        if user_in.password is not None:
            user.password_hash = hash_password(user_in.password)
        if "telefone" in user_in.model_fields_set:
            user.telefone = user_in.telefone
        if user_in.is_valid is not None:
            user.is_valid = user_in.is_valid

        self.commit(lambda: Conflict.for_field("email", "This email is already in use."))
        self.db.refresh(user)
        return user

    def delete(self, user_id) -> bool:
        user = self.get(user_id)
        if user is None:
            return False
        self.db.delete(user)
        self.commit()
        return True


# Tag CRUD


class TagRepository(Repository):
    def get(self, tag_id) -> Optional[models.Tag]:
        tag_id = parse_id(tag_id)
        if tag_id is None:
            return None
        stmt = (
            select(models.Tag)
            .options(selectinload(models.Tag.posts))
            .where(models.Tag.id == tag_id)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def get_by_name(self, name: str) -> Optional[models.Tag]:
        stmt = select(models.Tag).where(models.Tag.name == name)
        return self.db.execute(stmt).scalar_one_or_none()

    def list_with_counts(self) -> List[Tuple[models.Tag, int]]:
        """Return every tag with the number of posts linked to it."""
        posts_count = func.count(models.post_tag_table.c.post_id)
        stmt = (
            select(models.Tag, posts_count.label("posts_count"))
            .outerjoin(models.post_tag_table, models.post_tag_table.c.tag_id == models.Tag.id)
            .group_by(models.Tag.id)
            .order_by(models.Tag.name)
        )
        return [(row[0], int(row[1])) for row in self.db.execute(stmt).all()]

    def find_or_create(self, names: Iterable[str]) -> List[models.Tag]:
        """Resolve tag names to rows, creating the missing ones.

        Does not commit: the caller owns the transaction.
        """
        wanted = list(dict.fromkeys(names))
        if not wanted:
            return []

        stmt = select(models.Tag).where(models.Tag.name.in_(wanted))
        existing = {tag.name: tag for tag in self.db.execute(stmt).scalars().all()}
        for name in wanted:
            if name not in existing:
                tag = models.Tag(name=name)
                self.db.add(tag)
                existing[name] = tag
        return [existing[name] for name in wanted]

    def create(self, name: str) -> models.Tag:
        if self.get_by_name(name) is not None:
            raise Conflict.for_field("name", "This tag name is already taken.")
        tag = models.Tag(name=name)
        self.db.add(tag)
        self.commit(lambda: Conflict.for_field("name", "This tag name is already taken."))
        self.db.refresh(tag)
        return tag

    def update(self, tag_id, name: str) -> Optional[models.Tag]:
        tag = self.get(tag_id)
        if tag is None:
            return None
        other = self.get_by_name(name)
        if other is not None and other.id != tag.id:
            raise Conflict.for_field("name", "This tag name is already taken.")
        tag.name = name
        self.commit(lambda: Conflict.for_field("name", "This tag name is already taken."))
        self.db.refresh(tag)
        return tag

    def delete(self, tag_id) -> bool:
        tag = self.get(tag_id)
        if tag is None:
            return False
        # Only the link rows go with the tag; posts stay.
        self.db.delete(tag)
        self.commit()
        return True


# Post CRUD


class PostRepository(Repository):
    _load_options = (
        joinedload(models.Post.author),
        selectinload(models.Post.tags),
    )

    def get(self, post_id, with_comments: bool = False) -> Optional[models.Post]:
        post_id = parse_id(post_id)
        if post_id is None:
            return None
        stmt = (
            select(models.Post)
            .options(*self._load_options)
            .where(models.Post.id == post_id)
        )
        if with_comments:
            stmt = stmt.options(
                selectinload(models.Post.comments).joinedload(models.Comment.user)
            )
        return self.db.execute(stmt).scalar_one_or_none()

    def list(
        self,
        page: int = 1,
        per_page: int = 15,
        tag: Optional[str] = None,
        query: Optional[str] = None,
    ) -> Page:
        """Page through posts, newest first.

        At most one filter applies: an exact tag name wins over a text query,
        which matches title or content case-insensitively.
        """
        stmt = select(models.Post)
        if tag:
            stmt = stmt.join(models.Post.tags).where(models.Tag.name == tag)
        elif query:
            stmt = stmt.where(
                or_(
                    models.Post.title.icontains(query, autoescape=True),
                    models.Post.content.icontains(query, autoescape=True),
                )
            )
        stmt = stmt.order_by(models.Post.created_at.desc(), models.Post.id)
        return paginate(self.db, stmt, page, per_page, options=self._load_options)

    def _require_author(self, author_id) -> uuid.UUID:
        author_id = parse_id(author_id)
        if author_id is None or self.db.get(models.User, author_id) is None:
            raise ValidationFailed.for_field("author", "The selected author does not exist.")
        return author_id

    def _sync_tags(self, post: models.Post, names: Iterable[str]) -> None:
        # Assigning the collection adds missing links and drops the rest.
        post.tags = TagRepository(self.db).find_or_create(names)

    def create(self, post_in: schemas.PostCreate, author_id) -> models.Post:
        post = models.Post(
            title=post_in.title,
            content=post_in.content,
            author_id=self._require_author(author_id),
        )
        self._sync_tags(post, post_in.tags)
        self.db.add(post)
        self.commit(lambda: Conflict.for_field("tags", "A tag was created concurrently, retry."))
        return self.get(post.id)

    def update(self, post_id, post_in: schemas.PostUpdate) -> Optional[models.Post]:
        post = self.get(post_id)
        if post is None:
            return None

        if post_in.title is not None:
            post.title = post_in.title
        if post_in.content is not None:
            post.content = post_in.content
        if post_in.author is not None:
            post.author_id = self._require_author(post_in.author)
        if post_in.tags is not None:
            self._sync_tags(post, post_in.tags)

        self.commit(lambda: Conflict.for_field("tags", "A tag was created concurrently, retry."))
        return self.get(post.id)

    def delete(self, post_id) -> bool:
        post = self.get(post_id)
        if post is None:
            return False
        self.db.delete(post)
        self.commit()
        return True


# Comment CRUD


class CommentRepository(Repository):
    def get(self, comment_id) -> Optional[models.Comment]:
        comment_id = parse_id(comment_id)
        if comment_id is None:
            return None
        stmt = (
            select(models.Comment)
            .options(joinedload(models.Comment.user))
            .where(models.Comment.id == comment_id)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def list_for_post(self, post_id) -> List[models.Comment]:
        post_id = parse_id(post_id)
        if post_id is None:
            return []
        stmt = (
            select(models.Comment)
            .options(joinedload(models.Comment.user))
            .where(models.Comment.post_id == post_id)
            .order_by(models.Comment.created_at.desc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def create(self, post_id, user_id, content: str) -> models.Comment:
        post_uuid = parse_id(post_id)
        if post_uuid is None or self.db.get(models.Post, post_uuid) is None:
            raise NotFound("Post not found.")

        comment = models.Comment(content=content, post_id=post_uuid, user_id=user_id)
        self.db.add(comment)
        self.commit()
        return self.get(comment.id)

    def delete(self, comment_id, post_id=None) -> bool:
        """Delete a comment; with ``post_id`` it must also belong to that post."""
        comment = self.get(comment_id)
        if comment is None:
            return False
        if post_id is not None and comment.post_id != parse_id(post_id):
            return False
        self.db.delete(comment)
        self.commit()
        return True


# Dashboard aggregation


class DashboardRepository(Repository):
    def stats(self) -> dict:
        users_total = self.db.scalar(select(func.count(models.User.id)))
        users_inactive = self.db.scalar(
            select(func.count(models.User.id)).where(models.User.is_valid.is_(False))
        )
        posts_total = self.db.scalar(select(func.count(models.Post.id)))

        recent_posts = self.db.execute(
            select(models.Post)
            .options(joinedload(models.Post.author), selectinload(models.Post.tags))
            .order_by(models.Post.created_at.desc())
            .limit(5)
        ).scalars().unique().all()

        posts_count = func.count(models.post_tag_table.c.post_id)
        popular_tags = self.db.execute(
            select(models.Tag.id, models.Tag.name, posts_count.label("posts_count"))
            .outerjoin(models.post_tag_table, models.post_tag_table.c.tag_id == models.Tag.id)
            .group_by(models.Tag.id, models.Tag.name)
            .order_by(posts_count.desc(), models.Tag.name)
            .limit(5)
        ).all()

        return {
            "users": {
                "total": users_total,
                "active": users_total - users_inactive,
                "inactive": users_inactive,
            },
            "posts": {
                "total": posts_total,
                # Posts have no draft state; every post is published.
                "published": posts_total,
                "draft": 0,
            },
            "tags": self.db.scalar(select(func.count(models.Tag.id))),
            "comments": self.db.scalar(select(func.count(models.Comment.id))),
            "recent_posts": [
                {
                    "id": post.id,
                    "title": post.title,
                    "author": post.author.nome,
                    "tags": sorted(tag.name for tag in post.tags),
                    "created_at": post.created_at,
                }
                for post in recent_posts
            ],
            "popular_tags": [
                {"id": row.id, "name": row.name, "posts_count": int(row.posts_count)}
                for row in popular_tags
            ],
        }

    def activity(self) -> List[dict]:
        """Latest posts and comments merged into one feed, newest first."""
        posts = self.db.execute(
            select(models.Post)
            .options(joinedload(models.Post.author))
            .order_by(models.Post.created_at.desc())
            .limit(10)
        ).scalars().all()
        comments = self.db.execute(
            select(models.Comment)
            .options(joinedload(models.Comment.user), joinedload(models.Comment.post))
            .order_by(models.Comment.created_at.desc())
            .limit(5)
        ).scalars().all()

        feed = [
            {
                "type": "post_created",
                "description": f"Post '{post.title}' was created",
                "user": post.author.nome,
                "created_at": post.created_at,
            }
            for post in posts
        ]
        feed.extend(
            {
                "type": "comment_added",
                "description": f"Comment added to post '{comment.post.title}'",
                "user": comment.user.nome,
                "created_at": comment.created_at,
            }
            for comment in comments
        )
        feed.sort(key=lambda item: item["created_at"], reverse=True)
        return feed
