"""
Blog endpoints: public listing and reading, author-only editing, likes
and comments.
"""
import logging
import math
from typing import Any, Dict, Iterable, List, Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, field_validator
from pymongo import DESCENDING, ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from auth import get_current_user
from database import BLOGS, USERS, create_document, get_db, to_object_id, utcnow
from errors import ConflictError, ForbiddenError, NotFoundError
from schemas import (
    CATEGORIES,
    COMMENT_MAX_LENGTH,
    CONTENT_MIN_LENGTH,
    STATUSES,
    TITLE_MAX_LENGTH,
    Blog,
    BlogStatus,
    Comment,
    make_excerpt,
    slugify,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/blogs", tags=["Blogs"])

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100
MAX_PAGE = 1_000_000

AUTHOR_FIELDS = ("username", "avatar")
AUTHOR_DETAIL_FIELDS = ("username", "avatar", "bio")
NEWEST_FIRST = [("created_at", DESCENDING), ("_id", DESCENDING)]


# -------------------------------------------------------------------
# Request models
# -------------------------------------------------------------------
def _check_title(v: str) -> str:
    v = v.strip()
    if not 1 <= len(v) <= TITLE_MAX_LENGTH:
        raise ValueError(f"Title must be between 1 and {TITLE_MAX_LENGTH} characters")
    return v


def _check_content(v: str) -> str:
    v = v.strip()
    if len(v) < CONTENT_MIN_LENGTH:
        raise ValueError(f"Content must be at least {CONTENT_MIN_LENGTH} characters long")
    return v


def _check_category(v: str) -> str:
    if v not in CATEGORIES:
        raise ValueError("Invalid category")
    return v


def _check_status(v: str) -> str:
    if v not in STATUSES:
        raise ValueError("Status must be draft or published")
    return v


def _clean_tags(tags: List[str]) -> List[str]:
    return [t.strip() for t in tags if t and t.strip()]


class BlogCreateIn(BaseModel):
    title: str
    content: str
    category: str
    tags: List[str] = []
    featured_image: str = ""
    status: str = BlogStatus.DRAFT.value

    @field_validator("title")
    @classmethod
    def check_title(cls, v: str) -> str:
        return _check_title(v)

    @field_validator("content")
    @classmethod
    def check_content(cls, v: str) -> str:
        return _check_content(v)

    @field_validator("category")
    @classmethod
    def check_category(cls, v: str) -> str:
        return _check_category(v)

    @field_validator("status")
    @classmethod
    def check_status(cls, v: str) -> str:
        return _check_status(v)

    @field_validator("tags")
    @classmethod
    def check_tags(cls, v: List[str]) -> List[str]:
        return _clean_tags(v)


class BlogUpdateIn(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    category: Optional[str] = None
    tags: Optional[List[str]] = None
    featured_image: Optional[str] = None
    status: Optional[str] = None

    @field_validator("title")
    @classmethod
    def check_title(cls, v: Optional[str]) -> Optional[str]:
        return v if v is None else _check_title(v)

    @field_validator("content")
    @classmethod
    def check_content(cls, v: Optional[str]) -> Optional[str]:
        return v if v is None else _check_content(v)

    @field_validator("category")
    @classmethod
    def check_category(cls, v: Optional[str]) -> Optional[str]:
        return v if v is None else _check_category(v)

    @field_validator("status")
    @classmethod
    def check_status(cls, v: Optional[str]) -> Optional[str]:
        return v if v is None else _check_status(v)

    @field_validator("tags")
    @classmethod
    def check_tags(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return v if v is None else _clean_tags(v)


class CommentIn(BaseModel):
    content: str

    @field_validator("content")
    @classmethod
    def check_content(cls, v: str) -> str:
        v = v.strip()
        if not 1 <= len(v) <= COMMENT_MAX_LENGTH:
            raise ValueError(f"Comment must be between 1 and {COMMENT_MAX_LENGTH} characters")
        return v


# -------------------------------------------------------------------
# Helpers
# -------------------------------------------------------------------
def parse_positive_int(raw: Optional[str], default: int, maximum: Optional[int] = None) -> int:
    """Lenient query-string integer: anything unparsable or below 1 means ``default``."""
    try:
        value = int(raw) if raw is not None else default
    except (TypeError, ValueError):
        return default
    if value < 1:
        return default
    if maximum is not None:
        value = min(value, maximum)
    return value


def page_count(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0


def build_blog_filter(category: Optional[str] = None, search: Optional[str] = None) -> Dict[str, Any]:
    """Filter for the public listing: published posts, optionally narrowed."""
    query: Dict[str, Any] = {"status": BlogStatus.PUBLISHED.value}
    if category:
        query["category"] = category
    if search and search.strip():
        query["$text"] = {"$search": search.strip()}
    return query


def unique_slug(db: Database, title: str, exclude_id: Optional[ObjectId] = None) -> str:
    base = slugify(title)
    candidate = base
    n = 2
    while True:
        query: Dict[str, Any] = {"slug": candidate}
        if exclude_id is not None:
            query["_id"] = {"$ne": exclude_id}
        if db[BLOGS].find_one(query, {"_id": 1}) is None:
            return candidate
        candidate = f"{base}-{n}"
        n += 1


def load_users(db: Database, ids: Iterable[ObjectId], fields: Iterable[str]) -> Dict[ObjectId, Dict[str, Any]]:
    wanted = list({i for i in ids if i is not None})
    if not wanted:
        return {}
    projection = {f: 1 for f in fields}
    return {u["_id"]: u for u in db[USERS].find({"_id": {"$in": wanted}}, projection)}


def public_user(user_id: ObjectId, users: Dict[ObjectId, Dict[str, Any]], fields: Iterable[str]) -> Optional[Dict[str, Any]]:
    user = users.get(user_id)
    if user is None:
        return None
    out = {"id": str(user_id)}
    for f in fields:
        out[f] = user.get(f, "")
    return out


def serialize_comment(comment: Dict[str, Any], users: Dict[ObjectId, Dict[str, Any]]) -> Dict[str, Any]:
    return {
        "id": str(comment["_id"]),
        "user": public_user(comment.get("user"), users, AUTHOR_FIELDS),
        "content": comment.get("content"),
        "created_at": comment.get("created_at"),
    }


def serialize_blog(
    doc: Dict[str, Any],
    authors: Dict[ObjectId, Dict[str, Any]],
    author_fields: Iterable[str] = AUTHOR_FIELDS,
    comment_users: Optional[Dict[ObjectId, Dict[str, Any]]] = None,
) -> Dict[str, Any]:
    """Render a blog document for the API.

    Listings pass no ``comment_users`` and only get ``comments_count``;
    single-post responses get the full, populated comment thread.
    """
    likes = doc.get("likes", [])
    comments = doc.get("comments", [])
    out = {
        "id": str(doc["_id"]),
        "title": doc.get("title"),
        "slug": doc.get("slug"),
        "excerpt": doc.get("excerpt", ""),
        "content": doc.get("content"),
        "category": doc.get("category"),
        "tags": doc.get("tags", []),
        "featured_image": doc.get("featured_image", ""),
        "status": doc.get("status"),
        "author": public_user(doc.get("author"), authors, author_fields),
        "view_count": doc.get("view_count", 0),
        "likes": [str(u) for u in likes],
        "likes_count": len(likes),
        "comments_count": len(comments),
        "published_at": doc.get("published_at"),
        "created_at": doc.get("created_at"),
        "updated_at": doc.get("updated_at"),
    }
    if comment_users is not None:
        out["comments"] = [serialize_comment(c, comment_users) for c in comments]
    return out


def render_blog(db: Database, doc: Dict[str, Any], author_fields: Iterable[str] = AUTHOR_FIELDS) -> Dict[str, Any]:
    authors = load_users(db, [doc.get("author")], author_fields)
    comment_users = load_users(db, [c.get("user") for c in doc.get("comments", [])], AUTHOR_FIELDS)
    return serialize_blog(doc, authors, author_fields, comment_users)


def get_blog_or_404(db: Database, blog_id: str) -> Dict[str, Any]:
    oid = to_object_id(blog_id)
    blog = db[BLOGS].find_one({"_id": oid}) if oid is not None else None
    if not blog:
        raise NotFoundError("Blog not found", code="BLOG_NOT_FOUND")
    return blog


def ensure_author(blog: Dict[str, Any], user: Dict[str, Any], action: str) -> None:
    if blog.get("author") != user["_id"]:
        raise ForbiddenError(f"Not authorized to {action} this blog")


def paginate_blogs(db: Database, query: Dict[str, Any], page: int, limit: int) -> Dict[str, Any]:
    skip = (page - 1) * limit
    docs = list(db[BLOGS].find(query).sort(NEWEST_FIRST).skip(skip).limit(limit))
    total = db[BLOGS].count_documents(query)
    authors = load_users(db, [d.get("author") for d in docs], AUTHOR_FIELDS)
    return {
        "blogs": [serialize_blog(d, authors) for d in docs],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": page_count(total, limit),
        },
    }


# -------------------------------------------------------------------
# Blog endpoints
# -------------------------------------------------------------------
@router.get("")
def list_blogs(
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    db: Database = Depends(get_db),
):
    page_num = parse_positive_int(page, DEFAULT_PAGE, MAX_PAGE)
    page_size = parse_positive_int(limit, DEFAULT_LIMIT, MAX_LIMIT)
    return paginate_blogs(db, build_blog_filter(category, search), page_num, page_size)


@router.get("/user/my-blogs")
def list_my_blogs(
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    page_num = parse_positive_int(page, DEFAULT_PAGE, MAX_PAGE)
    page_size = parse_positive_int(limit, DEFAULT_LIMIT, MAX_LIMIT)
    return paginate_blogs(db, {"author": current_user["_id"]}, page_num, page_size)


@router.get("/{slug}")
def get_blog(slug: str, db: Database = Depends(get_db)):
    blog = db[BLOGS].find_one_and_update(
        {"slug": slug, "status": BlogStatus.PUBLISHED.value},
        {"$inc": {"view_count": 1}},
        return_document=ReturnDocument.AFTER,
    )
    if not blog:
        raise NotFoundError("Blog not found", code="BLOG_NOT_FOUND")
    return {"blog": render_blog(db, blog, AUTHOR_DETAIL_FIELDS)}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_blog(
    data: BlogCreateIn,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    blog = Blog(
        title=data.title,
        slug=unique_slug(db, data.title),
        excerpt=make_excerpt(data.content),
        content=data.content,
        category=data.category,
        tags=data.tags,
        featured_image=data.featured_image,
        status=data.status,
        author=current_user["_id"],
        published_at=utcnow() if data.status == BlogStatus.PUBLISHED.value else None,
    )
    try:
        doc = create_document(db, BLOGS, blog.model_dump(by_alias=True))
    except DuplicateKeyError:
        raise ConflictError("A blog with this slug already exists")

    logger.info("Blog %s created by %s", doc["_id"], current_user["_id"])
    return {"message": "Blog created successfully", "blog": render_blog(db, doc)}


@router.put("/{blog_id}")
def update_blog(
    blog_id: str,
    data: BlogUpdateIn,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    blog = get_blog_or_404(db, blog_id)
    ensure_author(blog, current_user, "update")

    updates: Dict[str, Any] = {}
    if data.title:
        updates["title"] = data.title
        if data.title != blog.get("title"):
            updates["slug"] = unique_slug(db, data.title, exclude_id=blog["_id"])
    if data.content:
        updates["content"] = data.content
        updates["excerpt"] = make_excerpt(data.content)
    if data.category:
        updates["category"] = data.category
    if data.tags is not None:
        updates["tags"] = data.tags
    if data.featured_image is not None:
        updates["featured_image"] = data.featured_image
    if data.status:
        updates["status"] = data.status
        if data.status == BlogStatus.PUBLISHED.value and not blog.get("published_at"):
            updates["published_at"] = utcnow()
    updates["updated_at"] = utcnow()

    try:
        updated = db[BLOGS].find_one_and_update(
            {"_id": blog["_id"]},
            {"$set": updates},
            return_document=ReturnDocument.AFTER,
        )
    except DuplicateKeyError:
        raise ConflictError("A blog with this slug already exists")
    if not updated:
        raise NotFoundError("Blog not found", code="BLOG_NOT_FOUND")

    return {"message": "Blog updated successfully", "blog": render_blog(db, updated)}


@router.delete("/{blog_id}")
def delete_blog(
    blog_id: str,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    blog = get_blog_or_404(db, blog_id)
    ensure_author(blog, current_user, "delete")

    db[BLOGS].delete_one({"_id": blog["_id"]})
    logger.info("Blog %s deleted by %s", blog["_id"], current_user["_id"])
    return {"message": "Blog deleted successfully"}


@router.post("/{blog_id}/like")
def toggle_like(
    blog_id: str,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    blog = get_blog_or_404(db, blog_id)
    user_id = current_user["_id"]

    if user_id in blog.get("likes", []):
        op, liked, message = "$pull", False, "Blog unliked"
    else:
        op, liked, message = "$addToSet", True, "Blog liked"

    updated = db[BLOGS].find_one_and_update(
        {"_id": blog["_id"]},
        {op: {"likes": user_id}},
        projection={"likes": 1},
        return_document=ReturnDocument.AFTER,
    )
    if not updated:
        raise NotFoundError("Blog not found", code="BLOG_NOT_FOUND")

    return {"message": message, "liked": liked, "likes_count": len(updated.get("likes", []))}


@router.post("/{blog_id}/comments", status_code=status.HTTP_201_CREATED)
def add_comment(
    blog_id: str,
    data: CommentIn,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    blog = get_blog_or_404(db, blog_id)

    comment = Comment(user=current_user["_id"], content=data.content).model_dump(by_alias=True)
    db[BLOGS].update_one({"_id": blog["_id"]}, {"$push": {"comments": comment}})

    users = {current_user["_id"]: current_user}
    return {"message": "Comment added successfully", "comment": serialize_comment(comment, users)}


@router.delete("/{blog_id}/comments/{comment_id}")
def delete_comment(
    blog_id: str,
    comment_id: str,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    blog = get_blog_or_404(db, blog_id)
    cid = to_object_id(comment_id)
    comment = next((c for c in blog.get("comments", []) if c.get("_id") == cid), None)
    if comment is None:
        raise NotFoundError("Comment not found", code="COMMENT_NOT_FOUND")

    if current_user["_id"] not in (comment.get("user"), blog.get("author")):
        raise ForbiddenError("Not authorized to delete this comment")

    db[BLOGS].update_one({"_id": blog["_id"]}, {"$pull": {"comments": {"_id": cid}}})
    return {"message": "Comment deleted successfully"}
