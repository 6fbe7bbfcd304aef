"""
Database Schemas for the Blog API

Each Pydantic model maps to a MongoDB collection using the lowercase
class name as the collection name. References between documents
(blog author, likes, comment authors) are stored as ObjectIds.
"""
import re
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, EmailStr, Field


TITLE_MAX_LENGTH = 200
CONTENT_MIN_LENGTH = 10
COMMENT_MAX_LENGTH = 1000
EXCERPT_LENGTH = 200
BIO_MAX_LENGTH = 500


class Category(str, Enum):
    TECHNOLOGY = "Technology"
    LIFESTYLE = "Lifestyle"
    BUSINESS = "Business"
    HEALTH = "Health"
    EDUCATION = "Education"
    ENTERTAINMENT = "Entertainment"
    SPORTS = "Sports"
    OTHER = "Other"


class BlogStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"


CATEGORIES = [c.value for c in Category]
STATUSES = [s.value for s in BlogStatus]


def slugify(title: str) -> str:
    s = re.sub(r"[^a-zA-Z0-9\s-]", "", title).strip().lower()
    s = re.sub(r"[\s-]+", "-", s).strip("-")
    return s or "post"


def make_excerpt(content: str, length: int = EXCERPT_LENGTH) -> str:
    text = " ".join(content.split())
    if len(text) <= length:
        return text
    return text[:length].rstrip()


class Document(BaseModel):
    model_config = ConfigDict(
        arbitrary_types_allowed=True,
        populate_by_name=True,
        use_enum_values=True,
        validate_default=True,
    )


class User(Document):
    """
    Collection: "user"
    """
    username: str = Field(..., description="Unique public handle")
    email: EmailStr = Field(..., description="Unique email address")
    password_hash: str = Field(..., description="Password hash (bcrypt/argon2)")
    algo: str = Field("bcrypt", description="Hash algorithm used for password_hash")
    avatar: str = Field("", description="Avatar image URL")
    bio: str = Field("", max_length=BIO_MAX_LENGTH, description="Short bio")


class Comment(Document):
    """
    Embedded in Blog.comments
    """
    id: ObjectId = Field(default_factory=ObjectId, alias="_id")
    user: ObjectId
    content: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class Blog(Document):
    """
    Collection: "blog"
    """
    title: str
    slug: str
    excerpt: str = ""
    content: str
    category: Category
    tags: List[str] = []
    featured_image: str = ""
    status: BlogStatus = Field(BlogStatus.DRAFT, description="draft|published")
    author: ObjectId
    view_count: int = 0
    likes: List[ObjectId] = []
    comments: List[Comment] = []
    published_at: Optional[datetime] = None
