"""
Request validators for the CMS tables.

Each ``XCreate`` model mirrors the insert shape of a table: required
columns are required, everything else is optional with the table default.
``XUpdate`` models make every field optional; routes apply only the fields
the client actually sent (``model_dump(exclude_unset=True)``).

Fields are snake_case and accept camelCase aliases, so both
``featuredImage`` and ``featured_image`` are valid input.
"""

from datetime import datetime, timezone
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class CMSModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra='ignore',
    )


def _parse_optional_datetime(value):
    # Unparseable dates are stored as null rather than rejected
    if isinstance(value, str) and value:
        try:
            value = datetime.fromisoformat(value.replace('Z', '+00:00'))
        except ValueError:
            return None
    if not isinstance(value, datetime):
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


# Users
class UserCreate(CMSModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=6)
    name: str = Field(min_length=1)
    email: EmailStr
    role: str = 'Subscriber'
    status: str = 'Active'
    avatar: Optional[str] = None


class UserUpdate(CMSModel):
    username: Optional[str] = Field(default=None, min_length=1)
    password: Optional[str] = Field(default=None, min_length=6)
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    role: Optional[str] = None
    status: Optional[str] = None
    avatar: Optional[str] = None


class ProfileUpdate(CMSModel):
    username: Optional[str] = Field(default=None, min_length=1)
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    avatar: Optional[str] = None


# Content
class ProjectCreate(CMSModel):
    title: str = Field(min_length=1)
    category: str = Field(min_length=1)
    image: Optional[str] = None
    description: Optional[str] = None
    tech: List[str] = []
    link: Optional[str] = None
    github: Optional[str] = None
    status: str = 'Draft'
    featured: bool = False


class ProjectUpdate(CMSModel):
    title: Optional[str] = Field(default=None, min_length=1)
    category: Optional[str] = None
    image: Optional[str] = None
    description: Optional[str] = None
    tech: Optional[List[str]] = None
    link: Optional[str] = None
    github: Optional[str] = None
    status: Optional[str] = None
    featured: Optional[bool] = None


class PostCreate(CMSModel):
    title: str = Field(min_length=1)
    slug: str = Field(min_length=1)
    content: Optional[str] = None
    excerpt: Optional[str] = None
    category: str = Field(min_length=1)
    author: str = Field(min_length=1)
    status: str = 'Draft'
    featured: bool = False
    featured_image: Optional[str] = None
    tags: List[str] = []
    published_at: Optional[datetime] = None

    parse_published_at = field_validator('published_at', mode='before')(_parse_optional_datetime)


class PostUpdate(CMSModel):
    title: Optional[str] = Field(default=None, min_length=1)
    slug: Optional[str] = Field(default=None, min_length=1)
    content: Optional[str] = None
    excerpt: Optional[str] = None
    category: Optional[str] = None
    author: Optional[str] = None
    status: Optional[str] = None
    featured: Optional[bool] = None
    featured_image: Optional[str] = None
    tags: Optional[List[str]] = None
    published_at: Optional[datetime] = None

    parse_published_at = field_validator('published_at', mode='before')(_parse_optional_datetime)


class PageCreate(CMSModel):
    title: str = Field(min_length=1)
    slug: str = Field(min_length=1)
    content: Optional[str] = None
    excerpt: Optional[str] = None
    status: str = 'Draft'
    featured_image: Optional[str] = None
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    published_at: Optional[datetime] = None

    parse_published_at = field_validator('published_at', mode='before')(_parse_optional_datetime)


class PageUpdate(CMSModel):
    title: Optional[str] = Field(default=None, min_length=1)
    slug: Optional[str] = Field(default=None, min_length=1)
    content: Optional[str] = None
    excerpt: Optional[str] = None
    status: Optional[str] = None
    featured_image: Optional[str] = None
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    published_at: Optional[datetime] = None

    parse_published_at = field_validator('published_at', mode='before')(_parse_optional_datetime)


class SkillCreate(CMSModel):
    name: str = Field(min_length=1)
    category: str = Field(min_length=1)
    level: int = Field(default=0, ge=0, le=100)
    icon: Optional[str] = None
    order: int = 0


class SkillUpdate(CMSModel):
    name: Optional[str] = Field(default=None, min_length=1)
    category: Optional[str] = None
    level: Optional[int] = Field(default=None, ge=0, le=100)
    icon: Optional[str] = None
    order: Optional[int] = None


class ServiceCreate(CMSModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    icon: Optional[str] = None
    features: List[str] = []
    price: Optional[str] = None
    order: int = 0
    active: bool = True


class ServiceUpdate(CMSModel):
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    icon: Optional[str] = None
    features: Optional[List[str]] = None
    price: Optional[str] = None
    order: Optional[int] = None
    active: Optional[bool] = None


class TestimonialCreate(CMSModel):
    name: str = Field(min_length=1)
    role: Optional[str] = None
    company: Optional[str] = None
    content: str = Field(min_length=1)
    avatar: Optional[str] = None
    rating: int = Field(default=5, ge=1, le=5)
    featured: bool = False
    active: bool = True


class TestimonialUpdate(CMSModel):
    name: Optional[str] = Field(default=None, min_length=1)
    role: Optional[str] = None
    company: Optional[str] = None
    content: Optional[str] = Field(default=None, min_length=1)
    avatar: Optional[str] = None
    rating: Optional[int] = Field(default=None, ge=1, le=5)
    featured: Optional[bool] = None
    active: Optional[bool] = None


class CategoryCreate(CMSModel):
    name: str = Field(min_length=1)
    slug: str = Field(min_length=1)
    type: str = Field(min_length=1)
    description: Optional[str] = None


class CategoryUpdate(CMSModel):
    name: Optional[str] = Field(default=None, min_length=1)
    slug: Optional[str] = Field(default=None, min_length=1)
    type: Optional[str] = None
    description: Optional[str] = None


class FAQCreate(CMSModel):
    question: str = Field(min_length=1)
    answer: str = Field(min_length=1)
    visible: bool = True
    order: int = 0


class FAQUpdate(CMSModel):
    question: Optional[str] = Field(default=None, min_length=1)
    answer: Optional[str] = Field(default=None, min_length=1)
    visible: Optional[bool] = None
    order: Optional[int] = None


# Content management
class ContentVersionCreate(CMSModel):
    content_type: str = Field(min_length=1)
    content_id: int
    title: str = Field(min_length=1)
    content: Optional[str] = None
    meta: Optional[Any] = Field(default=None, alias='metadata')


class ContentDraftSave(CMSModel):
    content_type: str = Field(min_length=1)
    content_id: Optional[int] = None
    title: Optional[str] = None
    content: Optional[str] = None
    meta: Optional[Any] = Field(default=None, alias='metadata')


class ContentTemplateCreate(CMSModel):
    name: str = Field(min_length=1)
    type: str = Field(min_length=1)
    content: Optional[str] = None
    meta: Optional[Any] = Field(default=None, alias='metadata')
    is_default: bool = False


class ContentTemplateUpdate(CMSModel):
    name: Optional[str] = Field(default=None, min_length=1)
    type: Optional[str] = Field(default=None, min_length=1)
    content: Optional[str] = None
    meta: Optional[Any] = Field(default=None, alias='metadata')
    is_default: Optional[bool] = None


class BulkContentAction(CMSModel):
    content_type: str
    ids: List[int] = Field(min_length=1)

    @field_validator('content_type')
    @classmethod
    def check_content_type(cls, value):
        if value not in ('post', 'page', 'project'):
            raise ValueError("contentType must be 'post', 'page' or 'project'")
        return value


# Media
class MediaCreate(CMSModel):
    filename: Optional[str] = None
    original_name: Optional[str] = None
    mime_type: str = Field(min_length=1)
    url: str = Field(min_length=1)
    size: Optional[int] = Field(default=None, ge=0)
    alt: Optional[str] = None

    @model_validator(mode='after')
    def require_a_name(self):
        if not self.filename and not self.original_name:
            raise ValueError('filename or originalName is required')
        return self


# Interactions
class MessageCreate(CMSModel):
    sender: str = Field(min_length=1)
    email: EmailStr
    subject: Optional[str] = None
    message: str = Field(min_length=1)
    tag: Optional[str] = None


class CommentCreate(CMSModel):
    content: str = Field(min_length=1)
    author_name: str = Field(min_length=1)
    author_email: EmailStr
    author_avatar: Optional[str] = None
    post_id: Optional[int] = None
    project_id: Optional[int] = None
    parent_id: Optional[int] = None


class CommentUpdate(CMSModel):
    content: Optional[str] = Field(default=None, min_length=1)
    author_name: Optional[str] = None
    author_avatar: Optional[str] = None
    status: Optional[str] = None
    read: Optional[bool] = None
    archived: Optional[bool] = None


class ReviewCreate(CMSModel):
    content: str = Field(min_length=1)
    author_name: str = Field(min_length=1)
    author_email: EmailStr
    author_avatar: Optional[str] = None
    project_id: int
    rating: int = Field(default=5, ge=1, le=5)


class ReviewUpdate(CMSModel):
    content: Optional[str] = Field(default=None, min_length=1)
    author_name: Optional[str] = None
    author_avatar: Optional[str] = None
    rating: Optional[int] = Field(default=None, ge=1, le=5)
    status: Optional[str] = None
    read: Optional[bool] = None
    archived: Optional[bool] = None


class NotificationCreate(CMSModel):
    message: str = Field(min_length=1)
    type: str = 'system'
    user_id: Optional[int] = None


class ActivityLogCreate(CMSModel):
    action: str = Field(min_length=1)
    user_id: Optional[int] = None
    user_name: Optional[str] = None
    type: str = 'info'
    meta: Optional[Any] = Field(default=None, alias='metadata')


# System
class HomepageSectionUpdate(CMSModel):
    visible: Optional[bool] = None
    order: Optional[int] = None


class IpRuleCreate(CMSModel):
    ip_address: str = Field(min_length=1)
    type: str
    reason: Optional[str] = None

    @field_validator('type')
    @classmethod
    def check_type(cls, value):
        if value not in ('whitelist', 'blacklist'):
            raise ValueError("type must be 'whitelist' or 'blacklist'")
        return value


class PageViewCreate(CMSModel):
    path: str = Field(min_length=1)
    content_type: Optional[str] = None
    content_id: Optional[int] = None
    referrer: Optional[str] = None
    session_duration: Optional[int] = None


class SubscriberCreate(CMSModel):
    email: EmailStr
    name: Optional[str] = None
