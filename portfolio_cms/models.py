from datetime import datetime, timezone

from portfolio_cms import db

STATUS_DRAFT = 'Draft'
STATUS_PUBLISHED = 'Published'
STATUS_PENDING = 'Pending'
STATUS_APPROVED = 'Approved'

ADMIN_ROLES = ('Super Admin', 'Admin')


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


def iso(value):
    return value.isoformat() if value else None


class User(db.Model):
    __tablename__ = 'users'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False)
    password = db.Column(db.String(255), nullable=False)
    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    role = db.Column(db.String(40), nullable=False, default='Subscriber')
    status = db.Column(db.String(40), nullable=False, default='Active')
    avatar = db.Column(db.String(500))
    two_factor_enabled = db.Column(db.Boolean, nullable=False, default=False)
    password_updated_at = db.Column(db.DateTime, default=utcnow)
    last_active = db.Column(db.DateTime, default=utcnow)
    created_at = db.Column(db.DateTime, default=utcnow)

    @property
    def is_admin(self):
        return self.role in ADMIN_ROLES

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'name': self.name,
            'email': self.email,
            'role': self.role,
            'status': self.status,
            'avatar': self.avatar,
            'twoFactorEnabled': self.two_factor_enabled,
            'passwordUpdatedAt': iso(self.password_updated_at),
            'lastActive': iso(self.last_active),
            'createdAt': iso(self.created_at),
        }


class Project(db.Model):
    __tablename__ = 'projects'
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    category = db.Column(db.String(100), nullable=False)
    image = db.Column(db.Text)
    description = db.Column(db.Text)
    tech = db.Column(db.JSON, default=list)
    link = db.Column(db.String(500))
    github = db.Column(db.String(500))
    status = db.Column(db.String(40), nullable=False, default=STATUS_DRAFT)
    views = db.Column(db.Integer, nullable=False, default=0)
    featured = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'category': self.category,
            'image': self.image,
            'description': self.description,
            'tech': self.tech or [],
            'link': self.link,
            'github': self.github,
            'status': self.status,
            'views': self.views,
            'featured': self.featured,
            'createdAt': iso(self.created_at),
            'updatedAt': iso(self.updated_at),
        }


class Post(db.Model):
    __tablename__ = 'posts'
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    slug = db.Column(db.String(200), unique=True, nullable=False)
    content = db.Column(db.Text)
    excerpt = db.Column(db.Text)
    category = db.Column(db.String(100), nullable=False)
    author = db.Column(db.String(120), nullable=False)
    status = db.Column(db.String(40), nullable=False, default=STATUS_DRAFT)
    views = db.Column(db.Integer, nullable=False, default=0)
    featured = db.Column(db.Boolean, nullable=False, default=False)
    featured_image = db.Column(db.Text)
    tags = db.Column(db.JSON, default=list)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow)
    published_at = db.Column(db.DateTime)

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'slug': self.slug,
            'content': self.content,
            'excerpt': self.excerpt,
            'category': self.category,
            'author': self.author,
            'status': self.status,
            'views': self.views,
            'featured': self.featured,
            'featuredImage': self.featured_image,
            'tags': self.tags or [],
            'createdAt': iso(self.created_at),
            'updatedAt': iso(self.updated_at),
            'publishedAt': iso(self.published_at),
        }


class Page(db.Model):
    __tablename__ = 'pages'
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    slug = db.Column(db.String(200), unique=True, nullable=False)
    content = db.Column(db.Text)
    excerpt = db.Column(db.Text)
    status = db.Column(db.String(40), nullable=False, default=STATUS_DRAFT)
    views = db.Column(db.Integer, nullable=False, default=0)
    featured_image = db.Column(db.Text)
    meta_title = db.Column(db.String(200))
    meta_description = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow)
    published_at = db.Column(db.DateTime)

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'slug': self.slug,
            'content': self.content,
            'excerpt': self.excerpt,
            'status': self.status,
            'views': self.views,
            'featuredImage': self.featured_image,
            'metaTitle': self.meta_title,
            'metaDescription': self.meta_description,
            'createdAt': iso(self.created_at),
            'updatedAt': iso(self.updated_at),
            'publishedAt': iso(self.published_at),
        }


class Skill(db.Model):
    __tablename__ = 'skills'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    category = db.Column(db.String(100), nullable=False)
    level = db.Column(db.Integer, nullable=False, default=0)
    icon = db.Column(db.String(500))
    order = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'category': self.category,
            'level': self.level,
            'icon': self.icon,
            'order': self.order,
            'createdAt': iso(self.created_at),
        }


class Service(db.Model):
    __tablename__ = 'services'
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    icon = db.Column(db.String(500))
    features = db.Column(db.JSON, default=list)
    price = db.Column(db.String(100))
    order = db.Column(db.Integer, nullable=False, default=0)
    active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'icon': self.icon,
            'features': self.features or [],
            'price': self.price,
            'order': self.order,
            'active': self.active,
            'createdAt': iso(self.created_at),
        }


class Testimonial(db.Model):
    __tablename__ = 'testimonials'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    role = db.Column(db.String(120))
    company = db.Column(db.String(120))
    content = db.Column(db.Text, nullable=False)
    avatar = db.Column(db.String(500))
    rating = db.Column(db.Integer, nullable=False, default=5)
    featured = db.Column(db.Boolean, nullable=False, default=False)
    active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'role': self.role,
            'company': self.company,
            'content': self.content,
            'avatar': self.avatar,
            'rating': self.rating,
            'featured': self.featured,
            'active': self.active,
            'createdAt': iso(self.created_at),
        }


class Message(db.Model):
    __tablename__ = 'messages'
    id = db.Column(db.Integer, primary_key=True)
    sender = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(120), nullable=False)
    subject = db.Column(db.String(200))
    message = db.Column(db.Text, nullable=False)
    tag = db.Column(db.String(60))
    read = db.Column(db.Boolean, nullable=False, default=False)
    archived = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'sender': self.sender,
            'email': self.email,
            'subject': self.subject,
            'message': self.message,
            'tag': self.tag,
            'read': self.read,
            'archived': self.archived,
            'createdAt': iso(self.created_at),
        }


class ActivityLog(db.Model):
    __tablename__ = 'activity_logs'
    id = db.Column(db.Integer, primary_key=True)
    action = db.Column(db.Text, nullable=False)
    user_id = db.Column(db.Integer)
    user_name = db.Column(db.String(120))
    type = db.Column(db.String(40), nullable=False, default='info')
    meta = db.Column('metadata', db.JSON)
    created_at = db.Column(db.DateTime, default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'action': self.action,
            'userId': self.user_id,
            'userName': self.user_name,
            'type': self.type,
            'metadata': self.meta,
            'createdAt': iso(self.created_at),
        }


class Notification(db.Model):
    __tablename__ = 'notifications'
    id = db.Column(db.Integer, primary_key=True)
    message = db.Column(db.Text, nullable=False)
    type = db.Column(db.String(40), nullable=False, default='system')
    read = db.Column(db.Boolean, nullable=False, default=False)
    user_id = db.Column(db.Integer)
    created_at = db.Column(db.DateTime, default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'message': self.message,
            'type': self.type,
            'read': self.read,
            'userId': self.user_id,
            'createdAt': iso(self.created_at),
        }


class SiteSetting(db.Model):
    __tablename__ = 'site_settings'
    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(120), unique=True, nullable=False)
    value = db.Column(db.JSON)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'key': self.key,
            'value': self.value,
            'updatedAt': iso(self.updated_at),
        }


class Category(db.Model):
    __tablename__ = 'categories'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    slug = db.Column(db.String(120), unique=True, nullable=False)
    type = db.Column(db.String(40), nullable=False)
    description = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'slug': self.slug,
            'type': self.type,
            'description': self.description,
            'createdAt': iso(self.created_at),
        }


class Media(db.Model):
    __tablename__ = 'media'
    id = db.Column(db.Integer, primary_key=True)
    filename = db.Column(db.String(255), nullable=False)
    original_name = db.Column(db.String(255), nullable=False)
    mime_type = db.Column(db.String(120), nullable=False)
    size = db.Column(db.Integer, nullable=False, default=0)
    url = db.Column(db.Text, nullable=False)
    alt = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'filename': self.filename,
            'originalName': self.original_name,
            'mimeType': self.mime_type,
            'size': self.size,
            'url': self.url,
            'alt': self.alt,
            'createdAt': iso(self.created_at),
        }


class Comment(db.Model):
    __tablename__ = 'comments'
    id = db.Column(db.Integer, primary_key=True)
    content = db.Column(db.Text, nullable=False)
    author_name = db.Column(db.String(120), nullable=False)
    author_email = db.Column(db.String(120), nullable=False)
    author_avatar = db.Column(db.String(500))
    post_id = db.Column(db.Integer)
    project_id = db.Column(db.Integer)
    parent_id = db.Column(db.Integer)
    status = db.Column(db.String(40), nullable=False, default=STATUS_PENDING)
    read = db.Column(db.Boolean, nullable=False, default=False)
    archived = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'content': self.content,
            'authorName': self.author_name,
            'authorEmail': self.author_email,
            'authorAvatar': self.author_avatar,
            'postId': self.post_id,
            'projectId': self.project_id,
            'parentId': self.parent_id,
            'status': self.status,
            'read': self.read,
            'archived': self.archived,
            'createdAt': iso(self.created_at),
        }


class Review(db.Model):
    __tablename__ = 'reviews'
    id = db.Column(db.Integer, primary_key=True)
    content = db.Column(db.Text, nullable=False)
    author_name = db.Column(db.String(120), nullable=False)
    author_email = db.Column(db.String(120), nullable=False)
    author_avatar = db.Column(db.String(500))
    project_id = db.Column(db.Integer, nullable=False)
    rating = db.Column(db.Integer, nullable=False, default=5)
    status = db.Column(db.String(40), nullable=False, default=STATUS_PENDING)
    read = db.Column(db.Boolean, nullable=False, default=False)
    archived = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'content': self.content,
            'authorName': self.author_name,
            'authorEmail': self.author_email,
            'authorAvatar': self.author_avatar,
            'projectId': self.project_id,
            'rating': self.rating,
            'status': self.status,
            'read': self.read,
            'archived': self.archived,
            'createdAt': iso(self.created_at),
        }


class HomepageSection(db.Model):
    __tablename__ = 'homepage_sections'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(80), unique=True, nullable=False)
    visible = db.Column(db.Boolean, nullable=False, default=True)
    order = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'visible': self.visible,
            'order': self.order,
            'createdAt': iso(self.created_at),
            'updatedAt': iso(self.updated_at),
        }


class FAQ(db.Model):
    __tablename__ = 'faqs'
    id = db.Column(db.Integer, primary_key=True)
    question = db.Column(db.Text, nullable=False)
    answer = db.Column(db.Text, nullable=False)
    visible = db.Column(db.Boolean, nullable=False, default=True)
    order = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'question': self.question,
            'answer': self.answer,
            'visible': self.visible,
            'order': self.order,
            'createdAt': iso(self.created_at),
            'updatedAt': iso(self.updated_at),
        }


class ContentVersion(db.Model):
    """Saved snapshot of a post, page or project; numbered per content item."""
    __tablename__ = 'content_versions'
    id = db.Column(db.Integer, primary_key=True)
    content_type = db.Column(db.String(40), nullable=False)
    content_id = db.Column(db.Integer, nullable=False)
    version = db.Column(db.Integer, nullable=False)
    title = db.Column(db.String(200), nullable=False)
    content = db.Column(db.Text)
    meta = db.Column('metadata', db.JSON)
    created_by = db.Column(db.Integer)
    created_at = db.Column(db.DateTime, default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'contentType': self.content_type,
            'contentId': self.content_id,
            'version': self.version,
            'title': self.title,
            'content': self.content,
            'metadata': self.meta,
            'createdBy': self.created_by,
            'createdAt': iso(self.created_at),
        }


class ContentDraft(db.Model):
    __tablename__ = 'content_drafts'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, nullable=False)
    content_type = db.Column(db.String(40), nullable=False)
    content_id = db.Column(db.Integer)
    title = db.Column(db.String(200))
    content = db.Column(db.Text)
    meta = db.Column('metadata', db.JSON)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'contentType': self.content_type,
            'contentId': self.content_id,
            'title': self.title,
            'content': self.content,
            'metadata': self.meta,
            'createdAt': iso(self.created_at),
            'updatedAt': iso(self.updated_at),
        }


class ContentTemplate(db.Model):
    __tablename__ = 'content_templates'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    type = db.Column(db.String(40), nullable=False)
    content = db.Column(db.Text)
    meta = db.Column('metadata', db.JSON)
    is_default = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'type': self.type,
            'content': self.content,
            'metadata': self.meta,
            'isDefault': self.is_default,
            'createdAt': iso(self.created_at),
        }


class SecurityLog(db.Model):
    __tablename__ = 'security_logs'
    id = db.Column(db.Integer, primary_key=True)
    event_type = db.Column(db.String(60), nullable=False)  # login_failed, login_success, ip_blocked, ...
    action = db.Column(db.Text)
    user_id = db.Column(db.Integer)
    user_name = db.Column(db.String(120))
    ip_address = db.Column(db.String(64))
    user_agent = db.Column(db.Text)
    request_path = db.Column(db.String(500))
    blocked = db.Column(db.Boolean, nullable=False, default=False)
    meta = db.Column('metadata', db.JSON)
    created_at = db.Column(db.DateTime, default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'eventType': self.event_type,
            'action': self.action,
            'userId': self.user_id,
            'userName': self.user_name,
            'ipAddress': self.ip_address,
            'userAgent': self.user_agent,
            'requestPath': self.request_path,
            'blocked': self.blocked,
            'metadata': self.meta,
            'createdAt': iso(self.created_at),
        }


class IpRule(db.Model):
    __tablename__ = 'ip_rules'
    id = db.Column(db.Integer, primary_key=True)
    ip_address = db.Column(db.String(64), nullable=False)
    type = db.Column(db.String(20), nullable=False)  # whitelist / blacklist
    reason = db.Column(db.Text)
    created_by = db.Column(db.Integer)
    created_at = db.Column(db.DateTime, default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'ipAddress': self.ip_address,
            'type': self.type,
            'reason': self.reason,
            'createdBy': self.created_by,
            'createdAt': iso(self.created_at),
        }


class PageView(db.Model):
    __tablename__ = 'page_views'
    id = db.Column(db.Integer, primary_key=True)
    path = db.Column(db.String(500), nullable=False)
    content_type = db.Column(db.String(40))
    content_id = db.Column(db.Integer)
    visitor_id = db.Column(db.String(32))
    referrer = db.Column(db.Text)
    user_agent = db.Column(db.Text)
    ip_address = db.Column(db.String(64))
    device = db.Column(db.String(20))
    browser = db.Column(db.String(40))
    os = db.Column(db.String(40))
    country = db.Column(db.String(80))
    session_duration = db.Column(db.Integer)
    created_at = db.Column(db.DateTime, default=utcnow)


class Subscriber(db.Model):
    __tablename__ = 'subscribers'
    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), unique=True, nullable=False)
    name = db.Column(db.String(120))
    status = db.Column(db.String(20), nullable=False, default='active')
    created_at = db.Column(db.DateTime, default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'name': self.name,
            'status': self.status,
            'createdAt': iso(self.created_at),
        }
