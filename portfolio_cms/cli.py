import logging
import os

import click

from portfolio_cms import db
from portfolio_cms.models import ADMIN_ROLES, Category, HomepageSection, User

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES = [
    {'name': 'Full-stack', 'slug': 'full-stack', 'type': 'project', 'description': 'Full-stack applications'},
    {'name': 'Front-end', 'slug': 'frontend', 'type': 'project', 'description': 'Frontend projects'},
    {'name': 'Back-end', 'slug': 'backend', 'type': 'project', 'description': 'Backend projects'},
    {'name': 'Mobile', 'slug': 'mobile', 'type': 'project', 'description': 'Mobile applications'},
    {'name': 'Design', 'slug': 'design', 'type': 'project', 'description': 'Design projects'},
    {'name': 'Web Development', 'slug': 'web-development', 'type': 'post', 'description': 'Web development tips and tricks'},
    {'name': 'Backend', 'slug': 'backend-post', 'type': 'post', 'description': 'Backend development articles'},
    {'name': 'Frontend', 'slug': 'frontend-post', 'type': 'post', 'description': 'Frontend development tips'},
    {'name': 'Tutorial', 'slug': 'tutorial', 'type': 'post', 'description': 'Step-by-step tutorials'},
]

DEFAULT_SECTIONS = ['hero', 'about', 'skills', 'services', 'projects', 'testimonials', 'blog', 'contact']


def seed_defaults():
    """Insert the default categories and homepage sections that are missing."""
    existing = {c.slug for c in Category.query.all()}
    for data in DEFAULT_CATEGORIES:
        if data['slug'] not in existing:
            db.session.add(Category(**data))

    names = {s.name for s in HomepageSection.query.all()}
    for order, name in enumerate(DEFAULT_SECTIONS):
        if name not in names:
            db.session.add(HomepageSection(name=name, visible=True, order=order))
    db.session.commit()


def seed_admin(username, password, email):
    if User.query.filter(User.role.in_(ADMIN_ROLES)).first():
        return None
    from portfolio_cms.security import hash_password
    admin = User(
        username=username,
        password=hash_password(password),
        name='Administrator',
        email=email,
        role='Super Admin',
    )
    db.session.add(admin)
    db.session.commit()
    logger.info("Created admin user %s", username)
    return admin


def register_cli(app):
    @app.cli.command('seed')
    def seed():
        """Create default categories, homepage sections and the admin user."""
        seed_defaults()
        password = os.environ.get('ADMIN_PASSWORD')
        if not password:
            click.echo('ADMIN_PASSWORD not set, skipping admin user')
            return
        admin = seed_admin(
            os.environ.get('ADMIN_USERNAME', 'admin'),
            password,
            os.environ.get('ADMIN_EMAIL', 'admin@example.com'),
        )
        if admin:
            click.echo(f'Created admin user {admin.username}')
        else:
            click.echo('Admin user already exists')
