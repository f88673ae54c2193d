import logging
import math
from datetime import timedelta

from flask import current_app, g, jsonify
from sqlalchemy import or_

from portfolio_cms import db
from portfolio_cms.errors import APIError
from portfolio_cms.models import SiteSetting, User, utcnow
from portfolio_cms.routes import api_bp, json_body
from portfolio_cms.schemas import ProfileUpdate, UserCreate
from portfolio_cms.security import (
    admin_required,
    check_ip_allowed,
    clear_auth_cookie,
    client_ip,
    generate_token,
    hash_password,
    log_activity,
    login_required,
    login_throttle,
    record_security_event,
    set_auth_cookie,
    verify_captcha,
    verify_password,
)

logger = logging.getLogger(__name__)


def password_expired(user):
    setting = db.session.execute(
        db.select(SiteSetting).filter_by(key='passwordExpiration')
    ).scalar_one_or_none()
    if not setting or setting.value not in (True, 'true'):
        return False
    changed = user.password_updated_at or user.created_at
    if not changed:
        return False
    return utcnow() - changed > timedelta(days=current_app.config['PASSWORD_MAX_AGE_DAYS'])


def find_user_by_login(login):
    return User.query.filter(or_(User.username == login, User.email == login)).first()


def ensure_unique_identity(username=None, email=None, exclude_id=None):
    if username:
        existing = User.query.filter_by(username=username).first()
        if existing and existing.id != exclude_id:
            raise APIError('Username already exists', 400)
    if email:
        existing = User.query.filter_by(email=email).first()
        if existing and existing.id != exclude_id:
            raise APIError('Email already exists', 400)


# --- Auth Routes ---
@api_bp.route('/auth/login', methods=['POST'])
def login():
    data = json_body()
    ip = client_ip()
    check_ip_allowed(ip)

    throttle = login_throttle()
    remaining = throttle.locked_for(ip)
    if remaining:
        record_security_event('login_lockout', 'Login attempt during lockout', blocked=True)
        db.session.commit()
        logger.warning("Login attempt from locked out IP %s", ip)
        minutes = math.ceil(remaining / 60)
        raise APIError(f'Too many login attempts. Please try again in {minutes} minutes', 429)

    username = data.get('username')
    password = data.get('password')
    if not username or not password:
        raise APIError('Username and password are required', 400)

    if not verify_captcha(data.get('captchaToken'), data.get('captchaType')):
        throttle.fail(ip)
        record_security_event('login_failed', 'Failed login attempt - captcha failed',
                              user_name=username, blocked=True)
        db.session.commit()
        logger.warning("Captcha failed for %s from %s", username, ip)
        raise APIError('Captcha verification failed', 400)

    user = find_user_by_login(username)
    if not verify_password(user, password):
        throttle.fail(ip)
        record_security_event('login_failed', 'Invalid credentials', user=user, user_name=username)
        db.session.commit()
        logger.warning("Failed login for %s from %s", username, ip)
        raise APIError('Invalid credentials', 401)

    throttle.reset(ip)
    if password_expired(user):
        record_security_event('password_expired', 'Login blocked - password expired',
                              user=user, blocked=True)
        db.session.commit()
        return jsonify({
            'message': 'Password expired',
            'passwordExpired': True,
            'userId': user.id,
        }), 403

    user.last_active = utcnow()
    record_security_event('login_success', 'User logged in', user=user)
    log_activity(f'{user.name} logged in', user=user, type='auth')
    db.session.commit()
    logger.info("User %s logged in", user.username)

    token = generate_token(user)
    response = jsonify({'user': user.to_dict(), 'token': token})
    return set_auth_cookie(response, token)


@api_bp.route('/auth/logout', methods=['POST'])
def logout():
    response = jsonify({'message': 'Logged out successfully'})
    return clear_auth_cookie(response)


@api_bp.route('/auth/me', methods=['GET'])
@login_required
def me():
    return jsonify(g.user.to_dict())


@api_bp.route('/auth/profile', methods=['PUT'])
@login_required
def update_profile():
    payload = ProfileUpdate.model_validate(json_body())
    user = g.user
    ensure_unique_identity(payload.username, payload.email, exclude_id=user.id)
    for key, value in payload.model_dump(exclude_unset=True).items():
        if value is not None or key == 'avatar':
            setattr(user, key, value)
    log_activity('Updated profile', user=user)
    db.session.commit()
    return jsonify(user.to_dict())


@api_bp.route('/auth/password', methods=['PUT'])
@login_required
def change_password():
    data = json_body()
    current = data.get('currentPassword')
    new = data.get('newPassword')
    if not current or not new:
        raise APIError('Current and new password are required', 400)
    if not verify_password(g.user, current):
        raise APIError('Current password is incorrect', 401)
    g.user.password = hash_password(new)
    g.user.password_updated_at = utcnow()
    record_security_event('password_changed', 'Password changed', user=g.user)
    db.session.commit()
    return jsonify({'message': 'Password updated successfully'})


@api_bp.route('/auth/force-password-reset', methods=['POST'])
def force_password_reset():
    data = json_body()
    user_id = data.get('userId')
    current = data.get('currentPassword')
    new = data.get('newPassword')
    if not user_id or not current or not new:
        raise APIError('User id, current and new password are required', 400)
    if current == new:
        raise APIError('New password must be different from the current password', 400)
    user = db.session.get(User, user_id)
    if not verify_password(user, current):
        raise APIError('Invalid credentials', 401)
    user.password = hash_password(new)
    user.password_updated_at = utcnow()
    record_security_event('password_reset', 'Expired password replaced', user=user)
    db.session.commit()
    return jsonify({'message': 'Password updated successfully'})


@api_bp.route('/auth/register', methods=['POST'])
@admin_required
def register():
    payload = UserCreate.model_validate(json_body())
    ensure_unique_identity(payload.username, payload.email)
    data = payload.model_dump()
    data['password'] = hash_password(data['password'])
    user = User(**data)
    db.session.add(user)
    log_activity(f'Created user {user.username}', user=g.user)
    db.session.commit()
    return jsonify(user.to_dict()), 201
