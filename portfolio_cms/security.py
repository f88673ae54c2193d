import ipaddress
import json
import logging
import threading
import time
from datetime import timedelta
from functools import wraps

import jwt
from flask import current_app, g, request
from werkzeug.security import check_password_hash, generate_password_hash

from portfolio_cms import db
from portfolio_cms.errors import APIError
from portfolio_cms.models import ActivityLog, IpRule, SecurityLog, User, utcnow

logger = logging.getLogger(__name__)


# --- Passwords ---
def hash_password(password):
    return generate_password_hash(password)


def verify_password(user, password):
    if not user or not password:
        return False
    return check_password_hash(user.password, password)


# --- Auth Helpers ---
def generate_token(user):
    payload = {
        'user_id': user.id,
        'role': user.role,
        'exp': utcnow() + timedelta(hours=current_app.config['TOKEN_EXPIRY_HOURS']),
    }
    return jwt.encode(payload, current_app.config['SECRET_KEY'], algorithm='HS256')


def verify_token(token):
    try:
        payload = jwt.decode(token, current_app.config['SECRET_KEY'], algorithms=['HS256'])
        return payload['user_id']
    except (jwt.InvalidTokenError, KeyError):
        return None


def request_token():
    """Bearer token from the Authorization header, else the session cookie."""
    auth_header = request.headers.get('Authorization', '')
    if auth_header.startswith('Bearer '):
        return auth_header.split(' ', 1)[1].strip()
    return request.cookies.get(current_app.config['AUTH_COOKIE_NAME'])


def current_user():
    token = request_token()
    if not token:
        return None
    user_id = verify_token(token)
    if not user_id:
        return None
    return db.session.get(User, user_id)


def login_required(f):
    @wraps(f)
    def decorated(*args, **kwargs):
        user = current_user()
        if not user:
            raise APIError('Authentication required', 401)
        g.user = user
        return f(*args, **kwargs)
    return decorated


def admin_required(f):
    @wraps(f)
    def decorated(*args, **kwargs):
        user = current_user()
        if not user:
            raise APIError('Authentication required', 401)
        if not user.is_admin:
            raise APIError('Admin access required', 403)
        g.user = user
        return f(*args, **kwargs)
    return decorated


def set_auth_cookie(response, token):
    response.set_cookie(
        current_app.config['AUTH_COOKIE_NAME'],
        token,
        max_age=current_app.config['TOKEN_EXPIRY_HOURS'] * 3600,
        httponly=True,
        secure=current_app.config['AUTH_COOKIE_SECURE'],
        samesite='Lax',
    )
    return response


def clear_auth_cookie(response):
    response.delete_cookie(current_app.config['AUTH_COOKIE_NAME'])
    return response


# --- Request Context ---
def client_ip():
    return request.remote_addr or 'unknown'


def user_agent():
    return request.headers.get('User-Agent', 'unknown')


# --- Audit Trail ---
def log_activity(action, user=None, type='info', meta=None, user_name=None):
    entry = ActivityLog(
        action=action,
        user_id=user.id if user else None,
        user_name=user.name if user else user_name,
        type=type,
        meta=meta,
    )
    db.session.add(entry)
    return entry


def record_security_event(event_type, action, user=None, user_name=None, blocked=False, meta=None):
    entry = SecurityLog(
        event_type=event_type,
        action=action,
        user_id=user.id if user else None,
        user_name=user.name if user else user_name,
        ip_address=client_ip(),
        user_agent=user_agent(),
        request_path=request.path,
        blocked=blocked,
        meta=meta,
    )
    db.session.add(entry)
    return entry


# --- IP Rules ---
def ip_matches(ip, rule_address):
    try:
        address = ipaddress.ip_address(ip)
    except ValueError:
        return False
    if '/' in rule_address:
        try:
            return address in ipaddress.ip_network(rule_address, strict=False)
        except ValueError:
            return False
    try:
        return address == ipaddress.ip_address(rule_address)
    except ValueError:
        return False


def check_ip_allowed(ip):
    """Raise 403 if the address is blacklisted or missing from a non-empty whitelist."""
    rules = IpRule.query.all()
    whitelist = [r for r in rules if r.type == 'whitelist']
    blacklist = [r for r in rules if r.type == 'blacklist']

    if any(ip_matches(ip, r.ip_address) for r in blacklist):
        record_security_event('ip_blocked', 'Blocked by IP blacklist', blocked=True, meta={'ip': ip})
        db.session.commit()
        logger.warning("Blocked blacklisted IP %s", ip)
        raise APIError('Access denied', 403)

    if whitelist and not any(ip_matches(ip, r.ip_address) for r in whitelist):
        record_security_event('ip_not_whitelisted', 'Not in IP whitelist', blocked=True, meta={'ip': ip})
        db.session.commit()
        logger.warning("Blocked IP %s not in whitelist", ip)
        raise APIError('Access denied', 403)


# --- Captcha ---
REMOTE_CAPTCHA_KEYS = {
    'google': 'RECAPTCHA_SECRET_KEY',
    'cloudflare': 'TURNSTILE_SECRET_KEY',
}


def verify_captcha(token, captcha_type):
    if not captcha_type or captcha_type == 'disabled':
        return True
    if captcha_type == 'local':
        if not token:
            return True
        try:
            data = json.loads(token)
        except (TypeError, ValueError):
            return True
        if not isinstance(data, dict):
            return True
        time_diff = data.get('timeDiff') or 0
        return data.get('type') == 'local' and isinstance(time_diff, (int, float)) and time_diff >= 2000

    if not token:
        return False
    if captcha_type in REMOTE_CAPTCHA_KEYS:
        if not current_app.config.get(REMOTE_CAPTCHA_KEYS[captcha_type]):
            logger.warning("%s captcha secret key not configured, skipping verification", captcha_type)
            return True
        # Tokens from a configured provider need its verify endpoint, which is not called here
        logger.warning("Rejecting %s captcha token: remote verification unavailable", captcha_type)
        return False
    return True


def require_captcha(data):
    if not verify_captcha(data.get('captchaToken'), data.get('captchaType')):
        raise APIError('Captcha verification failed', 400)


# --- Login Throttle ---
class LoginThrottle:
    """Per-IP failed login counter held in process memory."""

    def __init__(self, max_attempts=5, lockout_minutes=15):
        self.max_attempts = max_attempts
        self.lockout_seconds = lockout_minutes * 60
        self._attempts = {}
        self._lock = threading.Lock()

    def locked_for(self, ip):
        """Seconds left on the lockout for ``ip``, 0 if not locked."""
        with self._lock:
            record = self._attempts.get(ip)
            if not record or not record['locked_until']:
                return 0
            remaining = record['locked_until'] - time.monotonic()
            if remaining <= 0:
                del self._attempts[ip]
                return 0
            return remaining

    def fail(self, ip):
        with self._lock:
            record = self._attempts.setdefault(ip, {'count': 0, 'locked_until': None})
            record['count'] += 1
            if record['count'] >= self.max_attempts:
                record['locked_until'] = time.monotonic() + self.lockout_seconds
            return record['count']

    def reset(self, ip):
        with self._lock:
            self._attempts.pop(ip, None)


def login_throttle():
    return current_app.extensions['login_throttle']
