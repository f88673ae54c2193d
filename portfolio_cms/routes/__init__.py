from flask import Blueprint, request
from sqlalchemy import inspect

from portfolio_cms.errors import APIError

api_bp = Blueprint('api', __name__)


def parse_bool(val):
    if isinstance(val, bool):
        return val
    if isinstance(val, str):
        return val.lower() == 'true'
    return False


def int_arg(name, default, minimum=None, maximum=None):
    try:
        value = int(request.args.get(name, default))
    except (TypeError, ValueError):
        value = default
    if minimum is not None:
        value = max(minimum, value)
    if maximum is not None:
        value = min(maximum, value)
    return value


def json_body():
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise APIError('Expected a JSON object', 400)
    return data


def apply_updates(obj, payload):
    """Copy the fields the client sent onto ``obj``."""
    columns = inspect(obj).mapper.columns
    changes = {}
    for key, value in payload.model_dump(exclude_unset=True).items():
        # null for a required column means "leave as is"
        if value is None and not columns[key].nullable:
            continue
        setattr(obj, key, value)
        changes[key] = value
    return changes


from portfolio_cms.routes import (  # noqa: E402,F401
    analytics,
    auth,
    content,
    interactions,
    management,
    media,
    system,
    users,
)
