import logging

from flask import jsonify
from pydantic import ValidationError
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Error raised from route or helper code and rendered as JSON."""

    def __init__(self, message, status=400, errors=None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.errors = errors

    def to_dict(self):
        body = {'message': self.message}
        if self.errors:
            body['errors'] = self.errors
        return body


def validation_errors(exc):
    return [
        {'field': '.'.join(str(part) for part in err['loc']), 'message': err['msg']}
        for err in exc.errors()
    ]


def register_error_handlers(app):
    from portfolio_cms import db

    @app.errorhandler(APIError)
    def handle_api_error(err):
        return jsonify(err.to_dict()), err.status

    @app.errorhandler(ValidationError)
    def handle_validation_error(err):
        return jsonify({'message': 'Invalid data', 'errors': validation_errors(err)}), 400

    @app.errorhandler(HTTPException)
    def handle_http_error(err):
        return jsonify({'message': err.description}), err.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(err):
        db.session.rollback()
        logger.exception("Unhandled error")
        return jsonify({'message': 'Internal server error'}), 500
