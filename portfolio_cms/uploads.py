"""
File storage for uploaded media.

Files live under ``UPLOAD_FOLDER/<subdir>`` and are served from
``/uploads/<subdir>/<name>``.
"""

import base64
import binascii
import logging
import mimetypes
import os
import re

from flask import current_app
from werkzeug.utils import secure_filename

from portfolio_cms.errors import APIError
from portfolio_cms.models import utcnow

logger = logging.getLogger(__name__)

UPLOAD_SUBDIRS = ('images', 'documents', 'media')

ALLOWED_MIME_TYPES = {
    'image/jpeg',
    'image/png',
    'image/gif',
    'image/webp',
    'image/svg+xml',
    'application/pdf',
    'application/msword',
    'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
    'application/vnd.ms-excel',
    'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
    'application/vnd.ms-powerpoint',
    'application/vnd.openxmlformats-officedocument.presentationml.presentation',
    'text/plain',
}

DOCUMENT_MIME_TYPES = ALLOWED_MIME_TYPES - {m for m in ALLOWED_MIME_TYPES if m.startswith('image/')}

DATA_URL_RE = re.compile(r'^data:(?P<mime>[\w.+/-]+)?(?:;[\w=-]+)*;base64,(?P<data>.*)$', re.DOTALL)


def subdir_for(mime_type):
    if mime_type and mime_type.startswith('image/'):
        return 'images'
    if mime_type in DOCUMENT_MIME_TYPES:
        return 'documents'
    return 'media'


def check_mime_type(mime_type):
    if mime_type not in ALLOWED_MIME_TYPES:
        raise APIError(f'File type {mime_type} is not allowed', 400)


def stored_filename(original_name):
    basename = os.path.basename(original_name or '')
    filename = secure_filename(basename)
    if not filename or basename.startswith('.'):
        raise APIError('Invalid filename', 400)
    timestamp = utcnow().strftime('%Y%m%d%H%M%S%f')
    return f"{timestamp}_{filename}"


def upload_path(subdir, filename=''):
    folder = os.path.join(current_app.config['UPLOAD_FOLDER'], subdir)
    os.makedirs(folder, exist_ok=True)
    return os.path.join(folder, filename) if filename else folder


def public_url(subdir, filename):
    return f"/uploads/{subdir}/{filename}"


def check_upload(file):
    """Validate a FileStorage's type and name without writing it; returns (mime_type, filename)."""
    mime_type = file.mimetype or mimetypes.guess_type(file.filename or '')[0]
    check_mime_type(mime_type)
    return mime_type, stored_filename(file.filename)


def save_upload(file):
    """Store a werkzeug FileStorage; returns the fields of a media row."""
    mime_type, filename = check_upload(file)
    subdir = subdir_for(mime_type)
    path = upload_path(subdir, filename)
    file.save(path)
    logger.info("Stored upload %s (%s)", filename, mime_type)
    return {
        'filename': filename,
        'original_name': file.filename,
        'mime_type': mime_type,
        'size': os.path.getsize(path),
        'url': public_url(subdir, filename),
    }


def save_data_url(data_url, original_name, mime_type=None):
    """Decode a ``data:<mime>;base64,...`` URL to disk; returns (url, size)."""
    match = DATA_URL_RE.match(data_url)
    payload = match.group('data') if match else ''
    if not payload:
        raise APIError('Invalid base64 data', 400)
    try:
        content = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        raise APIError('Invalid base64 data', 400)
    if not content:
        raise APIError('Invalid base64 data', 400)

    mime_type = mime_type or match.group('mime')
    filename = stored_filename(original_name)
    subdir = subdir_for(mime_type)
    with open(upload_path(subdir, filename), 'wb') as fh:
        fh.write(content)
    logger.info("Stored base64 upload %s (%d bytes)", filename, len(content))
    return public_url(subdir, filename), len(content)


def delete_stored_file(url):
    """Remove the file behind an ``/uploads/...`` url, if any."""
    if not url or not url.startswith('/uploads/'):
        return False
    root = os.path.realpath(current_app.config['UPLOAD_FOLDER'])
    path = os.path.realpath(os.path.join(root, url[len('/uploads/'):]))
    if not path.startswith(root + os.sep) or not os.path.isfile(path):
        return False
    os.remove(path)
    logger.info("Deleted stored file %s", path)
    return True


def scan_uploads():
    """Yield ``(subdir, filename, size, mime_type)`` for every stored file."""
    for subdir in UPLOAD_SUBDIRS:
        folder = upload_path(subdir)
        for name in sorted(os.listdir(folder)):
            path = os.path.join(folder, name)
            if not os.path.isfile(path) or name.startswith('.'):
                continue
            mime_type = mimetypes.guess_type(name)[0] or 'application/octet-stream'
            yield subdir, name, os.path.getsize(path), mime_type
