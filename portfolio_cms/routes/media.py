import logging

from flask import g, jsonify, request

from portfolio_cms import db
from portfolio_cms.errors import APIError
from portfolio_cms.models import Media
from portfolio_cms.routes import api_bp, json_body
from portfolio_cms.schemas import MediaCreate
from portfolio_cms.security import log_activity, login_required
from portfolio_cms.uploads import (
    check_upload,
    delete_stored_file,
    public_url,
    save_data_url,
    save_upload,
    scan_uploads,
)

logger = logging.getLogger(__name__)

MAX_FILES_PER_UPLOAD = 20


def store_files(files):
    files = [f for f in files if f and f.filename]
    # Nothing is written unless every file passes
    for file in files:
        check_upload(file)

    stored = []
    try:
        for file in files:
            stored.append(save_upload(file))
    except OSError:
        for fields in stored:
            delete_stored_file(fields['url'])
        raise

    rows = [Media(**fields) for fields in stored]
    db.session.add_all(rows)
    return rows


# --- Uploads ---
@api_bp.route('/upload/file', methods=['POST'])
@login_required
def upload_file():
    file = request.files.get('file')
    if not file or not file.filename:
        raise APIError('No file uploaded', 400)
    rows = store_files([file])
    log_activity(f'Uploaded {file.filename}', user=g.user, type='upload')
    db.session.commit()
    return jsonify(rows[0].to_dict()), 201


@api_bp.route('/upload/files', methods=['POST'])
@login_required
def upload_files():
    files = [f for f in request.files.getlist('files') if f and f.filename]
    if not files:
        raise APIError('No files uploaded', 400)
    if len(files) > MAX_FILES_PER_UPLOAD:
        raise APIError(f'Maximum {MAX_FILES_PER_UPLOAD} files allowed', 400)
    rows = store_files(files)
    log_activity(f'Uploaded {len(rows)} files', user=g.user, type='upload')
    db.session.commit()
    return jsonify([m.to_dict() for m in rows]), 201


# --- Media Library ---
@api_bp.route('/media', methods=['GET'])
@login_required
def get_media():
    items = Media.query.order_by(Media.created_at.desc(), Media.id.desc()).all()
    return jsonify([m.to_dict() for m in items])


@api_bp.route('/media/<int:media_id>', methods=['GET'])
@login_required
def get_media_item(media_id):
    media = db.get_or_404(Media, media_id, description='Media not found')
    return jsonify(media.to_dict())


@api_bp.route('/media', methods=['POST'])
@login_required
def create_media():
    payload = MediaCreate.model_validate(json_body())
    original_name = payload.original_name or payload.filename
    filename = payload.filename or original_name
    url, size = payload.url, payload.size or 0
    if url.startswith('data:'):
        url, size = save_data_url(url, original_name, payload.mime_type)
        filename = url.rsplit('/', 1)[-1]

    media = Media(
        filename=filename,
        original_name=original_name,
        mime_type=payload.mime_type,
        size=size,
        url=url,
        alt=payload.alt,
    )
    db.session.add(media)
    log_activity(f'Uploaded {original_name}', user=g.user, type='upload')
    db.session.commit()
    return jsonify(media.to_dict()), 201


@api_bp.route('/media/<int:media_id>', methods=['DELETE'])
@login_required
def delete_media(media_id):
    media = db.get_or_404(Media, media_id, description='Media not found')
    delete_stored_file(media.url)
    db.session.delete(media)
    log_activity(f'Deleted {media.original_name}', user=g.user, type='delete')
    db.session.commit()
    return jsonify({'message': 'Media deleted'})


@api_bp.route('/media/sync', methods=['POST'])
@login_required
def sync_media():
    """Create media rows for stored files that have none."""
    known = {url for (url,) in db.session.query(Media.url)}
    synced = skipped = 0
    for subdir, name, size, mime_type in scan_uploads():
        url = public_url(subdir, name)
        if url in known:
            skipped += 1
            continue
        db.session.add(Media(
            filename=name,
            original_name=name,
            mime_type=mime_type,
            size=size,
            url=url,
        ))
        synced += 1
    db.session.commit()
    logger.info("Media sync: %d added, %d already recorded", synced, skipped)
    return jsonify({
        'message': f'Synced {synced} files',
        'synced': synced,
        'skipped': skipped,
    })
