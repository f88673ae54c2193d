from flask import g, jsonify, request
from sqlalchemy import func

from portfolio_cms import db
from portfolio_cms.errors import APIError
from portfolio_cms.models import (
    STATUS_PUBLISHED,
    ContentDraft,
    ContentTemplate,
    ContentVersion,
    Page,
    Post,
    Project,
    utcnow,
)
from portfolio_cms.routes import api_bp, apply_updates, json_body
from portfolio_cms.schemas import (
    BulkContentAction,
    ContentDraftSave,
    ContentTemplateCreate,
    ContentTemplateUpdate,
    ContentVersionCreate,
)
from portfolio_cms.security import admin_required, log_activity, login_required

BULK_MODELS = {
    'post': Post,
    'page': Page,
    'project': Project,
}


def latest_version_number(content_type, content_id):
    latest = db.session.query(func.max(ContentVersion.version)).filter_by(
        content_type=content_type, content_id=content_id
    ).scalar()
    return latest or 0


def find_draft(user_id, content_type, content_id):
    return ContentDraft.query.filter_by(
        user_id=user_id, content_type=content_type, content_id=content_id
    ).first()


# --- Drafts ---
@api_bp.route('/content/drafts/<content_type>', methods=['GET'])
@login_required
def get_draft(content_type):
    content_id = request.args.get('contentId', type=int)
    draft = find_draft(g.user.id, content_type, content_id)
    return jsonify(draft.to_dict() if draft else None)


@api_bp.route('/content/drafts', methods=['POST'])
@login_required
def save_draft():
    """Autosave: one draft per user, content type and content id."""
    payload = ContentDraftSave.model_validate(json_body())
    draft = find_draft(g.user.id, payload.content_type, payload.content_id)
    if not draft:
        draft = ContentDraft(user_id=g.user.id, content_type=payload.content_type,
                             content_id=payload.content_id)
        db.session.add(draft)
    draft.title = payload.title
    draft.content = payload.content
    draft.meta = payload.meta
    draft.updated_at = utcnow()
    db.session.commit()
    return jsonify(draft.to_dict())


@api_bp.route('/content/drafts/<int:draft_id>', methods=['DELETE'])
@login_required
def delete_draft(draft_id):
    draft = db.get_or_404(ContentDraft, draft_id, description='Draft not found')
    db.session.delete(draft)
    db.session.commit()
    return jsonify({'message': 'Draft deleted'})


# --- Versions ---
@api_bp.route('/content/versions/<content_type>/<int:content_id>', methods=['GET'])
@admin_required
def get_versions(content_type, content_id):
    versions = ContentVersion.query.filter_by(
        content_type=content_type, content_id=content_id
    ).order_by(ContentVersion.version.desc()).all()
    return jsonify([v.to_dict() for v in versions])


@api_bp.route('/content/versions', methods=['POST'])
@admin_required
def create_version():
    payload = ContentVersionCreate.model_validate(json_body())
    version = ContentVersion(
        version=latest_version_number(payload.content_type, payload.content_id) + 1,
        created_by=g.user.id,
        **payload.model_dump(),
    )
    db.session.add(version)
    log_activity(
        f'Saved version {version.version} of {payload.content_type} #{payload.content_id}',
        user=g.user,
    )
    db.session.commit()
    return jsonify(version.to_dict()), 201


# --- Templates ---
@api_bp.route('/content/templates', methods=['GET'])
@admin_required
def get_templates():
    query = ContentTemplate.query.order_by(ContentTemplate.created_at.desc(), ContentTemplate.id.desc())
    template_type = request.args.get('type')
    if template_type:
        query = query.filter_by(type=template_type)
    return jsonify([t.to_dict() for t in query.all()])


@api_bp.route('/content/templates/<int:template_id>', methods=['GET'])
@admin_required
def get_template(template_id):
    template = db.get_or_404(ContentTemplate, template_id, description='Template not found')
    return jsonify(template.to_dict())


@api_bp.route('/content/templates', methods=['POST'])
@admin_required
def create_template():
    payload = ContentTemplateCreate.model_validate(json_body())
    template = ContentTemplate(**payload.model_dump())
    db.session.add(template)
    db.session.commit()
    return jsonify(template.to_dict()), 201


@api_bp.route('/content/templates/<int:template_id>', methods=['PUT'])
@admin_required
def update_template(template_id):
    template = db.get_or_404(ContentTemplate, template_id, description='Template not found')
    apply_updates(template, ContentTemplateUpdate.model_validate(json_body()))
    db.session.commit()
    return jsonify(template.to_dict())


@api_bp.route('/content/templates/<int:template_id>', methods=['DELETE'])
@admin_required
def delete_template(template_id):
    template = db.get_or_404(ContentTemplate, template_id, description='Template not found')
    db.session.delete(template)
    db.session.commit()
    return jsonify({'message': 'Template deleted'})


# --- Bulk actions ---
@api_bp.route('/content/bulk-delete', methods=['POST'])
@admin_required
def bulk_delete():
    payload = BulkContentAction.model_validate(json_body())
    model = BULK_MODELS[payload.content_type]
    items = model.query.filter(model.id.in_(payload.ids)).all()
    for item in items:
        db.session.delete(item)
    log_activity(f'Bulk deleted {len(items)} {payload.content_type}s', user=g.user, type='warning')
    db.session.commit()
    return jsonify({'message': f'{len(items)} items deleted', 'deleted': len(items)})


@api_bp.route('/content/bulk-publish', methods=['POST'])
@admin_required
def bulk_publish():
    payload = BulkContentAction.model_validate(json_body())
    model = BULK_MODELS[payload.content_type]
    items = model.query.filter(model.id.in_(payload.ids)).all()
    now = utcnow()
    for item in items:
        item.status = STATUS_PUBLISHED
        item.updated_at = now
        # projects carry no publication date
        if hasattr(item, 'published_at'):
            item.published_at = now
    log_activity(f'Bulk published {len(items)} {payload.content_type}s', user=g.user, type='success')
    db.session.commit()
    return jsonify({'message': f'{len(items)} items published', 'updated': len(items)})
