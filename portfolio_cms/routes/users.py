from flask import g, jsonify

from portfolio_cms import db
from portfolio_cms.errors import APIError
from portfolio_cms.models import User, utcnow
from portfolio_cms.routes import api_bp, json_body
from portfolio_cms.routes.auth import ensure_unique_identity
from portfolio_cms.schemas import UserCreate, UserUpdate
from portfolio_cms.security import admin_required, hash_password, log_activity


# --- Users CRUD ---
@api_bp.route('/users', methods=['GET'])
@admin_required
def get_users():
    users = User.query.order_by(User.created_at.desc(), User.id.desc()).all()
    return jsonify([u.to_dict() for u in users])


@api_bp.route('/users/<int:user_id>', methods=['GET'])
@admin_required
def get_user(user_id):
    user = db.get_or_404(User, user_id, description='User not found')
    return jsonify(user.to_dict())


@api_bp.route('/users', methods=['POST'])
@admin_required
def create_user():
    payload = UserCreate.model_validate(json_body())
    ensure_unique_identity(payload.username, payload.email)
    data = payload.model_dump()
    data['password'] = hash_password(data['password'])
    user = User(**data)
    db.session.add(user)
    log_activity(f'Created user {user.username}', user=g.user)
    db.session.commit()
    return jsonify(user.to_dict()), 201


@api_bp.route('/users/<int:user_id>', methods=['PUT'])
@admin_required
def update_user(user_id):
    user = db.get_or_404(User, user_id, description='User not found')
    payload = UserUpdate.model_validate(json_body())
    ensure_unique_identity(payload.username, payload.email, exclude_id=user.id)
    changes = payload.model_dump(exclude_unset=True)
    password = changes.pop('password', None)
    for key, value in changes.items():
        if value is not None or key == 'avatar':
            setattr(user, key, value)
    if password:
        user.password = hash_password(password)
        user.password_updated_at = utcnow()
    log_activity(f'Updated user {user.username}', user=g.user)
    db.session.commit()
    return jsonify(user.to_dict())


@api_bp.route('/users/<int:user_id>', methods=['DELETE'])
@admin_required
def delete_user(user_id):
    user = db.get_or_404(User, user_id, description='User not found')
    if user.id == g.user.id:
        raise APIError('You cannot delete your own account', 400)
    db.session.delete(user)
    log_activity(f'Deleted user {user.username}', user=g.user, type='warning')
    db.session.commit()
    return jsonify({'message': 'User deleted'})
