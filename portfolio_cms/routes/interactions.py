import logging

from flask import g, jsonify, request

from portfolio_cms import db
from portfolio_cms.errors import APIError
from portfolio_cms.models import (
    STATUS_APPROVED,
    STATUS_PENDING,
    Comment,
    Message,
    Notification,
    Post,
    Project,
    Review,
)
from portfolio_cms.routes import api_bp, apply_updates, int_arg, json_body, parse_bool
from portfolio_cms.schemas import (
    CommentCreate,
    CommentUpdate,
    MessageCreate,
    NotificationCreate,
    ReviewCreate,
    ReviewUpdate,
)
from portfolio_cms.security import admin_required, log_activity, require_captcha

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 80


def notify(message, type):
    notification = Notification(message=message, type=type)
    db.session.add(notification)
    return notification


def preview(text):
    text = (text or '').strip()
    if len(text) <= PREVIEW_LENGTH:
        return text
    return text[:PREVIEW_LENGTH].rstrip() + '...'


# --- Messages ---
@api_bp.route('/messages', methods=['GET'])
@admin_required
def get_messages():
    query = Message.query.order_by(Message.created_at.desc(), Message.id.desc())
    if parse_bool(request.args.get('unread')):
        query = query.filter(Message.read.is_(False))
    return jsonify([m.to_dict() for m in query.all()])


@api_bp.route('/messages/<int:message_id>', methods=['GET'])
@admin_required
def get_message(message_id):
    message = db.get_or_404(Message, message_id, description='Message not found')
    return jsonify(message.to_dict())


@api_bp.route('/messages', methods=['POST'])
def create_message():
    data = json_body()
    require_captcha(data)
    message = Message(**MessageCreate.model_validate(data).model_dump())
    db.session.add(message)
    notify(f'New message from {message.sender}', 'message')
    db.session.commit()
    logger.info("New contact message from %s", message.email)
    return jsonify(message.to_dict()), 201


@api_bp.route('/messages/<int:message_id>/read', methods=['PUT'])
@admin_required
def mark_message_read(message_id):
    message = db.get_or_404(Message, message_id, description='Message not found')
    message.read = parse_bool(json_body().get('read', True))
    db.session.commit()
    return jsonify(message.to_dict())


@api_bp.route('/messages/<int:message_id>/archive', methods=['PUT'])
@admin_required
def archive_message(message_id):
    message = db.get_or_404(Message, message_id, description='Message not found')
    message.archived = parse_bool(json_body().get('archived', True))
    db.session.commit()
    return jsonify(message.to_dict())


@api_bp.route('/messages/<int:message_id>', methods=['DELETE'])
@admin_required
def delete_message(message_id):
    message = db.get_or_404(Message, message_id, description='Message not found')
    db.session.delete(message)
    db.session.commit()
    return jsonify({'message': 'Message deleted'})


# --- Comments ---
def comment_target_title(comment):
    target = None
    if comment.post_id:
        target = db.session.get(Post, comment.post_id)
    elif comment.project_id:
        target = db.session.get(Project, comment.project_id)
    return target.title if target else 'Unknown'


def thread_comments(comments):
    """Nest replies under their parents; orphans and roots stay top level."""
    nodes = {c.id: dict(c.to_dict(), replies=[]) for c in comments}
    roots = []
    for comment in comments:
        node = nodes[comment.id]
        parent = nodes.get(comment.parent_id)
        if parent is not None:
            parent['replies'].append(node)
        else:
            roots.append(node)
    return roots


@api_bp.route('/comments', methods=['GET'])
def get_comments():
    args = request.args
    post_id = args.get('postId', type=int)
    project_id = args.get('projectId', type=int)
    approved = parse_bool(args.get('approved'))

    query = Comment.query
    if parse_bool(args.get('pending')):
        query = query.filter_by(status=STATUS_PENDING)
    elif post_id and approved:
        query = query.filter_by(post_id=post_id, status=STATUS_APPROVED)
    elif project_id and approved:
        query = query.filter_by(project_id=project_id, status=STATUS_APPROVED)
    elif post_id:
        query = query.filter_by(post_id=post_id)
    elif project_id:
        query = query.filter_by(project_id=project_id)

    if parse_bool(args.get('threaded')):
        comments = query.order_by(Comment.created_at, Comment.id).all()
        return jsonify(thread_comments(comments))
    comments = query.order_by(Comment.created_at.desc(), Comment.id.desc()).all()
    return jsonify([c.to_dict() for c in comments])


@api_bp.route('/comments/unread', methods=['GET'])
@admin_required
def get_unread_comments():
    comments = Comment.query.filter_by(read=False, archived=False).order_by(
        Comment.created_at.desc(), Comment.id.desc()
    ).all()
    return jsonify([c.to_dict() for c in comments])


@api_bp.route('/comments/<int:comment_id>', methods=['GET'])
def get_comment(comment_id):
    comment = db.get_or_404(Comment, comment_id, description='Comment not found')
    return jsonify(comment.to_dict())


@api_bp.route('/comments', methods=['POST'])
def create_comment():
    data = json_body()
    require_captcha(data)
    payload = CommentCreate.model_validate(data)
    if payload.parent_id and not db.session.get(Comment, payload.parent_id):
        raise APIError('Parent comment not found', 400)
    comment = Comment(**payload.model_dump())
    db.session.add(comment)
    notify(f'New comment from {comment.author_name} on "{comment_target_title(comment)}"', 'comment')
    db.session.commit()
    return jsonify(comment.to_dict()), 201


@api_bp.route('/comments/<int:comment_id>', methods=['PUT'])
@admin_required
def update_comment(comment_id):
    comment = db.get_or_404(Comment, comment_id, description='Comment not found')
    apply_updates(comment, CommentUpdate.model_validate(json_body()))
    db.session.commit()
    return jsonify(comment.to_dict())


@api_bp.route('/comments/<int:comment_id>/approve', methods=['PUT'])
@admin_required
def approve_comment(comment_id):
    comment = db.get_or_404(Comment, comment_id, description='Comment not found')
    comment.status = STATUS_APPROVED
    log_activity(f'Approved comment from {comment.author_name}', user=g.user)
    db.session.commit()
    return jsonify(comment.to_dict())


@api_bp.route('/comments/<int:comment_id>/read', methods=['PUT'])
@admin_required
def mark_comment_read(comment_id):
    comment = db.get_or_404(Comment, comment_id, description='Comment not found')
    comment.read = parse_bool(json_body().get('read', True))
    db.session.commit()
    return jsonify(comment.to_dict())


@api_bp.route('/comments/<int:comment_id>/archive', methods=['PUT'])
@admin_required
def archive_comment(comment_id):
    comment = db.get_or_404(Comment, comment_id, description='Comment not found')
    comment.archived = parse_bool(json_body().get('archived', True))
    db.session.commit()
    return jsonify(comment.to_dict())


@api_bp.route('/comments/<int:comment_id>', methods=['DELETE'])
@admin_required
def delete_comment(comment_id):
    comment = db.get_or_404(Comment, comment_id, description='Comment not found')
    Comment.query.filter_by(parent_id=comment.id).delete(synchronize_session=False)
    db.session.delete(comment)
    db.session.commit()
    return jsonify({'message': 'Comment deleted'})


# --- Reviews ---
@api_bp.route('/reviews', methods=['GET'])
def get_reviews():
    args = request.args
    project_id = args.get('projectId', type=int)

    query = Review.query
    if parse_bool(args.get('pending')):
        query = query.filter_by(status=STATUS_PENDING)
    elif project_id and parse_bool(args.get('approved')):
        query = query.filter_by(project_id=project_id, status=STATUS_APPROVED)
    elif project_id:
        query = query.filter_by(project_id=project_id)
    reviews = query.order_by(Review.created_at.desc(), Review.id.desc()).all()
    return jsonify([r.to_dict() for r in reviews])


@api_bp.route('/reviews/unread', methods=['GET'])
@admin_required
def get_unread_reviews():
    reviews = Review.query.filter_by(read=False, archived=False).order_by(
        Review.created_at.desc(), Review.id.desc()
    ).all()
    return jsonify([r.to_dict() for r in reviews])


@api_bp.route('/reviews/<int:review_id>', methods=['GET'])
def get_review(review_id):
    review = db.get_or_404(Review, review_id, description='Review not found')
    return jsonify(review.to_dict())


@api_bp.route('/reviews', methods=['POST'])
def create_review():
    data = json_body()
    require_captcha(data)
    payload = ReviewCreate.model_validate(data)
    project = db.get_or_404(Project, payload.project_id, description='Project not found')
    review = Review(**payload.model_dump())
    db.session.add(review)
    notify(
        f'New {review.rating}-star review from {review.author_name} on "{project.title}"',
        'review',
    )
    db.session.commit()
    return jsonify(review.to_dict()), 201


@api_bp.route('/reviews/<int:review_id>', methods=['PUT'])
@admin_required
def update_review(review_id):
    review = db.get_or_404(Review, review_id, description='Review not found')
    apply_updates(review, ReviewUpdate.model_validate(json_body()))
    db.session.commit()
    return jsonify(review.to_dict())


@api_bp.route('/reviews/<int:review_id>/approve', methods=['PUT'])
@admin_required
def approve_review(review_id):
    review = db.get_or_404(Review, review_id, description='Review not found')
    review.status = STATUS_APPROVED
    log_activity(f'Approved review from {review.author_name}', user=g.user)
    db.session.commit()
    return jsonify(review.to_dict())


@api_bp.route('/reviews/<int:review_id>/read', methods=['PUT'])
@admin_required
def mark_review_read(review_id):
    review = db.get_or_404(Review, review_id, description='Review not found')
    review.read = parse_bool(json_body().get('read', True))
    db.session.commit()
    return jsonify(review.to_dict())


@api_bp.route('/reviews/<int:review_id>/archive', methods=['PUT'])
@admin_required
def archive_review(review_id):
    review = db.get_or_404(Review, review_id, description='Review not found')
    review.archived = parse_bool(json_body().get('archived', True))
    db.session.commit()
    return jsonify(review.to_dict())


@api_bp.route('/reviews/<int:review_id>', methods=['DELETE'])
@admin_required
def delete_review(review_id):
    review = db.get_or_404(Review, review_id, description='Review not found')
    db.session.delete(review)
    db.session.commit()
    return jsonify({'message': 'Review deleted'})


@api_bp.route('/projects/<int:project_id>/rating', methods=['GET'])
def get_project_rating(project_id):
    ratings = [
        r.rating for r in Review.query.filter_by(project_id=project_id, status=STATUS_APPROVED)
    ]
    average = round(sum(ratings) / len(ratings), 1) if ratings else 0
    return jsonify({'average': average, 'count': len(ratings)})


# --- Notifications ---
@api_bp.route('/notifications', methods=['GET'])
@admin_required
def get_notifications():
    query = Notification.query.order_by(Notification.created_at.desc(), Notification.id.desc())
    user_id = request.args.get('userId', type=int)
    if user_id:
        query = query.filter_by(user_id=user_id)
    return jsonify([n.to_dict() for n in query.all()])


@api_bp.route('/notifications', methods=['POST'])
@admin_required
def create_notification():
    notification = Notification(**NotificationCreate.model_validate(json_body()).model_dump())
    db.session.add(notification)
    db.session.commit()
    return jsonify(notification.to_dict()), 201


@api_bp.route('/notifications/<int:notification_id>/read', methods=['PUT'])
@admin_required
def mark_notification_read(notification_id):
    notification = db.get_or_404(Notification, notification_id, description='Notification not found')
    notification.read = True
    db.session.commit()
    return jsonify(notification.to_dict())


@api_bp.route('/notifications/read-all', methods=['PUT'])
@admin_required
def mark_all_notifications_read():
    updated = Notification.query.filter_by(read=False).update(
        {Notification.read: True}, synchronize_session=False
    )
    db.session.commit()
    return jsonify({'message': 'All notifications marked as read', 'updated': updated})


@api_bp.route('/notifications/feed', methods=['GET'])
@admin_required
def get_notification_feed():
    """Unread messages, comments and reviews merged newest first."""
    limit = int_arg('limit', 20, minimum=1, maximum=100)

    items = []
    for m in Message.query.filter_by(read=False, archived=False):
        items.append({
            'id': m.id,
            'type': 'message',
            'title': f'Message from {m.sender}',
            'preview': preview(m.subject or m.message),
            'createdAt': m.created_at,
            'link': '/admin/inbox',
        })
    for c in Comment.query.filter_by(read=False, archived=False):
        items.append({
            'id': c.id,
            'type': 'comment',
            'title': f'Comment from {c.author_name}',
            'preview': preview(c.content),
            'createdAt': c.created_at,
            'link': '/admin/comments',
        })
    for r in Review.query.filter_by(read=False, archived=False):
        items.append({
            'id': r.id,
            'type': 'review',
            'title': f'{r.rating}-star review from {r.author_name}',
            'preview': preview(r.content),
            'createdAt': r.created_at,
            'link': '/admin/reviews',
        })

    items.sort(key=lambda item: item['createdAt'], reverse=True)
    for item in items:
        item['createdAt'] = item['createdAt'].isoformat()
    return jsonify({'items': items[:limit], 'unreadCount': len(items)})
