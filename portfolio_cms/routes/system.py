import logging
import time

from flask import g, jsonify, request
from sqlalchemy import func

from portfolio_cms import db
from portfolio_cms.errors import APIError
from portfolio_cms.models import (
    STATUS_PENDING,
    STATUS_PUBLISHED,
    ActivityLog,
    Comment,
    HomepageSection,
    IpRule,
    Message,
    Post,
    Project,
    Review,
    SecurityLog,
    Service,
    SiteSetting,
    Skill,
    Testimonial,
    User,
    utcnow,
)
from portfolio_cms.routes import api_bp, apply_updates, int_arg, json_body
from portfolio_cms.schemas import ActivityLogCreate, HomepageSectionUpdate, IpRuleCreate
from portfolio_cms.security import admin_required, log_activity, login_required

logger = logging.getLogger(__name__)

STARTED_AT = time.monotonic()

DEFAULT_DEBUG_SETTINGS = {
    'debugMode': False,
    'showQueryDebug': False,
    'performanceProfiling': False,
}


def get_setting(key, default=None):
    setting = SiteSetting.query.filter_by(key=key).first()
    return setting.value if setting else default


def upsert_setting(key, value):
    """Last write wins."""
    setting = SiteSetting.query.filter_by(key=key).first()
    if setting is None:
        setting = SiteSetting(key=key)
        db.session.add(setting)
    setting.value = value
    setting.updated_at = utcnow()
    return setting


def count(model, *criteria):
    query = db.session.query(func.count(model.id))
    if criteria:
        query = query.filter(*criteria)
    return query.scalar() or 0


# --- Settings ---
@api_bp.route('/settings', methods=['GET'])
def get_settings():
    return jsonify({s.key: s.value for s in SiteSetting.query.order_by(SiteSetting.key)})


@api_bp.route('/settings/<key>', methods=['GET'])
def get_setting_value(key):
    setting = SiteSetting.query.filter_by(key=key).first()
    if not setting:
        raise APIError('Setting not found', 404)
    return jsonify(setting.value)


@api_bp.route('/settings/<key>', methods=['PUT'])
@admin_required
def update_setting(key):
    data = json_body()
    if 'value' not in data:
        raise APIError('Value is required', 400)
    setting = upsert_setting(key, data['value'])
    log_activity(f'Updated setting {key}', user=g.user)
    db.session.commit()
    return jsonify(setting.to_dict())


@api_bp.route('/settings', methods=['PUT'])
@admin_required
def update_settings():
    data = json_body()
    for key, value in data.items():
        upsert_setting(key, value)
    log_activity(f'Updated {len(data)} settings', user=g.user)
    db.session.commit()
    return jsonify({s.key: s.value for s in SiteSetting.query.order_by(SiteSetting.key)})


# --- Homepage Sections ---
@api_bp.route('/homepage/sections', methods=['GET'])
def get_homepage_sections():
    sections = HomepageSection.query.order_by(HomepageSection.order, HomepageSection.id).all()
    return jsonify([s.to_dict() for s in sections])


@api_bp.route('/homepage/sections/<name>', methods=['GET'])
def get_homepage_section(name):
    section = HomepageSection.query.filter_by(name=name).first()
    if not section:
        raise APIError('Section not found', 404)
    return jsonify(section.to_dict())


@api_bp.route('/homepage/sections/<name>', methods=['PUT'])
@admin_required
def upsert_homepage_section(name):
    payload = HomepageSectionUpdate.model_validate(json_body())
    section = HomepageSection.query.filter_by(name=name).first()
    if section is None:
        section = HomepageSection(name=name, visible=True, order=count(HomepageSection))
        db.session.add(section)
    apply_updates(section, payload)
    section.updated_at = utcnow()
    db.session.commit()
    return jsonify(section.to_dict())


# --- Dashboard ---
@api_bp.route('/dashboard/stats', methods=['GET'])
@login_required
def get_dashboard_stats():
    project_views = db.session.query(func.coalesce(func.sum(Project.views), 0)).scalar()
    post_views = db.session.query(func.coalesce(func.sum(Post.views), 0)).scalar()
    return jsonify({
        'totalProjects': count(Project),
        'publishedProjects': count(Project, Project.status == STATUS_PUBLISHED),
        'totalPosts': count(Post),
        'publishedPosts': count(Post, Post.status == STATUS_PUBLISHED),
        'totalMessages': count(Message),
        'unreadMessages': count(Message, Message.read.is_(False)),
        'totalUsers': count(User),
        'activeUsers': count(User, User.status == 'Active'),
        'totalViews': int(project_views) + int(post_views),
        'totalComments': count(Comment),
        'pendingComments': count(Comment, Comment.status == STATUS_PENDING),
        'totalReviews': count(Review),
        'pendingReviews': count(Review, Review.status == STATUS_PENDING),
    })


# --- System ---
SYSTEM_TABLES = [
    ('Users', User),
    ('Projects', Project),
    ('Posts', Post),
    ('Skills', Skill),
    ('Services', Service),
    ('Messages', Message),
    ('Testimonials', Testimonial),
    ('Comments', Comment),
    ('Reviews', Review),
    ('Activity Logs', ActivityLog),
]


@api_bp.route('/system/stats', methods=['GET'])
@admin_required
def get_system_stats():
    table_stats = [{'name': name, 'count': count(model)} for name, model in SYSTEM_TABLES]
    total_rows = sum(t['count'] for t in table_stats)
    return jsonify({
        'databaseSize': f'{total_rows * 0.5:.1f} KB',
        'tableStats': table_stats,
        'serverUptime': round(time.monotonic() - STARTED_AT, 3),
        'lastCheck': utcnow().isoformat(),
        'status': 'Healthy',
    })


def activity_page():
    limit = int_arg('limit', 50, minimum=1, maximum=500)
    offset = int_arg('offset', 0, minimum=0)
    logs = ActivityLog.query.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc()) \
        .offset(offset).limit(limit).all()
    return jsonify([entry.to_dict() for entry in logs])


@api_bp.route('/system/activity-logs', methods=['GET'])
@admin_required
def get_system_activity_logs():
    return activity_page()


@api_bp.route('/system/clear-logs', methods=['POST'])
@admin_required
def clear_activity_logs():
    removed = ActivityLog.query.delete(synchronize_session=False)
    log_activity('Activity logs cleared', user=g.user, type='warning')
    db.session.commit()
    logger.warning("%s cleared %d activity log entries", g.user.username, removed)
    return jsonify({'message': 'Logs cleared successfully'})


@api_bp.route('/debug/settings', methods=['GET'])
@admin_required
def get_debug_settings():
    return jsonify(get_setting('debugSettings', DEFAULT_DEBUG_SETTINGS))


@api_bp.route('/debug/settings', methods=['POST'])
@admin_required
def save_debug_settings():
    data = json_body()
    value = {key: bool(data.get(key, False)) for key in DEFAULT_DEBUG_SETTINGS}
    value['updatedAt'] = utcnow().isoformat()
    upsert_setting('debugSettings', value)
    log_activity(
        'Debug settings updated: Debug Mode={debugMode}, Query Debug={showQueryDebug}, '
        'Performance Profiling={performanceProfiling}'.format(**value),
        user=g.user,
    )
    db.session.commit()
    return jsonify(dict(value, message='Debug settings saved'))


# --- Activity Logs ---
@api_bp.route('/activity-logs', methods=['GET'])
@admin_required
def get_activity_logs():
    return activity_page()


@api_bp.route('/activity-logs', methods=['POST'])
@admin_required
def create_activity_log():
    entry = ActivityLog(**ActivityLogCreate.model_validate(json_body()).model_dump())
    db.session.add(entry)
    db.session.commit()
    return jsonify(entry.to_dict()), 201


# --- Security ---
@api_bp.route('/security/logs', methods=['GET'])
@admin_required
def get_security_logs():
    query = SecurityLog.query.order_by(SecurityLog.created_at.desc(), SecurityLog.id.desc())
    event_type = request.args.get('type')
    if event_type:
        query = query.filter_by(event_type=event_type)
    limit = int_arg('limit', 100, minimum=1, maximum=1000)
    return jsonify([entry.to_dict() for entry in query.limit(limit)])


@api_bp.route('/security/ip-rules', methods=['GET'])
@admin_required
def get_ip_rules():
    rules = IpRule.query.order_by(IpRule.created_at.desc(), IpRule.id.desc()).all()
    return jsonify([r.to_dict() for r in rules])


@api_bp.route('/security/ip-rules', methods=['POST'])
@admin_required
def create_ip_rule():
    payload = IpRuleCreate.model_validate(json_body())
    rule = IpRule(**payload.model_dump(), created_by=g.user.id)
    db.session.add(rule)
    log_activity(f'Added {rule.type} rule for {rule.ip_address}', user=g.user, type='security')
    db.session.commit()
    return jsonify(rule.to_dict()), 201


@api_bp.route('/security/ip-rules/<int:rule_id>', methods=['DELETE'])
@admin_required
def delete_ip_rule(rule_id):
    rule = db.get_or_404(IpRule, rule_id, description='IP rule not found')
    db.session.delete(rule)
    log_activity(f'Removed {rule.type} rule for {rule.ip_address}', user=g.user, type='security')
    db.session.commit()
    return jsonify({'message': 'IP rule deleted'})


@api_bp.route('/security/stats', methods=['GET'])
@admin_required
def get_security_stats():
    by_type = db.session.query(SecurityLog.event_type, func.count(SecurityLog.id)) \
        .group_by(SecurityLog.event_type).all()
    total = count(SecurityLog)
    blocked = count(SecurityLog, SecurityLog.blocked.is_(True))
    by_type = dict(by_type)
    return jsonify({
        'totalEvents': total,
        'totalBlocked': blocked,
        'totalAllowed': total - blocked,
        'failedLogins': by_type.get('login_failed', 0),
        'successfulLogins': by_type.get('login_success', 0),
        'byEventType': [{'type': t, 'count': n} for t, n in sorted(by_type.items())],
    })
