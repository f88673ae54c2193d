import csv
import hashlib
import io
import logging
import re
from datetime import datetime, timedelta

from flask import Response, g, jsonify, request
from sqlalchemy import func

from portfolio_cms import db
from portfolio_cms.errors import APIError
from portfolio_cms.models import (
    STATUS_PUBLISHED,
    Page,
    PageView,
    Post,
    Project,
    Service,
    Subscriber,
    utcnow,
)
from portfolio_cms.routes import api_bp, int_arg, json_body
from portfolio_cms.routes.content import increment_views
from portfolio_cms.routes.system import get_setting, upsert_setting
from portfolio_cms.schemas import PageViewCreate, SubscriberCreate
from portfolio_cms.security import admin_required, client_ip, current_user, log_activity, user_agent

logger = logging.getLogger(__name__)

VIEW_COUNTERS = {'post': Post, 'page': Page, 'project': Project}

DEFAULT_NEWSLETTER_SETTINGS = {
    'enabled': False,
    'title': 'Subscribe to Our Newsletter',
    'subtitle': 'Get the latest updates',
    'description': 'Stay informed with our weekly newsletter',
    'placeholder': 'Enter your email',
    'buttonText': 'Subscribe',
    'successMessage': 'Thanks for subscribing!',
}


def visitor_id(ip, agent):
    return hashlib.md5(f'{ip}-{agent}'.encode('utf-8')).hexdigest()[:16]


def parse_user_agent(ua):
    """Rough device / browser / os classification of a User-Agent string."""
    device = 'desktop'
    if re.search(r'mobile', ua, re.I):
        device = 'mobile'
    elif re.search(r'tablet|ipad', ua, re.I):
        device = 'tablet'

    if re.search(r'edge|edg/', ua, re.I):
        browser = 'Edge'
    elif re.search(r'chrome', ua, re.I):
        browser = 'Chrome'
    elif re.search(r'firefox', ua, re.I):
        browser = 'Firefox'
    elif re.search(r'safari', ua, re.I):
        browser = 'Safari'
    elif re.search(r'msie|trident', ua, re.I):
        browser = 'IE'
    else:
        browser = 'unknown'

    # Mobile platforms first, their agents also mention Linux / Mac OS
    if re.search(r'android', ua, re.I):
        os_name = 'Android'
    elif re.search(r'iphone|ipad', ua, re.I):
        os_name = 'iOS'
    elif re.search(r'windows', ua, re.I):
        os_name = 'Windows'
    elif re.search(r'mac', ua, re.I):
        os_name = 'macOS'
    elif re.search(r'linux', ua, re.I):
        os_name = 'Linux'
    else:
        os_name = 'unknown'

    return device, browser, os_name


def date_range():
    def parse(name, default):
        value = request.args.get(name)
        if not value:
            return default
        try:
            return datetime.fromisoformat(value.replace('Z', ''))
        except ValueError:
            raise APIError(f'Invalid {name}', 400)

    end = parse('endDate', utcnow())
    start = parse('startDate', end - timedelta(days=30))
    return start, end


def page_view_stats(start, end):
    rows = db.session.query(PageView.path, func.count(PageView.id).label('views')) \
        .filter(PageView.created_at >= start, PageView.created_at <= end) \
        .group_by(PageView.path) \
        .order_by(func.count(PageView.id).desc(), PageView.path).all()
    return [{'path': path, 'views': views} for path, views in rows]


def popular_content(content_type=None, limit=10):
    query = db.session.query(PageView.content_id, PageView.content_type, func.count(PageView.id)) \
        .filter(PageView.content_id.isnot(None))
    if content_type:
        query = query.filter(PageView.content_type == content_type)
    rows = query.group_by(PageView.content_id, PageView.content_type) \
        .order_by(func.count(PageView.id).desc()).limit(limit).all()
    return [{'contentId': cid, 'contentType': ctype, 'views': views} for cid, ctype, views in rows]


def grouped_counts(column, key, limit=None):
    query = db.session.query(column, func.count(PageView.id)) \
        .filter(column.isnot(None), column != '') \
        .group_by(column).order_by(func.count(PageView.id).desc(), column)
    if limit:
        query = query.limit(limit)
    return [{key: value, 'count': n} for value, n in query.all()]


# --- Analytics ---
@api_bp.route('/analytics/track', methods=['POST'])
def track_page_view():
    payload = PageViewCreate.model_validate(json_body())
    ip = client_ip()
    agent = user_agent()
    device, browser, os_name = parse_user_agent(agent)

    db.session.add(PageView(
        path=payload.path,
        content_type=payload.content_type,
        content_id=payload.content_id,
        visitor_id=visitor_id(ip, agent),
        referrer=payload.referrer or request.referrer,
        user_agent=agent,
        ip_address=ip,
        device=device,
        browser=browser,
        os=os_name,
        session_duration=payload.session_duration,
    ))
    db.session.commit()

    model = VIEW_COUNTERS.get(payload.content_type)
    if model and payload.content_id:
        increment_views(model, payload.content_id)
    return jsonify({'success': True})


@api_bp.route('/analytics/overview', methods=['GET'])
@admin_required
def analytics_overview():
    start, end = date_range()
    stats = page_view_stats(start, end)
    return jsonify({
        'totalViews': sum(s['views'] for s in stats),
        'pageViewStats': stats[:20],
        'popularContent': popular_content(),
        'referrerStats': grouped_counts(PageView.referrer, 'referrer', 10),
        'deviceStats': grouped_counts(PageView.device, 'device'),
        'browserStats': grouped_counts(PageView.browser, 'browser'),
        'countryStats': grouped_counts(PageView.country, 'country'),
        'dateRange': {'start': start.isoformat(), 'end': end.isoformat()},
    })


@api_bp.route('/analytics/daily', methods=['GET'])
@admin_required
def analytics_daily():
    days = int_arg('days', 30, minimum=1, maximum=365)
    day = func.date(PageView.created_at)
    rows = db.session.query(day, func.count(PageView.id), func.count(func.distinct(PageView.visitor_id))) \
        .filter(PageView.created_at >= utcnow() - timedelta(days=days)) \
        .group_by(day).order_by(day).all()
    return jsonify([{'date': str(d), 'views': views, 'visitors': visitors} for d, views, visitors in rows])


@api_bp.route('/analytics/popular-content', methods=['GET'])
@admin_required
def analytics_popular_content():
    limit = int_arg('limit', 10, minimum=1, maximum=100)
    return jsonify(popular_content(request.args.get('contentType'), limit))


@api_bp.route('/analytics/referrers', methods=['GET'])
@admin_required
def analytics_referrers():
    limit = int_arg('limit', 10, minimum=1, maximum=100)
    return jsonify(grouped_counts(PageView.referrer, 'referrer', limit))


@api_bp.route('/analytics/devices', methods=['GET'])
@admin_required
def analytics_devices():
    return jsonify(grouped_counts(PageView.device, 'device'))


@api_bp.route('/analytics/browsers', methods=['GET'])
@admin_required
def analytics_browsers():
    return jsonify(grouped_counts(PageView.browser, 'browser'))


@api_bp.route('/analytics/countries', methods=['GET'])
@admin_required
def analytics_countries():
    return jsonify(grouped_counts(PageView.country, 'country'))


@api_bp.route('/analytics/export', methods=['GET'])
@admin_required
def analytics_export():
    start, end = date_range()
    stats = page_view_stats(start, end)
    if request.args.get('format') == 'csv':
        output = io.StringIO()
        output.write('Page,Views\n')
        writer = csv.writer(output, quoting=csv.QUOTE_NONNUMERIC, lineterminator='\n')
        for row in stats:
            writer.writerow([row['path'], row['views']])
        return Response(
            output.getvalue(),
            mimetype='text/csv',
            headers={'Content-Disposition': 'attachment; filename=analytics.csv'},
        )
    return jsonify({
        'pageViewStats': stats,
        'popularContent': popular_content(limit=50),
        'referrerStats': grouped_counts(PageView.referrer, 'referrer', 50),
        'dateRange': {'start': start.isoformat(), 'end': end.isoformat()},
    })


# --- Search ---
def slugify(text):
    return re.sub(r'\s+', '-', text.lower())


def contains(query, *values):
    return any(value and query in value.lower() for value in values)


@api_bp.route('/search', methods=['GET'])
def search():
    query = (request.args.get('q') or '').strip().lower()
    limit = int_arg('limit', 10, minimum=1, maximum=100)
    if len(query) < 2:
        return jsonify({'results': [], 'total': 0})

    results = []
    for post in Post.query.filter_by(status=STATUS_PUBLISHED).order_by(Post.id):
        if contains(query, post.title, post.excerpt, post.content):
            results.append({
                'type': 'post', 'id': post.id, 'title': post.title, 'slug': post.slug,
                'excerpt': post.excerpt, 'thumbnail': post.featured_image,
            })
    for project in Project.query.order_by(Project.id):
        if contains(query, project.title, project.description, *(project.tech or [])):
            results.append({
                'type': 'project', 'id': project.id, 'title': project.title,
                'slug': slugify(project.title), 'excerpt': project.description,
                'thumbnail': project.image,
            })
    for page in Page.query.filter_by(status=STATUS_PUBLISHED).order_by(Page.id):
        if contains(query, page.title, page.content):
            results.append({
                'type': 'page', 'id': page.id, 'title': page.title, 'slug': page.slug,
                'excerpt': page.meta_description, 'thumbnail': page.featured_image,
            })
    for service in Service.query.order_by(Service.id):
        if contains(query, service.title, service.description):
            results.append({
                'type': 'service', 'id': service.id, 'title': service.title,
                'slug': slugify(service.title), 'excerpt': service.description,
                'thumbnail': service.icon,
            })

    # sort is stable, so ties keep the post/project/page/service order
    results.sort(key=lambda r: query not in r['title'].lower())
    return jsonify({'results': results[:limit], 'total': len(results), 'query': query})


# --- Newsletter ---
@api_bp.route('/newsletter/settings', methods=['GET'])
def get_newsletter_settings():
    return jsonify(get_setting('newsletter-settings', DEFAULT_NEWSLETTER_SETTINGS))


@api_bp.route('/newsletter/settings', methods=['POST'])
@admin_required
def save_newsletter_settings():
    setting = upsert_setting('newsletter-settings', json_body())
    log_activity('Updated newsletter settings', user=g.user)
    db.session.commit()
    return jsonify(setting.value)


@api_bp.route('/newsletter/subscribe', methods=['POST'])
def subscribe():
    data = json_body()
    if not data.get('email'):
        raise APIError('Email is required', 400)
    payload = SubscriberCreate.model_validate(data)
    email = payload.email.lower()

    subscriber = Subscriber.query.filter_by(email=email).first()
    if subscriber is None:
        subscriber = Subscriber(email=email, name=payload.name)
        db.session.add(subscriber)
    else:
        subscriber.status = 'active'
        if payload.name:
            subscriber.name = payload.name

    user = current_user()
    log_activity(
        f'User subscribed to newsletter: {email}',
        user=user,
        user_name='Guest',
    )
    db.session.commit()
    logger.info("Newsletter subscription for %s", email)
    return jsonify({'message': 'Successfully subscribed to newsletter'})


@api_bp.route('/newsletter/subscribers', methods=['GET'])
@admin_required
def get_subscribers():
    subscribers = Subscriber.query.order_by(Subscriber.created_at.desc(), Subscriber.id.desc()).all()
    return jsonify([s.to_dict() for s in subscribers])
