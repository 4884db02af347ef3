"""
Short Links Routes
==================

Public:
- GET /s/<slug> -- 301 to the article, click recorded

Staff (bearer token):
- POST /api/short-links/generate
- GET /api/short-links/article/<article_id>
- PUT /api/short-links/<link_id>/status {is_active} (admin, editor)
- GET /api/short-links/analytics/<article_id>?period=30
- GET /api/short-links/dashboard?period=30
- GET /api/short-links/detailed-clicks?period=30&page=1&limit=50
"""

import logging
from flask import request, jsonify, redirect

from newsdesk.core.context import get_newsdesk, int_arg
from newsdesk.core.errors import ValidationError, RateLimited
from newsdesk.modules.auth.decorators import auth_required
from . import short_links_bp, redirect_bp
from .registry import UTM_KEYS
from .resolver import context_from_request, get_client_ip

logger = logging.getLogger(__name__)

STAFF = ('admin', 'editor', 'author')


# ===================
# REDIRECT
# ===================

@redirect_bp.route('/<slug>', methods=['GET'])
def follow_short_link(slug):
    target = get_newsdesk().resolver.resolve(slug, context_from_request(request))
    return redirect(target, code=301)


# ===================
# GENERATION
# ===================

@short_links_bp.route('/generate', methods=['POST'])
@auth_required(*STAFF)
def generate_short_link():
    newsdesk = get_newsdesk()
    if newsdesk.short_link_limiter.is_limited(get_client_ip(request)):
        raise RateLimited('Too many short link generation requests, please try again later.')

    data = request.get_json(silent=True) or {}
    article_id = data.get('article_id')
    if isinstance(article_id, bool) or not isinstance(article_id, (int, str)) or not str(article_id).isdigit():
        raise ValidationError('Article ID is required')

    utm_params = {key: data.get(key) for key in UTM_KEYS}
    link = newsdesk.registry.generate(int(article_id), utm_params)

    return jsonify({
        'error': False,
        'data': {
            'short_link': link['short_link'],
            'short_slug': link['short_slug'],
            'full_url': link['full_url'],
            'click_count': link['click_count'],
            'created_at': link['created_at'],
            'utm': {key: link[key] for key in UTM_KEYS},
        }
    }), 201 if link['created'] else 200


@short_links_bp.route('/article/<int:article_id>', methods=['GET'])
@auth_required(*STAFF)
def article_short_links(article_id):
    links = get_newsdesk().registry.links_for_article(article_id)
    return jsonify({'error': False, 'data': links})


@short_links_bp.route('/<int:link_id>/status', methods=['PUT'])
@auth_required('admin', 'editor')
def set_short_link_status(link_id):
    data = request.get_json(silent=True) or {}
    if not isinstance(data.get('is_active'), bool):
        raise ValidationError('is_active must be true or false')

    link = get_newsdesk().registry.set_active(link_id, data['is_active'])
    return jsonify({'error': False, 'data': link})


# ===================
# ANALYTICS
# ===================

@short_links_bp.route('/analytics/<int:article_id>', methods=['GET'])
@auth_required(*STAFF)
def article_analytics(article_id):
    recorder = get_newsdesk().recorder
    period = int_arg('period', 30, minimum=1, maximum=3650)

    return jsonify({
        'error': False,
        'data': {
            'summary': recorder.summary(article_id, period),
            'referrers': recorder.aggregate('referrer', period, article_id=article_id, limit=10),
            'daily_clicks': recorder.aggregate('day', period, article_id=article_id),
            'geo_data': recorder.aggregate('country', period, article_id=article_id, limit=10),
            'utm': recorder.aggregate('utm', period, article_id=article_id),
        }
    })


@short_links_bp.route('/dashboard', methods=['GET'])
@auth_required('admin', 'editor')
def dashboard():
    recorder = get_newsdesk().recorder
    period = int_arg('period', 30, minimum=1, maximum=3650)

    return jsonify({
        'error': False,
        'data': {
            'total_clicks': recorder.totals(period),
            'top_articles': recorder.aggregate('article', period, limit=10),
            'top_referrers': recorder.aggregate('referrer', period, limit=10),
            'daily_trend': recorder.aggregate('day', period),
            'geo_data': recorder.aggregate('location', period, limit=20),
        }
    })


@short_links_bp.route('/detailed-clicks', methods=['GET'])
@auth_required('admin', 'editor')
def detailed_clicks():
    period = int_arg('period', 30, minimum=1, maximum=3650)
    page = int_arg('page', 1, minimum=1)
    limit = int_arg('limit', 50, minimum=1, maximum=500)

    return jsonify({'error': False, 'data': get_newsdesk().recorder.detailed(period, page, limit)})
