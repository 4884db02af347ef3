"""
Subscribers Routes
==================

Public:
- POST /subscribe -- subscribe or reactivate
- POST /unsubscribe -- soft delete

Admin / editor:
- GET / -- paginated list (?page, limit, status, search)
- GET /stats -- subscriber counts
- DELETE /<id> -- hard delete (admin)
- POST /send-campaign -- manual newsletter to every active subscriber
- GET /campaigns -- campaign history
"""

import logging
from flask import request, jsonify, g

from newsdesk.core.context import get_newsdesk, int_arg
from newsdesk.core.errors import ValidationError
from newsdesk.core.logging_service import db_log
from newsdesk.modules.auth.decorators import auth_required
from . import subscribers_bp

logger = logging.getLogger(__name__)


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


# ===================
# PUBLIC
# ===================

@subscribers_bp.route('/subscribe', methods=['POST'])
def subscribe():
    data = _json_body()
    newsdesk = get_newsdesk()
    subscriber, outcome = newsdesk.subscribers.subscribe(data.get('email'), data.get('name'))
    brand = newsdesk.settings_store.load().site_name

    if outcome == 'reactivated':
        message = 'Welcome back! Your subscription has been reactivated.'
        status_code = 200
    else:
        message = f'Thank you for subscribing to the {brand} newsletter!'
        status_code = 201
        db_log('info', 'subscribers', 'New subscriber', {'email': subscriber['email']})

    return jsonify({'error': False, 'message': message, 'data': subscriber}), status_code


@subscribers_bp.route('/unsubscribe', methods=['POST'])
def unsubscribe():
    data = _json_body()
    get_newsdesk().subscribers.unsubscribe(data.get('email'))
    return jsonify({
        'error': False,
        'message': 'You have been successfully unsubscribed from our newsletter.'
    })


# ===================
# ADMIN
# ===================

@subscribers_bp.route('', methods=['GET'])
@auth_required('admin', 'editor')
def list_subscribers():
    result = get_newsdesk().subscribers.list_subscribers(
        page=int_arg('page', 1, minimum=1),
        limit=int_arg('limit', 20, minimum=1, maximum=500),
        status=request.args.get('status') or None,
        search=request.args.get('search') or None,
    )
    return jsonify({'error': False, 'data': result['subscribers'], 'pagination': result['pagination']})


@subscribers_bp.route('/stats', methods=['GET'])
@auth_required('admin', 'editor')
def subscriber_stats():
    return jsonify({'error': False, 'data': get_newsdesk().subscribers.stats()})


@subscribers_bp.route('/<int:subscriber_id>', methods=['DELETE'])
@auth_required('admin')
def delete_subscriber(subscriber_id):
    get_newsdesk().subscribers.delete(subscriber_id)
    db_log('info', 'subscribers', 'Subscriber deleted', {'subscriber_id': subscriber_id})
    return jsonify({'error': False, 'message': 'Subscriber deleted successfully.'})


@subscribers_bp.route('/send-campaign', methods=['POST'])
@auth_required('admin', 'editor')
def send_campaign():
    data = _json_body()
    subject = (data.get('subject') or '').strip()
    content = (data.get('content') or '').strip()
    if not subject or not content:
        raise ValidationError('Subject and content are required')

    newsdesk = get_newsdesk()
    recipients = newsdesk.subscribers.active_recipients()
    if not recipients:
        raise ValidationError('No active subscribers found.')

    result = newsdesk.dispatcher.send(subject, content, recipients,
                                      campaign_type='manual', sent_by=g.current_user['id'])
    return jsonify({
        'error': False,
        'message': f"Newsletter sent successfully! Sent: {result['sent_count']}, Failed: {result['failed_count']}",
        'data': result,
    })


@subscribers_bp.route('/campaigns', methods=['GET'])
@auth_required('admin', 'editor')
def list_campaigns():
    result = get_newsdesk().dispatcher.list_campaigns(
        page=int_arg('page', 1, minimum=1),
        limit=int_arg('limit', 20, minimum=1, maximum=200),
    )
    return jsonify({'error': False, 'data': result['campaigns'], 'pagination': result['pagination']})
