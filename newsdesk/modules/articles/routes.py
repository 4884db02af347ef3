"""
Articles Routes
===============

Public:
- GET /api/articles -- published articles (staff may filter by any status)
- GET /api/articles/<id> -- one article; drafts only for staff

Staff (bearer token):
- POST /api/articles, PUT /api/articles/<id> (admin, editor, author)
- DELETE /api/articles/<id> (admin, editor)
- POST /api/articles/<id>/schedule {publish_date} (admin, editor)
- POST /api/articles/<id>/publish (admin, editor)
- POST /api/articles/<id>/unpublish (admin, editor)
"""

import logging
from flask import request, jsonify, g

from newsdesk.core.context import get_newsdesk, int_arg
from newsdesk.core.errors import ValidationError, NotFound
from newsdesk.core.logging_service import db_log
from newsdesk.modules.auth.decorators import auth_required, current_user
from . import articles_bp

logger = logging.getLogger(__name__)


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


def _run_automation(article):
    """Hand a just-published article to the newsletter gate. Publishing already succeeded."""
    try:
        return get_newsdesk().automation.handle_published(article)
    except Exception as e:
        logger.exception(f"Automated newsletter failed for article {article['id']}")
        get_newsdesk().log_service.log_error_with_traceback('newsletter', e, {'article_id': article['id']})
        return {'status': 'failed', 'article_id': article['id'], 'reason': 'Newsletter could not be sent'}


# ===================
# PUBLIC READS
# ===================

@articles_bp.route('', methods=['GET'])
def list_articles():
    user = current_user()
    status = request.args.get('status', 'published')
    if user is None:
        status = 'published'
    elif status == 'all':
        status = None

    featured = request.args.get('featured')
    result = get_newsdesk().articles.list_articles(
        page=int_arg('page', 1, minimum=1),
        limit=int_arg('limit', 10, minimum=1, maximum=100),
        status=status,
        category_id=int_arg('category_id', None),
        search=(request.args.get('search') or '').strip() or None,
        featured=None if featured is None else featured.lower() in ('1', 'true'),
        author_id=int_arg('author_id', None),
    )
    return jsonify({'error': False, 'data': result})


@articles_bp.route('/<int:article_id>', methods=['GET'])
def get_article(article_id):
    store = get_newsdesk().articles
    article = store.get(article_id)

    if article['status'] != 'published':
        if current_user() is None:
            raise NotFound('Article not found')
        return jsonify({'error': False, 'data': article})

    store.increment_views(article_id)
    article['views'] += 1
    return jsonify({'error': False, 'data': article})


# ===================
# CRUD
# ===================

@articles_bp.route('', methods=['POST'])
@auth_required('admin', 'editor', 'author')
def create_article():
    data = _json_body()
    article = get_newsdesk().articles.create(data, author_id=g.current_user['id'])

    body = {'error': False, 'message': 'Article created successfully', 'data': article}
    if article['status'] == 'published':
        body['newsletter'] = _run_automation(article)
    return jsonify(body), 201


@articles_bp.route('/<int:article_id>', methods=['PUT'])
@auth_required('admin', 'editor', 'author')
def update_article(article_id):
    data = _json_body()
    store = get_newsdesk().articles
    before = store.get(article_id)
    article = store.update(article_id, data, user=g.current_user)

    body = {'error': False, 'message': 'Article updated successfully', 'data': article}
    if before['status'] != 'published' and article['status'] == 'published':
        body['newsletter'] = _run_automation(article)
    return jsonify(body)


@articles_bp.route('/<int:article_id>', methods=['DELETE'])
@auth_required('admin', 'editor')
def delete_article(article_id):
    get_newsdesk().articles.delete(article_id)
    db_log('info', 'articles', 'Article deleted', {'article_id': article_id, 'user_id': g.current_user['id']})
    return jsonify({'error': False, 'message': 'Article deleted successfully'})


# ===================
# STATUS TRANSITIONS
# ===================

@articles_bp.route('/<int:article_id>/schedule', methods=['POST'])
@auth_required('admin', 'editor')
def schedule_article(article_id):
    data = _json_body()
    if not data.get('publish_date'):
        raise ValidationError('publish_date is required')

    article = get_newsdesk().articles.schedule(article_id, data['publish_date'])
    return jsonify({'error': False, 'message': 'Article scheduled successfully', 'data': article})


@articles_bp.route('/<int:article_id>/publish', methods=['POST'])
@auth_required('admin', 'editor')
def publish_article(article_id):
    article, transitioned = get_newsdesk().articles.publish(article_id)

    body = {'error': False, 'message': 'Article published successfully', 'data': article}
    if transitioned:
        body['newsletter'] = _run_automation(article)
        db_log('info', 'articles', 'Article published', {'article_id': article_id, 'user_id': g.current_user['id']})
    else:
        body['message'] = 'Article was already published'
    return jsonify(body)


@articles_bp.route('/<int:article_id>/unpublish', methods=['POST'])
@auth_required('admin', 'editor')
def unpublish_article(article_id):
    article = get_newsdesk().articles.unpublish(article_id)
    return jsonify({'error': False, 'message': 'Article unpublished successfully', 'data': article})
