"""
Categories Routes
=================
"""

from flask import request, jsonify, g

from newsdesk.core.context import get_newsdesk, int_arg
from newsdesk.core.logging_service import db_log
from newsdesk.modules.auth.decorators import auth_required
from . import categories_bp


@categories_bp.route('', methods=['GET'])
def list_categories():
    return jsonify({'error': False, 'data': get_newsdesk().categories.list_categories()})


@categories_bp.route('/<int:category_id>', methods=['GET'])
def get_category(category_id):
    return jsonify({'error': False, 'data': get_newsdesk().categories.get(category_id)})


@categories_bp.route('/<int:category_id>/articles', methods=['GET'])
def category_articles(category_id):
    newsdesk = get_newsdesk()
    newsdesk.categories.get(category_id)
    result = newsdesk.articles.list_articles(
        page=int_arg('page', 1, minimum=1),
        limit=int_arg('limit', 10, minimum=1, maximum=100),
        category_id=category_id,
    )
    return jsonify({'error': False, 'data': result})


@categories_bp.route('', methods=['POST'])
@auth_required('admin', 'editor')
def create_category():
    category = get_newsdesk().categories.create(request.get_json(silent=True))
    return jsonify({'error': False, 'message': 'Category created successfully', 'data': category}), 201


@categories_bp.route('/<int:category_id>', methods=['PUT'])
@auth_required('admin', 'editor')
def update_category(category_id):
    category = get_newsdesk().categories.update(category_id, request.get_json(silent=True))
    return jsonify({'error': False, 'message': 'Category updated successfully', 'data': category})


@categories_bp.route('/<int:category_id>', methods=['DELETE'])
@auth_required('admin')
def delete_category(category_id):
    get_newsdesk().categories.delete(category_id)
    db_log('info', 'categories', 'Category deleted', {'category_id': category_id, 'user_id': g.current_user['id']})
    return jsonify({'error': False, 'message': 'Category deleted successfully'})
