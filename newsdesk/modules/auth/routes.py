"""
Auth Routes
===========

- POST /api/auth/login -- exchange email/password for a bearer token
- GET /api/auth/me -- the authenticated user
- PUT /api/auth/change-password -- {current_password, new_password}

- GET /api/users -- staff list (admin, editor)
- POST /api/users -- create a staff account (admin; open while no admin exists)
- GET /api/users/<id> -- one account (admin, or the user themself)
- PUT /api/users/<id>/status -- {status: active|inactive} (admin)
"""

import logging
from flask import request, jsonify, g

from newsdesk.core.context import get_newsdesk, int_arg
from newsdesk.core.errors import ValidationError, Unauthorized, Forbidden
from newsdesk.core.logging_service import db_log
from . import auth_bp, users_bp
from .database import validate_password
from .decorators import auth_required, issue_token, load_user_from_request

logger = logging.getLogger(__name__)


@auth_bp.route('/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or {}
    email = (data.get('email') or '').strip()
    password = data.get('password') or ''

    if not email or not password:
        raise ValidationError('Email and password are required')

    user = get_newsdesk().users.verify_user_credentials(email, password)
    if not user:
        db_log('warning', 'auth', 'Failed login attempt', {'email': email})
        raise Unauthorized('Invalid credentials')

    logger.info(f"User {user['email']} logged in")
    return jsonify({
        'error': False,
        'data': {
            'token': issue_token(user),
            'user': user,
        }
    })


@auth_bp.route('/me', methods=['GET'])
@auth_required()
def me():
    return jsonify({'error': False, 'data': g.current_user})


@auth_bp.route('/change-password', methods=['PUT'])
@auth_required()
def change_password():
    data = request.get_json(silent=True) or {}
    if not data.get('current_password') or not data.get('new_password'):
        raise ValidationError('Current password and new password are required')

    get_newsdesk().users.change_password(g.current_user['id'], data['current_password'], data['new_password'])
    db_log('info', 'auth', 'Password changed', {'user_id': g.current_user['id']})
    return jsonify({'error': False, 'message': 'Password changed successfully'})


# ===================
# USER ADMINISTRATION
# ===================

@users_bp.route('', methods=['GET'])
@auth_required('admin', 'editor')
def list_users():
    result = get_newsdesk().users.list_users(
        page=int_arg('page', 1, minimum=1),
        limit=int_arg('limit', 10, minimum=1, maximum=100),
        role=request.args.get('role') or None,
        status=request.args.get('status') or None,
    )
    return jsonify({'error': False, 'data': result})


@users_bp.route('', methods=['POST'])
def create_user():
    """Create a staff account. Bootstrap: with no admin yet, the first account is an admin and needs no token."""
    users = get_newsdesk().users
    data = request.get_json(silent=True) or {}

    if users.count_admins() == 0:
        role = 'admin'
        created_by = None
    else:
        creator = load_user_from_request()
        if creator['role'] != 'admin':
            raise Forbidden()
        role = data.get('role', 'author')
        created_by = creator['id']

    validate_password(data.get('password'))
    user = users.create_user(data.get('name'), data.get('email'), data.get('password'), role=role)
    db_log('info', 'auth', 'User created', {'user_id': user['id'], 'role': role, 'created_by': created_by})
    return jsonify({'error': False, 'message': 'User created successfully', 'data': user}), 201


@users_bp.route('/<int:user_id>', methods=['GET'])
@auth_required()
def get_user(user_id):
    if g.current_user['role'] != 'admin' and g.current_user['id'] != user_id:
        raise Forbidden()
    return jsonify({'error': False, 'data': get_newsdesk().users.get_user(user_id)})


@users_bp.route('/<int:user_id>/status', methods=['PUT'])
@auth_required('admin')
def set_user_status(user_id):
    data = request.get_json(silent=True) or {}
    if user_id == g.current_user['id']:
        raise ValidationError('You cannot change your own status')

    user = get_newsdesk().users.set_status(user_id, data.get('status'))
    db_log('info', 'auth', 'User status changed',
           {'user_id': user_id, 'status': user['status'], 'changed_by': g.current_user['id']})
    return jsonify({'error': False, 'message': 'User status updated successfully', 'data': user})
