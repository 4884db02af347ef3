from datetime import datetime, timedelta, timezone
from functools import wraps

import jwt
from flask import request, current_app, g

from newsdesk.core.context import get_newsdesk
from newsdesk.core.errors import Unauthorized, Forbidden


def issue_token(user):
    """Signed bearer token carrying the user id and role"""
    now = datetime.now(timezone.utc)
    payload = {
        'sub': str(user['id']),
        'role': user['role'],
        'iat': now,
        'exp': now + timedelta(seconds=current_app.config['AUTH_TOKEN_MAX_AGE']),
    }
    return jwt.encode(payload, current_app.config['SECRET_KEY'], algorithm='HS256')


def _bearer_token():
    auth_header = request.headers.get('Authorization', '')
    scheme, _, token = auth_header.partition(' ')
    if scheme.lower() != 'bearer' or not token.strip():
        return None
    return token.strip()


def load_user_from_request():
    """Resolve the bearer token to an active user. Raises Unauthorized."""
    token = _bearer_token()
    if not token:
        raise Unauthorized('Access denied. No token provided.')

    try:
        data = jwt.decode(token, current_app.config['SECRET_KEY'], algorithms=['HS256'])
        user_id = int(data.get('sub'))
    except jwt.ExpiredSignatureError:
        raise Unauthorized('Token has expired')
    except (jwt.InvalidTokenError, TypeError, ValueError):
        raise Unauthorized('Invalid token')

    user = get_newsdesk().users.get_user_by_id(user_id)
    if not user:
        raise Unauthorized('User not found or inactive')
    return user


def current_user():
    """The authenticated user for this request, or None. Resolved on every call."""
    try:
        return load_user_from_request()
    except Unauthorized:
        return None


def auth_required(*roles):
    """Decorator to require a valid bearer token and, optionally, one of roles"""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = load_user_from_request()
            g.current_user = user

            if roles and user['role'] not in roles:
                raise Forbidden()

            return f(*args, **kwargs)
        return decorated_function
    return decorator
