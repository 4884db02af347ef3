from flask import current_app, request

from .errors import ValidationError


def get_newsdesk():
    """The Newsdesk extension bound to the current app"""
    return current_app.extensions['newsdesk']


def int_arg(name, default, minimum=None, maximum=None):
    """Integer query-string argument; anything unparseable is a 400"""
    raw = request.args.get(name)
    if raw is None or raw == '':
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer")
    if minimum is not None and value < minimum:
        raise ValidationError(f"{name} must be at least {minimum}")
    if maximum is not None and value > maximum:
        raise ValidationError(f"{name} must be at most {maximum}")
    return value
