"""
Settings Routes
===============
"""

from flask import request, jsonify

from newsdesk.core.context import get_newsdesk
from newsdesk.core.errors import ValidationError
from newsdesk.core.logging_service import db_log
from newsdesk.modules.auth.decorators import auth_required
from . import settings_bp


@settings_bp.route('', methods=['GET'])
def get_settings():
    settings = get_newsdesk().settings_store.load()
    return jsonify({'error': False, 'data': settings.to_dict()})


@settings_bp.route('', methods=['PUT'])
@auth_required('admin')
def update_settings():
    data = request.get_json(silent=True)
    if data is None:
        raise ValidationError('Request body must be JSON')

    settings = get_newsdesk().settings_store.update(data)
    db_log('info', 'settings', 'Site settings updated', {'keys': sorted(data)})
    return jsonify({'error': False, 'data': settings.to_dict()})
