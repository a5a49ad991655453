"""
Settings Routes

Any signed-in user may read settings; admins and users with the
integration permission may change them.
"""

from flask import Blueprint, jsonify

from routes.helpers import json_body
from services.audit import record_event
from services.auth import settings_editor_required
from services.settings_store import get_settings_store

bp = Blueprint('settings', __name__, url_prefix='/api/settings')


@bp.route('', methods=['GET'])
def read_settings():
    return jsonify(get_settings_store().all())


@bp.route('', methods=['POST'])
@settings_editor_required
def update_settings():
    changed = get_settings_store().update(json_body())
    if changed:
        record_event('settings_update', {'changed': sorted(changed)})
    return jsonify({'success': True, 'changed': sorted(changed)})
