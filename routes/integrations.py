"""
Integration Routes

Recipe extraction from uploaded pages, shopping-list consolidation, and
submission to the external recipe manager.
"""

import base64

from flask import Blueprint, current_app, jsonify, request

from constants.validation import ALLOWED_UPLOAD_MIME_TYPES, MAX_UPLOAD_PAGES
from errors import ValidationError
from models import db, Recipe
from routes.helpers import json_body
from services.audit import record_event
from services.auth import ensure_owned, write_access_required
from services.gemini import get_gemini_client
from services.mealie import submit_recipe
from services.settings_store import get_settings_store
from utils.image_handler import decode_payload
from utils.sanitizer import sanitize_string_list

bp = Blueprint('integrations', __name__, url_prefix='/api')


def _uploaded_pages():
    """Pages from multipart 'files' or a JSON body, as (bytes, media type)."""
    pages = []
    files = request.files.getlist('files')
    if files:
        for upload in files:
            raw = upload.read()
            pages.append((base64.b64encode(raw).decode('ascii'), upload.mimetype))
    else:
        data = json_body()
        if data.get('pages'):
            entries = data['pages']
        elif data.get('image_data'):
            entries = [{'data': data['image_data'], 'mime_type': data.get('mime_type')}]
        else:
            entries = []
        if not isinstance(entries, list):
            raise ValidationError("pages must be a list")
        for entry in entries:
            if not isinstance(entry, dict):
                raise ValidationError("Each page must be an object with data and mime_type")
            pages.append((entry.get('data'), entry.get('mime_type')))

    if not pages:
        raise ValidationError("No file uploaded")
    if len(pages) > MAX_UPLOAD_PAGES:
        raise ValidationError(f"At most {MAX_UPLOAD_PAGES} pages per recipe")

    decoded = []
    for payload, mime_type in pages:
        raw, mime_type = decode_payload(payload, mime_type)
        if mime_type not in ALLOWED_UPLOAD_MIME_TYPES:
            raise ValidationError(f"Unsupported file type: {mime_type or 'unknown'}")
        decoded.append((raw, mime_type))
    return decoded


@bp.route('/extract', methods=['POST'])
def extract():
    pages = _uploaded_pages()
    return jsonify(get_gemini_client().extract_recipe(pages))


@bp.route('/shopping-list', methods=['POST'])
def shopping_list():
    data = json_body()
    lists = []

    recipe_ids = data.get('recipe_ids') or []
    if not isinstance(recipe_ids, list):
        raise ValidationError("recipe_ids must be a list")
    for recipe_id in recipe_ids:
        recipe = ensure_owned(db.session.get(Recipe, str(recipe_id)), "Recipe not found")
        lists.append(recipe.ingredients or [])

    raw_lists = data.get('lists') or []
    if not isinstance(raw_lists, list):
        raise ValidationError("lists must be a list of ingredient lists")
    lists.extend(sanitize_string_list(items) for items in raw_lists)

    lists = [items for items in lists if items]
    if not lists:
        raise ValidationError("No ingredients to combine")

    return jsonify({'items': get_gemini_client().consolidate_shopping_list(lists)})


@bp.route('/mealie/submit', methods=['POST'])
@write_access_required
def mealie_submit():
    data = json_body()
    if data.get('recipe_id'):
        recipe = ensure_owned(db.session.get(Recipe, data['recipe_id']), "Recipe not found").to_dict()
    else:
        recipe = data.get('recipe')
    if not isinstance(recipe, dict) or not recipe:
        raise ValidationError("Missing Mealie configuration or recipe data")

    url, token = get_settings_store().integration()
    result = submit_recipe(url, token, recipe,
                           timeout=current_app.config.get('EXTERNAL_REQUEST_TIMEOUT', 60))

    record_event('mealie_submit', {
        'name': recipe.get('name'), 'recipe_id': data.get('recipe_id'), 'mealie_url': url,
    })
    return jsonify(result)
