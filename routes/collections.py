"""
Collection Routes

Owner-scoped groupings of recipes. Deleting a collection keeps its
recipes and clears their collection reference.
"""

from flask import Blueprint, jsonify

from constants.validation import MAX_LENGTHS
from errors import ValidationError
from models import db, Collection, Recipe
from routes.helpers import json_body
from services.audit import record_event
from services.auth import current_auth, ensure_owned, owned_query, write_access_required
from utils.sanitizer import sanitize_line, sanitize_text

bp = Blueprint('collections', __name__, url_prefix='/api/collections')


def _clean_name(value):
    name = sanitize_line(value, MAX_LENGTHS['collection_name'])
    if not name:
        raise ValidationError("Collection name is required")
    return name


@bp.route('', methods=['GET'])
def list_collections():
    collections = owned_query(Collection).order_by(Collection.name).all()
    counts = dict(
        db.session.query(Recipe.collection_id, db.func.count(Recipe.id))
        .filter(Recipe.collection_id.in_([c.id for c in collections]))
        .group_by(Recipe.collection_id)
        .all()
    ) if collections else {}
    return jsonify([c.to_dict(recipe_count=counts.get(c.id, 0)) for c in collections])


@bp.route('', methods=['POST'])
@write_access_required
def create_collection():
    data = json_body()
    collection = Collection(
        user_id=current_auth().user_id,
        name=_clean_name(data.get('name')),
        description=sanitize_text(data.get('description'), MAX_LENGTHS['description']),
    )
    db.session.add(collection)
    db.session.commit()

    record_event('collection_create', {'collection_id': collection.id, 'name': collection.name})
    return jsonify(collection.to_dict(recipe_count=0)), 201


@bp.route('/<collection_id>', methods=['PUT'])
@write_access_required
def update_collection(collection_id):
    collection = ensure_owned(db.session.get(Collection, collection_id), "Collection not found")
    data = json_body()
    if 'name' in data:
        collection.name = _clean_name(data.get('name'))
    if 'description' in data:
        collection.description = sanitize_text(data.get('description'), MAX_LENGTHS['description'])
    db.session.commit()

    record_event('collection_update', {'collection_id': collection.id, 'name': collection.name})
    return jsonify(collection.to_dict())


@bp.route('/<collection_id>', methods=['DELETE'])
@write_access_required
def delete_collection(collection_id):
    collection = ensure_owned(db.session.get(Collection, collection_id), "Collection not found")

    # Member recipes stay; only their reference is cleared
    Recipe.query.filter_by(collection_id=collection.id).update({'collection_id': None})
    name = collection.name
    db.session.delete(collection)
    db.session.commit()

    record_event('collection_delete', {'collection_id': collection_id, 'name': name})
    return jsonify({'success': True})
