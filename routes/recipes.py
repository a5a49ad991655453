"""
Recipe Routes

CRUD for the caller's recipes (admins see and act on everyone's), plus
share links, markdown export and nutrition analysis.
"""

import re
import secrets

from flask import Blueprint, Response, jsonify, request, url_for

from constants.validation import MAX_LENGTHS, MAX_RECIPE_IMAGES
from errors import ValidationError
from models import db, Collection, Recipe, RecipeImage
from routes.helpers import json_body
from services.audit import record_event
from services.auth import current_auth, ensure_owned, owned_query, write_access_required
from services.export import recipe_to_markdown
from services.gemini import get_gemini_client
from utils.image_handler import prepare_stored_image
from utils.params import safe_int
from utils.sanitizer import (
    sanitize_recipe_name, sanitize_string_list, sanitize_tags, sanitize_text
)

bp = Blueprint('recipes', __name__, url_prefix='/api/recipes')


def _get_recipe(recipe_id):
    return ensure_owned(db.session.get(Recipe, recipe_id), "Recipe not found")


def _check_collection(collection_id, owner_id):
    """A recipe may only join a collection of the same owner."""
    if not collection_id:
        return None
    collection = db.session.get(Collection, collection_id)
    if collection is None or collection.user_id != owner_id:
        raise ValidationError("Collection not found")
    return collection.id


def _apply_fields(recipe, data, owner_id):
    """Copy the fields present in the payload onto the recipe."""
    if 'name' in data:
        recipe.name = sanitize_recipe_name(data.get('name'), MAX_LENGTHS['recipe_name'])
    if 'description' in data:
        recipe.description = sanitize_text(data.get('description'), MAX_LENGTHS['description'])
    if 'ingredients' in data:
        recipe.ingredients = sanitize_string_list(
            data.get('ingredients'), max_length=MAX_LENGTHS['ingredient_line'])
    if 'instructions' in data:
        recipe.instructions = sanitize_string_list(
            data.get('instructions'), max_length=MAX_LENGTHS['instruction_line'])
    if 'tags' in data:
        recipe.tags = sanitize_tags(data.get('tags'))
    if 'servings' in data:
        recipe.servings = safe_int(data.get('servings'), default=None, min_val=1, max_val=1000)
    if 'nutrition_info' in data:
        nutrition = data.get('nutrition_info')
        if nutrition is not None and not isinstance(nutrition, dict):
            raise ValidationError("nutrition_info must be an object")
        recipe.nutrition_info = nutrition
    if 'collection_id' in data:
        recipe.collection_id = _check_collection(data.get('collection_id'), owner_id)

    if 'image_data' in data:
        if data.get('image_data'):
            recipe.image_data, recipe.mime_type = prepare_stored_image(
                data['image_data'], data.get('mime_type'))
        else:
            recipe.image_data, recipe.mime_type = None, None

    if 'images' in data:
        pages = data.get('images') or []
        if not isinstance(pages, list) or len(pages) > MAX_RECIPE_IMAGES:
            raise ValidationError(f"images must be a list of at most {MAX_RECIPE_IMAGES} pages")
        recipe.images = []
        for position, page in enumerate(pages):
            if not isinstance(page, dict):
                raise ValidationError("Each image must be an object with data and mime_type")
            image_data, mime_type = prepare_stored_image(page.get('data'), page.get('mime_type'))
            recipe.images.append(RecipeImage(image_data=image_data, mime_type=mime_type,
                                             position=position))


# ============================================
# ROUTES - RECIPES
# ============================================

@bp.route('', methods=['GET'])
def list_recipes():
    query = owned_query(Recipe)

    collection_id = request.args.get('collection_id')
    if collection_id:
        query = query.filter(Recipe.collection_id == collection_id)

    search = (request.args.get('q') or '').strip()
    if search:
        query = query.filter(Recipe.name.ilike(f"%{search}%"))

    recipes = query.order_by(Recipe.created_at.desc()).all()

    tag = (request.args.get('tag') or '').strip().lower()
    if tag:
        recipes = [recipe for recipe in recipes if tag in (recipe.tags or [])]

    return jsonify([recipe.to_dict() for recipe in recipes])


@bp.route('', methods=['POST'])
@write_access_required
def create_recipe():
    data = json_body()
    if not sanitize_text(data.get('name')):
        raise ValidationError("Recipe name is required")

    owner_id = current_auth().user_id
    recipe = Recipe(user_id=owner_id, ingredients=[], instructions=[], tags=[])
    _apply_fields(recipe, data, owner_id)
    db.session.add(recipe)
    db.session.commit()

    record_event('recipe_create', {'recipe_id': recipe.id, 'name': recipe.name})
    return jsonify({'id': recipe.id}), 201


@bp.route('/<recipe_id>', methods=['GET'])
def get_recipe(recipe_id):
    return jsonify(_get_recipe(recipe_id).to_dict(include_images=True))


@bp.route('/<recipe_id>', methods=['PUT'])
@write_access_required
def update_recipe(recipe_id):
    recipe = _get_recipe(recipe_id)
    data = json_body()
    if 'name' in data and not sanitize_text(data.get('name')):
        raise ValidationError("Recipe name is required")

    _apply_fields(recipe, data, recipe.user_id)
    db.session.commit()

    fields = sorted(key for key in data if key not in ('image_data', 'images'))
    record_event('recipe_update', {'recipe_id': recipe.id, 'fields': fields})
    return jsonify(recipe.to_dict(include_images=True))


@bp.route('/<recipe_id>', methods=['DELETE'])
@write_access_required
def delete_recipe(recipe_id):
    recipe = _get_recipe(recipe_id)
    details = {'recipe_id': recipe.id, 'name': recipe.name, 'owner_id': recipe.user_id}

    # Images and meal plan entries go with it (ON DELETE CASCADE)
    db.session.delete(recipe)
    db.session.commit()

    record_event('recipe_delete', details)
    return jsonify({'success': True})


# ============================================
# ROUTES - SHARING / EXPORT
# ============================================

@bp.route('/<recipe_id>/share', methods=['POST'])
@write_access_required
def share_recipe(recipe_id):
    recipe = _get_recipe(recipe_id)
    if not recipe.public_token:
        token = secrets.token_urlsafe(24)
        while Recipe.query.filter_by(public_token=token).first():
            token = secrets.token_urlsafe(24)
        recipe.public_token = token
        db.session.commit()
        record_event('recipe_share', {'recipe_id': recipe.id})

    return jsonify({
        'token': recipe.public_token,
        'url': url_for('public.shared_recipe', token=recipe.public_token, _external=True),
    })


@bp.route('/<recipe_id>/share', methods=['DELETE'])
@write_access_required
def unshare_recipe(recipe_id):
    recipe = _get_recipe(recipe_id)
    if recipe.public_token:
        recipe.public_token = None
        db.session.commit()
        record_event('recipe_unshare', {'recipe_id': recipe.id})
    return jsonify({'success': True})


@bp.route('/<recipe_id>/markdown')
def export_markdown(recipe_id):
    recipe = _get_recipe(recipe_id)
    slug = re.sub(r'[^a-z0-9]+', '-', recipe.name.lower()).strip('-') or 'recipe'
    return Response(
        recipe_to_markdown(recipe),
        mimetype='text/markdown',
        headers={'Content-Disposition': f'attachment; filename="{slug}.md"'},
    )


@bp.route('/<recipe_id>/nutrition', methods=['POST'])
@write_access_required
def analyze_nutrition(recipe_id):
    recipe = _get_recipe(recipe_id)
    nutrition = get_gemini_client().analyze_nutrition(
        recipe.name, recipe.ingredients or [], recipe.instructions or [], recipe.servings)

    recipe.nutrition_info = nutrition
    db.session.commit()

    record_event('nutrition_analyze', {'recipe_id': recipe.id})
    return jsonify(nutrition)
