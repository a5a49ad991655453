"""
Public Routes

Endpoints reachable without a session: shared recipes and a health probe.
"""

from flask import Blueprint, jsonify

from errors import NotFoundError
from models import Recipe
from services.auth import public

bp = Blueprint('public', __name__, url_prefix='/api')


@bp.route('/public/recipes/<token>')
@public
def shared_recipe(token):
    recipe = Recipe.query.filter_by(public_token=token).first() if token else None
    if recipe is None:
        raise NotFoundError("Recipe not found")
    return jsonify(recipe.to_public_dict())


@bp.route('/health')
@public
def health():
    return jsonify({'status': 'ok'})
