"""
Meal Plan Routes

Calendar of planned recipes per user.
"""

from datetime import date

from flask import Blueprint, jsonify, request

from constants.validation import VALID_MEAL_TYPES
from errors import ValidationError
from models import db, MealPlanEntry, Recipe
from routes.helpers import json_body
from services.audit import record_event
from services.auth import current_auth, ensure_owned, owned_query, write_access_required

bp = Blueprint('mealplan', __name__, url_prefix='/api/meal-plan')


def _parse_date(value, field):
    try:
        return date.fromisoformat(str(value))
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a date (YYYY-MM-DD)")


@bp.route('', methods=['GET'])
def list_entries():
    query = owned_query(MealPlanEntry)
    if request.args.get('start'):
        query = query.filter(MealPlanEntry.plan_date >= _parse_date(request.args['start'], 'start'))
    if request.args.get('end'):
        query = query.filter(MealPlanEntry.plan_date <= _parse_date(request.args['end'], 'end'))
    entries = query.order_by(MealPlanEntry.plan_date, MealPlanEntry.meal_type).all()
    return jsonify([entry.to_dict() for entry in entries])


@bp.route('', methods=['POST'])
@write_access_required
def add_entry():
    data = json_body()
    recipe = ensure_owned(db.session.get(Recipe, data.get('recipe_id') or ''), "Recipe not found")
    meal_type = data.get('meal_type') or 'Dinner'
    if meal_type not in VALID_MEAL_TYPES:
        raise ValidationError(f"Invalid meal type: {meal_type}")

    entry = MealPlanEntry(
        user_id=current_auth().user_id,
        recipe_id=recipe.id,
        plan_date=_parse_date(data.get('date'), 'date'),
        meal_type=meal_type,
    )
    db.session.add(entry)
    db.session.commit()

    record_event('meal_plan_add', {
        'entry_id': entry.id, 'recipe_id': recipe.id, 'date': entry.plan_date.isoformat(),
    })
    return jsonify(entry.to_dict()), 201


@bp.route('/<entry_id>', methods=['DELETE'])
@write_access_required
def remove_entry(entry_id):
    entry = ensure_owned(db.session.get(MealPlanEntry, entry_id), "Meal plan entry not found")
    details = {'entry_id': entry.id, 'recipe_id': entry.recipe_id}
    db.session.delete(entry)
    db.session.commit()

    record_event('meal_plan_remove', details)
    return jsonify({'success': True})
