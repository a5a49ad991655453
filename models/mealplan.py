"""
Meal Plan Model

Contains the MealPlanEntry model for planning recipes on calendar days.
"""

from .base import db, new_id


class MealPlanEntry(db.Model):
    """One recipe planned for a date and meal slot."""
    __tablename__ = 'meal_plan'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'),
                        nullable=False, index=True)
    recipe_id = db.Column(db.String(36), db.ForeignKey('recipes.id', ondelete='CASCADE'),
                          nullable=False, index=True)
    plan_date = db.Column(db.Date, nullable=False, index=True)
    meal_type = db.Column(db.String(20), nullable=False, default='Dinner')
    created_at = db.Column(db.DateTime, server_default=db.func.current_timestamp())
    recipe = db.relationship('Recipe')

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'recipe_id': self.recipe_id,
            'recipe_name': self.recipe.name if self.recipe else None,
            'date': self.plan_date.isoformat(),
            'meal_type': self.meal_type,
        }
