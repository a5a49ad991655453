"""
Recipe Models

Contains the Recipe and RecipeImage models. Ingredients, instructions,
tags and nutrition are stored as JSON text.
"""

from .base import db, new_id, JSONText


class Recipe(db.Model):
    """Digitized recipe owned by a single user."""
    __tablename__ = 'recipes'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'), index=True)
    name = db.Column(db.Text, nullable=False)
    description = db.Column(db.Text)
    ingredients = db.Column(JSONText, default=list)
    instructions = db.Column(JSONText, default=list)
    # Primary image: base64 payload plus its media type
    image_data = db.Column(db.Text)
    mime_type = db.Column(db.String(100))
    tags = db.Column(JSONText, default=list)
    collection_id = db.Column(db.String(36), db.ForeignKey('collections.id', ondelete='SET NULL'),
                              nullable=True)
    nutrition_info = db.Column(JSONText, nullable=True)
    servings = db.Column(db.Integer, nullable=True)
    public_token = db.Column(db.String(64), unique=True, index=True, nullable=True)
    created_at = db.Column(db.DateTime, server_default=db.func.current_timestamp())

    images = db.relationship('RecipeImage', backref='recipe', lazy=True,
                             order_by='RecipeImage.position',
                             cascade='all, delete-orphan', passive_deletes=True)

    def to_dict(self, include_images=False):
        data = {
            'id': self.id,
            'user_id': self.user_id,
            'name': self.name,
            'description': self.description or '',
            'ingredients': self.ingredients or [],
            'instructions': self.instructions or [],
            'image_data': self.image_data,
            'mime_type': self.mime_type,
            'tags': self.tags or [],
            'collection_id': self.collection_id,
            'nutrition_info': self.nutrition_info,
            'servings': self.servings,
            'public_token': self.public_token,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
        if include_images:
            data['images'] = [image.to_dict() for image in self.images]
        return data

    def to_public_dict(self):
        """Fields visible through a share link (no owner or token)."""
        return {
            'name': self.name,
            'description': self.description or '',
            'ingredients': self.ingredients or [],
            'instructions': self.instructions or [],
            'image_data': self.image_data,
            'mime_type': self.mime_type,
            'tags': self.tags or [],
            'nutrition_info': self.nutrition_info,
            'servings': self.servings,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class RecipeImage(db.Model):
    """Additional page image of a multi-page recipe."""
    __tablename__ = 'recipe_images'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    recipe_id = db.Column(db.String(36), db.ForeignKey('recipes.id', ondelete='CASCADE'),
                          nullable=False, index=True)
    image_data = db.Column(db.Text, nullable=False)
    mime_type = db.Column(db.String(100), nullable=False)
    position = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, server_default=db.func.current_timestamp())

    def to_dict(self):
        return {
            'id': self.id,
            'image_data': self.image_data,
            'mime_type': self.mime_type,
            'position': self.position,
        }
