"""
Collection Model

Named, owner-scoped grouping of recipes.
"""

from .base import db, new_id


class Collection(db.Model):
    __tablename__ = 'collections'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'),
                        nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    created_at = db.Column(db.DateTime, server_default=db.func.current_timestamp())

    def to_dict(self, recipe_count=None):
        data = {
            'id': self.id,
            'user_id': self.user_id,
            'name': self.name,
            'description': self.description or '',
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
        if recipe_count is not None:
            data['recipe_count'] = recipe_count
        return data
