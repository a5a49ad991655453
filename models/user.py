"""
User Model

Accounts, roles, and the per-user flags the authorization layer reads.
"""

from flask_login import UserMixin

from .base import db, new_id

ROLE_ADMIN = 'admin'
ROLE_USER = 'user'
ROLE_READONLY = 'readonly'


class User(UserMixin, db.Model):
    """Application account. The password column holds a bcrypt hash.

    Flask-Login identifies a login by its server-side session token, not
    the user id, so that token is what get_id() returns once set.
    """
    __tablename__ = 'users'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    username = db.Column(db.String(80), unique=True, nullable=False)
    password_hash = db.Column('password', db.String(255), nullable=False)
    role = db.Column(db.String(20), nullable=False, default=ROLE_USER, server_default=ROLE_USER)
    # Permission to edit the external recipe-manager integration settings
    can_edit_mealie = db.Column(db.Boolean, nullable=False, default=False, server_default='0')
    require_password_change = db.Column(db.Boolean, nullable=False, default=False, server_default='0')
    created_at = db.Column(db.DateTime, server_default=db.func.current_timestamp())

    recipes = db.relationship('Recipe', backref='owner', lazy=True,
                              cascade='all, delete-orphan', passive_deletes=True)
    collections = db.relationship('Collection', backref='owner', lazy=True,
                                  cascade='all, delete-orphan', passive_deletes=True)
    meal_plan_entries = db.relationship('MealPlanEntry', backref='owner', lazy=True,
                                        cascade='all, delete-orphan', passive_deletes=True)
    sessions = db.relationship('UserSession', backref='user', lazy=True,
                               cascade='all, delete-orphan', passive_deletes=True)

    # Token of the session this instance was loaded through
    session_token = None

    def get_id(self):
        return self.session_token or self.id

    def to_dict(self, include_created=False):
        data = {
            'id': self.id,
            'username': self.username,
            'role': self.role,
            'can_edit_mealie': 1 if self.can_edit_mealie else 0,
            'require_password_change': 1 if self.require_password_change else 0,
        }
        if include_created:
            data['created_at'] = self.created_at.isoformat() if self.created_at else None
        return data
