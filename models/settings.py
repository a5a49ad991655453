"""
Settings Model

Contains the Setting model for application-wide settings storage.
"""

from .base import db


class Setting(db.Model):
    """Key-value storage for application settings."""
    __tablename__ = 'settings'

    key = db.Column(db.String(64), primary_key=True)
    value = db.Column(db.Text)
