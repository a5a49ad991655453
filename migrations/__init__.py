"""
Startup schema reconciliation.

Brings any earlier revision of the SQLite database up to the schema the
models describe. Runs once, before the app serves requests.
"""

from .reconcile import (
    MIGRATION_STEPS,
    MigrationStep,
    SchemaReconcileError,
    reconcile_database,
)

__all__ = [
    'MIGRATION_STEPS',
    'MigrationStep',
    'SchemaReconcileError',
    'reconcile_database',
]
