"""
Schema Reconciler

Runs a fixed, ordered list of idempotent steps that take a database file in
any earlier state (missing, integer primary keys, missing columns, no
admin) to the current schema. Safe to run on every start.

Steps that hit an unexpected error raise SchemaReconcileError; the app
factory lets it propagate so the server never starts on a schema it
cannot vouch for.
"""

import logging
from contextlib import contextmanager
from typing import Callable, NamedTuple

from sqlalchemy import text
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from models import db, new_id, Recipe, User
from services.passwords import check_password, hash_password

logger = logging.getLogger(__name__)

# Columns added by later revisions: (table, column, column definition)
REVISION_COLUMNS = (
    ('users', 'can_edit_mealie', 'BOOLEAN NOT NULL DEFAULT 0'),
    ('users', 'require_password_change', 'BOOLEAN NOT NULL DEFAULT 0'),
    ('recipes', 'description', 'TEXT'),
    ('recipes', 'image_data', 'TEXT'),
    ('recipes', 'mime_type', 'VARCHAR(100)'),
    ('recipes', 'tags', "TEXT DEFAULT '[]'"),
    ('recipes', 'collection_id', 'VARCHAR(36) REFERENCES collections (id) ON DELETE SET NULL'),
    ('recipes', 'nutrition_info', 'TEXT'),
    ('recipes', 'public_token', 'VARCHAR(64)'),
    ('recipes', 'servings', 'INTEGER'),
)

DEFAULT_SETTINGS = (
    ('passwordMinLength', '10'),
    ('passwordRequireSpecial', '1'),
    ('passwordRequireNumber', '1'),
)

# Generated identifiers are 36-character UUID strings
MIN_GENERATED_ID_LENGTH = 30

# Columns elsewhere that point at users.id / recipes.id
USER_REFERENCES = (
    ('recipes', 'user_id'),
    ('collections', 'user_id'),
    ('meal_plan', 'user_id'),
    ('audit_logs', 'user_id'),
    ('sessions', 'user_id'),
)
RECIPE_REFERENCES = (
    ('meal_plan', 'recipe_id'),
    ('recipe_images', 'recipe_id'),
)


class SchemaReconcileError(Exception):
    """Raised when the database cannot be brought to the current schema."""
    pass


class MigrationStep(NamedTuple):
    version: str
    name: str
    apply: Callable


@contextmanager
def sqlite_transaction(conn):
    """Explicit BEGIN/COMMIT so schema changes are covered by the transaction.

    The sqlite3 driver only opens transactions implicitly before DML, so DDL
    would otherwise autocommit statement by statement.
    """
    conn.commit()
    conn.exec_driver_sql('BEGIN')
    try:
        yield conn
        conn.commit()
    except BaseException:
        conn.rollback()
        raise


def _table_columns(conn, table):
    rows = conn.exec_driver_sql(f'PRAGMA table_info({table})').fetchall()
    return {row[1]: row[2] for row in rows}


def _copy_row(conn, table, row, columns):
    """Insert a row mapping, keeping only the target table's columns.

    NULLs are left out for columns with a server default so legacy rows
    pick up the current defaults.
    """
    values = {}
    for column in columns:
        if column.name not in row:
            continue
        value = row[column.name]
        if value is None and column.server_default is not None:
            continue
        values[column.name] = value
    names = ', '.join(values)
    params = ', '.join(f':{name}' for name in values)
    conn.execute(text(f'INSERT INTO {table} ({names}) VALUES ({params})'), values)


def _rewrite_references(conn, references, id_map):
    for table, column in references:
        for old_id, new_value in id_map.items():
            conn.execute(
                text(f'UPDATE {table} SET {column} = :new WHERE {column} = :old'),
                {'new': new_value, 'old': old_id},
            )


def _revoke_sessions_for(conn, username):
    conn.execute(text(
        'DELETE FROM sessions WHERE user_id IN (SELECT id FROM users WHERE username = :username)'
    ), {'username': username})


# ============================================
# STEPS
# ============================================

def create_base_tables(engine, config):
    """Create every table that does not exist yet; existing ones are untouched."""
    db.metadata.create_all(engine)


def add_revision_columns(engine, config):
    """Add columns introduced by later revisions.

    Only SQLite's duplicate-column error counts as already applied; anything
    else is a real failure.
    """
    with engine.connect() as conn:
        for table, column, definition in REVISION_COLUMNS:
            try:
                conn.exec_driver_sql(f'ALTER TABLE {table} ADD COLUMN {column} {definition}')
                conn.commit()
                logger.info("Added column %s.%s", table, column)
            except OperationalError as exc:
                conn.rollback()
                if 'duplicate column name' not in str(exc.orig).lower():
                    raise
                logger.debug("Column %s.%s already present", table, column)

        conn.exec_driver_sql(
            'CREATE UNIQUE INDEX IF NOT EXISTS ix_recipes_public_token ON recipes (public_token)'
        )
        conn.commit()


def migrate_integer_ids(engine, config):
    """Rebuild users and recipes with opaque string ids if users.id is an integer.

    Runs as a single transaction: either every row moves to the new tables
    and the old ones are dropped, or nothing changes.
    """
    with engine.connect() as conn:
        id_type = _table_columns(conn, 'users').get('id', '')
        if 'INT' not in (id_type or '').upper():
            return

        logger.info("Migrating users table from INTEGER to TEXT ids...")
        # Keep FK clauses in other tables pointing at "users"/"recipes" by name
        conn.exec_driver_sql('PRAGMA foreign_keys=OFF')
        conn.exec_driver_sql('PRAGMA legacy_alter_table=ON')
        try:
            with sqlite_transaction(conn):
                conn.exec_driver_sql('ALTER TABLE users RENAME TO users_old')
                conn.exec_driver_sql('ALTER TABLE recipes RENAME TO recipes_old')

                # Named indexes travel with the renamed tables and would clash
                old_indexes = conn.exec_driver_sql(
                    "SELECT name FROM sqlite_master WHERE type = 'index' "
                    "AND tbl_name IN ('users_old', 'recipes_old') AND sql IS NOT NULL"
                ).fetchall()
                for (index_name,) in old_indexes:
                    conn.exec_driver_sql(f'DROP INDEX "{index_name}"')

                User.__table__.create(conn)
                Recipe.__table__.create(conn)

                user_ids = {}
                old_users = conn.execute(text('SELECT * FROM users_old')).mappings().all()
                for row in old_users:
                    new_user_id = new_id()
                    user_ids[str(row['id'])] = new_user_id
                    _copy_row(conn, 'users', dict(row, id=new_user_id), User.__table__.columns)

                recipe_ids = {}
                old_recipes = conn.execute(text('SELECT * FROM recipes_old')).mappings().all()
                for row in old_recipes:
                    new_recipe_id = new_id()
                    recipe_ids[str(row['id'])] = new_recipe_id
                    owner = user_ids.get(str(row.get('user_id')))
                    if owner is None:
                        logger.warning("Recipe %s references unknown user %s",
                                       row['id'], row.get('user_id'))
                    _copy_row(conn, 'recipes', dict(row, id=new_recipe_id, user_id=owner),
                              Recipe.__table__.columns)

                _rewrite_references(conn, USER_REFERENCES[1:], user_ids)
                _rewrite_references(conn, RECIPE_REFERENCES, recipe_ids)

                conn.exec_driver_sql('DROP TABLE users_old')
                conn.exec_driver_sql('DROP TABLE recipes_old')

                for table in ('users', 'recipes', 'collections', 'meal_plan',
                              'recipe_images', 'sessions'):
                    problems = conn.exec_driver_sql(f'PRAGMA foreign_key_check({table})').fetchall()
                    if problems:
                        raise SchemaReconcileError(
                            f"Foreign key check failed for {table} after id migration: {problems[:5]}"
                        )
        finally:
            conn.exec_driver_sql('PRAGMA legacy_alter_table=OFF')
            conn.exec_driver_sql('PRAGMA foreign_keys=ON')
            conn.commit()

        logger.info("Migrated %d users and %d recipes to string ids",
                    len(user_ids), len(recipe_ids))


def backfill_user_ids(engine, config):
    """Give any user whose id is not a generated string a fresh one.

    Each user is updated together with every row that references it; a row
    that fails is logged and retried on the next start.
    """
    with engine.connect() as conn:
        stale = conn.execute(text(
            "SELECT id FROM users WHERE typeof(id) != 'text' OR length(id) < :min_length"
        ), {'min_length': MIN_GENERATED_ID_LENGTH}).scalars().all()

        for old_id in stale:
            new_user_id = new_id()
            try:
                with sqlite_transaction(conn):
                    conn.exec_driver_sql('PRAGMA defer_foreign_keys=ON')
                    conn.execute(text('UPDATE users SET id = :new WHERE id = :old'),
                                 {'new': new_user_id, 'old': old_id})
                    _rewrite_references(conn, USER_REFERENCES, {old_id: new_user_id})
                logger.info("Assigned new id to user %s", old_id)
            except SQLAlchemyError as exc:
                logger.warning("Could not backfill id for user %s: %s", old_id, exc)


def seed_settings(engine, config):
    """Insert default password policy values without overwriting existing ones."""
    with engine.begin() as conn:
        for key, value in DEFAULT_SETTINGS:
            conn.execute(text('INSERT OR IGNORE INTO settings (key, value) VALUES (:key, :value)'),
                         {'key': key, 'value': value})


def ensure_bootstrap_admin(engine, config):
    """Make sure an admin exists, and retire old default admin passwords."""
    username = config.get('DEFAULT_ADMIN_USERNAME', 'admin')
    password = config.get('DEFAULT_ADMIN_PASSWORD', 'Admin@12345')
    rounds = config.get('BCRYPT_ROUNDS', 12)

    with engine.begin() as conn:
        admin_exists = conn.execute(
            text("SELECT 1 FROM users WHERE role = 'admin' LIMIT 1")
        ).first()

        if not admin_exists:
            name_taken = conn.execute(
                text('SELECT 1 FROM users WHERE username = :username'), {'username': username}
            ).first()
            if name_taken:
                # Promote the existing account rather than clash on the unique username
                conn.execute(text(
                    "UPDATE users SET role = 'admin', password = :password, "
                    'can_edit_mealie = 1, require_password_change = 1 WHERE username = :username'
                ), {'password': hash_password(password, rounds), 'username': username})
                _revoke_sessions_for(conn, username)
                logger.warning("No admin found; promoted '%s' and reset its password to: %s",
                               username, password)
                return

            conn.execute(text(
                'INSERT INTO users (id, username, password, role, can_edit_mealie, require_password_change) '
                "VALUES (:id, :username, :password, 'admin', 1, 1)"
            ), {'id': new_id(), 'username': username, 'password': hash_password(password, rounds)})
            logger.warning("Created default admin user '%s' with password: %s", username, password)
            return

        current_hash = conn.execute(
            text("SELECT password FROM users WHERE username = :username AND role = 'admin'"),
            {'username': username},
        ).scalar()
        if current_hash is None:
            return

        legacy = config.get('LEGACY_ADMIN_PASSWORDS', ())
        if any(check_password(old, current_hash) for old in legacy):
            conn.execute(text(
                'UPDATE users SET password = :password, require_password_change = 1 '
                "WHERE username = :username AND role = 'admin'"
            ), {'password': hash_password(password, rounds), 'username': username})
            _revoke_sessions_for(conn, username)
            logger.warning("Admin password reset to the current default; change required on next login")


MIGRATION_STEPS = (
    MigrationStep('001', 'create base tables', create_base_tables),
    MigrationStep('002', 'add revision columns', add_revision_columns),
    MigrationStep('003', 'integer to string primary keys', migrate_integer_ids),
    MigrationStep('004', 'backfill user ids', backfill_user_ids),
    MigrationStep('005', 'seed settings', seed_settings),
    MigrationStep('006', 'bootstrap admin', ensure_bootstrap_admin),
)


def reconcile_database(engine, config):
    """Run every migration step in order. Raises SchemaReconcileError on failure."""
    logger.info("Reconciling database schema...")
    for step in MIGRATION_STEPS:
        logger.debug("Migration %s: %s", step.version, step.name)
        try:
            step.apply(engine, config)
        except SchemaReconcileError:
            raise
        except Exception as exc:
            raise SchemaReconcileError(
                f"Migration {step.version} ({step.name}) failed: {exc}"
            ) from exc
    logger.info("Database schema is up to date")
