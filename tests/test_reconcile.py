"""
Tests for the startup schema reconciler.
Legacy databases are built with the sqlite3 module, the way older
releases left them on disk.
"""

import sqlite3

import pytest
from sqlalchemy import create_engine, text

from migrations import reconcile as reconcile_module
from migrations import SchemaReconcileError, reconcile_database
from services.passwords import check_password, hash_password

CONFIG = {
    'DEFAULT_ADMIN_USERNAME': 'admin',
    'DEFAULT_ADMIN_PASSWORD': 'Admin@12345',
    'LEGACY_ADMIN_PASSWORDS': ('admin123', 'admin'),
    'BCRYPT_ROUNDS': 4,
}

LEGACY_SCHEMA = """
CREATE TABLE users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    username TEXT UNIQUE NOT NULL,
    password TEXT NOT NULL,
    role TEXT DEFAULT 'user',
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP
);
CREATE TABLE recipes (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER,
    name TEXT NOT NULL,
    ingredients TEXT,
    instructions TEXT,
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (user_id) REFERENCES users (id)
);
"""


@pytest.fixture()
def db_file(tmp_path):
    return tmp_path / 'legacy.db'


@pytest.fixture()
def engine(db_file):
    engine = create_engine(f'sqlite:///{db_file}')
    yield engine
    engine.dispose()


def _build_legacy_db(path):
    conn = sqlite3.connect(path)
    conn.executescript(LEGACY_SCHEMA)
    conn.execute("INSERT INTO users (id, username, password, role) VALUES (1, 'admin', ?, 'admin')",
                 (hash_password('admin123', rounds=4),))
    conn.execute("INSERT INTO users (id, username, password, role) VALUES (2, 'bob', ?, 'user')",
                 (hash_password('BobPassword1!', rounds=4),))
    conn.execute("""INSERT INTO recipes (id, user_id, name, ingredients, instructions)
                    VALUES (1, 2, 'Pancakes', '["flour", "milk"]', '["mix", "fry"]')""")
    conn.execute("""INSERT INTO recipes (id, user_id, name, ingredients, instructions)
                    VALUES (2, 2, 'Soup', '["water"]', '["boil"]')""")
    conn.execute("""INSERT INTO recipes (id, user_id, name, ingredients, instructions)
                    VALUES (3, 1, 'Toast', '["bread"]', '["toast"]')""")
    conn.commit()
    conn.close()


def _schema(engine):
    with engine.connect() as conn:
        return conn.execute(text(
            "SELECT type, name, tbl_name, sql FROM sqlite_master ORDER BY type, name"
        )).fetchall()


def _row_counts(engine):
    with engine.connect() as conn:
        tables = conn.execute(text(
            "SELECT name FROM sqlite_master WHERE type = 'table' ORDER BY name"
        )).scalars().all()
        return {table: conn.execute(text(f'SELECT COUNT(*) FROM "{table}"')).scalar()
                for table in tables}


def _columns(engine, table):
    with engine.connect() as conn:
        rows = conn.exec_driver_sql(f'PRAGMA table_info({table})').fetchall()
    return {row[1]: row[2] for row in rows}


# ============================================
# FRESH DATABASE
# ============================================

def test_fresh_database_gets_schema_settings_and_admin(engine):
    """An empty file ends up with every table, default settings and one admin."""
    reconcile_database(engine, CONFIG)

    with engine.connect() as conn:
        tables = set(conn.execute(text(
            "SELECT name FROM sqlite_master WHERE type = 'table'"
        )).scalars())
        settings = dict(conn.execute(text('SELECT key, value FROM settings')).fetchall())
        admins = conn.execute(text(
            "SELECT username, password, require_password_change FROM users WHERE role = 'admin'"
        )).fetchall()

    assert {'users', 'recipes', 'collections', 'meal_plan', 'recipe_images',
            'settings', 'audit_logs', 'sessions'} <= tables
    assert settings == {
        'passwordMinLength': '10',
        'passwordRequireSpecial': '1',
        'passwordRequireNumber': '1',
    }
    assert len(admins) == 1
    username, password_hash, require_change = admins[0]
    assert username == 'admin'
    assert check_password('Admin@12345', password_hash)
    assert require_change == 1


def test_second_run_changes_nothing(engine):
    """Running the reconciler again leaves schema and rows as they were."""
    reconcile_database(engine, CONFIG)
    schema, counts = _schema(engine), _row_counts(engine)

    reconcile_database(engine, CONFIG)

    assert _schema(engine) == schema
    assert _row_counts(engine) == counts


def test_existing_settings_are_not_overwritten(engine):
    reconcile_database(engine, CONFIG)
    with engine.begin() as conn:
        conn.execute(text("UPDATE settings SET value = '14' WHERE key = 'passwordMinLength'"))

    reconcile_database(engine, CONFIG)

    with engine.connect() as conn:
        value = conn.execute(text(
            "SELECT value FROM settings WHERE key = 'passwordMinLength'"
        )).scalar()
    assert value == '14'


# ============================================
# LEGACY DATABASES
# ============================================

def test_integer_ids_are_migrated_with_ownership_intact(db_file, engine):
    """Integer-keyed users and recipes move to string ids, keeping who owns what."""
    _build_legacy_db(db_file)

    reconcile_database(engine, CONFIG)

    assert 'INT' not in _columns(engine, 'users')['id'].upper()
    with engine.connect() as conn:
        users = dict(conn.execute(text('SELECT username, id FROM users')).fetchall())
        recipes = conn.execute(text(
            'SELECT r.name, u.username, r.ingredients FROM recipes r '
            'JOIN users u ON u.id = r.user_id ORDER BY r.name'
        )).fetchall()
        leftovers = conn.execute(text(
            "SELECT name FROM sqlite_master WHERE name LIKE '%_old'"
        )).fetchall()
        problems = conn.exec_driver_sql('PRAGMA foreign_key_check').fetchall()

    assert set(users) == {'admin', 'bob'}
    assert all(isinstance(user_id, str) and len(user_id) == 36 for user_id in users.values())
    assert [(name, owner) for name, owner, _ in recipes] == [
        ('Pancakes', 'bob'), ('Soup', 'bob'), ('Toast', 'admin'),
    ]
    assert recipes[0][2] == '["flour", "milk"]'
    assert leftovers == []
    assert problems == []


def test_legacy_rows_pick_up_new_column_defaults(db_file, engine):
    _build_legacy_db(db_file)

    reconcile_database(engine, CONFIG)

    assert {'can_edit_mealie', 'require_password_change'} <= set(_columns(engine, 'users'))
    assert {'tags', 'collection_id', 'nutrition_info', 'public_token', 'servings',
            'description', 'image_data', 'mime_type'} <= set(_columns(engine, 'recipes'))
    with engine.connect() as conn:
        bob = conn.execute(text(
            "SELECT can_edit_mealie, require_password_change FROM users WHERE username = 'bob'"
        )).one()
    assert tuple(bob) == (0, 0)


def test_legacy_admin_password_is_reset(db_file, engine):
    """An admin still on an old default password is moved to the current one."""
    _build_legacy_db(db_file)

    reconcile_database(engine, CONFIG)

    with engine.connect() as conn:
        password_hash, require_change = conn.execute(text(
            "SELECT password, require_password_change FROM users WHERE username = 'admin'"
        )).one()
    assert check_password('Admin@12345', password_hash)
    assert not check_password('admin123', password_hash)
    assert require_change == 1


def test_migrated_database_is_stable(db_file, engine):
    _build_legacy_db(db_file)
    reconcile_database(engine, CONFIG)
    schema, counts = _schema(engine), _row_counts(engine)

    reconcile_database(engine, CONFIG)

    assert _schema(engine) == schema
    assert _row_counts(engine) == counts


def test_changed_admin_password_is_left_alone(engine):
    reconcile_database(engine, CONFIG)
    custom_hash = hash_password('MyOwnPassword9!', rounds=4)
    with engine.begin() as conn:
        conn.execute(text(
            "UPDATE users SET password = :password, require_password_change = 0 "
            "WHERE username = 'admin'"
        ), {'password': custom_hash})

    reconcile_database(engine, CONFIG)

    with engine.connect() as conn:
        password_hash, require_change = conn.execute(text(
            "SELECT password, require_password_change FROM users WHERE username = 'admin'"
        )).one()
    assert password_hash == custom_hash
    assert require_change == 0


def test_short_user_ids_are_backfilled_with_references(db_file, engine):
    """A hand-made short id is replaced everywhere it is referenced."""
    reconcile_database(engine, CONFIG)
    conn = sqlite3.connect(db_file)
    conn.execute("INSERT INTO users (id, username, password, role) VALUES ('u1', 'carol', 'x', 'user')")
    conn.execute("INSERT INTO collections (id, user_id, name) VALUES ('c1', 'u1', 'Soups')")
    conn.execute("""INSERT INTO recipes (id, user_id, name, ingredients, instructions, tags)
                    VALUES ('r1', 'u1', 'Stew', '[]', '[]', '[]')""")
    conn.commit()
    conn.close()

    reconcile_database(engine, CONFIG)

    with engine.connect() as conn:
        carol_id = conn.execute(text("SELECT id FROM users WHERE username = 'carol'")).scalar()
        recipe_owner = conn.execute(text("SELECT user_id FROM recipes WHERE id = 'r1'")).scalar()
        collection_owner = conn.execute(text("SELECT user_id FROM collections WHERE id = 'c1'")).scalar()
    assert len(carol_id) == 36
    assert recipe_owner == carol_id
    assert collection_owner == carol_id


def test_partially_upgraded_table_gets_missing_columns(db_file, engine):
    """A string-keyed users table from a mid-life release only gains columns."""
    conn = sqlite3.connect(db_file)
    conn.execute("""CREATE TABLE users (
        id VARCHAR(36) PRIMARY KEY, username VARCHAR(80) UNIQUE NOT NULL,
        password VARCHAR(255) NOT NULL, role VARCHAR(20) NOT NULL DEFAULT 'user',
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP)""")
    conn.execute("INSERT INTO users (id, username, password, role) VALUES (?, 'dave', 'x', 'user')",
                 ('0' * 36,))
    conn.commit()
    conn.close()

    reconcile_database(engine, CONFIG)

    with engine.connect() as conn:
        dave = conn.execute(text(
            "SELECT id, require_password_change FROM users WHERE username = 'dave'"
        )).one()
    assert tuple(dave) == ('0' * 36, 0)


# ============================================
# FAILURES
# ============================================

def test_failed_id_migration_leaves_legacy_tables_intact(db_file, engine):
    """A row the new schema refuses rolls the whole rebuild back."""
    conn = sqlite3.connect(db_file)
    conn.executescript(LEGACY_SCHEMA.replace('password TEXT NOT NULL', 'password TEXT'))
    conn.execute("INSERT INTO users (id, username, password, role) VALUES (1, 'admin', ?, 'admin')",
                 (hash_password('admin123', rounds=4),))
    conn.execute("INSERT INTO users (id, username, password, role) VALUES (2, 'ghost', NULL, 'user')")
    conn.execute("""INSERT INTO recipes (id, user_id, name, ingredients, instructions)
                    VALUES (1, 2, 'Porridge', '["oats"]', '["stir"]')""")
    conn.commit()
    conn.close()

    with pytest.raises(SchemaReconcileError) as excinfo:
        reconcile_database(engine, CONFIG)

    assert '003' in str(excinfo.value)
    assert 'INT' in _columns(engine, 'users')['id'].upper()
    with engine.connect() as conn:
        users = conn.execute(text('SELECT id, username FROM users ORDER BY id')).fetchall()
        recipe_owner = conn.execute(text('SELECT user_id FROM recipes WHERE id = 1')).scalar()
        leftovers = conn.execute(text(
            "SELECT name FROM sqlite_master WHERE name LIKE '%_old'"
        )).fetchall()
    assert [tuple(row) for row in users] == [(1, 'admin'), (2, 'ghost')]
    assert recipe_owner == 2
    assert leftovers == []


def test_missing_admin_promotes_account_holding_the_name(engine):
    """With no admin left, the account already named like the default admin is promoted."""
    reconcile_database(engine, CONFIG)
    with engine.begin() as conn:
        admin_id = conn.execute(text("SELECT id FROM users WHERE username = 'admin'")).scalar()
        conn.execute(text(
            "UPDATE users SET role = 'user', password = :password, require_password_change = 0 "
            "WHERE id = :id"
        ), {'password': hash_password('Whatever123!', rounds=4), 'id': admin_id})
        conn.execute(text(
            'INSERT INTO sessions (id, user_id, created_at, last_seen_at) '
            'VALUES (:token, :user_id, CURRENT_TIMESTAMP, CURRENT_TIMESTAMP)'
        ), {'token': 'stale-token', 'user_id': admin_id})

    reconcile_database(engine, CONFIG)

    with engine.connect() as conn:
        rows = conn.execute(text(
            "SELECT id, role, password, require_password_change FROM users WHERE username = 'admin'"
        )).fetchall()
        sessions = conn.execute(text('SELECT COUNT(*) FROM sessions')).scalar()
    assert len(rows) == 1
    user_id, role, password_hash, require_change = rows[0]
    assert user_id == admin_id
    assert role == 'admin'
    assert check_password('Admin@12345', password_hash)
    assert require_change == 1
    assert sessions == 0


def test_password_repair_skips_non_admin_with_default_name(engine):
    """Only an admin account is moved off a legacy password."""
    reconcile_database(engine, CONFIG)
    legacy_hash = hash_password('admin123', rounds=4)
    with engine.begin() as conn:
        conn.execute(text("UPDATE users SET username = 'root' WHERE username = 'admin'"))
        conn.execute(text(
            "INSERT INTO users (id, username, password, role) VALUES (:id, 'admin', :password, 'user')"
        ), {'id': '1' * 36, 'password': legacy_hash})

    reconcile_database(engine, CONFIG)

    with engine.connect() as conn:
        role, password_hash, require_change = conn.execute(text(
            "SELECT role, password, require_password_change FROM users WHERE username = 'admin'"
        )).one()
    assert role == 'user'
    assert password_hash == legacy_hash
    assert require_change == 0


def test_unexpected_error_aborts_startup(engine, monkeypatch):
    """Only duplicate-column errors are tolerated; anything else is fatal."""
    monkeypatch.setattr(reconcile_module, 'REVISION_COLUMNS',
                        (('no_such_table', 'extra', 'TEXT'),))

    with pytest.raises(SchemaReconcileError) as excinfo:
        reconcile_database(engine, CONFIG)

    assert '002' in str(excinfo.value)


def test_app_factory_propagates_reconcile_failure(db_path, monkeypatch):
    from app import create_app

    monkeypatch.setattr(reconcile_module, 'REVISION_COLUMNS',
                        (('no_such_table', 'extra', 'TEXT'),))

    with pytest.raises(SchemaReconcileError):
        create_app('testing', {'SQLALCHEMY_DATABASE_URI': f'sqlite:///{db_path}'})
