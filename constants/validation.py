"""
Validation Constants

Contains whitelist values for validating user input and
ensuring data integrity.
"""

# Valid account roles
VALID_ROLES = {'admin', 'user', 'readonly'}

# Valid meal types for meal planning
VALID_MEAL_TYPES = {'Breakfast', 'Lunch', 'Dinner', 'Dessert', 'Snack'}

# Media types accepted for recipe pages sent to extraction
ALLOWED_UPLOAD_MIME_TYPES = {
    'image/jpeg', 'image/png', 'image/webp', 'image/gif',
    'image/heic', 'image/heif', 'application/pdf',
}

# Maximum pages per extraction request
MAX_UPLOAD_PAGES = 10

# Maximum extra page images stored per recipe
MAX_RECIPE_IMAGES = 10

# Maximum field lengths
MAX_LENGTHS = {
    'username': 80,
    'recipe_name': 200,
    'collection_name': 200,
    'description': 10000,
    'ingredient_line': 2000,
    'instruction_line': 5000,
}

# Audit log paging
DEFAULT_AUDIT_PAGE_SIZE = 100
MAX_AUDIT_PAGE_SIZE = 500
