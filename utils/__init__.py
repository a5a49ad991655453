# Utility modules for Recipe Digitizer
from .image_handler import (
    decode_payload, prepare_stored_image, validate_and_process_image, ImageValidationError
)
from .params import safe_int, parse_bool
from .sanitizer import (
    sanitize_text, sanitize_line, sanitize_url, sanitize_recipe_name,
    sanitize_string_list, sanitize_tags
)
