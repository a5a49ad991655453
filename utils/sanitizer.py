"""
Input Sanitization Module

Cleans user input and model-extracted data before it is stored. Values
are kept as plain text (the client escapes on render), so this strips
control characters, trims and bounds lengths rather than HTML-escaping.
"""

import re
from urllib.parse import urlparse

_CONTROL_CHARS = re.compile(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]')
_LINE_CONTROL_CHARS = re.compile(r'[\x00-\x1f\x7f-\x9f]')


def sanitize_text(text, max_length=10000):
    """
    Sanitize free text (descriptions, notes).

    Keeps newlines and tabs, removes other control characters.

    Args:
        text: The text to sanitize (can be None)
        max_length: Maximum allowed length (default 10000)

    Returns:
        Sanitized string, truncated if necessary
    """
    if text is None:
        return ''

    if not isinstance(text, str):
        text = str(text)

    text = _CONTROL_CHARS.sub('', text).strip()

    if len(text) > max_length:
        text = text[:max_length]

    return text


def sanitize_line(text, max_length=500):
    """Sanitize a single-line value: no control characters, collapsed spaces."""
    if text is None:
        return ''

    if not isinstance(text, str):
        text = str(text)

    text = _LINE_CONTROL_CHARS.sub(' ', text)
    text = re.sub(r'\s+', ' ', text).strip()

    if len(text) > max_length:
        text = text[:max_length]

    return text


def sanitize_recipe_name(name, max_length=200, default='Untitled Recipe'):
    """
    Sanitize a recipe name for storage.

    Returns the default if the name is empty after cleaning.
    """
    name = sanitize_line(name, max_length)
    return name or default


def sanitize_string_list(values, max_items=500, max_length=2000):
    """
    Normalize a list of ingredient or instruction lines.

    Accepts a list of strings, a list of {"text"|"note": ...} objects (as
    some clients and recipe managers send them), or one newline-separated
    string. Empty lines are dropped and order is preserved.
    """
    if values is None:
        return []

    if isinstance(values, str):
        values = values.splitlines()

    if not isinstance(values, (list, tuple)):
        return []

    cleaned = []
    for value in values:
        if isinstance(value, dict):
            value = value.get('text') or value.get('note') or ''
        line = sanitize_text(value, max_length)
        if line:
            cleaned.append(line)
        if len(cleaned) >= max_items:
            break
    return cleaned


def sanitize_tags(values, max_items=30, max_length=40):
    """Lowercase, de-duplicate and bound a list of tags."""
    if values is None:
        return []

    if isinstance(values, str):
        values = values.split(',')

    if not isinstance(values, (list, tuple)):
        return []

    tags = []
    for value in values:
        tag = sanitize_line(value, max_length).lower()
        if tag and tag not in tags:
            tags.append(tag)
        if len(tags) >= max_items:
            break
    return tags


def sanitize_url(url):
    """
    Sanitize a URL by rejecting anything but http(s).

    Args:
        url: The URL to validate (can be None)

    Returns:
        The URL if safe, empty string if unsafe or invalid
    """
    if not url:
        return ''

    if not isinstance(url, str):
        return ''

    url = url.strip()

    try:
        parsed = urlparse(url)
    except ValueError:
        return ''

    if parsed.scheme.lower() not in ('http', 'https') or not parsed.netloc:
        return ''

    return url
