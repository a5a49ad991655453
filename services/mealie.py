"""
External Recipe Manager (Mealie) Submission

Posts a recipe to a Mealie instance with bearer-token auth.
"""

import logging

import requests

from errors import UpstreamError, ValidationError
from utils.sanitizer import sanitize_string_list

logger = logging.getLogger(__name__)


def build_payload(recipe):
    """Shape a recipe the way Mealie's recipe endpoint expects it."""
    return {
        'name': recipe.get('name') or 'Untitled Recipe',
        'description': recipe.get('description') or '',
        'recipeIngredient': [
            {'note': line} for line in sanitize_string_list(recipe.get('ingredients'))
        ],
        'recipeInstructions': [
            {'text': line} for line in sanitize_string_list(recipe.get('instructions'))
        ],
    }


def submit_recipe(base_url, token, recipe, timeout=30):
    """
    Submit a recipe to Mealie.

    Args:
        base_url: Mealie base URL (trailing slash optional)
        token: API bearer token
        recipe: dict with name, description, ingredients, instructions
        timeout: Request timeout in seconds

    Returns:
        The decoded response body (or raw text if it is not JSON)

    Raises:
        ValidationError: If the integration is not configured
        UpstreamError: If Mealie rejects the request; its error body is kept
    """
    if not base_url or not token:
        raise ValidationError("Missing Mealie configuration or recipe data")

    url = f"{base_url.rstrip('/')}/api/recipes"
    try:
        response = requests.post(
            url,
            json=build_payload(recipe),
            headers={
                'Authorization': f"Bearer {token}",
                'Content-Type': 'application/json',
            },
            timeout=timeout,
        )
    except requests.RequestException as e:
        logger.warning("Mealie request failed: %s", e)
        raise UpstreamError("Failed to submit to Mealie", details=str(e))

    try:
        body = response.json()
    except ValueError:
        body = response.text

    if response.status_code >= 400:
        logger.warning("Mealie returned %s", response.status_code)
        raise UpstreamError("Failed to submit to Mealie", details=body)

    return body
