"""
Vision/LLM Client

Thin wrapper over the google-genai SDK for the three
jobs the app hands off: reading recipe pages, estimating nutrition, and
consolidating shopping lists. Every call has a timeout and any failure is
raised as UpstreamError with the upstream detail attached.
"""

import json
import logging

import httpx
from flask import current_app
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from errors import UpstreamError
from utils.params import safe_int
from utils.sanitizer import sanitize_recipe_name, sanitize_string_list, sanitize_tags, sanitize_text

logger = logging.getLogger(__name__)

EXTRACTION_PROMPT = """
You are an expert at reading handwritten recipes.
Extract the recipe information from the provided images or PDF pages.
All pages belong to the same recipe, in order.
If the text is handwritten, do your best to transcribe it accurately.
Include:
- name: The title of the recipe.
- description: A brief summary or notes about the recipe.
- ingredients: A list of ingredients with their quantities.
- instructions: A step-by-step list of instructions.
- tags: A few short lowercase tags (cuisine, course, main ingredient).
- servings: The number of servings, if stated.
"""

NUTRITION_PROMPT = """
Estimate the nutrition of one serving of this recipe.
Return calories (kcal) and protein, carbohydrates, fat, fiber and sugar in grams.
Recipe name: {name}
Servings: {servings}
Ingredients:
{ingredients}
Instructions:
{instructions}
"""

SHOPPING_PROMPT = """
Combine these ingredient lists from several recipes into one shopping list.
Merge duplicates, add up quantities, and normalize units where possible.
Return one entry per item, like "2 cups flour".
{lists}
"""

RECIPE_SCHEMA = {
    'type': 'OBJECT',
    'properties': {
        'name': {'type': 'STRING'},
        'description': {'type': 'STRING'},
        'ingredients': {'type': 'ARRAY', 'items': {'type': 'STRING'}},
        'instructions': {'type': 'ARRAY', 'items': {'type': 'STRING'}},
        'tags': {'type': 'ARRAY', 'items': {'type': 'STRING'}},
        'servings': {'type': 'INTEGER'},
    },
    'required': ['name', 'ingredients', 'instructions'],
}

NUTRITION_FIELDS = ('calories', 'protein', 'carbohydrates', 'fat', 'fiber', 'sugar')

NUTRITION_SCHEMA = {
    'type': 'OBJECT',
    'properties': {field: {'type': 'NUMBER'} for field in NUTRITION_FIELDS},
    'required': ['calories', 'protein', 'carbohydrates', 'fat'],
}

SHOPPING_SCHEMA = {
    'type': 'OBJECT',
    'properties': {'items': {'type': 'ARRAY', 'items': {'type': 'STRING'}}},
    'required': ['items'],
}


class GeminiClient:
    """Client for one model on the Gemini API."""

    def __init__(self, api_key, model, base_url=None, timeout=60):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url or None
        self.timeout = timeout

    def _sdk_client(self):
        # HttpOptions takes the timeout in milliseconds
        http_options = types.HttpOptions(timeout=int(self.timeout * 1000), base_url=self.base_url)
        return genai.Client(api_key=self.api_key, http_options=http_options)

    def _generate(self, contents, schema):
        """Send one request and return the decoded JSON object the model produced."""
        if not self.api_key:
            raise UpstreamError("AI service is not configured")

        config = types.GenerateContentConfig(
            response_mime_type='application/json',
            response_schema=schema,
        )
        try:
            response = self._sdk_client().models.generate_content(
                model=self.model,
                contents=contents,
                config=config,
            )
        except genai_errors.APIError as e:
            logger.warning("AI service returned %s: %s", e.code, e.message)
            details = e.details.get('error', e.details) if isinstance(e.details, dict) else e.details
            raise UpstreamError("AI service request failed", details=details or e.message)
        except httpx.HTTPError as e:
            logger.warning("AI service request failed: %s", e)
            raise UpstreamError("AI service is unavailable", details=str(e))

        text = response.text
        if not text or not text.strip():
            raise UpstreamError("No usable content in AI response")

        try:
            return json.loads(text)
        except ValueError:
            raise UpstreamError("AI service returned malformed data", details=text[:2000])

    def extract_recipe(self, pages):
        """
        Read one recipe from its page images/PDFs.

        Args:
            pages: list of (raw bytes, media type), in page order

        Returns:
            dict with name, description, ingredients, instructions, tags, servings
        """
        contents = [types.Part.from_bytes(data=raw, mime_type=mime_type) for raw, mime_type in pages]
        contents.append(EXTRACTION_PROMPT)
        data = self._generate(contents, RECIPE_SCHEMA)

        ingredients = sanitize_string_list(data.get('ingredients'))
        instructions = sanitize_string_list(data.get('instructions'))
        if not ingredients and not instructions:
            raise UpstreamError("No recipe could be read from the upload")

        return {
            'name': sanitize_recipe_name(data.get('name')),
            'description': sanitize_text(data.get('description')),
            'ingredients': ingredients,
            'instructions': instructions,
            'tags': sanitize_tags(data.get('tags')),
            'servings': safe_int(data.get('servings'), default=None, min_val=1, max_val=1000),
        }

    def analyze_nutrition(self, name, ingredients, instructions, servings=None):
        """Per-serving nutrition estimate for a recipe."""
        prompt = NUTRITION_PROMPT.format(
            name=name,
            servings=servings or 'unknown',
            ingredients='\n'.join(f"- {line}" for line in ingredients),
            instructions='\n'.join(f"{i}. {line}" for i, line in enumerate(instructions, 1)),
        )
        data = self._generate([prompt], NUTRITION_SCHEMA)

        nutrition = {}
        for field in NUTRITION_FIELDS:
            value = data.get(field)
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                nutrition[field] = round(float(value), 1)
        if 'calories' not in nutrition:
            raise UpstreamError("AI service returned no nutrition estimate", details=data)
        return nutrition

    def consolidate_shopping_list(self, ingredient_lists):
        """Merge several ingredient lists into one de-duplicated list."""
        blocks = []
        for index, ingredients in enumerate(ingredient_lists, 1):
            blocks.append(f"List {index}:\n" + '\n'.join(f"- {line}" for line in ingredients))
        data = self._generate([SHOPPING_PROMPT.format(lists='\n\n'.join(blocks))], SHOPPING_SCHEMA)
        return sanitize_string_list(data.get('items'))


def get_gemini_client():
    """Client configured from the current app."""
    config = current_app.config
    return GeminiClient(
        api_key=config.get('GEMINI_API_KEY'),
        model=config.get('GEMINI_MODEL'),
        base_url=config.get('GEMINI_BASE_URL'),
        timeout=config.get('EXTERNAL_REQUEST_TIMEOUT', 60),
    )
