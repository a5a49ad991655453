"""
Markdown Export

Renders a recipe as a standalone markdown document.
"""

NUTRITION_LABELS = (
    ('calories', 'Calories', 'kcal'),
    ('protein', 'Protein', 'g'),
    ('carbohydrates', 'Carbohydrates', 'g'),
    ('fat', 'Fat', 'g'),
    ('fiber', 'Fiber', 'g'),
    ('sugar', 'Sugar', 'g'),
)


def _format_number(value):
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def recipe_to_markdown(recipe):
    """Markdown text for a Recipe model instance."""
    lines = [f"# {recipe.name}", ""]

    if recipe.description:
        lines += [recipe.description, ""]

    meta = []
    if recipe.servings:
        meta.append(f"**Servings:** {recipe.servings}")
    if recipe.tags:
        meta.append("**Tags:** " + ', '.join(recipe.tags))
    if meta:
        lines += ['  \n'.join(meta), ""]

    lines += ["## Ingredients", ""]
    lines += [f"- {item}" for item in (recipe.ingredients or [])] or ["_None listed_"]
    lines.append("")

    lines += ["## Instructions", ""]
    lines += [f"{i}. {step}" for i, step in enumerate(recipe.instructions or [], 1)] or ["_None listed_"]
    lines.append("")

    nutrition = recipe.nutrition_info if isinstance(recipe.nutrition_info, dict) else None
    if nutrition:
        lines += ["## Nutrition (per serving)", "", "| Nutrient | Amount |", "| --- | --- |"]
        for key, label, unit in NUTRITION_LABELS:
            if key in nutrition:
                lines.append(f"| {label} | {_format_number(nutrition[key])} {unit} |")
        lines.append("")

    return '\n'.join(lines)
