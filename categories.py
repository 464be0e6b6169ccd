from typing import Optional

from rapidfuzz.distance import Levenshtein

from errors import ValidationError
from models import Category

CATEGORY_ICONS: dict[Category, str] = {
    Category.groceries: "🛒",
    Category.rent: "🏠",
    Category.salary: "💰",
    Category.utilities: "💡",
    Category.food_dining: "🍕",
    Category.healthcare: "🏥",
    Category.entertainment: "🎬",
    Category.transportation: "🚗",
    Category.education: "🎓",
    Category.shopping: "👕",
    Category.travel: "✈️",
    Category.technology: "📱",
    Category.gifts: "🎁",
    Category.business: "💼",
    Category.other: "🔧",
}

_BY_NAME: dict[str, Category] = {member.value.lower(): member for member in Category}


def display_label(category: Category) -> str:
    return f"{CATEGORY_ICONS[category]} {category.value}"


def _strip_icon(value: str) -> str:
    # Labels from the web client carry an emoji prefix ("🛒 Groceries").
    idx = 0
    while idx < len(value) and not value[idx].isalnum():
        idx += 1
    return value[idx:].strip()


def suggest_category(value: str) -> Optional[Category]:
    needle = _strip_icon(value).lower()
    if not needle:
        return None
    best_distance: Optional[int] = None
    best: list[Category] = []
    for name, member in _BY_NAME.items():
        dist = int(Levenshtein.distance(needle, name))
        if best_distance is None or dist < best_distance:
            best_distance = dist
            best = [member]
        elif dist == best_distance:
            best.append(member)
    if best_distance is None or best_distance > 3 or len(best) > 1:
        return None
    return best[0]


def parse_category(value: object) -> Category:
    """Resolve a user-supplied label to a Category.

    Matching is exact after dropping an emoji prefix and ignoring case, so
    "🛒 Groceries", "groceries" and "Groceries" are the same category. Near
    misses are rejected with a suggestion rather than silently corrected.
    """
    if isinstance(value, Category):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("category", "Category is required")
    member = _BY_NAME.get(_strip_icon(value).lower())
    if member is not None:
        return member
    suggestion = suggest_category(value)
    if suggestion is not None:
        raise ValidationError(
            "category",
            f"Unknown category '{value.strip()}'; did you mean '{suggestion.value}'?",
        )
    raise ValidationError("category", f"Unknown category '{value.strip()}'")
