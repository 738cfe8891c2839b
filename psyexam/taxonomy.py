"""Question taxonomy: categories, sub-categories, topics and review statuses."""
from __future__ import annotations

import enum


class Category(str, enum.Enum):
    """Exam section a question set belongs to."""

    QUANTITATIVE = "quantitative"
    VERBAL = "verbal"
    ENGLISH = "english"


class Difficulty(str, enum.Enum):
    """Difficulty tag of a question or a question set."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class SetStatus(str, enum.Enum):
    """Review status of a question set."""

    INITIAL = "initial"  # First-pass check
    PENDING = "pending"  # Waiting for peer review
    APPROVED = "approved"


CATEGORY_LABELS: dict[str, str] = {
    Category.QUANTITATIVE.value: "כמותי",
    Category.VERBAL.value: "מילולי",
    Category.ENGLISH.value: "אנגלית",
}

SUBCATEGORY_OPTIONS: dict[str, list[dict[str, str]]] = {
    Category.VERBAL.value: [
        {"label": "אנלוגיות", "value": "analogies"},
        {"label": "השלמת משפטים", "value": "sentence_completions"},
        {"label": "טענות", "value": "logic"},
        {"label": "הבנת משפט", "value": "sentence_understanding"},
        {"label": "הבנת פסקה", "value": "paragraph_understanding"},
        {"label": "משלים והשוואות", "value": "fables_comparisons"},
        {"label": "מחזק/מחליש", "value": "strengthen_weaken"},
        {"label": "חשיבה מדעית", "value": "scientific_thinking"},
        {"label": "כללים ושיבוצים", "value": "rules_assignments"},
        {"label": "הבנת הנקרא", "value": "reading_comprehension_verbal"},
    ],
    Category.QUANTITATIVE.value: [
        {"label": "אלגברה", "value": "algebra"},
        {"label": "בעיות", "value": "problems"},
        {"label": "גאומטריה", "value": "geometry"},
        {"label": "הסקה מתרשים", "value": "chart_inference"},
    ],
    Category.ENGLISH.value: [
        {"label": "Sentence Completions", "value": "sentence_completions_eng"},
        {"label": "Restatements", "value": "restatements"},
        {"label": "Reading Comprehension", "value": "reading_comprehension_eng"},
    ],
}

# Only sub-categories listed here have a topic taxonomy
TOPIC_OPTIONS: dict[str, list[dict[str, str]]] = {
    "algebra": [
        {"label": "משוואות", "value": "equations"},
        {"label": "אי-שוויונים", "value": "inequalities"},
        {"label": "חזקות ושורשים", "value": "powers_roots"},
        {"label": "אחוזים", "value": "percentages"},
        {"label": "פעולות מוגדרות", "value": "defined_operations"},
    ],
    "problems": [
        {"label": "תנועה", "value": "motion"},
        {"label": "הספק", "value": "work_rate"},
        {"label": "קומבינטוריקה", "value": "combinatorics"},
        {"label": "הסתברות", "value": "probability"},
        {"label": "ממוצעים", "value": "averages"},
    ],
    "geometry": [
        {"label": "משולשים", "value": "triangles"},
        {"label": "מעגלים", "value": "circles"},
        {"label": "מרובעים", "value": "quadrilaterals"},
        {"label": "גופים", "value": "solids"},
        {"label": "מערכת צירים", "value": "coordinates"},
    ],
}

LIMIT_OPTIONS: list[int | str] = [5, 10, 15, 20, "all"]

READING_SUBCATEGORIES = frozenset(
    {"reading_comprehension_verbal", "reading_comprehension_eng"}
)
CHART_SUBCATEGORY = "chart_inference"


def category_values() -> set[str]:
    return {c.value for c in Category}


def difficulty_values() -> set[str]:
    return {d.value for d in Difficulty}


def subcategories_for(category: str) -> set[str]:
    """Sub-category values belonging to a category."""
    return {opt["value"] for opt in SUBCATEGORY_OPTIONS.get(category, [])}


def topics_for(subcategory: str | None) -> set[str]:
    """Valid topic values for a sub-category (empty when it has no topics)."""
    if not subcategory:
        return set()
    return {opt["value"] for opt in TOPIC_OPTIONS.get(subcategory, [])}


def taxonomy_payload() -> dict[str, object]:
    """Serializable taxonomy for selection and authoring forms."""
    return {
        "categories": [
            {"label": CATEGORY_LABELS[c.value], "value": c.value} for c in Category
        ],
        "subcategories": SUBCATEGORY_OPTIONS,
        "topics": TOPIC_OPTIONS,
        "difficulties": [d.value for d in Difficulty],
        "statuses": [s.value for s in SetStatus],
        "limits": LIMIT_OPTIONS,
    }
