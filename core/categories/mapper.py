"""
Work Center Category Mapping

Maps free-text work center labels reported by the MES onto the fixed set of
reporting categories (Cutting, Assembly, Packaging).

Rules are an ordered list of (substring, category) pairs. The first rule whose
substring occurs in the lower-cased label wins, so more specific keywords must
come before broader ones if they would otherwise collide.
"""

from typing import List, Optional, Sequence, Tuple

CUTTING = "Cutting"
ASSEMBLY = "Assembly"
PACKAGING = "Packaging"

CATEGORIES: Tuple[str, ...] = (CUTTING, ASSEMBLY, PACKAGING)

CategoryRule = Tuple[str, str]

# Order matters: first match wins
CATEGORY_RULES: Tuple[CategoryRule, ...] = (
    # Cutting: cutting tables, laser and webbing cutters
    ("cut", CUTTING),
    ("laser", CUTTING),
    ("webbing", CUTTING),
    # Assembly: sewing, rope, embroidery and small hardware operations
    ("sew", ASSEMBLY),
    ("assembly", ASSEMBLY),
    ("rope", ASSEMBLY),
    ("embroidery", ASSEMBLY),
    ("grommet", ASSEMBLY),
    ("zipper", ASSEMBLY),
    # Packaging
    ("pack", PACKAGING),
    ("snap", PACKAGING),
    ("final", PACKAGING),
)


def map_category(
    raw_label: Optional[str],
    rules: Sequence[CategoryRule] = CATEGORY_RULES
) -> Optional[str]:
    """
    Map a raw work center label to its canonical category.

    Args:
        raw_label: Work center name as reported by the source system
        rules: Ordered (substring, category) rules, defaults to CATEGORY_RULES

    Returns:
        Category name, or None when no rule matches

    Example:
        >>> map_category("Laser Cutting Table")
        'Cutting'
        >>> map_category("Sewing - LH")
        'Assembly'
    """
    if not raw_label or not isinstance(raw_label, str):
        return None

    label = raw_label.lower().strip()

    for keyword, category in rules:
        if keyword in label:
            return category

    return None


def get_all_categories() -> List[str]:
    """Get all canonical work center categories"""
    return list(CATEGORIES)


def is_valid_category(raw_label: Optional[str]) -> bool:
    """Check if a work center label maps to a reporting category"""
    return map_category(raw_label) is not None
