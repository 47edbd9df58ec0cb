"""
MES rec_name Parsing

The MES exposes work cycles with a human readable ``rec_name`` that often is
the only link between a cycle and its work order / manufacturing order, e.g.:

    "WO12345 - Assembly | MO67890"
    "Cutting - Fabric | Courtney Banh | MO67890"
"""

import re
from dataclasses import dataclass
from typing import Optional

_MO_PATTERN = re.compile(r'MO(\d+)', re.IGNORECASE)
_WO_PATTERN = re.compile(r'WO(\d+)', re.IGNORECASE)


@dataclass(frozen=True)
class ParsedRecName:
    """Identifiers extracted from a rec_name string"""
    full_rec_name: str
    work_order_number: Optional[str] = None
    mo_number: Optional[str] = None
    operation: Optional[str] = None


def parse_rec_name(rec_name: Optional[str]) -> ParsedRecName:
    """
    Extract WO/MO numbers and the operation label from a rec_name.

    Args:
        rec_name: rec_name text from the MES (may be None)

    Returns:
        ParsedRecName; missing parts are None

    Example:
        >>> parse_rec_name("WO12345 - Assembly | MO67890").mo_number
        'MO67890'
    """
    if not rec_name:
        return ParsedRecName(full_rec_name=rec_name or "")

    parts = [part.strip() for part in rec_name.split('|')]

    mo_number = None
    work_order_number = None
    for part in parts:
        mo_match = _MO_PATTERN.search(part)
        if mo_match:
            mo_number = f"MO{mo_match.group(1)}"
        wo_match = _WO_PATTERN.search(part)
        if wo_match:
            work_order_number = f"WO{wo_match.group(1)}"

    # Operation is the first segment without its WO prefix
    operation = _WO_PATTERN.sub('', parts[0]).strip(' -') or None
    if operation and _MO_PATTERN.fullmatch(operation):
        operation = None

    return ParsedRecName(
        full_rec_name=rec_name,
        work_order_number=work_order_number,
        mo_number=mo_number,
        operation=operation
    )
