"""
Manufacturing Order Reference Data

Supplies the declared quantity and routing of a manufacturing order when the
observation record does not carry them. The reference-data collaborator only
has to satisfy the ReferenceData protocol; StaticReferenceData is a
dictionary-backed implementation with product-code prefix rules.
"""

import logging
from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from core.observations.models import RawObservation

logger = logging.getLogger(__name__)

# Ordered (prefix, routing) rules; more specific prefixes first
PRODUCT_ROUTING_RULES: Tuple[Tuple[str, str], ...] = (
    ("LHA-", "Lifetime Air Harness"),
    ("LHP-", "Lifetime Pro Harness"),
    ("LH-", "Lifetime Harness"),
    ("LCA-", "Lifetime Lite Collar"),
    ("LCP-", "Lifetime Pro Collar"),
    ("LLA-", "LLA"),
    ("LP-", "Lifetime Pouch"),
    ("LC-", "Lifetime Collar"),
    ("LL-", "Lifetime Leash"),
    ("LBB-", "Belt Bag"),
    ("BAN-", "Lifetime Bandana"),
    ("PB-", "Poop Bags"),
    ("KL-", "Lite Kit"),
    ("K-", "Lifetime Kit"),
)


class ReferenceData(Protocol):
    """Contract of the reference-data collaborator"""

    def mo_quantity(self, mo_id: str) -> Optional[float]:
        ...

    def routing_for(self, mo_id: Optional[str], product_code: Optional[str]) -> Optional[str]:
        ...


class StaticReferenceData:
    """In-memory reference data: MO quantities, MO routings, product codes."""

    def __init__(
        self,
        mo_quantities: Optional[Dict[str, float]] = None,
        mo_routings: Optional[Dict[str, str]] = None,
        product_routings: Optional[Dict[str, str]] = None,
        prefix_rules: Sequence[Tuple[str, str]] = PRODUCT_ROUTING_RULES
    ):
        self._mo_quantities = dict(mo_quantities or {})
        self._mo_routings = dict(mo_routings or {})
        self._product_routings = dict(product_routings or {})
        self._prefix_rules = tuple(prefix_rules)

    def mo_quantity(self, mo_id: str) -> Optional[float]:
        """Declared quantity of a manufacturing order, if known"""
        return self._mo_quantities.get(mo_id)

    def routing_for(self, mo_id: Optional[str], product_code: Optional[str]) -> Optional[str]:
        """
        Resolve the routing of a manufacturing order.

        Lookup order: MO routing table, exact product code, product code prefix.
        """
        if mo_id and mo_id in self._mo_routings:
            return self._mo_routings[mo_id]

        if not product_code:
            return None

        if product_code in self._product_routings:
            return self._product_routings[product_code]

        for prefix, routing in self._prefix_rules:
            if product_code.startswith(prefix):
                return routing

        if product_code.endswith('/C'):
            return "Cutting - Webbing"

        return None


def enrich_observations(
    observations: Iterable[RawObservation],
    reference: ReferenceData
) -> List[RawObservation]:
    """
    Fill missing routing and declared quantity from reference data.

    Values already carried by an observation win over reference data.

    Args:
        observations: Raw observations
        reference: Reference-data collaborator

    Returns:
        List of observations, enriched ones replaced by updated copies
    """
    enriched = []
    filled = 0

    for obs in observations:
        changes = {}
        if not obs.routing:
            routing = reference.routing_for(obs.mo_id, obs.product_code)
            if routing:
                changes['routing'] = routing
        if obs.mo_quantity is None and obs.mo_id:
            quantity = reference.mo_quantity(obs.mo_id)
            if quantity is not None:
                changes['mo_quantity'] = float(quantity)

        if changes:
            filled += 1
            enriched.append(replace(obs, **changes))
        else:
            enriched.append(obs)

    if filled:
        logger.info(f"Reference data filled fields on {filled} observations")
    return enriched
