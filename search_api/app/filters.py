"""검색 조건 컴파일러(Search criteria compiler).

Turns a sparse mapping of optional criteria into one AND-composed SQLAlchemy
predicate over :class:`Vulnerability`. Keys that are missing, ``None`` or blank
impose no constraint.
"""
from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from sqlalchemy import ColumnElement, and_, exists, or_, true
from sqlalchemy.orm import aliased

from common_lib.errors import InvalidInputError
from common_lib.logger import get_logger
from common_lib.timestamps import ensure_datetime

from .severity import ScoreRange, label_to_range
from .tables import AffectedProduct, Product, Vendor, Vulnerability, Weakness

logger = get_logger(__name__)

FILTER_KEYS = (
    "cveId",
    "description",
    "vendor",
    "product",
    "severity",
    "minScore",
    "maxScore",
    "startDate",
    "endDate",
    "cweId",
)


def present_filters(filters: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Keep only recognised keys that carry a value."""

    if not filters:
        return {}
    present: Dict[str, Any] = {}
    for key, value in filters.items():
        if key not in FILTER_KEYS:
            logger.warning("Ignoring unknown search filter '%s'", key)
            continue
        if value is None or (isinstance(value, str) and not value.strip()):
            continue
        present[key] = value.strip() if isinstance(value, str) else value
    return present


def _as_score(key: str, value: Any) -> float:
    if isinstance(value, bool):
        raise InvalidInputError(field=key, reason="expected a number")
    try:
        score = float(value)
    except (TypeError, ValueError) as exc:
        raise InvalidInputError(field=key, reason=f"'{value}' is not a number") from exc
    if score != score:
        raise InvalidInputError(field=key, reason="expected a number")
    return score


def merge_score_range(filters: Mapping[str, Any]) -> Optional[ScoreRange]:
    """Combine severity, minScore and maxScore into one score range.

    The severity band is applied first. ``minScore`` then sets the inclusive
    lower comparison and ``maxScore`` the inclusive upper one; the band's
    exclusive edges stay. HIGH with ``minScore=8`` gives ``[8.0, 9.0)``, HIGH
    with ``maxScore=9.5`` stays ``[7.0, 9.0)`` and LOW with ``minScore=0``
    still excludes 0.
    """
    score_range: Optional[ScoreRange] = None

    if "severity" in filters:
        score_range = label_to_range(str(filters["severity"]))
        if score_range is None:
            logger.debug("Severity label %r matches no band; no score constraint", filters["severity"])

    if "minScore" in filters:
        score_range = score_range or ScoreRange()
        score_range.gte = _as_score("minScore", filters["minScore"])

    if "maxScore" in filters:
        score_range = score_range or ScoreRange()
        score_range.lte = _as_score("maxScore", filters["maxScore"])

    return score_range


def contains(column: Any, term: str) -> ColumnElement[bool]:
    """Case-insensitive unanchored match with LIKE wildcards escaped."""
    return column.icontains(term, autoescape=True)


def starts_with(column: Any, prefix: str) -> ColumnElement[bool]:
    """Case-insensitive match anchored at the start of the value."""
    return column.istartswith(prefix, autoescape=True)


def compile_filters(filters: Optional[Mapping[str, Any]]) -> ColumnElement[bool]:
    """Build the vulnerability predicate for the supplied criteria."""

    present = present_filters(filters)
    clauses = []

    if "cveId" in present:
        clauses.append(contains(Vulnerability.cve_id, str(present["cveId"])))
    if "description" in present:
        clauses.append(contains(Vulnerability.description, str(present["description"])))
    if "vendor" in present:
        clauses.append(Vulnerability.affected_products.any(contains(AffectedProduct.vendor_name, str(present["vendor"]))))
    if "product" in present:
        clauses.append(
            Vulnerability.affected_products.any(contains(AffectedProduct.product_name, str(present["product"])))
        )

    score_range = merge_score_range(present)
    if score_range is not None:
        clauses.append(score_range.to_predicate(Vulnerability.score))

    if "startDate" in present:
        clauses.append(Vulnerability.published_date >= ensure_datetime(present["startDate"], "startDate"))
    if "endDate" in present:
        clauses.append(Vulnerability.published_date <= ensure_datetime(present["endDate"], "endDate"))

    if "cweId" in present:
        clauses.append(Vulnerability.weaknesses.any(contains(Weakness.cwe_id, str(present["cweId"]))))

    if not clauses:
        return true()
    return and_(*clauses)


def vulnerability_text_predicate(term: str) -> ColumnElement[bool]:
    """Identifier OR description contains the term."""
    return or_(contains(Vulnerability.cve_id, term), contains(Vulnerability.description, term))


def vendor_text_predicate(term: str) -> ColumnElement[bool]:
    return contains(Vendor.name, term)


def product_text_predicate(term: str) -> ColumnElement[bool]:
    """Product name OR the owning vendor's current name contains the term."""
    owner = aliased(Vendor)
    return or_(
        contains(Product.name, term),
        exists().where(owner.id == Product.vendor_id, contains(owner.name, term)),
    )
