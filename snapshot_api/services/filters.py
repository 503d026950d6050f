"""
Filter construction for win/lose lookups.

Callers have sent lookups in several historical shapes over time, so the
filter accepts:
- month as "1" or "01"
- currency as "cur" or "currency"
- fields stored at the document root or nested under "data"
"""
from typing import Optional

from snapshot_api.schemas import LookupRequest

# Request field -> canonical criterion. Earlier entries win when two
# aliases resolve to the same criterion.
FIELD_ALIASES: dict[str, str] = {
    "cur": "currency",
    "currency": "currency",
    "month": "month",
    "year": "year",
    "username": "username",
    "web": "web",
}


def canonical_criteria(request: LookupRequest) -> dict[str, str]:
    """Resolve request aliases into canonical, non-empty criteria."""
    criteria: dict[str, str] = {}
    for alias, canonical in FIELD_ALIASES.items():
        value = getattr(request, alias)
        if value and canonical not in criteria:
            criteria[canonical] = value
    return criteria


def month_variants(month: str) -> list[str]:
    """
    Return the accepted spellings of a month.

    "5" also accepts "05", "05" also accepts "5". Anything else is
    matched exactly.
    """
    if len(month) == 1 and "1" <= month <= "9":
        return [month, "0" + month]
    if len(month) == 2 and month[0] == "0" and "1" <= month[1] <= "9":
        return [month, month[1]]
    return [month]


def _root_or_nested(root_field: str, nested_field: str, values: list[str]) -> dict:
    alternatives = []
    for value in values:
        alternatives.append({root_field: value})
        alternatives.append({f"data.{nested_field}": value})
    return {"$or": alternatives}


def build_lookup_filter(request: LookupRequest) -> dict:
    """
    Build the MongoDB filter for a lookup request.

    Every supplied criterion adds one clause to a top-level $and. An empty
    request yields {} which matches every document.
    """
    criteria = canonical_criteria(request)
    clauses: list[dict] = []

    month: Optional[str] = criteria.get("month")
    if month:
        clauses.append(_root_or_nested("month", "month", month_variants(month)))

    year = criteria.get("year")
    if year:
        clauses.append(_root_or_nested("year", "year", [year]))

    # username and currency only live on the nested records
    username = criteria.get("username")
    if username:
        clauses.append({"data.username": username})

    currency = criteria.get("currency")
    if currency:
        clauses.append({"data.currency": currency})

    web = criteria.get("web")
    if web:
        clauses.append(_root_or_nested("client_name", "web", [web]))

    if not clauses:
        return {}
    return {"$and": clauses}
