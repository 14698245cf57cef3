"""Pagination and sorting shared by the user and video listings.

A sort expression is a public field name, optionally prefixed with ``-`` for descending
order. Every listing adds a unique tiebreaker column in the same direction as the primary
key so that the ordering is total: repeated reads return identical pages and ``-field``
is the exact reverse of ``field``.
"""

from dataclasses import dataclass, field
from typing import Generic, List, Mapping, Optional, Tuple, TypeVar

from pydantic import BaseModel, Field
from sqlalchemy import Select
from sqlalchemy.orm import InstrumentedAttribute

from social.tube.pod.errors import ValidationError

T = TypeVar("T")


@dataclass
class Page(Generic[T]):
    """One page of a listing plus the size of the whole collection."""

    total: int
    items: List[T] = field(default_factory=list)


class ListingQuery(BaseModel):
    """Query string parameters accepted by listing endpoints."""

    start: int = Field(default=0, ge=0)
    count: Optional[int] = Field(default=None, ge=1)
    sort: Optional[str] = None


def parse_sort(
    sort: str, fields: Mapping[str, InstrumentedAttribute]
) -> Tuple[InstrumentedAttribute, bool]:
    """
    Resolve a sort expression to a column and a direction.

    Returns:
        The column and True when the order is descending

    Raises:
        ValidationError: The field is not sortable
    """
    descending = sort.startswith("-")
    name = sort[1:] if descending else sort
    column = fields.get(name)
    if column is None:
        raise ValidationError.invalid_sort(sort)
    return column, descending


def apply_sort(
    stmt: Select,
    sort: str,
    fields: Mapping[str, InstrumentedAttribute],
    tiebreaker: InstrumentedAttribute,
) -> Select:
    column, descending = parse_sort(sort, fields)
    if descending:
        return stmt.order_by(column.desc(), tiebreaker.desc())
    return stmt.order_by(column.asc(), tiebreaker.asc())


def clamp_count(count: Optional[int], default: int, maximum: int) -> int:
    if count is None:
        return default
    return max(1, min(count, maximum))
