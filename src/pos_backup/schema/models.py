"""Pydantic models for live schema introspection.

Column descriptors are read from the live catalog at the moment of use and
never cached across requests.
"""

import re
from typing import Literal

from pydantic import BaseModel, Field, computed_field

TypeFamily = Literal["integer", "numeric", "boolean", "temporal", "json", "text", "other"]

# Declared-type patterns per family, checked in order (first match wins).
# Integer names match as whole words so POINT and INTERVAL stay "other".
_FAMILY_PATTERNS: list[tuple[TypeFamily, re.Pattern[str]]] = [
    ("boolean", re.compile(r"bool")),
    ("temporal", re.compile(r"timestamp|datetime|date|\btime")),
    ("json", re.compile(r"json")),
    ("integer", re.compile(r"\b(?:tiny|small|medium|big)?int(?:eger|[248])?\b|serial")),
    ("numeric", re.compile(r"numeric|decimal|real|double|float|money")),
    ("text", re.compile(r"char|text|clob|string|uuid")),
]

_BINARY_KEYWORDS = ("blob", "bytea", "binary")


def classify_type(declared_type: str) -> TypeFamily:
    """Classify a declared SQL type into a coarse type family.

    Example:
        >>> classify_type("TIMESTAMP WITH TIME ZONE")
        'temporal'
        >>> classify_type("NUMERIC(10, 2)")
        'numeric'
        >>> classify_type("BLOB")
        'other'
    """
    lowered = declared_type.lower()
    for family, pattern in _FAMILY_PATTERNS:
        if pattern.search(lowered):
            return family
    return "other"


class ColumnDescriptor(BaseModel):
    """One live column of a table.

    Example:
        >>> col = ColumnDescriptor(name="price", declared_type="REAL")
        >>> col.type_family
        'numeric'
        >>> col.nullable
        True
    """

    name: str
    declared_type: str = ""
    nullable: bool = True
    default: str | None = None
    primary_key: bool = False

    @computed_field  # type: ignore[prop-decorator]
    @property
    def type_family(self) -> TypeFamily:
        return classify_type(self.declared_type)

    @property
    def is_timezone_aware(self) -> bool:
        """Whether a temporal column stores an offset (PostgreSQL ``timestamptz``)."""
        lowered = self.declared_type.lower()
        return "with time zone" in lowered or "timestamptz" in lowered

    @property
    def is_binary(self) -> bool:
        """Whether the column stores raw bytes (BLOB, ``bytea``)."""
        lowered = self.declared_type.lower()
        return any(keyword in lowered for keyword in _BINARY_KEYWORDS)


class ConnectionResult(BaseModel):
    """Result of connect_and_validate().

    Example:
        >>> result = ConnectionResult(success=True, profile_name="local")
        >>> result.missing_tables
        []
    """

    success: bool
    profile_name: str | None = None
    tables_found: list[str] = Field(default_factory=list)
    missing_tables: list[str] = Field(default_factory=list)  # Warning only
    error: str | None = None
