"""
    Keyset (cursor) pagination and metadata filtering for image listings.

    Images are ordered by the composite key (uploaded timestamp, image id),
    ascending or descending. A cursor carries the key of the last image of a
    page; the next page starts strictly after it, so consecutive pages never
    overlap or leave gaps. A page that comes back full carries a cursor, a
    short or empty page carries "" and ends the sequence.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable, List, Mapping, Optional, Sequence, Tuple, TypeVar
import base64
import binascii
import json
import operator
import re

from app.exceptions import BadRequestException
from app.image_service.models import parse_timestamp, sort_key_for

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
MAX_METADATA_FILTERS = 5

OPERATORS: Mapping[str, Callable[[str, str], bool]] = {
    "eq": operator.eq,
    "ne": operator.ne,
    "lt": operator.lt,
    "gt": operator.gt,
    "lte": operator.le,
    "gte": operator.ge,
}

_FILTER_PARAM = re.compile(r"^metadata\[([^\]]*)\]\[([^\]]*)\]$")

class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"

    @classmethod
    def parse(cls, value: Optional[str]) -> "SortOrder":
        """Case-insensitive; anything other than desc sorts ascending."""
        if value and value.lower() == "desc":
            return cls.DESC
        return cls.ASC

@dataclass(frozen=True)
class Cursor:
    uploaded: str
    image_id: str

    @property
    def sort_key(self) -> str:
        return sort_key_for(self.uploaded, self.image_id)

    def encode(self) -> str:
        raw = sort_key_for(self.uploaded, self.image_id).encode()
        return base64.urlsafe_b64encode(raw).decode().rstrip("=")

    @classmethod
    def decode(cls, token: str) -> "Cursor":
        try:
            padded = token + "=" * (-len(token) % 4)
            raw = base64.urlsafe_b64decode(padded.encode()).decode()
            uploaded, image_id = raw.split("|", 1)
            parse_timestamp(uploaded)
        except (binascii.Error, UnicodeError, ValueError):
            raise BadRequestException("invalid continuation_token")
        if not image_id:
            raise BadRequestException("invalid continuation_token")
        return cls(uploaded=uploaded, image_id=image_id)

def stringify_value(value: Any) -> str:
    """String form a metadata value is compared under."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"), sort_keys=True)
    if value is None:
        return "<nil>"
    return str(value)

@dataclass(frozen=True)
class MetadataFilter:
    key: str
    op: str
    value: str

    def matches(self, meta: Mapping[str, Any]) -> bool:
        """Images without the key never match; values compare as strings."""
        if self.key not in meta:
            return False
        return OPERATORS[self.op](stringify_value(meta[self.key]), self.value)

def parse_metadata_filters(params: Iterable[Tuple[str, str]]) -> List[MetadataFilter]:
    """Parses `metadata[key][op]=value` query parameters, in query order."""
    filters = []
    for name, value in params:
        match = _FILTER_PARAM.match(name)
        if not match:
            continue
        key, op = match.groups()
        if op not in OPERATORS:
            raise BadRequestException(f"unsupported metadata filter operator: {op}")
        filters.append(MetadataFilter(key=key, op=op, value=value))
    if len(filters) > MAX_METADATA_FILTERS:
        raise BadRequestException(f"too many metadata filters (max {MAX_METADATA_FILTERS})")
    return filters

def parse_page_size(value: Optional[str]) -> int:
    """Default 20, capped at 100; non-numeric or non-positive values use the default."""
    try:
        size = int(value) if value else DEFAULT_PAGE_SIZE
    except ValueError:
        return DEFAULT_PAGE_SIZE
    if size <= 0:
        return DEFAULT_PAGE_SIZE
    return min(size, MAX_PAGE_SIZE)

def paginate(
    rows: Iterable[T],
    page_size: int,
    cursor_for: Callable[[T], Cursor],
    predicate: Optional[Callable[[T], bool]] = None,
) -> Tuple[List[T], str]:
    """
        Takes up to `page_size` rows from an ordered, already-positioned
        iterable, skipping rows rejected by `predicate`. Returns the page and
        the cursor for the next one ("" once the sequence is exhausted).
    """
    if page_size < 1:
        raise ValueError("page_size must be positive")
    page: List[T] = []
    for row in rows:
        if predicate is not None and not predicate(row):
            continue
        page.append(row)
        if len(page) == page_size:
            break
    next_cursor = cursor_for(page[-1]).encode() if len(page) == page_size else ""
    return page, next_cursor

def first_filter(filters: Sequence[MetadataFilter]) -> Optional[MetadataFilter]:
    return filters[0] if filters else None
