"""Feed record -> Womp normalization (pure, no I/O)."""
from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, Optional
from urllib.parse import urlparse

from womptron.core.custom_types import MalformedRecordError, RawRecord, Womp
from womptron.core.textutils import DEFAULT_MAX_LENGTH, ELLIPSIS, short_addr, strip_mentions, truncate

DEFAULT_PERMALINK_TEMPLATE = "https://voxels.com/play?coords={coords}"


def _is_absolute_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def _text(record: RawRecord, key: str) -> Optional[str]:
    value = record.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise MalformedRecordError(f"field '{key}' is not a string", record.get("id"))
    return value


def parse_created_at(value: Any) -> datetime:
    """Parse the feed's ISO-8601 timestamp (trailing `Z` allowed) into an aware UTC datetime."""
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value.strip():
        try:
            dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError as e:
            raise MalformedRecordError(f"unparsable created_at '{value}'") from e
    else:
        raise MalformedRecordError("missing created_at")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def resolve_author(record: RawRecord) -> str:
    name = _text(record, "author_name")
    if name and name.strip():
        return name.strip()
    addr = _text(record, "author")
    if not addr or not addr.strip():
        raise MalformedRecordError("missing author", record.get("id"))
    return short_addr(addr.strip())


def resolve_location(record: RawRecord) -> str:
    name = _text(record, "parcel_name")
    if name and name.strip():
        return name
    address = _text(record, "parcel_address")
    if address is None:
        raise MalformedRecordError("missing parcel_name and parcel_address", record.get("id"))
    return address


def normalize_womp(
    record: RawRecord,
    max_length: int = DEFAULT_MAX_LENGTH,
    ellipsis: str = ELLIPSIS,
    permalink_template: str = DEFAULT_PERMALINK_TEMPLATE,
) -> Womp:
    """
    Convert one raw feed record into a `Womp`.

    Raises `MalformedRecordError` when a required field is absent or does not
    parse (id, image_url, coords, created_at, author, location).
    """
    if not isinstance(record, dict):
        raise MalformedRecordError(f"record is not a mapping: {type(record).__name__}")

    raw_id = record.get("id")
    try:
        womp_id = int(raw_id)
    except (TypeError, ValueError) as e:
        raise MalformedRecordError(f"invalid id {raw_id!r}", raw_id) from e

    media_url = (_text(record, "image_url") or "").strip()
    if not media_url or not _is_absolute_url(media_url):
        raise MalformedRecordError(f"missing or relative image_url {media_url!r}", womp_id)

    coords = (_text(record, "coords") or "").strip()
    if not coords or any(ch.isspace() for ch in coords):
        raise MalformedRecordError(f"unparsable coords {coords!r}", womp_id)
    permalink = permalink_template.format(coords=coords)
    if not _is_absolute_url(permalink):
        raise MalformedRecordError(f"permalink is not an absolute URL: {permalink}", womp_id)

    try:
        created_at = parse_created_at(record.get("created_at"))
    except MalformedRecordError as e:
        e.record_id = womp_id
        raise

    content = strip_mentions(_text(record, "content") or "")
    location = strip_mentions(resolve_location(record))

    return Womp(
        id=womp_id,
        content=truncate(content.strip(), max_length, ellipsis),
        location=location.strip(),
        author=resolve_author(record),
        media_url=media_url,
        permalink=permalink,
        created_at=created_at,
    )
