"""
Point-in-time helpers for cell history.

resolve_cell_value_at picks, from an unordered cell history, the entry that was
in effect at a target timestamp. cells_existing_at bounds which cells are worth
a history lookup at all.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from core.utils import UserInputError

logger = logging.getLogger(__name__)

# datetime.fromisoformat before 3.11 only takes 3 or 6 fractional digits
FRACTION_RE = re.compile(r"(\d{2}:\d{2}:\d{2})\.(\d+)")

# Fields of a history entry carried into the resolved value
HISTORICAL_FIELDS = (
    "value",
    "displayValue",
    "formula",
    "format",
    "conditionalFormat",
    "hyperlink",
    "image",
    "linkInFromCell",
    "linksOutToCells",
    "objectValue",
    "overrideValidation",
    "strict",
    "columnType",
)


def _pad_fraction(match: "re.Match") -> str:
    return f"{match.group(1)}.{match.group(2)[:6].ljust(6, '0')}"


def parse_timestamp(timestamp: Any) -> datetime:
    """
    Parse an ISO-8601 timestamp into an aware UTC datetime.

    Accepts a trailing 'Z', fractional seconds of any precision (truncated
    to microseconds) and treats naive values as UTC.

    Raises:
        UserInputError: if the value is not a valid ISO-8601 timestamp.
    """
    if isinstance(timestamp, datetime):
        parsed = timestamp
    else:
        text = str(timestamp or "").strip()
        if not text:
            raise UserInputError("Timestamp must not be empty.")
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        text = FRACTION_RE.sub(_pad_fraction, text, count=1)
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            raise UserInputError(
                f"Invalid timestamp '{timestamp}'. Use ISO-8601, e.g. 2025-03-27T17:00:00Z."
            ) from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _entry_timestamp(entry: Dict[str, Any]) -> Optional[datetime]:
    raw = entry.get("modifiedAt")
    if raw is None:
        return None
    try:
        return parse_timestamp(raw)
    except UserInputError:
        return None


def history_entries(response: Any) -> List[Dict[str, Any]]:
    """Unwrap a history response, which is paginated ({'data': [...]}) or a bare list."""
    if response is None:
        return []
    if isinstance(response, list):
        return response
    return list(response.get("data") or [])


def resolve_cell_value_at(
    entries: Sequence[Dict[str, Any]], target_timestamp: Any
) -> Optional[Dict[str, Any]]:
    """
    Return the historical value in effect at `target_timestamp`.

    Entries are ordered newest first and the first one modified at or before the
    target wins. The sort is stable, so among entries sharing a timestamp the
    one listed first by the API is chosen. Entries without a parseable
    modifiedAt are ignored.

    Returns:
        A dict holding only the non-null HISTORICAL_FIELDS of the chosen entry,
        or None when every entry postdates the target.
    """
    target = parse_timestamp(target_timestamp)

    dated = []
    for entry in entries:
        modified_at = _entry_timestamp(entry)
        if modified_at is None:
            logger.warning("Ignoring history entry without a usable modifiedAt: %s", entry)
            continue
        dated.append((modified_at, entry))

    dated.sort(key=lambda pair: pair[0], reverse=True)

    for modified_at, entry in dated:
        if modified_at <= target:
            logger.debug(
                "Found historical value at %s for timestamp %s",
                entry.get("modifiedAt"),
                target.isoformat(),
            )
            return {
                field: entry[field]
                for field in HISTORICAL_FIELDS
                if entry.get(field) is not None
            }
    return None


def cells_existing_at(
    sheet: Dict[str, Any], target_timestamp: Any
) -> List[Dict[str, Any]]:
    """
    List the (rowId, columnId) pairs worth a history lookup at `target_timestamp`.

    Rows created after the target are skipped. Within the remaining rows a cell
    qualifies when it currently holds a value; a cell cleared since the target,
    or filled and cleared again, is misjudged by this approximation.
    """
    target = parse_timestamp(target_timestamp)
    existing: List[Dict[str, Any]] = []

    for row in sheet.get("rows") or []:
        created_at = row.get("createdAt")
        if created_at:
            try:
                if parse_timestamp(created_at) > target:
                    continue
            except UserInputError:
                logger.warning(
                    "Row %s has an unparseable createdAt %r; treating it as existing",
                    row.get("id"),
                    created_at,
                )

        for cell in row.get("cells") or []:
            column_id = cell.get("columnId")
            if not column_id:
                continue
            if cell.get("value") is not None:
                existing.append({"rowId": row.get("id"), "columnId": column_id})

    return existing
