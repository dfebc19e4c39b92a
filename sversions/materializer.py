"""
Cell materialization for reconstructed rows.

A Smartsheet cell write carries exactly one kind of content: a literal value,
a formula, or an object value. Hyperlinks, images and cell links are only
accepted on cells without a formula. The content variants below make the first
rule structural; CellWritePayload enforces the second on construction.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

logger = logging.getLogger(__name__)

DURATION_COLUMN_TITLE = "Duration"
DURATION_FORMULA = "=[Start Date]@row - [End Date]@row"


@dataclass(frozen=True)
class LiteralValue:
    value: Any = None


@dataclass(frozen=True)
class FormulaContent:
    formula: str


@dataclass(frozen=True)
class ObjectValueContent:
    object_value: Any


CellContent = Union[LiteralValue, FormulaContent, ObjectValueContent]


@dataclass(frozen=True)
class CellLinks:
    hyperlink: Any = None
    image: Any = None
    link_in_from_cell: Any = None
    links_out_to_cells: Any = None

    def is_empty(self) -> bool:
        return all(
            item is None
            for item in (
                self.hyperlink,
                self.image,
                self.link_in_from_cell,
                self.links_out_to_cells,
            )
        )


@dataclass(frozen=True)
class CellWritePayload:
    column_id: Any
    content: CellContent
    format: Optional[str] = None
    conditional_format: Optional[str] = None
    links: Optional[CellLinks] = None
    override_validation: Optional[bool] = None
    strict: Optional[bool] = None

    def __post_init__(self):
        if (
            isinstance(self.content, FormulaContent)
            and self.links is not None
            and not self.links.is_empty()
        ):
            raise ValueError(
                f"Cell for column {self.column_id} cannot carry links alongside a formula."
            )

    @property
    def has_formula(self) -> bool:
        return isinstance(self.content, FormulaContent)

    def to_dict(self) -> Dict[str, Any]:
        """Render the payload as a Smartsheet cell object."""
        cell: Dict[str, Any] = {"columnId": self.column_id}

        if isinstance(self.content, FormulaContent):
            cell["formula"] = self.content.formula
        elif isinstance(self.content, ObjectValueContent):
            cell["objectValue"] = self.content.object_value
        else:
            # Always present, even when null
            cell["value"] = self.content.value

        if self.format is not None:
            cell["format"] = self.format
        if self.conditional_format is not None:
            cell["conditionalFormat"] = self.conditional_format

        if self.links is not None:
            if self.links.hyperlink is not None:
                cell["hyperlink"] = self.links.hyperlink
            if self.links.image is not None:
                cell["image"] = self.links.image
            if self.links.link_in_from_cell is not None:
                cell["linkInFromCell"] = self.links.link_in_from_cell
            if self.links.links_out_to_cells is not None:
                cell["linksOutToCells"] = self.links.links_out_to_cells

        if self.override_validation is not None:
            cell["overrideValidation"] = self.override_validation
        if self.strict is not None:
            cell["strict"] = self.strict
        return cell


def _prefer(field: str, *sources: Optional[Dict[str, Any]]) -> Any:
    for source in sources:
        if source and source.get(field) is not None:
            return source[field]
    return None


def materialize_cell(
    column: Dict[str, Any],
    historical_value: Optional[Dict[str, Any]],
    current_cell: Optional[Dict[str, Any]],
    target_column_id: Any,
    include_formulas: bool = True,
) -> CellWritePayload:
    """
    Merge a resolved historical value with current-sheet fallbacks.

    Content precedence, first match wins:
      1. a column titled "Duration" always gets DURATION_FORMULA;
      2. with formulas enabled, the historical or current formula;
      3. the historical literal value (null when the entry had none);
      4. null.
    Without a formula, an object value (historical, else current) replaces the
    literal value, and hyperlink/image/cell links are carried over.

    Args:
        column: Source column the cell belongs to.
        historical_value: Output of resolve_cell_value_at, or None.
        current_cell: The cell as it is in the live source sheet, or None.
        target_column_id: Column id in the destination sheet.
        include_formulas: Whether formulas are restored as formulas.
    """
    historical = historical_value or {}
    current = current_cell or {}

    content: CellContent
    if column.get("title") == DURATION_COLUMN_TITLE:
        content = FormulaContent(DURATION_FORMULA)
    elif include_formulas and (historical.get("formula") or current.get("formula")):
        content = FormulaContent(historical.get("formula") or current.get("formula"))
    elif historical_value is not None:
        content = LiteralValue(historical.get("value"))
    else:
        content = LiteralValue(None)

    links = None
    if not isinstance(content, FormulaContent):
        object_value = _prefer("objectValue", historical, current)
        if object_value is not None:
            content = ObjectValueContent(object_value)
        links = CellLinks(
            hyperlink=_prefer("hyperlink", historical, current),
            image=_prefer("image", historical, current),
            link_in_from_cell=_prefer("linkInFromCell", historical, current),
            links_out_to_cells=_prefer("linksOutToCells", historical, current),
        )
        if links.is_empty():
            links = None

    return CellWritePayload(
        column_id=target_column_id,
        content=content,
        format=_prefer("format", historical, current, column),
        conditional_format=historical.get("conditionalFormat"),
        links=links,
        override_validation=historical.get("overrideValidation"),
        strict=historical.get("strict"),
    )
