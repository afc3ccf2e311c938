"""CSV export and import planning for glossary terms."""

from __future__ import annotations

import csv
import io
from typing import Iterable

from pydantic import BaseModel, Field

from collabhub.domain.models import GlossaryTerm, TermDraft
from collabhub.errors import FormValidationError

CSV_HEADER = ("Term", "Definition", "Category")
DEFAULT_CATEGORY = "General"


class ImportPlan(BaseModel):
    """What importing a CSV file would do to the current glossary."""

    to_add: list[TermDraft] = Field(default_factory=list)
    to_update: list[tuple[GlossaryTerm, TermDraft]] = Field(default_factory=list)
    unchanged: list[GlossaryTerm] = Field(default_factory=list)


def match_key(term: str, category: str) -> tuple[str, str]:
    return term.strip().lower(), category.strip().lower()


def export_terms(terms: Iterable[GlossaryTerm]) -> str:
    """Render terms as CSV; every field is quoted and embedded quotes are doubled."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for term in terms:
        writer.writerow((term.term, term.definition, term.category))
    return buffer.getvalue()


def parse_terms(text: str) -> list[TermDraft]:
    """Parse CSV text into term drafts.

    The first row is a header when it contains "term" (any case). Blank rows
    are skipped; a missing category falls back to "General".
    """
    try:
        rows = [row for row in csv.reader(io.StringIO(text)) if any(cell.strip() for cell in row)]
    except csv.Error as exc:
        raise FormValidationError(f"Malformed CSV: {exc}", field="file") from exc
    if not rows:
        return []

    first_row = 1
    if "term" in ",".join(rows[0]).lower():
        rows = rows[1:]
        first_row = 2

    drafts: list[TermDraft] = []
    for row_number, row in enumerate(rows, start=first_row):
        term = row[0].strip() if row else ""
        definition = row[1].strip() if len(row) > 1 else ""
        if not term or not definition:
            raise FormValidationError(
                f"Row {row_number}: term and definition are required", field="file"
            )
        category = row[2].strip() if len(row) > 2 and row[2].strip() else DEFAULT_CATEGORY
        drafts.append(TermDraft(term=term, definition=definition, category=category))
    return drafts


def plan_import(drafts: Iterable[TermDraft], existing: Iterable[GlossaryTerm]) -> ImportPlan:
    """Match drafts to existing terms by case-insensitive term + category.

    Matching rows with the same definition are already present; matching rows
    with a different definition update the existing term in place; the rest
    are added. A later row repeating an earlier one in the file wins.
    """
    known = {match_key(term.term, term.category): term for term in existing}
    additions: dict[tuple[str, str], TermDraft] = {}
    updates: dict[tuple[str, str], tuple[GlossaryTerm, TermDraft]] = {}
    unchanged: dict[tuple[str, str], GlossaryTerm] = {}

    for draft in drafts:
        key = match_key(draft.term, draft.category)
        current = known.get(key)
        if current is None:
            additions[key] = draft
            continue
        updates.pop(key, None)
        unchanged.pop(key, None)
        if current.definition.strip() == draft.definition.strip():
            unchanged[key] = current
        else:
            updates[key] = (current, draft)

    return ImportPlan(
        to_add=list(additions.values()),
        to_update=list(updates.values()),
        unchanged=list(unchanged.values()),
    )
