"""Tests for glossary CSV export, parsing and import planning."""

from __future__ import annotations

import pytest

from collabhub.domain.models import GlossaryTerm, TermDraft
from collabhub.errors import FormValidationError
from collabhub.services.glossary_csv import export_terms, parse_terms, plan_import


def _term(term_id: str, term: str, definition: str, category: str = "General") -> GlossaryTerm:
    return GlossaryTerm(id=term_id, term=term, definition=definition, category=category)


def test_export_quotes_every_field_and_doubles_quotes():
    csv_text = export_terms([_term("1", "PCB", 'A "printed" circuit board', "Hardware")])
    assert csv_text == (
        '"Term","Definition","Category"\n'
        '"PCB","A ""printed"" circuit board","Hardware"\n'
    )


def test_export_then_parse_preserves_commas_and_quotes():
    terms = [
        _term("1", "API", "Application, programming, interface", "Software"),
        _term("2", "Say \"hi\"", "Greeting", "General"),
    ]
    drafts = parse_terms(export_terms(terms))
    assert [(d.term, d.definition, d.category) for d in drafts] == [
        ("API", "Application, programming, interface", "Software"),
        ('Say "hi"', "Greeting", "General"),
    ]


def test_header_row_is_optional():
    drafts = parse_terms("PCB,Printed circuit board,Hardware\n")
    assert drafts == [TermDraft(term="PCB", definition="Printed circuit board", category="Hardware")]


def test_header_detection_is_case_insensitive():
    drafts = parse_terms("TERM,DEFINITION\nPCB,Printed circuit board\n")
    assert [d.term for d in drafts] == ["PCB"]


def test_missing_category_defaults_to_general_and_blank_rows_skipped():
    drafts = parse_terms("PCB,Printed circuit board\n\n,,\nFPGA,Field-programmable gate array,\n")
    assert [(d.term, d.category) for d in drafts] == [("PCB", "General"), ("FPGA", "General")]


def test_row_without_definition_is_rejected():
    with pytest.raises(FormValidationError) as excinfo:
        parse_terms("Term,Definition\nPCB,\n")
    assert "Row 2" in excinfo.value.message


def test_empty_file_has_no_terms():
    assert parse_terms("") == []


def test_plan_matches_case_insensitively_on_term_and_category():
    existing = [
        _term("1", "PCB", "Printed circuit board", "Hardware"),
        _term("2", "API", "Application programming interface", "Software"),
    ]
    drafts = [
        TermDraft(term="pcb", definition="Printed circuit board", category="hardware"),
        TermDraft(term="API", definition="A contract between programs", category="Software"),
        TermDraft(term="API", definition="Air pollution index", category="Environment"),
    ]

    plan = plan_import(drafts, existing)

    assert [t.id for t in plan.unchanged] == ["1"]
    assert [(current.id, draft.definition) for current, draft in plan.to_update] == [
        ("2", "A contract between programs")
    ]
    assert [d.category for d in plan.to_add] == ["Environment"]


def test_later_duplicate_row_wins():
    drafts = [
        TermDraft(term="New", definition="first"),
        TermDraft(term="new", definition="second"),
    ]
    plan = plan_import(drafts, [])
    assert [d.definition for d in plan.to_add] == ["second"]
