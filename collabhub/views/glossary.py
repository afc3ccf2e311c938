"""Glossary: term list, search and CSV exchange."""

from __future__ import annotations

import logging

from collabhub.api.client import HubApiClient
from collabhub.domain.bus import EventBus
from collabhub.domain.models import GlossaryTerm, ImportReport, MutationResult, TermDraft
from collabhub.errors import RemoteError
from collabhub.services.forms import validate_term
from collabhub.services.glossary_csv import export_terms, parse_terms, plan_import
from collabhub.services.optimistic import OptimisticCollection, new_local_id

logger = logging.getLogger(__name__)


class GlossaryView:
    def __init__(self, client: HubApiClient, *, bus: EventBus | None = None) -> None:
        self._client = client
        self.terms: OptimisticCollection[GlossaryTerm] = OptimisticCollection("glossary", bus=bus)
        self.error: str | None = None

    async def load(self, *, search: str | None = None, category: str | None = None) -> list[GlossaryTerm]:
        try:
            terms = await self._client.list_terms(search=search, category=category)
        except RemoteError as exc:
            logger.warning("Could not load glossary: %s", exc)
            self.error = str(exc)
            self.terms.clear()
            return []
        self.error = None
        self.terms.replace_all(terms)
        return terms

    def reset(self) -> None:
        self.terms.clear()
        self.error = None

    def categories(self) -> list[str]:
        return sorted({term.category for term in self.terms}, key=str.lower)

    def filter(self, search: str = "", category: str | None = None) -> list[GlossaryTerm]:
        needle = search.strip().lower()
        return [
            term
            for term in self.terms
            if (category is None or term.category == category)
            and (
                not needle
                or needle in term.term.lower()
                or needle in term.definition.lower()
            )
        ]

    async def add_term(self, *, term: str, definition: str, category: str = "General") -> MutationResult:
        return await self._create(validate_term(term=term, definition=definition, category=category))

    async def _create(self, draft: TermDraft) -> MutationResult:
        local_id = new_local_id("term")
        provisional = GlossaryTerm(
            id=local_id,
            term=draft.term,
            definition=draft.definition,
            category=draft.category,
            department=draft.department,
        )
        return await self.terms.create(
            local_id, provisional, lambda: self._client.create_term(draft)
        )

    def export_csv(self) -> str:
        return export_terms(self.terms)

    async def import_csv(self, text: str) -> ImportReport:
        """Import terms from CSV text.

        Rows are applied one at a time so a rejected row is reported as failed
        without stopping the rest.
        """
        plan = plan_import(parse_terms(text), self.terms)
        report = ImportReport(unchanged=[term.term for term in plan.unchanged])

        for draft in plan.to_add:
            result = await self._create(draft)
            (report.added if result.ok else report.failed).append(draft.term)

        for existing, draft in plan.to_update:
            body = draft.model_copy(update={"category_id": existing.category_id})

            async def _push(_: GlossaryTerm) -> GlossaryTerm:
                return await self._client.update_term(existing.id, body)

            result = await self.terms.update(
                existing.id,
                lambda term: term.model_copy(update={"definition": draft.definition}),
                _push,
            )
            (report.updated if result.ok else report.failed).append(draft.term)

        logger.info(
            "Glossary import: %d added, %d updated, %d unchanged, %d failed",
            len(report.added),
            len(report.updated),
            len(report.unchanged),
            len(report.failed),
        )
        return report
