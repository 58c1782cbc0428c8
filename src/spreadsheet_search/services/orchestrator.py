"""Query orchestration: prompt composition, one LLM call, reply normalization.

The orchestrator reads a single store snapshot per call, so a concurrent load
can never mix two datasets into one prompt. It performs exactly one outbound
call per query and never retries.
"""

from __future__ import annotations

import time

from spreadsheet_search.services.analytics import total_cells
from spreadsheet_search.services.context_builder import (
    ContextLimits,
    build_context,
    build_glossary_context,
)
from spreadsheet_search.services.llm_client import ReasoningClient
from spreadsheet_search.services.reply_parser import SearchResult, parse_search_reply
from spreadsheet_search.spreadsheet import Dataset
from spreadsheet_search.store import SpreadsheetStore, StoreSnapshot
from spreadsheet_search.utils.exceptions import (
    CollaboratorRateLimitError,
    EmptyQueryError,
)
from spreadsheet_search.utils.logging import get_logger, timed_operation

logger = get_logger(__name__)

REPLY_TEMPLATE = """{
  "answer": "Clear, direct answer to the question",
  "location": "Specific sheet and cell references",
  "value": "Actual numeric value or result as STRING",
  "explanation": "Concise explanation of how you found this answer",
  "calculation": "Formula used (if any) as STRING",
  "tabsUsed": ["list", "of", "sheet", "names"],
  "alternatives": ["other", "relevant", "findings"],
  "suggestion": "Additional insights or recommendations"
}"""

TASK_STEPS = """Your task:
1. Analyze ALL tabs to find the BEST answer
2. Use data from multiple tabs if needed
3. Use existing formulas from the spreadsheet when available
4. If calculation is needed, show the formula clearly
5. Give ONE perfect answer with clear explanation"""

DESCRIPTION_EXAMPLES = (
    '"Your data is school financial data with student fees, teacher salaries, '
    'and performance metrics across 3 tabs"\n'
    "or\n"
    '"Your data is company financial statements with revenue, costs, '
    'and profitability metrics"'
)


def fallback_description(dataset: Dataset) -> str:
    """Local one-line description used when the LLM quota is exhausted."""
    names = ", ".join(dataset.sheet_names)
    return (
        f"Business data with {len(dataset.sheets)} sheets ({names}) "
        f"containing {total_cells(dataset)} cells of metrics and KPIs."
    )


class QueryOrchestrator:
    """Answers natural-language questions about the resident dataset."""

    def __init__(
        self,
        store: SpreadsheetStore,
        client: ReasoningClient,
        limits: ContextLimits | None = None,
    ) -> None:
        self.store = store
        self.client = client
        self.limits = limits or ContextLimits.from_settings()

    def build_prompt(self, query: str, snapshot: StoreSnapshot) -> str:
        """Compose the search prompt for ``query`` over ``snapshot``.

        Deterministic for a fixed query and snapshot.
        """
        context = build_context(snapshot.dataset, self.limits)

        glossary_section = ""
        glossary = snapshot.resolve_glossary()
        if glossary is not None:
            glossary_context = build_glossary_context(glossary, self.limits)
            glossary_section = (
                f'GLOSSARY/TRAINING DATA from tab "{glossary.name}":\n'
                f"{glossary_context}\n\n"
                "Use this glossary to understand business terms and definitions.\n"
            )

        return (
            "\nYou are a professional spreadsheet analysis expert. "
            f'A user is asking: "{query}"\n\n'
            "SPREADSHEET DATA (ALL TABS):\n"
            f"{context}\n\n"
            f"{glossary_section}\n"
            "IMPORTANT: Provide a clean, professional response suitable for "
            "business demos.\n\n"
            f"{TASK_STEPS}\n\n"
            "Respond with VALID JSON only (no extra text):\n"
            f"{REPLY_TEMPLATE}\n\n"
            "CRITICAL: All values must be strings or arrays, NO objects. "
            "Keep responses concise and professional.\n"
        )

    async def search(self, query: str, timeout: float | None = None) -> SearchResult:
        """Answer ``query`` against the dataset resident at call time.

        Args:
            query: Natural-language question.
            timeout: Seconds allowed for the LLM call. Defaults to the
                client's configured timeout.

        Returns:
            A normalized SearchResult, or the informational no-data result
            when nothing is loaded.

        Raises:
            EmptyQueryError: If the query is empty or whitespace-only.
            CollaboratorError: If the LLM call fails or times out.
            MalformedReplyError: If the reply holds no JSON object.
        """
        if not isinstance(query, str) or not query.strip():
            raise EmptyQueryError()
        query = query.strip()

        snapshot = self.store.current()
        if snapshot is None:
            logger.info("Search requested with no spreadsheet loaded")
            return SearchResult.no_data(query)

        start_time = time.time()
        with timed_operation(logger, "search") as metrics:
            prompt = self.build_prompt(query, snapshot)
            metrics.prompt_chars = len(prompt)
            metrics.sheets = len(snapshot.dataset.sheets)

            metrics.llm_calls += 1
            raw = await self.client.generate(prompt, timeout=timeout)
            result = parse_search_reply(query, raw)

        logger.log_search_result(
            query,
            time.time() - start_time,
            tabs_used=result.tabs_used,
            from_collaborator=result.is_from_collaborator,
        )
        return result

    def build_description_prompt(self, dataset: Dataset) -> str:
        context = build_context(dataset, self.limits)
        return (
            "\nAnalyze this spreadsheet data and provide a ONE LINE description "
            "of what it contains:\n\n"
            f"{context}\n\n"
            "Respond with just one sentence describing what this data is about, "
            "like:\n"
            f"{DESCRIPTION_EXAMPLES}\n\n"
            "Keep it simple and descriptive.\n"
        )

    async def describe(self, dataset: Dataset, timeout: float | None = None) -> str:
        """Ask the LLM for a one-line description of ``dataset``.

        Falls back to a local description when the quota is exhausted; every
        other collaborator failure propagates.
        """
        prompt = self.build_description_prompt(dataset)
        try:
            description = await self.client.generate(prompt, timeout=timeout)
        except CollaboratorRateLimitError:
            logger.warning("Using fallback description due to quota limits")
            return fallback_description(dataset)
        return description.strip()
