"""Event channels between a presentation layer and the orchestrator.

QueryController holds the current filters, search text and paging, and
turns each user event into exactly one orchestrator call. Outcomes are
published to subscribers; superseded calls publish nothing.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable

from sealedquery.config.models.query_settings import QuerySettings
from sealedquery.shared.error_messages import DEFAULT_LANGUAGE, describe_error
from sealedquery.shared.errors import QuerySupersededError, SealedQueryError

from .query_models import IndexResult, QueryFilters, QueryOutcome, QueryParams
from .query_orchestrator import QueryOrchestrator

logger = logging.getLogger(__name__)

Subscriber = Callable[[QueryOutcome], Any]


class QueryController:
    """Turns filter, paging and search events into queries.

    Args:
        orchestrator: Orchestrator that runs the queries
        settings: Query settings (debounce delay and default page size)
        sleep: Awaitable sleep used by the search debounce
        language: Language of the published user messages
    """

    def __init__(
        self,
        orchestrator: QueryOrchestrator,
        settings: QuerySettings | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        language: str = DEFAULT_LANGUAGE,
    ) -> None:
        self.orchestrator = orchestrator
        self.settings = settings or orchestrator.settings
        self.language = language
        self._sleep = sleep

        self._filters = QueryFilters()
        self._search = ""
        self._page = 1
        self._page_size = self.settings.default_page_size
        self._total_pages: int | None = None

        self._subscribers: list[Subscriber] = []
        self._debounce_task: asyncio.Task | None = None
        self.last_outcome: QueryOutcome | None = None

    @property
    def filters(self) -> QueryFilters:
        return self._filters

    @property
    def search(self) -> str:
        return self._search

    @property
    def page(self) -> int:
        return self._page

    @property
    def page_size(self) -> int:
        return self._page_size

    @property
    def total_pages(self) -> int | None:
        return self._total_pages

    @property
    def params(self) -> QueryParams:
        """Parameters of the next query."""
        return QueryParams(
            filters=self._filters,
            search=self._search,
            page=self._page,
            page_size=self._page_size,
        )

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback for outcomes; returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    async def filters_changed(self, filters: QueryFilters | dict[str, Any]) -> QueryOutcome | None:
        """New filters: page back to 1, one query."""
        self._filters = (
            filters if isinstance(filters, QueryFilters) else QueryFilters.model_validate(filters)
        )
        self._page = 1
        return await self._issue()

    async def page_changed(self, page: int) -> QueryOutcome | None:
        """Move to another page; out-of-range pages are ignored.

        Returns:
            The published outcome, or None when the page was rejected or
            the query was superseded
        """
        if page < 1 or (self._total_pages is not None and page > self._total_pages):
            logger.debug("Ignoring page %d outside 1..%s", page, self._total_pages)
            return None
        self._page = page
        return await self._issue()

    async def page_size_changed(self, page_size: int) -> QueryOutcome | None:
        """New page size: page back to 1, one query."""
        if page_size < 1:
            logger.debug("Ignoring page size %d", page_size)
            return None
        self._page_size = page_size
        self._page = 1
        return await self._issue()

    def search_changed(self, text: str) -> asyncio.Task:
        """Restart the search debounce timer.

        Only the text that stays unchanged for the debounce delay reaches
        search_settled(), so a burst of keystrokes produces one query.
        """
        if self._debounce_task is not None and not self._debounce_task.done():
            self._debounce_task.cancel()
        self._debounce_task = asyncio.create_task(self._debounce(text))
        return self._debounce_task

    async def _debounce(self, text: str) -> QueryOutcome | None:
        await self._sleep(self.settings.search_debounce)
        # Settled: later keystrokes supersede the query instead of the timer
        self._debounce_task = None
        return await self.search_settled(text)

    async def search_settled(self, text: str) -> QueryOutcome | None:
        """Debounced search text: page back to 1, one query."""
        self._search = text
        self._page = 1
        return await self._issue()

    async def refresh(self) -> QueryOutcome | None:
        """Manual refresh: re-issue the current query, bypassing the cache."""
        return await self._issue(force=True)

    async def load_index(self) -> IndexResult:
        """Fetch the index, falling back to the placeholder index on failure."""
        try:
            return await self.orchestrator.fetch_index()
        except QuerySupersededError:
            raise
        except SealedQueryError as e:
            logger.debug("Index fetch failed (%s), using placeholder", e.code.value)
            placeholder = self.orchestrator.placeholder_for("index")
            if placeholder is None:
                raise
            return placeholder

    async def aclose(self) -> None:
        """Stop the debounce timer and cancel the in-flight query."""
        if self._debounce_task is not None and not self._debounce_task.done():
            self._debounce_task.cancel()
            try:
                await self._debounce_task
            except asyncio.CancelledError:
                pass
        self._debounce_task = None
        self.orchestrator.cancel()

    async def _issue(self, force: bool = False) -> QueryOutcome | None:
        params = self.params
        try:
            result = await self.orchestrator.query(params, force=force)
        except QuerySupersededError:
            logger.debug("Query superseded, nothing published")
            return None
        except SealedQueryError as e:
            outcome = QueryOutcome(
                params=params,
                result=self.orchestrator.placeholder_for("query"),
                error=e,
                user_message=describe_error(e, self.language),
            )
        else:
            self._total_pages = result.pagination.total_pages
            page_size = result.effective_page_size
            if page_size and page_size != self._page_size:
                logger.debug("Adopting server page size %d", page_size)
                self._page_size = page_size
            outcome = QueryOutcome(params=params, result=result)

        await self._publish(outcome)
        return outcome

    async def _publish(self, outcome: QueryOutcome) -> None:
        self.last_outcome = outcome
        for callback in list(self._subscribers):
            try:
                ret = callback(outcome)
                if inspect.isawaitable(ret):
                    await ret
            except Exception:
                logger.exception("Query outcome subscriber failed")
