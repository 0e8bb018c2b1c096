import asyncio
import json
import logging
from types import SimpleNamespace
from typing import Awaitable, Callable, Optional

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncWebsocketConsumer
from django.conf import settings
from django.contrib.auth.models import AnonymousUser

from lab.exceptions import OrphanedProfile, UpstreamError
from lab.features import Feature
from lab.guards import LOADING, feature_route
from lab.roles import home_path
from lab.services.cases import CaseQuery, Pagination, list_cases
from lab.session import resolve_session

logger = logging.getLogger(__name__)

MAX_TERM_LENGTH = 200

CLOSE_FEATURE_DISABLED = 4003
CLOSE_LABORATORY_LOADING = 4503


class LatestOnly:
    """Run at most one job at a time; submitting a new one cancels the previous.

    The job starts after ``debounce`` seconds, so a burst of keystrokes
    results in a single query for the last term.
    """

    def __init__(self, debounce: float = 0.0):
        self.debounce = debounce
        self._task: Optional[asyncio.Task] = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def submit(self, job: Callable[[], Awaitable]) -> asyncio.Task:
        self.cancel()

        async def run():
            if self.debounce > 0:
                await asyncio.sleep(self.debounce)
            return await job()

        self._task = asyncio.ensure_future(run())
        return self._task

    def cancel(self) -> None:
        if self.pending:
            self._task.cancel()


async def _ws_error(ws, code: int, message: str, *, close: bool = False):
    """
    Error frame sent to the client.
    Codes: 4xxx client errors, 5xxx server errors.
    """
    payload = {"type": "error", "code": code, "message": message}
    try:
        await ws.send(json.dumps(payload))
    finally:
        if close:
            await ws.close(code=code)


class CaseSearchConsumer(AsyncWebsocketConsumer):
    """Search-as-you-type over the caller's visible cases.

    Client sends ``{"type": "search", "field": "cases", "term": "...", "pageSize": 20}``;
    only the result for the newest term of each field is delivered.
    """

    async def connect(self):
        user = self.scope.get("user") or AnonymousUser()
        if not user.is_authenticated:
            await self.close(code=4001)
            return
        try:
            self.session = await database_sync_to_async(resolve_session)(SimpleNamespace(user=user))
        except OrphanedProfile:
            await self.close(code=4003)
            return
        decision = feature_route(self.session, Feature.CASES, home_path(self.session.role))
        if not decision.allowed:
            await self.close(code=CLOSE_LABORATORY_LOADING if decision.outcome == LOADING else CLOSE_FEATURE_DISABLED)
            return
        self.searches: dict[str, LatestOnly] = {}
        await self.accept()

    async def disconnect(self, close_code):
        for latest in getattr(self, "searches", {}).values():
            latest.cancel()

    async def receive(self, text_data=None, bytes_data=None):
        if not text_data:
            return
        try:
            data = json.loads(text_data)
        except ValueError:
            await _ws_error(self, 4000, "invalid_json")
            return
        if not isinstance(data, dict):
            await _ws_error(self, 4001, "invalid_payload")
            return
        if data.get("type") != "search":
            await _ws_error(self, 4002, "unsupported_type")
            return

        term = data.get("term") or ""
        if not isinstance(term, str):
            await _ws_error(self, 4003, "invalid_term")
            return
        if len(term) > MAX_TERM_LENGTH:
            await _ws_error(self, 4005, "term_too_long")
            return
        field = str(data.get("field") or "cases")
        try:
            page_size = max(1, min(int(data.get("pageSize") or 20), 100))
        except (TypeError, ValueError):
            await _ws_error(self, 4004, "invalid_page_size")
            return

        latest = self.searches.get(field)
        if latest is None:
            latest = self.searches[field] = LatestOnly(settings.SEARCH_DEBOUNCE_MS / 1000.0)
        latest.submit(lambda: self._search(field, term, page_size))

    async def _search(self, field: str, term: str, page_size: int):
        query = CaseQuery(search=term)
        try:
            result = await database_sync_to_async(list_cases)(self.session, query, Pagination(1, page_size))
        except UpstreamError as e:
            logger.error("Case search failed: %s", e.detail)
            await _ws_error(self, 5000, "server_error")
            return
        await self.send(json.dumps({
            "type": "results",
            "field": field,
            "term": query.search or "",
            **result,
        }, default=str))
