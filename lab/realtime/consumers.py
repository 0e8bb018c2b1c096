import asyncio
import json
import logging
from urllib.parse import parse_qs

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncWebsocketConsumer
from django.contrib.auth.models import AnonymousUser
from django.core.exceptions import ObjectDoesNotExist

from .bridge import DEFAULT_BRIDGES, startup_delay
from .feed import ChangeFilter, group_name, parse_events

logger = logging.getLogger(__name__)

CHANNEL_ERROR = 'CHANNEL_ERROR'
SUBSCRIBED = 'SUBSCRIBED'


@database_sync_to_async
def _laboratory_id_for(user):
    try:
        return str(user.profile.laboratory_id)
    except ObjectDoesNotExist:
        return None


def _query_params(scope) -> dict:
    raw = scope.get('query_string', b'').decode('utf-8', 'ignore')
    return {k: v[-1] for k, v in parse_qs(raw).items()}


class ChangesConsumer(AsyncWebsocketConsumer):
    """Pushes ``invalidate`` messages for one table, scoped to the user's laboratory.

    Optional query string: ``?events=INSERT,UPDATE&filter=branch=eq.Centro``.
    """

    async def connect(self):
        self.table = self.scope["url_route"]["kwargs"].get("table")
        self.keys = DEFAULT_BRIDGES.get(self.table)
        self.joined = False
        self._startup = None
        if self.keys is None:
            await self.close(code=4004)
            return

        user = self.scope.get("user") or AnonymousUser()
        if not user.is_authenticated:
            await self.close(code=4001)
            return
        self.laboratory_id = await _laboratory_id_for(user)
        if self.laboratory_id is None:
            await self.close(code=4003)
            return

        params = _query_params(self.scope)
        try:
            self.events = parse_events(params["events"].split(",") if params.get("events") else "*")
            self.filter = ChangeFilter.parse(params["filter"]) if params.get("filter") else None
        except ValueError:
            await self.close(code=4000)
            return

        await self.accept()
        self._startup = asyncio.ensure_future(self._join_after(startup_delay()))

    async def _join_after(self, delay: float):
        if delay > 0:
            await asyncio.sleep(delay)
        try:
            await self.channel_layer.group_add(group_name(self.table), self.channel_name)
        except Exception as e:
            logger.warning("Realtime channel for %s unavailable: %s", self.table, e)
            await self.send(json.dumps({"type": "status", "status": CHANNEL_ERROR}))
            return
        self.joined = True
        await self.send(json.dumps({"type": "status", "status": SUBSCRIBED, "table": self.table}))

    async def disconnect(self, close_code):
        if self._startup is not None and not self._startup.done():
            self._startup.cancel()
        if self.joined:
            await self.channel_layer.group_discard(group_name(self.table), self.channel_name)
            self.joined = False

    def _wants(self, event) -> bool:
        if event.get("laboratory_id") != self.laboratory_id:
            return False
        if event.get("event") not in self.events:
            return False
        return self.filter is None or self.filter.matches(event.get("row") or {})

    async def change_event(self, event):
        # event: {"type": "change.event", "table", "event", "row", "laboratory_id"}
        if not self._wants(event):
            return
        await self.send(json.dumps({
            "type": "invalidate",
            "table": event["table"],
            "event": event["event"],
            "keys": list(self.keys),
        }))

    async def broadcast_refresh(self, event):
        # event: {"type": "broadcast.refresh", "version": int, "ts": "...", "keys": [...]}
        await self.send(json.dumps({
            "type": "invalidate",
            "table": self.table,
            "event": "REFRESH",
            "keys": event.get("keys") or list(self.keys),
        }))
