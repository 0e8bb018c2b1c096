from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.core.management.base import BaseCommand
from django.utils import timezone

from lab.realtime.bridge import DEFAULT_BRIDGES
from lab.realtime.feed import group_name
from lab.services.cache import NAMESPACES, invalidate


class Command(BaseCommand):
    help = "Mark every cached listing stale; tell connected clients to refetch."

    def add_arguments(self, parser):
        parser.add_argument('namespaces', nargs='*', help=f"Subset of: {', '.join(NAMESPACES)}")

    def handle(self, *args, **options):
        now = timezone.now()
        namespaces = options['namespaces'] or list(NAMESPACES)
        unknown = [n for n in namespaces if n not in NAMESPACES]
        if unknown:
            self.stderr.write(self.style.ERROR(f"unknown namespaces: {', '.join(unknown)}"))
            return

        for ns in namespaces:
            version = invalidate(ns)
            self.stdout.write(f"{ns} -> v{version}")

        # Broadcast WebSocket message
        channel_layer = get_channel_layer()
        if channel_layer is not None:
            event = {"type": "broadcast.refresh", "version": int(now.timestamp()), "ts": now.isoformat(), "keys": namespaces}
            for table, keys in DEFAULT_BRIDGES.items():
                if set(keys) & set(namespaces):
                    async_to_sync(channel_layer.group_send)(group_name(table), event)

        self.stdout.write(self.style.SUCCESS(f"Invalidated {len(namespaces)} namespaces at {now}"))
