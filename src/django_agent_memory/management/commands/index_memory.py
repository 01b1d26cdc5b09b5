"""
Django management command to build, inspect and clear the agent memory index.
"""

import logging
import time

from asgiref.sync import async_to_sync
from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from django_agent_memory.conf import get_agents_dir, get_workspace_root
from django_agent_memory.index import MemoryIndexError, get_memory_index

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Index agent workspaces and fleet documents into the memory index"

    def add_arguments(self, parser):
        subparsers = parser.add_subparsers(dest="action", required=True)

        subparsers.add_parser("stats", help="Show document counts per scope")

        workspace = subparsers.add_parser(
            "workspace", help="Index a single agent workspace"
        )
        workspace.add_argument("workspace_id")
        workspace.add_argument(
            "--path",
            help="Workspace directory (defaults to <AGENTS_DIR>/<workspace_id>)",
        )

        subparsers.add_parser(
            "all", help="Index every agent workspace and the global documents"
        )
        subparsers.add_parser("global", help="Index the global documents")

        clear = subparsers.add_parser("clear", help="Delete indexed documents")
        clear.add_argument(
            "--scope", help="Only clear this scope (clears every scope by default)"
        )

        parser.add_argument(
            "--verbose",
            action="store_true",
            help="Enable verbose output",
        )

    def handle(self, *args, **options):
        if options["verbose"]:
            logging.getLogger("django_agent_memory").setLevel(logging.DEBUG)

        action = options["action"]

        start_time = time.time()
        try:
            index = get_memory_index()
            getattr(self, f"_handle_{action}")(index, options)
        except MemoryIndexError as e:
            raise CommandError(f"Memory index {action} failed: {e}") from e
        except ValueError as e:
            raise CommandError(str(e)) from e

        if action != "stats":
            elapsed_time = time.time() - start_time
            self.stdout.write(f"Total time: {elapsed_time:.2f} seconds")
            self.stdout.write(f"Completed at: {timezone.now()}")

    def _handle_stats(self, index, options):
        stats = async_to_sync(index.stats)()
        self.stdout.write(f"Total documents: {stats.total_documents}")
        for scope, count in stats.by_scope.items():
            self.stdout.write(f"  - {scope}: {count}")

    def _handle_workspace(self, index, options):
        workspace_id = options["workspace_id"]
        path = options.get("path") or f"{get_agents_dir()}/{workspace_id}"
        self.stdout.write(f"Indexing workspace '{workspace_id}' from {path}")
        count = async_to_sync(index.index_workspace)(workspace_id, path)
        self.stdout.write(
            self.style.SUCCESS(f"  ✓ Indexed {count} document(s) from '{workspace_id}'")
        )

    def _handle_all(self, index, options):
        agents_dir = get_agents_dir()
        self.stdout.write(f"Indexing workspaces under {agents_dir}")
        counts = async_to_sync(index.index_all_workspaces)(agents_dir)
        if not counts:
            self.stdout.write(self.style.WARNING("No workspaces found"))
        for workspace_id, count in counts.items():
            self.stdout.write(f"  - {workspace_id}: {count}")

        self._handle_global(index, options)
        self.stdout.write(
            self.style.SUCCESS(
                f"Indexed {len(counts)} workspace(s) and the global documents"
            )
        )

    def _handle_global(self, index, options):
        root = get_workspace_root()
        count = async_to_sync(index.index_global)(root)
        self.stdout.write(
            self.style.SUCCESS(f"  ✓ Indexed {count} global document(s) from {root}")
        )

    def _handle_clear(self, index, options):
        scope = options.get("scope")
        dropped = async_to_sync(index.clear)(scope)
        if not dropped:
            self.stdout.write(self.style.WARNING("Nothing to clear"))
            return
        self.stdout.write(
            self.style.SUCCESS(
                f"Cleared scope(s): {', '.join(s.value for s in dropped)}"
            )
        )
