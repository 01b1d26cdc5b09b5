import json
import logging
from datetime import datetime
from typing import Any

from asgiref.sync import async_to_sync
from django.http import JsonResponse
from django.utils.decorators import method_decorator
from django.views import View
from django.views.decorators.csrf import csrf_exempt

from django_agent_memory.conf import (
    get_agents_dir,
    get_section,
    get_workspace_root,
)

from .exceptions import ConfigurationError, MemoryIndexError, UpstreamError
from .schema import Document, Scope

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    ConfigurationError: 503,
    UpstreamError: 502,
}


class InvalidRequest(Exception):
    code = "invalid_request"


def error_response(message: str, code: str, status: int) -> JsonResponse:
    return JsonResponse({"error": message, "code": code}, status=status)


def index_error_response(error: MemoryIndexError) -> JsonResponse:
    status = next(
        (
            status
            for error_cls, status in ERROR_STATUS.items()
            if isinstance(error, error_cls)
        ),
        503,
    )
    return error_response(str(error), error.code, status)


def parse_json_body(request) -> dict[str, Any]:
    try:
        data = json.loads(request.body or b"{}")
    except json.JSONDecodeError as e:
        raise InvalidRequest("Invalid JSON in request body") from e
    if not isinstance(data, dict):
        raise InvalidRequest("Request body must be a JSON object")
    return data


def parse_number(value, name: str, cast, default):
    if value is None or value == "":
        return default
    try:
        return cast(value)
    except (TypeError, ValueError) as e:
        raise InvalidRequest(f"Invalid value for {name}: {value!r}") from e


def document_from_json(data: dict[str, Any]) -> Document:
    if not isinstance(data, dict):
        raise InvalidRequest("Each document must be a JSON object")
    try:
        timestamp = data.get("timestamp")
        return Document(
            id=data["id"],
            content=data["content"],
            scope=Scope(data["scope"]),
            scope_id=data.get("scopeId") or None,
            source_path=data.get("sourcePath", ""),
            source_type=data.get("sourceType", "document"),
            metadata=data.get("metadata") or {},
            **({"timestamp": datetime.fromisoformat(timestamp)} if timestamp else {}),
        )
    except KeyError as e:
        raise InvalidRequest(f"Document is missing required field: {e.args[0]}") from e
    except (TypeError, ValueError) as e:
        raise InvalidRequest(f"Invalid document: {e}") from e


class MemoryIndexView(View):
    def get_index(self):
        from . import get_memory_index

        return get_memory_index()

    def dispatch(self, request, *args, **kwargs):
        try:
            return super().dispatch(request, *args, **kwargs)
        except InvalidRequest as e:
            return error_response(str(e), e.code, 400)
        except MemoryIndexError as e:
            logger.warning(f"Memory index request failed: {e}")
            return index_error_response(e)


@method_decorator(csrf_exempt, name="dispatch")
class SearchView(MemoryIndexView):
    def get(self, request):
        params = request.GET
        return self._search(
            query=params.get("q"),
            scope=params.get("scope"),
            scope_id=params.get("scopeId"),
            limit=params.get("limit"),
            min_score=params.get("minScore"),
        )

    def post(self, request):
        """
        Search the memory index.

        Expected JSON payload:
        {
            "query": "lobster enthusiast",
            "scope": "workspace",
            "scopeId": "kai",
            "limit": 5,
            "minScore": 0.3
        }
        """
        data = parse_json_body(request)
        return self._search(
            query=data.get("query"),
            scope=data.get("scope"),
            scope_id=data.get("scopeId"),
            limit=data.get("limit"),
            min_score=data.get("minScore"),
        )

    def _search(self, *, query, scope, scope_id, limit, min_score):
        if not query or not str(query).strip():
            raise InvalidRequest("Query is required")

        defaults = get_section("SEARCH")
        try:
            results = async_to_sync(self.get_index().search)(
                str(query),
                scope=Scope.parse(scope),
                scope_id=scope_id or None,
                limit=parse_number(limit, "limit", int, defaults["LIMIT"]),
                min_score=parse_number(
                    min_score, "minScore", float, defaults["MIN_SCORE"]
                ),
            )
        except ValueError as e:
            raise InvalidRequest(str(e)) from e

        return JsonResponse(
            {
                "query": query,
                "results": [result.as_dict() for result in results],
                "count": len(results),
                "failedScopes": [
                    {"scope": failure.scope.value, "error": failure.error}
                    for failure in results.failures
                ],
            }
        )


@method_decorator(csrf_exempt, name="dispatch")
class IndexView(MemoryIndexView):
    actions = ("workspace", "all", "global", "clear", "documents")

    def get(self, request):
        stats = async_to_sync(self.get_index().stats)()
        return JsonResponse(stats.as_dict())

    def post(self, request):
        """
        Trigger indexing.

        Expected JSON payload:
        {
            "action": "workspace" | "all" | "global" | "clear" | "documents",
            "workspaceId": "kai",        (action=workspace)
            "scope": "workspace",        (action=clear, optional)
            "documents": [{...}]         (action=documents)
        }
        """
        data = parse_json_body(request)
        action = data.get("action")
        if action not in self.actions:
            raise InvalidRequest(
                f"Invalid action. Use: {', '.join(self.actions)}"
            )
        return getattr(self, f"_{action}")(data)

    def _workspace(self, data):
        workspace_id = data.get("workspaceId")
        if not workspace_id or not isinstance(workspace_id, str):
            raise InvalidRequest("workspaceId is required")
        if "/" in workspace_id or workspace_id in (".", ".."):
            raise InvalidRequest(f"Invalid workspaceId: {workspace_id!r}")
        workspace_path = f"{get_agents_dir()}/{workspace_id}"
        count = async_to_sync(self.get_index().index_workspace)(
            workspace_id, workspace_path
        )
        return JsonResponse(
            {
                "action": "workspace",
                "workspaceId": workspace_id,
                "documentsIndexed": count,
            }
        )

    def _all(self, data):
        index = self.get_index()
        workspaces = async_to_sync(index.index_all_workspaces)(get_agents_dir())
        global_count = async_to_sync(index.index_global)(get_workspace_root())
        return JsonResponse(
            {
                "action": "all",
                "workspaces": workspaces,
                "global": global_count,
                "totalDocuments": sum(workspaces.values()) + global_count,
            }
        )

    def _global(self, data):
        count = async_to_sync(self.get_index().index_global)(get_workspace_root())
        return JsonResponse({"action": "global", "documentsIndexed": count})

    def _clear(self, data):
        scope = data.get("scope")
        try:
            dropped = async_to_sync(self.get_index().clear)(scope)
        except ValueError as e:
            raise InvalidRequest(str(e)) from e
        return JsonResponse(
            {
                "action": "clear",
                "scope": scope or "all",
                "dropped": [s.value for s in dropped],
            }
        )

    def _documents(self, data):
        documents = data.get("documents")
        if not isinstance(documents, list):
            raise InvalidRequest("documents must be a list")
        parsed = [document_from_json(document) for document in documents]
        result = async_to_sync(self.get_index().index_many)(parsed)
        return JsonResponse(
            {
                "action": "documents",
                "documentsIndexed": result.count,
                "failedScopes": {
                    scope.value: error for scope, error in result.failures.items()
                },
            }
        )
