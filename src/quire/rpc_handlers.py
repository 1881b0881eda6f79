"""JSON-RPC handlers for pages and blocks.

Every handler takes the Workspace plus keyword params and returns a
JSON-serializable dict. Domain errors are converted to RpcError by the
``rpc_handler`` decorator; ``handle_request`` turns a decoded request into
a response (or None for notifications).
"""

from __future__ import annotations

import json
import logging
import uuid
from functools import wraps
from typing import Any, Callable, TextIO

from .errors import QuireError, get_error_code
from .models import search_block_types
from .rpc import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    JSON,
    METHOD_NOT_FOUND,
    RpcError,
    jsonrpc_error,
    jsonrpc_result,
    readline,
    write,
)
from .workspace import Workspace

logger = logging.getLogger(__name__)


def rpc_handler(method_name: str) -> Callable:
    """Decorator that converts domain errors to RpcError.

    1. RpcError propagates unchanged
    2. QuireError becomes a structured RpcError (code from ERROR_CODES)
    3. ValueError / TypeError become parameter errors (-32602)
    4. Anything else is logged and becomes an internal error (-32603)
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(workspace: Workspace, **kwargs: Any) -> Any:
            try:
                return func(workspace, **kwargs)
            except RpcError:
                raise
            except QuireError as e:
                raise RpcError(
                    code=get_error_code(e),
                    message=e.message,
                    data=e.to_dict(),
                ) from e
            except ValueError as e:
                raise RpcError(code=INVALID_PARAMS, message=str(e)) from e
            except TypeError as e:
                # Missing or unexpected keyword
                raise RpcError(
                    code=INVALID_PARAMS,
                    message=f"Invalid parameter: {e}",
                ) from e
            except Exception as e:
                logger.error(
                    "Internal error in RPC handler %s: %s",
                    method_name,
                    e,
                    exc_info=True,
                )
                raise RpcError(
                    code=INTERNAL_ERROR,
                    message=f"Internal error in {method_name}",
                    data={"error_type": type(e).__name__},
                ) from e

        return wrapper

    return decorator


# =============================================================================
# Page Handlers
# =============================================================================


@rpc_handler("pages/list")
def handle_pages_list(workspace: Workspace) -> JSON:
    return {"pages": [p.to_dict() for p in workspace.pages.list()]}


@rpc_handler("pages/tree")
def handle_pages_tree(workspace: Workspace, *, root_id: str | None = None) -> JSON:
    """Nested page tree, optionally rooted below ``root_id``."""
    return {"tree": [node.to_dict() for node in workspace.pages.build_tree(root_id)]}


@rpc_handler("pages/favorites")
def handle_pages_favorites(workspace: Workspace) -> JSON:
    return {"pages": [p.to_dict() for p in workspace.pages.favorites()]}


@rpc_handler("pages/ancestors")
def handle_pages_ancestors(workspace: Workspace, *, page_id: str) -> JSON:
    """Breadcrumb trail, root first."""
    return {"ancestors": [p.to_dict() for p in workspace.pages.ancestors_of(page_id)]}


@rpc_handler("pages/create")
def handle_pages_create(
    workspace: Workspace,
    *,
    title: str = "Untitled",
    parent_id: str | None = None,
) -> JSON:
    page = workspace.pages.create(title=title, parent_id=parent_id)
    return {"page": page.to_dict()}


@rpc_handler("pages/update")
def handle_pages_update(workspace: Workspace, *, page_id: str, **fields: Any) -> JSON:
    """Partial update; unknown fields are rejected by PageTree.update."""
    page = workspace.pages.update(page_id, **fields)
    return {"page": page.to_dict()}


@rpc_handler("pages/move")
def handle_pages_move(
    workspace: Workspace,
    *,
    page_id: str,
    parent_id: str | None = None,
    position: int | None = None,
) -> JSON:
    page = workspace.pages.move(page_id, parent_id, position)
    return {"page": page.to_dict()}


@rpc_handler("pages/delete")
def handle_pages_delete(workspace: Workspace, *, page_id: str) -> JSON:
    removed = workspace.delete_page(page_id)
    return {"deleted": sorted(removed)}


@rpc_handler("pages/open")
def handle_pages_open(workspace: Workspace, *, page_id: str) -> JSON:
    """Make a page active and return it with its blocks."""
    blocks = workspace.open_page(page_id)
    page = workspace.pages.get(page_id)
    return {
        "page": page.to_dict() if page else None,
        "blocks": [b.to_dict() for b in blocks],
    }


# =============================================================================
# Block Handlers
# =============================================================================


@rpc_handler("blocks/list")
def handle_blocks_list(workspace: Workspace) -> JSON:
    return {
        "page_id": workspace.blocks.page_id,
        "blocks": [b.to_dict() for b in workspace.blocks.list()],
    }


@rpc_handler("blocks/create")
def handle_blocks_create(
    workspace: Workspace,
    *,
    type: str = "paragraph",
    content: str = "",
    position: int | None = None,
    checked: bool = False,
) -> JSON:
    """Create a block on the active page.

    Args:
        type: Block type (paragraph, heading1, todo, ...)
        content: Initial text
        position: Explicit position (defaults to the end)
        checked: Initial checkbox state (todo blocks)
    """
    block = workspace.blocks.create(type, content, position, checked=checked)
    return {"block": block.to_dict()}


@rpc_handler("blocks/update")
def handle_blocks_update(workspace: Workspace, *, block_id: str, **fields: Any) -> JSON:
    block = workspace.blocks.update(block_id, **fields)
    return {"block": block.to_dict()}


@rpc_handler("blocks/change_type")
def handle_blocks_change_type(workspace: Workspace, *, block_id: str, type: str) -> JSON:
    block = workspace.blocks.change_type(block_id, type)
    return {"block": block.to_dict()}


@rpc_handler("blocks/delete")
def handle_blocks_delete(workspace: Workspace, *, block_id: str) -> JSON:
    workspace.blocks.delete(block_id)
    return {"ok": True}


@rpc_handler("blocks/insert_after")
def handle_blocks_insert_after(
    workspace: Workspace,
    *,
    after_id: str,
    type: str = "paragraph",
) -> JSON:
    block = workspace.blocks.insert_after(after_id, type)
    return {"block": block.to_dict()}


@rpc_handler("blocks/markdown")
def handle_blocks_markdown(workspace: Workspace) -> JSON:
    return {"page_id": workspace.blocks.page_id, "markdown": workspace.blocks.to_markdown()}


@rpc_handler("blocks/import_markdown")
def handle_blocks_import_markdown(workspace: Workspace, *, markdown: str) -> JSON:
    created = workspace.blocks.append_markdown(markdown)
    return {"blocks": [b.to_dict() for b in created]}


@rpc_handler("block_types/search")
def handle_block_types_search(_workspace: Workspace, *, query: str = "") -> JSON:
    """Slash-menu lookup by label or keyword."""
    return {"types": [info.to_dict() for info in search_block_types(query)]}


METHODS: dict[str, Callable[..., JSON]] = {
    "pages/list": handle_pages_list,
    "pages/tree": handle_pages_tree,
    "pages/favorites": handle_pages_favorites,
    "pages/ancestors": handle_pages_ancestors,
    "pages/create": handle_pages_create,
    "pages/update": handle_pages_update,
    "pages/move": handle_pages_move,
    "pages/delete": handle_pages_delete,
    "pages/open": handle_pages_open,
    "blocks/list": handle_blocks_list,
    "blocks/create": handle_blocks_create,
    "blocks/update": handle_blocks_update,
    "blocks/change_type": handle_blocks_change_type,
    "blocks/delete": handle_blocks_delete,
    "blocks/insert_after": handle_blocks_insert_after,
    "blocks/markdown": handle_blocks_markdown,
    "blocks/import_markdown": handle_blocks_import_markdown,
    "block_types/search": handle_block_types_search,
}


# =============================================================================
# Dispatch
# =============================================================================


def handle_request(workspace: Workspace, req: JSON) -> JSON | None:
    """Dispatch one decoded JSON-RPC request."""
    method = req.get("method")
    req_id = req.get("id")
    params = req.get("params")

    # Correlation ID for request tracing
    correlation_id = uuid.uuid4().hex[:12]
    logger.debug("RPC request [%s] method=%s req_id=%s", correlation_id, method, req_id)

    try:
        # Notifications can omit id; ignore.
        if req_id is None:
            return None

        if not isinstance(method, str):
            raise RpcError(code=INVALID_REQUEST, message="method must be a string")

        handler = METHODS.get(method)
        if handler is None:
            raise RpcError(code=METHOD_NOT_FOUND, message=f"Method not found: {method}")

        if params is None:
            params = {}
        if not isinstance(params, dict):
            raise RpcError(code=INVALID_PARAMS, message="params must be an object")

        return jsonrpc_result(req_id, handler(workspace, **params))

    except RpcError as exc:
        logger.warning(
            "RPC error [%s] method=%s code=%d: %s",
            correlation_id,
            method,
            exc.code,
            exc.message,
        )
        return jsonrpc_error(req_id, exc)
    except Exception as exc:  # noqa: BLE001
        logger.exception("RPC internal error [%s] method=%s: %s", correlation_id, method, exc)
        return jsonrpc_error(
            req_id,
            RpcError(code=INTERNAL_ERROR, message=f"Internal error: {type(exc).__name__}"),
        )


def run_stdio_server(
    workspace: Workspace,
    stdin: TextIO | None = None,
    stdout: TextIO | None = None,
) -> None:
    """Serve newline-delimited JSON-RPC until EOF."""
    while True:
        line = readline(stdin)
        if line is None:
            return
        if not line:
            continue

        try:
            req = json.loads(line)
        except json.JSONDecodeError:
            logger.debug("Skipping undecodable line")
            continue

        if not isinstance(req, dict):
            continue

        resp = handle_request(workspace, req)
        if resp is not None:
            write(resp, stdout)
