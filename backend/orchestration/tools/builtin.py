"""
Built-in tool implementations
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import httpx

from .base import ToolImplementation, ToolRegistry

logger = logging.getLogger(__name__)


class ApiCallerTool(ToolImplementation):
    """Make an HTTP request and return status and body"""

    tool_type = "api_call"
    description = "Call an HTTP API"

    def __init__(self, timeout: float = 30.0):
        self.timeout = timeout

    async def execute(self, args: Dict[str, Any], cancel_token: Any = None) -> Any:
        url = args.get("url")
        if not url:
            raise ValueError("URL is required for API call")

        method = str(args.get("method", "GET")).upper()
        headers = args.get("headers") or {}
        body = args.get("body")
        timeout = args.get("timeout", self.timeout)

        logger.info(f"API call: {method} {url}")

        async with httpx.AsyncClient(timeout=timeout) as client:
            if method in ["POST", "PUT", "PATCH"]:
                request = client.request(method, url, json=body, headers=headers)
            else:
                request = client.request(method, url, params=args.get("params"), headers=headers)
            response = await (cancel_token.guard(request) if cancel_token else request)

        try:
            data = response.json()
        except ValueError:
            data = response.text

        return {"status": response.status_code, "data": data}


class FileOperationsTool(ToolImplementation):
    """Read, write and list files confined to a base directory"""

    tool_type = "file_operation"
    description = "Read, write or list files"

    def __init__(self, base_dir: str = "data/tool_files"):
        self.base_dir = Path(base_dir).resolve()

    def _resolve(self, relative: Optional[str]) -> Path:
        target = (self.base_dir / (relative or ".")).resolve()
        if target != self.base_dir and self.base_dir not in target.parents:
            raise ValueError(f"Path escapes the tool directory: {relative}")
        return target

    async def execute(self, args: Dict[str, Any], cancel_token: Any = None) -> Any:
        operation = args.get("operation")
        path = self._resolve(args.get("path"))

        if operation == "read":
            if not path.is_file():
                raise FileNotFoundError(f"File not found: {args.get('path')}")
            return {"path": args.get("path"), "content": path.read_text(encoding="utf-8")}

        if operation == "write":
            content = args.get("content", "")
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(str(content), encoding="utf-8")
            logger.info(f"Wrote {len(str(content))} characters to {path}")
            return {"path": args.get("path"), "written": len(str(content))}

        if operation == "list":
            if not path.is_dir():
                return {"path": args.get("path") or ".", "entries": []}
            entries = sorted(p.name + ("/" if p.is_dir() else "") for p in path.iterdir())
            return {"path": args.get("path") or ".", "entries": entries}

        raise ValueError(f"Unsupported file operation: {operation}")


def create_default_tool_registry(tool_files_dir: str = "data/tool_files") -> ToolRegistry:
    registry = ToolRegistry()
    registry.register(ApiCallerTool.tool_type, ApiCallerTool())
    registry.register(FileOperationsTool.tool_type, FileOperationsTool(tool_files_dir))
    return registry
