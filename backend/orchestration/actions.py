"""
Action collaborators - Side effects triggered by action nodes

Email and notifications are delivered to an in-process outbox and the log;
wiring a real mail or chat transport means replacing those two methods.
"""

import logging
import re
from typing import Any, Callable, Dict, List, Optional

import httpx

from .errors import ActionNotSupported
from .tools.builtin import FileOperationsTool

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\{\{\s*([\w.]+)\s*\}\}")


def render_placeholders(value: Any, payload: Dict[str, Any]) -> Any:
    """Substitute ``{{field}}`` in strings (recursively) from the node payload"""
    if isinstance(value, str):
        def replace(match):
            current: Any = payload
            for part in match.group(1).split("."):
                if not isinstance(current, dict) or part not in current:
                    return match.group(0)
                current = current[part]
            return str(current)
        return _PLACEHOLDER.sub(replace, value)
    if isinstance(value, dict):
        return {k: render_placeholders(v, payload) for k, v in value.items()}
    if isinstance(value, list):
        return [render_placeholders(v, payload) for v in value]
    return value


class ActionDispatcher:
    """Routes an action type to its collaborator and returns an acknowledgement"""

    def __init__(self, tool_files_dir: str = "data/tool_files", strict: bool = False):
        self.strict = strict
        self.files = FileOperationsTool(tool_files_dir)
        self.outbox: List[Dict[str, Any]] = []
        self._handlers: Dict[str, Callable] = {
            "send_email": self.send_email,
            "call_api": self.call_api,
            "create_file": self.create_file,
            "send_notification": self.send_notification,
        }

    def supported_actions(self) -> List[str]:
        return sorted(self._handlers)

    async def dispatch(
        self,
        action_type: str,
        config: Dict[str, Any],
        payload: Dict[str, Any],
        cancel_token: Any = None,
    ) -> Dict[str, Any]:
        handler = self._handlers.get(action_type)
        if handler is None:
            if self.strict:
                raise ActionNotSupported(f"Unsupported action type: {action_type}")
            logger.warning(f"Unsupported action type '{action_type}', echoing configuration")
            return {"actionType": action_type, "config": config, "handled": False}

        rendered = render_placeholders(config, payload)
        result = await handler(rendered, payload, cancel_token)
        return {"actionType": action_type, "handled": True, **result}

    async def send_email(
        self, config: Dict[str, Any], payload: Dict[str, Any], cancel_token: Any = None
    ) -> Dict[str, Any]:
        to = config.get("to")
        if not to:
            raise ValueError("send_email requires a 'to' address")
        message = {
            "kind": "email",
            "to": to,
            "subject": config.get("subject", ""),
            "body": config.get("body", ""),
        }
        self.outbox.append(message)
        logger.info(f"Email queued to {to}: {message['subject']}")
        return {"to": to, "subject": message["subject"], "status": "queued"}

    async def send_notification(
        self, config: Dict[str, Any], payload: Dict[str, Any], cancel_token: Any = None
    ) -> Dict[str, Any]:
        channel = config.get("channel", "default")
        message = config.get("message") or payload.get("result")
        if not message and isinstance(payload.get("results"), list):
            # Loop output: one line per iteration
            message = "\n".join(str(item) for item in payload["results"])
        message = message or ""
        self.outbox.append({"kind": "notification", "channel": channel, "message": message})
        logger.info(f"Notification on {channel}: {message}")
        return {"channel": channel, "status": "sent"}

    async def call_api(
        self, config: Dict[str, Any], payload: Dict[str, Any], cancel_token: Any = None
    ) -> Dict[str, Any]:
        url = config.get("url")
        if not url:
            raise ValueError("call_api requires a 'url'")
        method = str(config.get("method", "POST")).upper()
        body = config.get("body", payload)

        logger.info(f"Action HTTP {method} {url}")
        async with httpx.AsyncClient(timeout=config.get("timeout", 30)) as client:
            request = client.request(
                method,
                url,
                json=body if method in ["POST", "PUT", "PATCH"] else None,
                headers=config.get("headers") or {},
            )
            response = await (cancel_token.guard(request) if cancel_token else request)

        if response.status_code >= 400:
            raise ValueError(f"call_api returned HTTP {response.status_code}")
        try:
            data = response.json()
        except ValueError:
            data = response.text
        return {"status": response.status_code, "data": data}

    async def create_file(
        self, config: Dict[str, Any], payload: Dict[str, Any], cancel_token: Optional[Any] = None
    ) -> Dict[str, Any]:
        path = config.get("path") or config.get("filename")
        if not path:
            raise ValueError("create_file requires a 'path'")
        content = config.get("content", "")
        return await self.files.execute({"operation": "write", "path": path, "content": content})
