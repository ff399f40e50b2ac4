"""OpenAPI metadata and customization utilities.

Provides a helper to enrich the generated OpenAPI schema with:
- Tags metadata
- Documented error responses for note retrieval (404/410/429/503)
- Rate limit response headers on the retrieval operation

This keeps documentation concerns decoupled from the app factory.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

_RATE_LIMIT_HEADERS: Dict[str, Any] = {
    "X-RateLimit-Limit": {
        "description": "Retrievals allowed per window.",
        "schema": {"type": "integer"},
    },
    "X-RateLimit-Remaining": {
        "description": "Retrievals left in the current window.",
        "schema": {"type": "integer"},
    },
    "X-RateLimit-Reset": {
        "description": "UNIX epoch seconds when the window (or ban) resets.",
        "schema": {"type": "integer"},
    },
}

_INVALID_REQUEST = "Malformed request body or parameters (invalid_request)."

_RETRIEVAL_ERRORS: Dict[str, str] = {
    "400": "Malformed identifier (invalid_identifier).",
    "404": "No note under this identifier (note_not_found).",
    "410": "Note outlived its retention window (note_expired).",
    "429": "Rate limited (rate_limited) or banned (client_blocked). Retry after Retry-After seconds.",
    "500": "Stored note is unreadable (corrupt_note).",
    "503": "Storage temporarily unavailable (store_unavailable). Retryable.",
}


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add metadata and error docs."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        schema = original_openapi()

        # Tags metadata
        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        desired_tags = [
            {
                "name": "Notes",
                "description": "Create and retrieve ephemeral notes (72-hour retention).",
            },
            {
                "name": "Health",
                "description": "Liveness and readiness checks.",
            },
        ]
        for tag in desired_tags:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        paths = schema.get("paths", {})

        # Request validation failures are rendered as 400 invalid_request
        for methods in paths.values():
            for operation in methods.values():
                if not isinstance(operation, dict):
                    continue
                responses = operation.get("responses", {})
                if responses.pop("422", None) is not None:
                    responses.setdefault("400", {"description": _INVALID_REQUEST})

        for path, methods in paths.items():
            if not path.endswith("/notes/{identifier}"):
                continue
            operation = methods.get("get")
            if not isinstance(operation, dict):
                continue
            responses = operation.setdefault("responses", {})
            success = responses.setdefault("200", {"description": "Successful Response"})
            success.setdefault("headers", {}).update(_RATE_LIMIT_HEADERS)
            for code, description in _RETRIEVAL_ERRORS.items():
                responses.setdefault(code, {"description": description})

        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
