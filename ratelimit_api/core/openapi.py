"""OpenAPI customization.

Adds tag descriptions and documents the quota headers returned by the
rate-limited endpoints, keeping documentation concerns out of the factory.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

_TAGS = [
    {
        "name": "Rate Limit",
        "description": "Per-client fixed-window quota: consume and inspect.",
    },
    {
        "name": "Health",
        "description": "Liveness and readiness checks.",
    },
]

_QUOTA_HEADERS = {
    "X-RateLimit-Limit": "Requests allowed per window.",
    "X-RateLimit-Remaining": "Requests left in the current window.",
    "X-RateLimit-Reset": "Seconds until the current window resets (omitted when no window is active).",
}


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation with tags and quota headers.

    - Adds tags metadata if not present
    - Documents X-RateLimit-* headers on every /api response, and
      Retry-After on 429 responses
    """

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        schema = original_openapi()

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        for tag in _TAGS:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        for path, methods in schema.get("paths", {}).items():
            if not path.startswith("/api/"):
                continue
            for method_obj in methods.values():
                if not isinstance(method_obj, dict):
                    continue
                for code, response in method_obj.get("responses", {}).items():
                    headers = response.setdefault("headers", {})
                    for name, description in _QUOTA_HEADERS.items():
                        headers.setdefault(
                            name,
                            {"description": description, "schema": {"type": "integer"}},
                        )
                    if code == "429":
                        headers.setdefault(
                            "Retry-After",
                            {
                                "description": "Seconds to wait before retrying.",
                                "schema": {"type": "integer"},
                            },
                        )

        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
