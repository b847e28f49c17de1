"""OpenAPI metadata and customization utilities.

Enriches the generated schema with tag descriptions and the ``X-Admin-Token``
security scheme, applied to the admin operations only.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

_TAGS = [
    {
        "name": "Reviews",
        "description": "AI review summaries, insights, comparisons and recommendations. "
        "Rate limited per client; streamed endpoints return chunked text/plain.",
    },
    {
        "name": "Admin",
        "description": "Cache tag invalidation and rate limiter inspection/reset.",
    },
    {
        "name": "Health",
        "description": "Liveness checks.",
    },
]


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add tags and admin security."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        schema = original_openapi()

        components = schema.setdefault("components", {})
        security_schemes = components.setdefault("securitySchemes", {})
        security_schemes.setdefault(
            "AdminTokenAuth",
            {
                "type": "apiKey",
                "in": "header",
                "name": "X-Admin-Token",
                "description": "Shared admin token (APP_ADMIN_TOKEN).",
            },
        )

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        for tag in _TAGS:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        for path, methods in schema.get("paths", {}).items():
            if not path.startswith("/admin"):
                continue
            for method_obj in methods.values():
                if isinstance(method_obj, dict):
                    method_obj["security"] = [{"AdminTokenAuth": []}]

        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
