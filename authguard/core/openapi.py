"""OpenAPI schema customization.

Adds tag descriptions and the ``X-API-Key`` security scheme, attached only to
the administrative operations (login endpoints and health stay public).
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

ADMIN_PATH_PREFIX = "/v1/admin/"

TAGS_METADATA = [
    {"name": "Login", "description": "Login attempt admission checks and outcome reporting."},
    {"name": "Admin", "description": "Rate limit inspection, manual blocks and resets."},
    {"name": "Health", "description": "Liveness checks."},
]


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch the app's OpenAPI generation with tags and admin security."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        schema = original_openapi()

        security_schemes = schema.setdefault("components", {}).setdefault("securitySchemes", {})
        security_schemes.setdefault(
            "ApiKeyAuth",
            {
                "type": "apiKey",
                "in": "header",
                "name": "X-API-Key",
                "description": "Required for /v1/admin endpoints.",
            },
        )

        tags = schema.setdefault("tags", [])
        known = {tag.get("name") for tag in tags}
        tags.extend(tag for tag in TAGS_METADATA if tag["name"] not in known)

        for path, operations in schema.get("paths", {}).items():
            if not path.startswith(ADMIN_PATH_PREFIX):
                continue
            for operation in operations.values():
                if isinstance(operation, dict):
                    operation["security"] = [{"ApiKeyAuth": []}]

        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
