"""OpenAPI customization.

Adds the bearer security scheme and marks admin operations as requiring it.
Public operations stay unauthenticated. Nothing is added when admin routes
are not mounted.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

from guestbook.api.routes.admin import ADMIN_PREFIX

SECURITY_SCHEME_NAME = "AdminBearer"

TAGS_METADATA = [
    {"name": "Visitors", "description": "Registration and public listing."},
    {"name": "Admin", "description": "Full visitor rows and deletion (bearer token)."},
    {"name": "Health", "description": "Liveness checks."},
]


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add tags and admin security."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        schema = original_openapi()
        paths: Dict[str, Any] = schema.get("paths", {})

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        tags.extend(t for t in TAGS_METADATA if t["name"] not in existing_tag_names)

        admin_paths = [path for path in paths if path.startswith(ADMIN_PREFIX + "/")]
        if not admin_paths:
            return schema

        security_schemes = schema.setdefault("components", {}).setdefault("securitySchemes", {})
        security_schemes.setdefault(
            SECURITY_SCHEME_NAME,
            {
                "type": "http",
                "scheme": "bearer",
                "description": "Admin token configured through APP_ADMIN_TOKEN.",
            },
        )

        for path in admin_paths:
            for operation in paths[path].values():
                if isinstance(operation, dict):
                    operation["security"] = [{SECURITY_SCHEME_NAME: []}]

        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
