from __future__ import annotations

import re

from flask import current_app, has_request_context, request

_EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


def is_valid_email(email: str) -> bool:
    return bool(_EMAIL_RE.match(email or ""))


def public_base_url() -> str:
    """Origin used in emailed links: PUBLIC_BASE_URL if set, else the current request's host."""
    configured = (current_app.config.get("PUBLIC_BASE_URL") or "").strip().rstrip("/")
    if configured:
        return configured
    if has_request_context():
        return request.host_url.rstrip("/")
    return "http://localhost:5000"


def form_payload(fields: tuple[str, ...]) -> dict[str, str]:
    return {f: (request.form.get(f) or "").strip() for f in fields}


def column_max_lengths(table) -> dict[str, int]:
    """Declared length of every sized string column on `table`."""
    return {c.name: c.type.length for c in table.columns if getattr(c.type, "length", None)}


def length_errors(values: dict, labels: dict[str, str], max_lengths: dict[str, int]) -> list[str]:
    errors: list[str] = []
    for key, label in labels.items():
        limit = max_lengths.get(key)
        value = values.get(key)
        if limit and isinstance(value, str) and len(value) > limit:
            errors.append(f"{label} must be at most {limit} characters.")
    return errors
