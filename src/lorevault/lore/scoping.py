"""Scope name helpers."""


def normalize_scope(scope: str) -> str:
    """Normalize a scope path: trimmed, no leading/trailing slashes, lowercase."""
    return scope.strip().strip("/").lower()


def get_scope_label(scope: str) -> str:
    """Human-readable label for a scope (the empty scope covers everything)."""
    return scope or "(all)"
