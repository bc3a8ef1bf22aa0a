"""Unwrap and mask API keys without leaking them into logs."""

from __future__ import annotations

from pydantic import SecretStr


def secret_value(value: SecretStr | str | None) -> str | None:
    """Plaintext of ``value`` with surrounding whitespace removed; blank becomes None."""
    if value is None:
        return None
    plain = value.get_secret_value() if isinstance(value, SecretStr) else value
    return plain.strip() or None


def mask_secret(value: SecretStr | str | None, visible: int = 6) -> str:
    """Log-safe preview showing only the first ``visible`` characters."""
    plain = secret_value(value)
    if not plain:
        return ""
    if len(plain) <= visible:
        return "*" * len(plain)
    return f"{plain[:visible]}..."
