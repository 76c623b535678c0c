# secrets.py
from __future__ import annotations

import os
import re
from typing import Dict, Iterable, Mapping, Optional

from .model import Event

SECRET_ENV_PREFIX = "PRCHECK_SECRET_"
REDACTED = "***"

# ${{ secrets.NAME }} / ${{ github.sha }}
_EXPR = re.compile(r"\$\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\.([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")


class SecretStore:
    """
    Named secrets, resolved at step execution time only.

    Values never leave this object except through `interpolate`, and
    `redact` scrubs them from anything that will be printed or published.
    """

    def __init__(self, values: Optional[Mapping[str, str]] = None):
        self._values: Dict[str, str] = dict(values or {})

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "SecretStore":
        environ = os.environ if environ is None else environ
        values: Dict[str, str] = {}
        if environ.get("GITHUB_TOKEN"):
            values["GITHUB_TOKEN"] = environ["GITHUB_TOKEN"]
        for key, value in environ.items():
            if key.startswith(SECRET_ENV_PREFIX) and len(key) > len(SECRET_ENV_PREFIX):
                values[key[len(SECRET_ENV_PREFIX):]] = value
        return cls(values)

    def with_overrides(self, pairs: Iterable[str]) -> "SecretStore":
        """Return a new store with NAME=VALUE pairs (CLI --secret) layered on top."""
        values = dict(self._values)
        for pair in pairs:
            name, sep, value = pair.partition("=")
            if not sep or not name:
                raise ValueError(f"secret must be NAME=VALUE, got {pair!r}")
            values[name] = value
        return SecretStore(values)

    def get(self, name: str) -> str:
        # unknown secrets expand to an empty string, like the hosted platform
        return self._values.get(name, "")

    def names(self) -> list[str]:
        return sorted(self._values)

    def __contains__(self, name: str) -> bool:
        return name in self._values

    def __repr__(self) -> str:
        return f"SecretStore(names={self.names()})"

    def redact(self, text: str) -> str:
        if not text:
            return text
        # longest first so a secret containing another one is fully masked
        for value in sorted(self._values.values(), key=len, reverse=True):
            if value:
                text = text.replace(value, REDACTED)
        return text


def _github_context(event: Event) -> Dict[str, str]:
    ctx = {
        "event_name": event.type.value,
        "sha": event.sha or "",
        "ref": event.ref or "",
        "repository": event.repository or "",
        "action": event.action or "",
    }
    return ctx


def interpolate(value: str, secrets: SecretStore, event: Event) -> str:
    """Expand ${{ secrets.* }} and ${{ github.* }} in `value`; leave anything else as is."""
    github = _github_context(event)

    def _sub(m: re.Match) -> str:
        scope, name = m.group(1), m.group(2)
        if scope == "secrets":
            return secrets.get(name)
        if scope == "github" and name in github:
            return github[name]
        return m.group(0)

    return _EXPR.sub(_sub, value)


def bind_parameters(params: Mapping[str, str], secrets: SecretStore, event: Event) -> Dict[str, str]:
    """Build the per-step parameter overlay. Callers drop it once the step is done."""
    return {k: interpolate(str(v), secrets, event) for k, v in params.items()}
