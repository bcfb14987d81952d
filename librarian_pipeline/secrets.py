"""Secret resolution for access tokens and container environment variables."""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Protocol, Sequence

from dotenv import dotenv_values

from .errors import CommandFailedError
from .state import CommandConfig

logger = logging.getLogger(__name__)


class SecretResolver(Protocol):
    name: str
    source: str

    def resolve(self, key: str) -> Optional[str]:  # pragma: no cover - interface
        ...

    def describe(self) -> dict[str, object]:  # pragma: no cover - optional hook
        return {}


class SecretStore(Protocol):
    def access(self, project: str, secret_name: str) -> Optional[str]:  # pragma: no cover - interface
        ...


@dataclass(frozen=True)
class SecretAttempt:
    resolver: str
    source: str
    success: bool
    details: dict[str, object] = field(default_factory=dict)


@dataclass(frozen=True)
class SecretResolutionInfo:
    name: str
    value: Optional[str]
    resolver: Optional[str]
    source: Optional[str]
    attempts: List[SecretAttempt]

    def summary(self) -> str:
        attempted = []
        for attempt in self.attempts:
            label = attempt.source or attempt.resolver
            path = attempt.details.get("path") if attempt.details else None
            if path:
                label = f"{label}@{path}"
            status = "resolved" if attempt.success else "missing"
            attempted.append(f"{label} ({status})")
        return ", ".join(attempted) if attempted else "none"


class EnvResolver:
    """Resolve secrets from process environment variables."""

    name = "env"
    source = "env"

    def __init__(self, environ: Optional[Mapping[str, str]] = None) -> None:
        self._environ = environ

    def resolve(self, key: str) -> Optional[str]:
        environ = os.environ if self._environ is None else self._environ
        value = environ.get(key)
        return value if value else None

    def describe(self) -> dict[str, object]:
        return {"type": "env"}


class DotEnvResolver:
    """Resolve secrets from a ``.env`` file without touching ``os.environ``."""

    source = "dotenv"

    def __init__(self, path: Path) -> None:
        self.path = path
        self.name = f"dotenv:{path}"
        self._values: Optional[Dict[str, Optional[str]]] = None

    def resolve(self, key: str) -> Optional[str]:
        if self._values is None:
            self._values = dict(dotenv_values(self.path)) if self.path.exists() else {}
        value = self._values.get(key)
        return value if value else None

    def describe(self) -> dict[str, object]:
        return {
            "type": "dotenv",
            "path": str(self.path),
            "exists": self.path.exists(),
            "loaded": self._values is not None,
        }


class SecretManagerResolver:
    """Resolve secrets from a secret store scoped to one project."""

    source = "secret-manager"

    def __init__(self, project: str, store: SecretStore) -> None:
        self.project = project
        self.store = store
        self.name = f"secret-manager:{project}"

    def resolve(self, key: str) -> Optional[str]:
        value = self.store.access(self.project, key)
        return value if value else None

    def describe(self) -> dict[str, object]:
        return {"type": "secret-manager", "project": self.project}


class GcloudSecretStore:
    """Read the latest version of a secret through the ``gcloud`` CLI."""

    def __init__(self, executable: str = "gcloud") -> None:
        self.executable = executable

    def access(self, project: str, secret_name: str) -> Optional[str]:
        cmd = [
            self.executable,
            "secrets",
            "versions",
            "access",
            "latest",
            f"--secret={secret_name}",
            f"--project={project}",
        ]
        proc = subprocess.run(cmd, capture_output=True, text=True, check=False)
        if proc.returncode != 0:
            if "NOT_FOUND" in proc.stderr:
                return None
            raise CommandFailedError(cmd, proc.returncode, proc.stderr)
        return proc.stdout


class SecretChain:
    """Ordered list of resolvers; the first one returning a value wins."""

    def __init__(self, resolvers: Sequence[SecretResolver]) -> None:
        self.resolvers = list(resolvers)

    def resolve_info(self, key: str) -> SecretResolutionInfo:
        attempts: List[SecretAttempt] = []
        for resolver in self.resolvers:
            value = resolver.resolve(key)
            describe = getattr(resolver, "describe", None)
            details = describe() if callable(describe) else {}
            attempts.append(
                SecretAttempt(resolver=resolver.name, source=resolver.source, success=bool(value), details=details)
            )
            if value:
                return SecretResolutionInfo(
                    name=key, value=value, resolver=resolver.name, source=resolver.source, attempts=attempts
                )
        return SecretResolutionInfo(name=key, value=None, resolver=None, source=None, attempts=attempts)

    def resolve(self, key: str) -> Optional[str]:
        return self.resolve_info(key).value


def default_chain(work_root: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None) -> SecretChain:
    resolvers: List[SecretResolver] = [EnvResolver(environ)]
    if work_root is not None:
        resolvers.append(DotEnvResolver(work_root / ".env"))
    return SecretChain(resolvers)


def resolve_command_environment(
    command: CommandConfig,
    *,
    host: SecretChain,
    secret_store: Optional[SecretStore] = None,
    secret_project: Optional[str] = None,
) -> Dict[str, str]:
    """Populate a container environment from a command's variable descriptors.

    Order per variable: host value, secret store (only when a project is
    configured and the variable names a secret), default value. Variables with
    no value are omitted.
    """
    environment: Dict[str, str] = {}
    for variable in command.environment_variables:
        value = host.resolve(variable.name)
        source = "host"
        if value is None and secret_project and secret_store is not None and variable.secret_name:
            value = SecretManagerResolver(secret_project, secret_store).resolve(variable.secret_name)
            source = "secret-manager"
        if value is None and variable.default_value:
            value = variable.default_value
            source = "default"
        if value is None:
            logger.debug("Environment variable %s not resolved; omitting.", variable.name)
            continue
        logger.debug("Environment variable %s resolved from %s.", variable.name, source)
        environment[variable.name] = value
    return environment
