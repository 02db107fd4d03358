"""Connection parameters read from environment variables.

The configuration document only names the variables; values are looked up
here at run time, with fixed conventional names as the fallback.
"""
import os
from dataclasses import dataclass
from typing import List, Mapping, Optional

from typegen.core.errors import MetadataFetchError
from typegen.schemas.config import EnvNames

DEFAULT_ENV_NAMES = {
    "server": "FM_SERVER",
    "db": "FM_DATABASE",
    "api_key": "OTTO_API_KEY",
    "username": "FM_USERNAME",
    "password": "FM_PASSWORD",
}


@dataclass(frozen=True)
class ResolvedEnvNames:
    server: str
    db: str
    api_key: str
    username: str
    password: str
    # True when the config explicitly names an API key variable
    prefers_api_key: bool = False


@dataclass(frozen=True)
class ConnectionParams:
    server: str
    db: str
    api_key: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None

    @property
    def uses_api_key(self) -> bool:
        return bool(self.api_key)


def resolve_env_names(env_names: Optional[EnvNames]) -> ResolvedEnvNames:
    auth = env_names.auth if env_names else None
    return ResolvedEnvNames(
        server=(env_names.server if env_names else None) or DEFAULT_ENV_NAMES["server"],
        db=(env_names.db if env_names else None) or DEFAULT_ENV_NAMES["db"],
        api_key=(auth.api_key if auth else None) or DEFAULT_ENV_NAMES["api_key"],
        username=(auth.username if auth else None) or DEFAULT_ENV_NAMES["username"],
        password=(auth.password if auth else None) or DEFAULT_ENV_NAMES["password"],
        prefers_api_key=bool(auth and auth.api_key),
    )


def get_connection_params(
    env_names: Optional[EnvNames],
    environ: Optional[Mapping[str, str]] = None,
) -> ConnectionParams:
    """Read and validate connection values.

    Raises MetadataFetchError naming every missing variable and the part of
    the connection (server, database or auth) that is most likely at fault.
    """
    environ = os.environ if environ is None else environ
    names = resolve_env_names(env_names)

    server = environ.get(names.server) or None
    db = environ.get(names.db) or None
    api_key = environ.get(names.api_key) or None
    username = environ.get(names.username) or None
    password = environ.get(names.password) or None

    missing: List[str] = []
    if not server:
        missing.append(names.server)
    if not db:
        missing.append(names.db)
    if not (api_key or username):
        missing.append(f"{names.api_key} (or {names.username} and {names.password})")

    if missing:
        if not server:
            suspect = "server"
        elif not db:
            suspect = "database"
        else:
            suspect = "auth"
        raise MetadataFetchError(
            f"Missing required environment variables: {', '.join(missing)}",
            missing=missing,
            suspect=suspect,
        )

    if not api_key and username and not password:
        raise MetadataFetchError(
            f"Password is required when using username authentication. Missing: {names.password}",
            missing=[names.password],
            suspect="auth",
        )

    if api_key:
        return ConnectionParams(server=server, db=db, api_key=api_key)
    return ConnectionParams(server=server, db=db, username=username, password=password)
