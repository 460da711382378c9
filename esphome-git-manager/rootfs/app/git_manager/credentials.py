from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol
from urllib.parse import quote, urlsplit, urlunsplit

from .config import Options

_AUTH_SCHEMES = {"http", "https"}


@dataclass(frozen=True)
class Credentials:
    username: str
    password: str

    def __repr__(self) -> str:
        return f"Credentials(username={self.username!r}, password='***')"


class CredentialSource(Protocol):
    def get_credentials(self, url: str) -> Credentials | None:
        """Return the credentials to use for ``url``, or None for anonymous access."""
        ...


class StaticCredentials:
    """Username/password pair taken from the add-on options."""

    def __init__(self, username: str, password: str) -> None:
        self._credentials = Credentials(username, password) if (username or password) else None

    @classmethod
    def from_options(cls, options: Options) -> StaticCredentials:
        return cls(options.repository_username, options.repository_password)

    def get_credentials(self, url: str) -> Credentials | None:
        return self._credentials


def authenticated_url(url: str, source: CredentialSource | None) -> str:
    """Embed credentials into an http(s) URL; other URLs are returned untouched."""
    if source is None:
        return url
    parts = urlsplit(url)
    if parts.scheme not in _AUTH_SCHEMES or not parts.hostname:
        return url
    credentials = source.get_credentials(url)
    if credentials is None:
        return url
    host = parts.hostname
    if parts.port:
        host = f"{host}:{parts.port}"
    userinfo = quote(credentials.username, safe="")
    if credentials.password:
        userinfo = f"{userinfo}:{quote(credentials.password, safe='')}"
    return urlunsplit((parts.scheme, f"{userinfo}@{host}", parts.path, parts.query, parts.fragment))


def redact_url(url: str) -> str:
    """Strip any userinfo from a URL so it can be logged or compared."""
    parts = urlsplit(url)
    if not parts.scheme or "@" not in parts.netloc:
        return url
    host = parts.netloc.rsplit("@", 1)[1]
    return urlunsplit((parts.scheme, host, parts.path, parts.query, parts.fragment))
