"""Typed views over the cookie store."""

from __future__ import annotations

from datetime import datetime, timezone
from http.cookiejar import Cookie as JarCookie

from pydantic import BaseModel, ConfigDict


class EasyClientModel(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class Cookie(EasyClientModel):
    name: str
    value: str | None = None
    domain: str = ""
    path: str = "/"
    secure: bool = False
    expires: datetime | None = None

    @classmethod
    def from_jar(cls, cookie: JarCookie) -> "Cookie":
        expires = None
        if cookie.expires is not None:
            expires = datetime.fromtimestamp(cookie.expires, tz=timezone.utc)
        return cls(
            name=cookie.name,
            value=cookie.value,
            domain=cookie.domain,
            path=cookie.path,
            secure=cookie.secure,
            expires=expires,
        )
