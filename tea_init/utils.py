from __future__ import annotations
from typing import Any, Generic, TypeVar, Callable
import httpx

from .types import InitializationError

T = TypeVar("T")


class Result(Generic[T]):
    __slots__ = ("_ok", "_value", "_error")

    def __init__(self, ok: bool, value: T | None = None, error: Exception | None = None):
        self._ok, self._value, self._error = ok, value, error

    @property
    def value(self) -> T:
        if not self._ok:
            raise self._error  # type: ignore[misc]
        return self._value  # type: ignore[return-value]

    def map(self, fn: Callable[[T], T]) -> "Result[T]":
        return ok(fn(self._value)) if self._ok else self  # type: ignore[arg-type]


def ok(value: T) -> Result[T]:
    return Result(True, value=value)


def err(error: Exception) -> Result[Any]:
    return Result(False, error=error)


_HTTP_CLIENT: httpx.AsyncClient | None = None


async def init_http_client(timeout: float = 30.0, transport: httpx.AsyncBaseTransport | None = None) -> None:
    global _HTTP_CLIENT
    if _HTTP_CLIENT is None:
        # transport retries cover connect errors only; failed installs are retried by the watcher
        transport = transport or httpx.AsyncHTTPTransport(retries=2)
        _HTTP_CLIENT = httpx.AsyncClient(timeout=timeout, transport=transport, follow_redirects=True)


async def get_http_client() -> httpx.AsyncClient:
    if _HTTP_CLIENT is None:
        await init_http_client()
    assert _HTTP_CLIENT is not None
    return _HTTP_CLIENT


async def close_http_client() -> None:
    global _HTTP_CLIENT
    if _HTTP_CLIENT is not None:
        try:
            await _HTTP_CLIENT.aclose()
        finally:
            _HTTP_CLIENT = None


async def fetch_text(url: str) -> Result[str]:
    try:
        client = await get_http_client()
        resp = await client.get(url)
        if resp.status_code != 200:
            return err(InitializationError(f"GET {url} returned status code {resp.status_code}"))
        return ok(resp.text)
    except httpx.HTTPError as e:
        return err(e)
