"""
Replay protection for POST endpoints that create money movements.

A client may send ``Idempotency-Key``. The first successful response for
(method, path, key) is cached; a retry with the same key gets that response
back, flagged with ``Idempotent-Replay: true``, instead of running twice.
Requests sharing a key are serialized so two retries in flight cannot both
reach the endpoint.
"""
import asyncio
import json
import logging
import time
from typing import Dict, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from ..core.config import settings

log = logging.getLogger(__name__)

# path -> key that must be present in a successful JSON body
ALLOW: Dict[str, str] = {
    "/pos/checkout": "order_id",
}


class _Cache:
    def __init__(self, ttl: int = 3600, max_entries: int = 2048):
        self.ttl = ttl
        self.max_entries = max_entries
        self._store: Dict[str, dict] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[dict]:
        async with self._lock:
            item = self._store.get(key)
            if not item:
                return None
            if item["exp"] < time.time():
                self._store.pop(key, None)
                return None
            return item

    async def set(self, key: str, val: dict) -> None:
        async with self._lock:
            if len(self._store) >= self.max_entries:
                self._store.pop(next(iter(self._store)))
            val["exp"] = time.time() + self.ttl
            self._store[key] = val


class _AsyncKeyedLocks:
    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._guard = asyncio.Lock()

    async def acquire(self, key: str) -> asyncio.Lock:
        async with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = asyncio.Lock()
                self._locks[key] = lock
        await lock.acquire()
        return lock


def _drop_content_length(headers: dict) -> dict:
    return {k: v for k, v in headers.items() if k.lower() != "content-length"}


def _json_body(body: bytes) -> Optional[dict]:
    try:
        js = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        return None
    return js if isinstance(js, dict) else None


def _replay(cached: dict) -> Response:
    body = cached["body"]
    js = _json_body(body)
    if js is not None:
        js.setdefault("replay", True)
        body = json.dumps(js).encode("utf-8")
    headers = _drop_content_length(dict(cached["headers"]))
    headers["Idempotent-Replay"] = "true"
    return Response(content=body, status_code=cached["status"], media_type=cached["media_type"], headers=headers)


class IdempotencyMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, ttl: Optional[int] = None, allow: Optional[Dict[str, str]] = None):
        super().__init__(app)
        self.allow = ALLOW if allow is None else allow
        self.cache = _Cache(ttl=settings.idempotency_ttl if ttl is None else ttl)
        self.locks = _AsyncKeyedLocks()

    async def dispatch(self, request, call_next):
        if request.method != "POST":
            return await call_next(request)

        path = request.url.path
        success_key = self.allow.get(path)
        if not success_key:
            return await call_next(request)

        idem_key = request.headers.get("Idempotency-Key")
        if not idem_key:
            return await call_next(request)

        cache_key = f"{request.method}:{path}:{idem_key}"
        cached = await self.cache.get(cache_key)
        if cached:
            log.info("idempotent replay for %s", cache_key)
            return _replay(cached)

        lock = await self.locks.acquire(cache_key)
        try:
            cached = await self.cache.get(cache_key)
            if cached:
                log.info("idempotent replay for %s", cache_key)
                return _replay(cached)

            response = await call_next(request)
            body = b""
            async for chunk in response.body_iterator:
                body += chunk
            headers = _drop_content_length(dict(response.headers))
            new_resp = Response(
                content=body, status_code=response.status_code, media_type=response.media_type, headers=headers
            )

            # only 200 responses carrying the success key are cached
            if response.status_code == 200:
                js = _json_body(body)
                if js is not None and success_key in js:
                    await self.cache.set(
                        cache_key,
                        {
                            "status": new_resp.status_code,
                            "headers": dict(new_resp.headers),
                            "media_type": new_resp.media_type,
                            "body": body,
                        },
                    )
            return new_resp
        finally:
            lock.release()


def install_idempotency(app, ttl: Optional[int] = None) -> None:
    app.add_middleware(IdempotencyMiddleware, ttl=ttl)
