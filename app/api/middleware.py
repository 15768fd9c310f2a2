import asyncio

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.logger import logger

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
    "X-DNS-Prefetch-Control": "off",
}

BODY_TOO_LARGE = "Request body too large"


async def add_security_headers(request: Request, call_next):
    response = await call_next(request)
    for name, value in SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)
    return response


async def catch_unhandled_errors(request: Request, call_next):
    # Registered innermost so 500s still pass through the header middlewares
    try:
        return await call_next(request)
    except Exception as e:
        logger.exception(f"🔥 UNHANDLED ERROR: {e}")
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "An unexpected error occurred"},
        )


class BodySizeLimitMiddleware:
    """
    Rejects request bodies over ``MAX_BODY_BYTES`` with 413. A declared
    Content-Length is checked up front; otherwise the bytes are counted as
    the application reads them, which covers chunked uploads.
    """

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        limit = settings.MAX_BODY_BYTES
        headers = dict(scope.get("headers") or [])
        length = headers.get(b"content-length", b"").decode("latin-1")
        if length.isdigit() and int(length) > limit:
            logger.warning(f"📦 Rejected {scope['method']} {scope['path']}: body of {length} bytes")
            response = JSONResponse(status_code=413, content={"success": False, "error": BODY_TOO_LARGE})
            await response(scope, receive, send)
            return

        received = 0

        async def limited_receive():
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > limit:
                    logger.warning(f"📦 Rejected {scope['method']} {scope['path']}: body over {limit} bytes")
                    raise HTTPException(status_code=413, detail=BODY_TOO_LARGE)
            return message

        await self.app(scope, limited_receive, send)


async def enforce_request_timeout(request: Request, call_next):
    try:
        return await asyncio.wait_for(call_next(request), timeout=settings.REQUEST_TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        logger.error(f"⏱️ {request.method} {request.url.path} exceeded {settings.REQUEST_TIMEOUT_SECONDS}s")
        return JSONResponse(
            status_code=504,
            content={"success": False, "error": "The request took too long to complete"},
        )
