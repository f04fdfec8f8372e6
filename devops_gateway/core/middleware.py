"""Custom middleware for the gateway."""

import ipaddress
import secrets
import time
from typing import Callable, List, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from devops_gateway.core.error_contract import build_error_envelope
from devops_gateway.core.logging import get_logger, request_context
from devops_gateway.models.refs import CallerIdentity

logger = get_logger(__name__)

# Used when no trusted proxy is configured
DEFAULT_TRUSTED_PROXY_NETS: List[ipaddress.IPv4Network | ipaddress.IPv6Network] = [
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("::1/128"),
]


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Middleware to inject request context for logging."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or secrets.token_hex(8)
        request.state.request_id = request_id
        start_time = time.perf_counter()

        ctx = {
            "request_id": request_id,
            "path": request.url.path,
            "method": request.method,
        }
        token = request_context.set(ctx)

        try:
            response = await call_next(request)

            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.info(
                f"{request.method} {request.url.path} -> {response.status_code}",
                data={"duration_ms": round(duration_ms, 2)},
            )

            response.headers["X-Request-ID"] = request_id
            return response

        finally:
            request_context.reset(token)


class CallerIdentityMiddleware(BaseHTTPMiddleware):
    """Extract the caller identity once per request.

    The gateway runs behind an authenticating proxy which asserts the user
    name in ``header_name``. The header is only honoured when the direct peer
    is a trusted proxy; otherwise the request is treated as anonymous.
    The result is stored on ``request.state.caller``.
    """

    def __init__(
        self,
        app,
        header_name: str = "X-Remote-User",
        trusted_proxies: Optional[List[str]] = None,
    ):
        super().__init__(app)
        self.header_name = header_name
        self.trust_all = False
        self._trusted_nets: List[ipaddress.IPv4Network | ipaddress.IPv6Network] = []
        for proxy in trusted_proxies or []:
            if proxy == "*":
                self.trust_all = True
                continue
            try:
                self._trusted_nets.append(ipaddress.ip_network(proxy, strict=False))
            except ValueError:
                logger.warning(f"Invalid trusted proxy network: {proxy}")
        if not self._trusted_nets and not self.trust_all:
            self._trusted_nets = DEFAULT_TRUSTED_PROXY_NETS

    def _is_trusted(self, client_ip: Optional[str]) -> bool:
        if self.trust_all:
            return True
        if not client_ip:
            return False
        try:
            ip = ipaddress.ip_address(client_ip)
        except ValueError:
            return False
        return any(ip in net for net in self._trusted_nets)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        direct_ip = request.client.host if request.client else None
        asserted = (request.headers.get(self.header_name) or "").strip()

        caller: Optional[CallerIdentity] = None
        if asserted:
            if self._is_trusted(direct_ip):
                caller = CallerIdentity(name=asserted)
            else:
                logger.warning(
                    f"{self.header_name} header from untrusted source, ignoring",
                    data={"client_ip": direct_ip},
                )
        request.state.caller = caller

        token = None
        ctx = request_context.get()
        if caller is not None and ctx:
            token = request_context.set({**ctx, "caller": caller.name})
        try:
            return await call_next(request)
        finally:
            if token is not None:
                request_context.reset(token)


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Middleware to limit request body size."""

    def __init__(self, app, max_bytes: int = 1048576):
        super().__init__(app)
        self.max_bytes = max_bytes

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > self.max_bytes:
            logger.warning(
                f"Request too large: {content_length} bytes",
                data={"max_bytes": self.max_bytes},
            )
            return JSONResponse(
                status_code=413,
                content=build_error_envelope(
                    code="E4130",
                    message="Request body too large",
                    request_id=(request_context.get() or {}).get("request_id"),
                ),
            )

        return await call_next(request)
