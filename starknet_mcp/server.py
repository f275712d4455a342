"""FastAPI application exposing the Starknet tools over HTTP and MCP JSON-RPC."""

from __future__ import annotations

import json
import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from starknet_mcp.a2a import A2AAdapter
from starknet_mcp.config import (
    DEFAULT_RATE_LIMIT_QPS,
    LOG_FORMAT,
    LOG_LEVEL,
    StarknetMcpConfig,
    load_config,
)
from starknet_mcp.errors import (
    ErrorKind,
    InvalidArgumentsError,
    StarknetMcpError,
    UnconfiguredError,
    normalize_error,
)
from starknet_mcp.mcp import Dispatcher, ToolEnvelope
from starknet_mcp.metrics import default_metrics
from starknet_mcp.quotes import QuoteBroker
from starknet_mcp.rate_limiter import PerKeyRateLimiter
from starknet_mcp.starknet_api import AvnuClient, IdentityRegistryClient, PaymasterClient
from starknet_mcp.starknet_api.ledger import StarknetLedger
from starknet_mcp.tokens import TokenRegistry
from starknet_mcp.tools.context import ToolContext
from starknet_mcp.tools.validators import CreateTaskArgs, validate_arguments

logger = logging.getLogger(__name__)

HEALTH_STATUS = {"status": "ok"}
APP_VERSION = "0.1.0"
MCP_SERVER_NAME = "starknet-mcp-server"
MCP_SERVER_VERSION = APP_VERSION
# Shared rate-limit bucket and metrics label for names outside the tool table.
UNKNOWN_TOOL_KEY = "<unknown>"

# HTTP status for failures outside the tool envelope (agent card, unconfigured server).
ERROR_STATUS_CODES = {
    ErrorKind.INVALID_ARGUMENTS: 400,
    ErrorKind.UNCONFIGURED: 503,
    ErrorKind.UPSTREAM_UNAVAILABLE: 502,
}


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "level": record.levelname,
            "message": record.getMessage(),
            "name": record.name,
        }
        for key in ("tool", "request_id", "error", "kind"):
            if hasattr(record, key):
                payload[key] = getattr(record, key)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload)


_log_handler: Optional[logging.Handler] = None


def configure_logging(level: str = LOG_LEVEL, log_format: str = LOG_FORMAT) -> None:
    """Install the stream handler once; later calls re-apply level and format."""
    global _log_handler
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    if _log_handler is None:
        _log_handler = logging.StreamHandler()
        logging.basicConfig(level=numeric_level, handlers=[_log_handler])
    if log_format.lower() == "json":
        _log_handler.setFormatter(JsonFormatter())
    else:
        _log_handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    logging.getLogger().setLevel(numeric_level)


configure_logging()


def build_dispatcher(config: StarknetMcpConfig) -> Dispatcher:
    """Wire live collaborators from configuration."""
    paymaster = PaymasterClient(
        config.avnu_paymaster_url, api_key=config.avnu_api_key, timeout=config.timeout
    )
    ledger = StarknetLedger.from_config(config, paymaster=paymaster)
    aggregator = AvnuClient(config.avnu_base_url, timeout=config.timeout)

    identity: Optional[IdentityRegistryClient] = None
    a2a: Optional[A2AAdapter] = None
    if config.identity_registry_address:
        identity = IdentityRegistryClient(ledger, config.identity_registry_address)
        a2a = A2AAdapter(
            ledger,
            identity,
            reputation_registry_address=config.reputation_registry_address,
            validation_registry_address=config.validation_registry_address,
        )

    context = ToolContext(
        ledger=ledger,
        tokens=TokenRegistry.for_network(config.network),
        broker=QuoteBroker(aggregator, ledger),
        identity=identity,
        a2a=a2a,
        has_api_credentials=config.has_api_credentials,
        poll_interval=config.finality_poll_interval,
    )
    logger.info("Dispatcher ready network=%s account=%s", config.network, config.account_address)
    return Dispatcher(context)


def _log_tool_result(envelope: ToolEnvelope, request_id: Optional[str] = None) -> None:
    label = UNKNOWN_TOOL_KEY if envelope.kind is ErrorKind.UNKNOWN_TOOL else envelope.tool
    if not envelope.ok:
        kind = envelope.kind.value if envelope.kind else None
        logger.warning(
            "tool=%s outcome=error kind=%s request_id=%s",
            envelope.tool,
            kind,
            request_id,
            extra={
                "tool": envelope.tool,
                "request_id": request_id,
                "error": envelope.payload.get("message"),
                "kind": kind,
            },
        )
        default_metrics.record_tool(label, success=False, kind=kind)
    else:
        logger.info(
            "tool=%s outcome=success request_id=%s",
            envelope.tool,
            request_id,
            extra={"tool": envelope.tool, "request_id": request_id},
        )
        default_metrics.record_tool(label, success=True)


def _rate_limit_key(dispatcher: Dispatcher, tool_name: str) -> str:
    return tool_name if dispatcher.get_tool(tool_name) is not None else UNKNOWN_TOOL_KEY


async def _enforce_rate_limit(limiter: PerKeyRateLimiter, tool_name: str) -> Optional[JSONResponse]:
    allowed = await limiter.allow(tool_name)
    if not allowed:
        logger.warning("tool=%s outcome=rate_limited", tool_name)
        default_metrics.incr_rate_limited()
        # JSON-RPC style error envelope for MCP clients.
        return JSONResponse(
            status_code=429,
            content={"jsonrpc": "2.0", "error": {"code": 429, "message": "Rate limit exceeded"}},
        )
    return None


def _error_response(exc: Exception, *, tool: Optional[str] = None) -> JSONResponse:
    error = normalize_error(exc)
    return JSONResponse(status_code=ERROR_STATUS_CODES.get(error.kind, 502), content=error.to_dict(tool))


def _jsonrpc_success_payload(rpc_id: Any, result: Any, request_id: Optional[str] = None) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"jsonrpc": "2.0", "id": rpc_id, "result": result}
    if request_id:
        payload["requestId"] = request_id
    return payload


def _jsonrpc_error_payload(rpc_id: Any, code: int, message: str, request_id: Optional[str] = None) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"jsonrpc": "2.0", "id": rpc_id, "error": {"code": code, "message": message}}
    if request_id:
        payload["requestId"] = request_id
    return payload


def _wrap_tool_result(envelope: ToolEnvelope) -> Dict[str, Any]:
    """
    Shape a tool envelope into an MCP content array.
    """
    # Tool-level failures are returned in-band with the isError flag.
    if not envelope.ok:
        return {
            "content": [{"type": "text", "text": json.dumps(envelope.payload, indent=2)}],
            "structuredContent": envelope.payload,
            "isError": True,
        }
    return {
        "content": [{"type": "text", "text": json.dumps(envelope.payload, indent=2, ensure_ascii=True)}],
        "structuredContent": envelope.payload,
    }


def create_app(
    dispatcher: Optional[Dispatcher] = None,
    *,
    config: Optional[StarknetMcpConfig] = None,
    rate_limiter: Optional[PerKeyRateLimiter] = None,
) -> FastAPI:
    """
    Build the application.

    With no ``dispatcher`` the live one is built at startup from ``config`` (or
    the environment); a configuration problem aborts startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        if app.state.dispatcher is None:
            settings = app.state.config or load_config()
            app.state.config = settings
            configure_logging(settings.log_level, settings.log_format)
            app.state.dispatcher = build_dispatcher(settings)
            app.state.rate_limiter = PerKeyRateLimiter(
                rate_per_sec=settings.rate_limit_qps,
                per_tool=settings.per_tool_rate_limits,
            )
        elif app.state.config is not None:
            configure_logging(app.state.config.log_level, app.state.config.log_format)
        yield
        # Shutdown
        if app.state.dispatcher is not None:
            await app.state.dispatcher.aclose()

    app = FastAPI(
        title="Starknet MCP Server",
        description="Starknet tool surface for LLM agents.",
        version=APP_VERSION,
        lifespan=lifespan,
    )
    app.state.dispatcher = dispatcher
    app.state.config = config
    app.state.rate_limiter = rate_limiter or PerKeyRateLimiter(
        rate_per_sec=config.rate_limit_qps if config else DEFAULT_RATE_LIMIT_QPS,
        per_tool=config.per_tool_rate_limits if config else None,
    )

    def _dispatcher(request: Request) -> Dispatcher:
        current = request.app.state.dispatcher
        if current is None:
            raise UnconfiguredError("Server is not configured.")
        return current

    @app.middleware("http")
    async def add_request_context(request: Request, call_next):
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        start = time.time()
        default_metrics.incr_request()
        response = await call_next(request)
        duration_ms = (time.time() - start) * 1000
        default_metrics.record_duration(request_id, duration_ms)
        response.headers["X-Request-ID"] = request_id
        return response

    @app.get("/health")
    async def health() -> JSONResponse:
        """Lightweight health endpoint for monitoring."""
        return JSONResponse(content=HEALTH_STATUS)

    @app.get("/metrics")
    async def metrics() -> JSONResponse:
        """Return in-process metrics snapshot."""
        return JSONResponse(content=default_metrics.snapshot())

    @app.get("/tools")
    async def tools(request: Request) -> JSONResponse:
        try:
            current = _dispatcher(request)
        except UnconfiguredError as exc:
            return _error_response(exc)
        return JSONResponse(content={"tools": current.list_tools()})

    @app.post("/tools/{tool_name}")
    async def call_tool_route(tool_name: str, request: Request) -> JSONResponse:
        """Invoke a tool with the JSON body as its argument bag."""
        request_id = getattr(request.state, "request_id", None)
        try:
            current = _dispatcher(request)
        except UnconfiguredError as exc:
            return _error_response(exc, tool=tool_name)
        limited = await _enforce_rate_limit(request.app.state.rate_limiter, _rate_limit_key(current, tool_name))
        if limited:
            return limited
        body = await request.body()
        try:
            args = json.loads(body) if body else {}
        except ValueError:
            return _error_response(InvalidArgumentsError("Request body must be valid JSON."), tool=tool_name)
        envelope = await current.dispatch(tool_name, args)
        _log_tool_result(envelope, request_id)
        return JSONResponse(content=envelope.to_dict())

    @app.get("/.well-known/agent.json")
    async def well_known_agent(request: Request) -> JSONResponse:
        settings: Optional[StarknetMcpConfig] = request.app.state.config
        try:
            current = _dispatcher(request)
            a2a = current.context.require_a2a()
            if settings is None or not settings.a2a_agent_id:
                raise UnconfiguredError("A2A_AGENT_ID is not configured.")
            base_url = settings.a2a_base_url or str(request.base_url).rstrip("/")
            document = await a2a.well_known_agent_json(settings.a2a_agent_id, base_url)
        except StarknetMcpError as exc:
            logger.warning("agent card unavailable error=%s", exc)
            return _error_response(exc)
        return JSONResponse(content=document)

    @app.get("/api/tasks/{task_id}")
    async def task_status(task_id: str, request: Request) -> JSONResponse:
        request_id = getattr(request.state, "request_id", None)
        try:
            current = _dispatcher(request)
        except UnconfiguredError as exc:
            return _error_response(exc, tool="get_task_status")
        envelope = await current.dispatch("get_task_status", {"task_id": task_id})
        _log_tool_result(envelope, request_id)
        return JSONResponse(content=envelope.to_dict())

    @app.post("/api/tasks")
    async def create_task(request: Request) -> JSONResponse:
        """Open an A2A task tracking an already submitted transaction."""
        try:
            a2a = _dispatcher(request).context.require_a2a()
            try:
                body = await request.json()
            except ValueError as exc:
                raise InvalidArgumentsError("Request body must be valid JSON.") from exc
            params = validate_arguments(CreateTaskArgs, body)
        except StarknetMcpError as exc:
            return _error_response(exc)
        task = a2a.create_task(params["transactionHash"], params["prompt"])
        logger.info("task created id=%s", task.id, extra={"request_id": getattr(request.state, "request_id", None)})
        return JSONResponse(status_code=201, content=task.to_dict())

    @app.post("/mcp")
    async def mcp_gateway(request: Request) -> Response:
        """
        Minimal JSON-RPC 2.0 gateway for MCP clients.

        Supports ``initialize``, ``tools/list`` (alias ``list_tools``),
        ``tools/call`` (alias ``call_tool``) and the ``notifications/initialized``
        notification.
        """
        request_id = getattr(request.state, "request_id", None)
        start_time = time.time()

        def _respond(
            payload: Dict[str, Any],
            status_code: int = 200,
            *,
            outcome: str,
            method_label: Optional[str] = None,
            tool_label: Optional[str] = None,
            error_code: Optional[int] = None,
        ) -> JSONResponse:
            duration_ms = (time.time() - start_time) * 1000
            logger.debug(
                "mcp outcome=%s method=%s tool=%s id=%s status=%s duration_ms=%.2f error_code=%s",
                outcome,
                method_label,
                tool_label,
                payload.get("id"),
                status_code,
                duration_ms,
                error_code,
                extra={"request_id": request_id, "tool": tool_label, "error": error_code},
            )
            return JSONResponse(status_code=status_code, content=payload)

        try:
            body = await request.json()
        except ValueError:
            payload = _jsonrpc_error_payload(None, -32700, "Parse error", request_id=request_id)
            return _respond(payload, status_code=400, outcome="error", error_code=-32700)

        if not isinstance(body, dict):
            payload = _jsonrpc_error_payload(None, -32600, "Invalid request", request_id=request_id)
            return _respond(payload, status_code=400, outcome="error", error_code=-32600)

        method = body.get("method")
        rpc_id = body.get("id")
        raw_params = body.get("params")
        if raw_params is None:
            params: Dict[str, Any] = {}
        elif isinstance(raw_params, dict):
            params = raw_params
        else:
            payload = _jsonrpc_error_payload(rpc_id, -32602, "Invalid params", request_id=request_id)
            return _respond(payload, outcome="error", method_label=method, error_code=-32602)

        if not method:
            payload = _jsonrpc_error_payload(rpc_id, -32600, "Invalid request", request_id=request_id)
            return _respond(payload, outcome="error", error_code=-32600)

        if method == "initialize":
            protocol_version = params.get("protocolVersion")
            if not isinstance(protocol_version, str) or not protocol_version:
                payload = _jsonrpc_error_payload(rpc_id, -32602, "Invalid params", request_id=request_id)
                return _respond(payload, outcome="error", method_label=method, error_code=-32602)
            logger.debug(
                "mcp initialize requested protocol=%s request_id=%s",
                protocol_version,
                request_id,
                extra={"request_id": request_id},
            )
            result = {
                "protocolVersion": protocol_version,
                "serverInfo": {"name": MCP_SERVER_NAME, "version": MCP_SERVER_VERSION},
                "capabilities": {"tools": {"listChanged": False}},
            }
            return _respond(
                _jsonrpc_success_payload(rpc_id, result, request_id=request_id),
                outcome="success",
                method_label=method,
            )

        if method in ("notifications/initialized", "initialized"):
            # Notifications get no JSON-RPC response body.
            logger.debug(
                "mcp initialized notification received request_id=%s",
                request_id,
                extra={"request_id": request_id},
            )
            return Response(status_code=204)

        if method not in ("list_tools", "tools/list", "call_tool", "tools/call"):
            payload = _jsonrpc_error_payload(rpc_id, -32601, "Method not found", request_id=request_id)
            return _respond(payload, outcome="error", method_label=method, error_code=-32601)

        current = request.app.state.dispatcher
        if current is None:
            payload = _jsonrpc_error_payload(rpc_id, -32603, "Server is not configured", request_id=request_id)
            return _respond(payload, status_code=503, outcome="error", method_label=method, error_code=-32603)

        if method in ("list_tools", "tools/list"):
            limited = await _enforce_rate_limit(request.app.state.rate_limiter, "list_tools")
            if limited:
                return limited
            return _respond(
                _jsonrpc_success_payload(rpc_id, {"tools": current.list_tools()}, request_id=request_id),
                outcome="success",
                method_label=method,
            )

        tool_name = params.get("name") or params.get("tool")
        tool_args = params.get("arguments")
        if tool_args is None:
            tool_args = params.get("params") or {}
        if not isinstance(tool_name, str) or not tool_name.strip():
            payload = _jsonrpc_error_payload(rpc_id, -32602, "Invalid params", request_id=request_id)
            return _respond(payload, outcome="error", method_label=method, error_code=-32602)
        if not isinstance(tool_args, dict):
            payload = _jsonrpc_error_payload(rpc_id, -32602, "Invalid params", request_id=request_id)
            return _respond(payload, outcome="error", method_label=method, tool_label=tool_name, error_code=-32602)
        limited = await _enforce_rate_limit(request.app.state.rate_limiter, _rate_limit_key(current, tool_name))
        if limited:
            return limited
        envelope = await current.dispatch(tool_name, tool_args)
        _log_tool_result(envelope, request_id)
        return _respond(
            _jsonrpc_success_payload(rpc_id, _wrap_tool_result(envelope), request_id=request_id),
            outcome="success",
            method_label=method,
            tool_label=tool_name,
        )

    return app


app = create_app()

# Run with: uvicorn starknet_mcp.server:app
