"""Bridge lifecycle and workflow routing.

BridgeManager owns the HTTP listener, the active workflow provider and,
in live mode, the message transport to the editor:
- start/stop: STOPPED -> STARTING -> RUNNING -> STOPPING -> STOPPED
- get_current_workflow/apply_workflow: what the MCP tools call
- set_workflow_provider/set_transport: switch between headless and live mode
"""

from __future__ import annotations

import asyncio
import contextlib
import socket
import weakref
from collections.abc import Iterator
from enum import Enum
from pathlib import Path

import anyio
import uvicorn

from ..logger import get_logger
from ..workflow import Workflow, WorkflowSnapshot
from .config import BridgeConfig
from .errors import AlreadyRunning, BridgeStartupError, NoPeerConnected, NoWorkflowProvider, ServerStopped
from .providers.base import WorkflowProvider
from .providers.live import LiveSessionProvider
from .server import create_bridge_app
from .transport import MessageTransport

STARTUP_POLL_INTERVAL = 0.01

_log = get_logger("wfbridge.bridge.manager")


class BridgeState(str, Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


class _EmbeddedServer(uvicorn.Server):
    """uvicorn server that leaves signal handling to the hosting process."""

    def install_signal_handlers(self) -> None:
        pass

    @contextlib.contextmanager
    def capture_signals(self) -> Iterator[None]:
        yield


class BridgeManager:
    """Serves the workflow tools over MCP and routes them to one provider.

    Every tool call captures the provider at entry, so swapping providers
    never redirects a call that is already in flight. Applies are serialized
    per provider instance in arrival order.

    Usage:
        manager = BridgeManager()
        manager.set_workflow_provider(FileWorkflowProvider(path))
        port = await manager.start(Path.cwd())
        ...
        await manager.stop()
    """

    def __init__(self, config: BridgeConfig | None = None) -> None:
        self._config = config or BridgeConfig()
        self._state = BridgeState.STOPPED
        self._provider: WorkflowProvider | None = None
        self._transport: MessageTransport | None = None
        self._last_known_workflow: Workflow | None = None
        self._apply_locks: weakref.WeakKeyDictionary[WorkflowProvider, anyio.Lock] = weakref.WeakKeyDictionary()
        self._working_directory: Path | None = None
        self._server: _EmbeddedServer | None = None
        self._serve_task: asyncio.Task[None] | None = None
        self._socket: socket.socket | None = None
        self._port: int | None = None

    # --- State ---

    @property
    def config(self) -> BridgeConfig:
        return self._config

    @property
    def state(self) -> BridgeState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is BridgeState.RUNNING

    @property
    def port(self) -> int | None:
        return self._port

    @property
    def working_directory(self) -> Path | None:
        return self._working_directory

    @property
    def provider(self) -> WorkflowProvider | None:
        return self._provider

    @property
    def transport(self) -> MessageTransport | None:
        return self._transport

    @property
    def last_known_workflow(self) -> Workflow | None:
        return self._last_known_workflow

    # --- Wiring ---

    def set_workflow_provider(self, provider: WorkflowProvider | None) -> None:
        """Replace the active provider. Calls already running keep the old one.

        A LiveSessionProvider brings its transport along; switching to any
        other provider detaches the previous live editor.
        """
        previous = self._provider
        self._provider = provider
        self.set_transport(provider.transport if isinstance(provider, LiveSessionProvider) else None)
        _log.info(
            f"Workflow provider: {type(provider).__name__ if provider else 'none'}",
            extra={
                "event": "provider_changed",
                "previous": type(previous).__name__ if previous else None,
                "live": self._transport is not None,
            },
        )

    def set_transport(self, transport: MessageTransport | None) -> None:
        """Attach the transport the live editor's WebSocket connects through."""
        previous = self._transport
        if previous is transport:
            return
        self._transport = transport
        if previous is not None:
            previous.close(NoPeerConnected)

    def use_live_session(self, transport: MessageTransport | None = None) -> LiveSessionProvider:
        """Switch to live mode: the connected editor becomes the provider."""
        provider = LiveSessionProvider.from_config(transport or MessageTransport(), self._config)
        self.set_workflow_provider(provider)
        return provider

    # --- Workflow operations ---

    async def get_current_workflow(self) -> WorkflowSnapshot:
        provider = self._provider
        if provider is None:
            cached = self._last_known_workflow
            return WorkflowSnapshot(workflow=cached, is_stale=cached is not None)

        snapshot = await provider.get_current_workflow()
        if snapshot.workflow is not None:
            self._last_known_workflow = snapshot.workflow
        return snapshot

    async def apply_workflow(self, workflow: Workflow, description: str | None = None) -> bool:
        provider = self._provider
        if provider is None:
            raise NoWorkflowProvider()

        async with self._apply_lock(provider):
            applied = await provider.apply_workflow(workflow, description)
        if applied:
            self._last_known_workflow = workflow
        return applied

    def _apply_lock(self, provider: WorkflowProvider) -> anyio.Lock:
        lock = self._apply_locks.get(provider)
        if lock is None:
            lock = anyio.Lock()
            self._apply_locks[provider] = lock
        return lock

    # --- Lifecycle ---

    async def start(self, working_directory: str | Path) -> int:
        """Bind the listener and serve until :meth:`stop`. Returns the bound port.

        Raises:
            AlreadyRunning: If the bridge is not stopped
            OSError: If the port cannot be bound
            BridgeStartupError: If the server failed while starting
        """
        if self._state is not BridgeState.STOPPED:
            raise AlreadyRunning(port=self._port)

        self._state = BridgeState.STARTING
        self._working_directory = Path(working_directory).resolve()
        sock: socket.socket | None = None
        serve_task: asyncio.Task[None] | None = None
        try:
            sock = _bind_socket(self._config.host, self._config.port)
            server = _EmbeddedServer(
                uvicorn.Config(
                    create_bridge_app(self),
                    lifespan="on",
                    log_config=None,
                    access_log=False,
                    timeout_graceful_shutdown=int(self._config.shutdown_timeout) or 1,
                )
            )
            serve_task = asyncio.create_task(server.serve(sockets=[sock]), name="wfbridge-http")
            while not server.started:
                if serve_task.done():
                    cause = serve_task.exception()
                    raise BridgeStartupError("HTTP server exited during startup") from cause
                await anyio.sleep(STARTUP_POLL_INTERVAL)
        except BaseException:
            if serve_task is not None and not serve_task.done():
                serve_task.cancel()
            if sock is not None:
                sock.close()
            self._state = BridgeState.STOPPED
            raise

        self._server = server
        self._serve_task = serve_task
        self._socket = sock
        self._port = sock.getsockname()[1]
        self._state = BridgeState.RUNNING
        _log.info(
            f"Bridge listening on http://{self._config.host}:{self._port}{self._config.mcp_path}",
            extra={
                "event": "bridge_started",
                "port": self._port,
                "working_directory": str(self._working_directory),
                "provider": type(self._provider).__name__ if self._provider else None,
            },
        )
        return self._port

    async def stop(self) -> None:
        """Stop serving. Pending live requests fail with ServerStopped. Safe to repeat."""
        if self._state in (BridgeState.STOPPED, BridgeState.STOPPING):
            return

        self._state = BridgeState.STOPPING
        if self._transport is not None:
            self._transport.close(ServerStopped)

        server, serve_task, sock = self._server, self._serve_task, self._socket
        try:
            if server is not None and serve_task is not None:
                server.should_exit = True
                try:
                    await serve_task
                except Exception:
                    _log.error("HTTP server failed while stopping", extra={"event": "bridge_stop_error"}, exc_info=True)
        finally:
            if sock is not None:
                sock.close()
            self._server = None
            self._serve_task = None
            self._socket = None
            self._port = None
            self._state = BridgeState.STOPPED
            _log.info("Bridge stopped", extra={"event": "bridge_stopped"})


def _bind_socket(host: str, port: int) -> socket.socket:
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((host, port))
        sock.setblocking(False)
    except OSError:
        sock.close()
        raise
    return sock
