"""Workflow bridge CLI."""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import signal
import sys
from pathlib import Path
from typing import Any

import anyio

from ..filesystem import LocalFileSystem
from ..files import WorkflowFiles
from ..logger import LoggingConfig, configure_logging, get_logger
from .config import BridgeConfig, config_from_env, parse_bridge_config, setting_name
from .errors import BridgeError
from .manager import BridgeManager
from .providers.file import FileWorkflowProvider

_log = get_logger("wfbridge.bridge.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="wfbridge", description="MCP bridge for editing workflows")
    parser.add_argument(
        "workflow",
        nargs="?",
        type=Path,
        help="Workflow JSON file (default: .vscode/workflows/workflow.json in the current directory)",
    )
    parser.add_argument("--name", help="Workflow name under .vscode/workflows (instead of a path)")
    parser.add_argument("--list", action="store_true", help="List workflows under .vscode/workflows and exit")
    parser.add_argument("--live", action="store_true", help="Serve a live editor over WebSocket instead of a file")
    parser.add_argument("--config", type=Path, help="Path to bridge settings JSON")
    parser.add_argument("--host")
    parser.add_argument("--port", type=int)
    parser.add_argument("--log-file", help="Write logs to this file instead of stderr")
    parser.add_argument("--verbose", action="store_true")
    return parser


def load_config(args: argparse.Namespace) -> BridgeConfig:
    """Environment, then the settings file, then command-line flags."""
    settings: dict[str, Any] = dataclasses.asdict(config_from_env())
    if args.config:
        file_settings = json.loads(args.config.read_text(encoding="utf-8"))
        settings.update({setting_name(key): value for key, value in file_settings.items()})
    if args.host is not None:
        settings["host"] = args.host
    if args.port is not None:
        settings["port"] = args.port
    return parse_bridge_config(settings)


def resolve_workflow_path(args: argparse.Namespace, files: WorkflowFiles) -> Path:
    if args.workflow is not None and args.name is not None:
        raise SystemExit("wfbridge: give either a workflow path or --name, not both")
    if args.workflow is not None:
        return args.workflow.resolve()
    if args.name is not None:
        return files.workflow_file_path(args.name)
    return files.workflow_file_path()


async def serve(args: argparse.Namespace, config: BridgeConfig) -> None:
    workspace = Path.cwd()
    files = WorkflowFiles(LocalFileSystem(), workspace)

    if args.list:
        for name in await files.list_workflow_names():
            print(name)
        return

    manager = BridgeManager(config)
    if args.live:
        manager.use_live_session()
        _log.info("Live mode: waiting for the editor to connect")
    else:
        workflow_path = resolve_workflow_path(args, files)
        if args.workflow is None:
            await files.ensure_workflows_directory()
        manager.set_workflow_provider(FileWorkflowProvider(workflow_path))
        _log.info(f"Headless mode: workflow file {workflow_path}")

    with anyio.open_signal_receiver(signal.SIGINT, signal.SIGTERM) as signals:
        port = await manager.start(workspace)
        _log.info(f"MCP endpoint: http://{config.host}:{port}{config.mcp_path}")
        if args.live:
            _log.info(f"Editor endpoint: ws://{config.host}:{port}{config.ws_path}")
        _log.info("Press Ctrl+C to stop")
        try:
            async for signum in signals:
                _log.info(f"Received {signal.Signals(signum).name}, shutting down")
                break
        finally:
            with anyio.CancelScope(shield=True):
                await manager.stop()


def main() -> None:
    args = build_parser().parse_args()
    configure_logging(LoggingConfig(level=logging.DEBUG if args.verbose else logging.INFO, file=args.log_file))

    try:
        config = load_config(args)
    except (OSError, ValueError) as exc:
        _log.error(f"Invalid configuration: {exc}")
        sys.exit(2)

    try:
        anyio.run(serve, args, config)
    except (OSError, BridgeError) as exc:
        _log.error(f"Failed to start bridge: {exc}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
