"""Completion gateway CLI — validate manifests, run the server, inspect tools and audit logs."""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from pathlib import Path


def cmd_validate(args: argparse.Namespace) -> None:
    """Validate a gateway.yaml manifest."""
    from gateway.manifest_loader import load_manifest

    path = args.manifest
    try:
        manifest = load_manifest(path)
    except FileNotFoundError:
        print(f"Error: manifest not found: {path}", file=sys.stderr)
        sys.exit(1)
    except Exception as exc:
        print(f"Error: invalid manifest: {exc}", file=sys.stderr)
        sys.exit(1)

    print(f"Manifest OK: {manifest.app.name} v{manifest.app.version}")
    print(f"  Listen:          {manifest.runtime.host}:{manifest.runtime.port}")
    print(f"  Model backend:   {manifest.models.backend}")
    print(f"  Default model:   {manifest.models.default or '(request model)'}")
    print(f"  Decision policy: {manifest.decision.policy.value}")
    print(f"  Retrieval:       {manifest.retrieval.backend} "
          f"(max {manifest.retrieval.max_documents} docs, "
          f"threshold {manifest.retrieval.relevance_threshold:.2f}, "
          f"{manifest.retrieval.max_context_tokens} tokens)")
    print(f"  Audit path:      {manifest.audit.path if manifest.audit.enabled else '(disabled)'}")

    if manifest.retrieval.backend == "static" and not manifest.retrieval.documents:
        print("  Warning: static retrieval has no seed documents; no context will be injected")


def cmd_run(args: argparse.Namespace) -> None:
    """Run the gateway app in the foreground with uvicorn."""
    os.environ["GATEWAY_MANIFEST"] = args.manifest

    from gateway.manifest_loader import load_manifest

    try:
        manifest = load_manifest(args.manifest)
    except Exception as exc:
        print(f"Error loading manifest: {exc}", file=sys.stderr)
        sys.exit(1)

    host = args.host or manifest.runtime.host
    port = args.port or manifest.runtime.port
    print(f"Starting completion gateway '{manifest.app.name}'...")
    print(f"  Manifest: {args.manifest}")
    print(f"  Host:     {host}")
    print(f"  Port:     {port}")
    print()

    import uvicorn

    uvicorn.run(
        "gateway.app:app",
        host=host,
        port=port,
        reload=args.reload,
        log_level="info",
    )


def cmd_serve(args: argparse.Namespace) -> None:
    """Run the gateway under the process manager until interrupted."""
    from gateway.app import create_app
    from gateway.components import init_gateway
    from gateway.errors import GatewayError
    from gateway.manifest_loader import load_manifest
    from gateway.process_manager import GatewayProcessManager

    try:
        manifest = load_manifest(args.manifest)
    except Exception as exc:
        print(f"Error loading manifest: {exc}", file=sys.stderr)
        sys.exit(1)

    manager = GatewayProcessManager(
        app=create_app(init_gateway(manifest)),
        config=manifest.runtime,
    )

    async def _main() -> None:
        try:
            await manager.start(args.port)
        except GatewayError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            sys.exit(1)
        print(f"Gateway running at {manager.base_url()}")
        try:
            await asyncio.Event().wait()
        finally:
            await manager.stop(drain_timeout=args.drain_timeout)

    try:
        asyncio.run(_main())
    except KeyboardInterrupt:
        print("Gateway stopped.")


def cmd_tools(args: argparse.Namespace) -> None:
    """List the tools the gateway would advertise."""
    from gateway.manifest_loader import resolve_manifest
    from gateway.tools.registry import create_default_registry

    try:
        manifest = resolve_manifest(args.manifest)
    except Exception as exc:
        print(f"Error loading manifest: {exc}", file=sys.stderr)
        sys.exit(1)

    registry = create_default_registry(manifest)
    if args.json:
        print(json.dumps([t.model_dump() for t in registry.list_tools()], indent=2))
        return

    for group in registry.list_groups():
        print(f"{group.name} v{group.version} [{group.status.value}] — {group.description}")
        for tool in group.tools:
            print(f"  {tool.name:16s} {tool.description}")


def cmd_logs(args: argparse.Namespace) -> None:
    """Query audit logs."""
    from contracts.audit import AuditEvent
    from gateway.audit.logger import JsonlAuditLogger

    log_path = args.log_path
    if not Path(log_path).exists():
        print(f"No audit log found at {log_path}", file=sys.stderr)
        sys.exit(1)

    audit = JsonlAuditLogger(log_path)
    if args.request_id:
        entries = audit.query_by_request(args.request_id)
    elif args.event:
        try:
            event = AuditEvent(args.event)
        except ValueError:
            valid = ", ".join(e.value for e in AuditEvent)
            print(f"Unknown event type: {args.event}", file=sys.stderr)
            print(f"Valid events: {valid}", file=sys.stderr)
            sys.exit(1)
        entries = audit.query_by_event(event, limit=args.limit)
    else:
        entries = audit.tail(n=args.limit)

    if not entries:
        print("No matching audit entries.")
        return

    for entry in entries:
        record = json.loads(entry.model_dump_json())
        if args.json:
            print(json.dumps(record))
        else:
            ts = record["ts"][:19]
            rid = record["request_id"][-8:]
            detail = json.dumps(record.get("detail", {}))
            print(f"{ts}  [{record['event']:17s}]  {rid}  {detail}")


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="completion-gateway",
        description="OpenAI-compatible completion gateway with retrieval and tool calling",
    )
    sub = parser.add_subparsers(dest="command")

    # validate
    p_val = sub.add_parser("validate", help="Validate a gateway.yaml manifest")
    p_val.add_argument("manifest", nargs="?", default="gateway.yaml", help="Path to manifest")
    p_val.set_defaults(func=cmd_validate)

    # run
    p_run = sub.add_parser("run", help="Run the gateway in the foreground (uvicorn)")
    p_run.add_argument("manifest", nargs="?", default="gateway.yaml", help="Path to manifest")
    p_run.add_argument("--host", default=None, help="Bind address (default: manifest)")
    p_run.add_argument("--port", type=int, default=None, help="Port (default: manifest)")
    p_run.add_argument("--reload", action="store_true", help="Enable auto-reload")
    p_run.set_defaults(func=cmd_run)

    # serve
    p_srv = sub.add_parser("serve", help="Run under the process manager with health verification")
    p_srv.add_argument("manifest", nargs="?", default="gateway.yaml", help="Path to manifest")
    p_srv.add_argument("--port", type=int, default=None, help="Preferred port (default: manifest)")
    p_srv.add_argument(
        "--drain-timeout", type=float, default=None,
        help="Seconds to let in-flight requests finish on shutdown",
    )
    p_srv.set_defaults(func=cmd_serve)

    # tools
    p_tools = sub.add_parser("tools", help="List registered tools")
    p_tools.add_argument("manifest", nargs="?", default=None, help="Path to manifest")
    p_tools.add_argument("--json", action="store_true", help="Output OpenAI tool schemas")
    p_tools.set_defaults(func=cmd_tools)

    # logs
    p_logs = sub.add_parser("logs", help="Query audit logs")
    p_logs.add_argument("log_path", help="Path to audit JSONL file")
    p_logs.add_argument("--request-id", "-r", help="Filter by request ID")
    p_logs.add_argument("--event", "-e", help="Filter by event type")
    p_logs.add_argument("--limit", "-n", type=int, default=20, help="Max entries")
    p_logs.add_argument("--json", action="store_true", help="Output raw JSON")
    p_logs.set_defaults(func=cmd_logs)

    args = parser.parse_args()
    if not args.command:
        parser.print_help()
        sys.exit(1)

    args.func(args)


if __name__ == "__main__":
    main()
