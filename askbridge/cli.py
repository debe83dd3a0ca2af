#!/usr/bin/env python3
"""
askbridge CLI.

    COMMAND     ALIASES         WHAT IT DOES
    -------     -------         ----------------------------------
    serve       start, up       Start the askbridge HTTP server
    ask         query           Ask a running server one question
    ring        status, ping    Check a running server is alive
    banner                      Print the banner
"""

import argparse
import errno
import socket
import sys

from askbridge import __version__

BANNER = r"""
    ┌──────────────────────────────────────────┐
    │   askbridge                              │
    │   design context in, next steps out      │
    │                                  v""" + __version__ + r"""   │
    └──────────────────────────────────────────┘
"""


class PortInUseError(RuntimeError):
    pass


def ensure_port_available(port: int, host: str) -> None:
    """Bind-and-release probe. Raises PortInUseError if something holds the port."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as probe:
        try:
            probe.bind((host, port))
        except OSError as e:
            if e.errno == errno.EADDRINUSE:
                raise PortInUseError(f"Port {port} is already in use on {host}.") from e
            raise


def _default_url() -> str:
    from askbridge.config import load_server_config
    cfg = load_server_config()
    return f"http://{cfg.host}:{cfg.port}"


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def cmd_serve(args):
    """Start the askbridge server."""
    import uvicorn
    from askbridge.config import load_server_config

    cfg = load_server_config()
    host = args.host or cfg.host
    port = args.port or cfg.port

    try:
        ensure_port_available(port, host)
    except (PortInUseError, OSError) as e:
        print(f"  ✗  Cannot start: {e} Stop the other process or change PORT.", file=sys.stderr)
        sys.exit(1)

    print(BANNER)
    print(f"  Listening on {host}:{port}")
    print(f"  Codex: {cfg.codex_command}   Claude: {cfg.claude_command} ({cfg.claude_model})")
    print()

    uvicorn.run(
        "askbridge.main:app",
        host=host,
        port=port,
        reload=args.reload,
        log_level="info",
    )


def cmd_ask(args):
    """Post one question to a running server and print the answer."""
    import httpx

    url = (args.url or _default_url()).rstrip("/")
    body = {
        "tool": args.tool,
        "model": args.model,
        "userInput": " ".join(args.question),
    }
    if args.context:
        body["designContext"] = args.context
    if args.conversation:
        body["conversationId"] = args.conversation
    if args.timeout_ms:
        body["options"] = {"timeoutMs": args.timeout_ms}

    try:
        resp = httpx.post(f"{url}/ask", json=body, timeout=None)
    except httpx.ConnectError:
        print(f"  ✗  Nothing listening at {url}", file=sys.stderr)
        sys.exit(1)

    data = resp.json()
    if resp.status_code != 200:
        err = data.get("error", {})
        print(f"  ✗  {err.get('code', resp.status_code)}: {err.get('message', '')}", file=sys.stderr)
        sys.exit(1)

    print(data["content"])
    print()
    if data.get("raw", {}).get("fallback"):
        print("  (fallback answer, backend CLI unavailable)")
    print(f"  conversation: {data['conversationId']}")


def cmd_ring(args):
    """Ping a running askbridge instance."""
    import httpx

    url = (args.url or _default_url()).rstrip("/")
    try:
        resp = httpx.get(f"{url}/healthz", timeout=5)
    except httpx.ConnectError:
        print(f"  ✗  Dead line — nothing at {url}")
        sys.exit(1)

    if resp.status_code == 200:
        print(f"  ✓  {url} is UP ({resp.json().get('timestamp', '')})")
    else:
        print(f"  ✗  No answer — got HTTP {resp.status_code}")
        sys.exit(1)


def cmd_banner(args):
    print(BANNER)


# ---------------------------------------------------------------------------
# Parser with aliases
# ---------------------------------------------------------------------------

def _add_command(subparsers, names, help_text, func, setup_fn=None):
    """Register a command under its name plus aliases."""
    p = subparsers.add_parser(names[0], help=help_text, aliases=names[1:])
    p.set_defaults(func=func)
    if setup_fn:
        setup_fn(p)
    return p


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="askbridge",
        description="askbridge: AI chat backend for design-tool plugins.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--version", "-V", action="version",
        version=f"askbridge {__version__}",
    )

    sub = parser.add_subparsers(dest="command", metavar="<command>")

    def setup_serve(p):
        p.add_argument("--host", default=None, help="Override listen host")
        p.add_argument("--port", "-p", type=int, default=None, help="Override listen port")
        p.add_argument("--reload", action="store_true", help="Auto-reload on code changes (dev)")

    _add_command(sub, ["serve", "start", "up"], "Start the askbridge server", cmd_serve, setup_serve)

    def setup_ask(p):
        p.add_argument("question", nargs="+", help="What to ask")
        p.add_argument("--tool", "-t", choices=["codex", "claude"], default="codex", help="Backend to use")
        p.add_argument("--model", "-m", default="default", help="Model identifier sent with the request")
        p.add_argument("--context", "-c", default=None, help="Design context text")
        p.add_argument("--conversation", default=None, help="Continue an existing conversation id")
        p.add_argument("--timeout-ms", type=int, default=None, help="Backend timeout for this call")
        p.add_argument("--url", "-u", default=None, help="Server URL (default: from config)")

    _add_command(sub, ["ask", "query"], "Ask a running server one question", cmd_ask, setup_ask)

    def setup_ring(p):
        p.add_argument("--url", "-u", default=None, help="Server URL (default: from config)")

    _add_command(sub, ["ring", "status", "ping"], "Check a running server", cmd_ring, setup_ring)

    _add_command(sub, ["banner"], "Print the banner", cmd_banner)
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        cmd_banner(args)
        parser.print_help()
        return

    args.func(args)


if __name__ == "__main__":
    main()
