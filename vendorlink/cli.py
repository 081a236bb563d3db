"""CLI entry point for vendorlink.

Headless access to protocol detection, model probing and streaming chat,
for scripts and terminal use. Same internals a desktop shell would call.

Entry point:
    vendorlink-cli detect --base-url <url> --api-key <key> [--prefer gemini]
    vendorlink-cli models --base-url <url> --api-key <key> [--json]
    vendorlink-cli chat "Hello" [--model <id>] [--workspace <id>]
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────
# ARGUMENT PARSING
# ─────────────────────────────────────────────────────────────────────


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vendorlink-cli",
        description="Vendor protocol detection and streaming chat.",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable debug logging"
    )
    sub = parser.add_subparsers(dest="command")

    # detect
    detect_p = sub.add_parser("detect", help="Detect the wire protocol of an endpoint")
    detect_p.add_argument("--base-url", required=True, help="Endpoint as pasted by the user")
    detect_p.add_argument("--api-key", required=True, help="API key(s), comma-separated")
    detect_p.add_argument(
        "--prefer", default=None, choices=["openai", "gemini", "anthropic"],
        help="Protocol to try first",
    )
    detect_p.add_argument("--timeout-ms", type=int, default=None, help="Per-request timeout")

    # models
    models_p = sub.add_parser("models", help="List models on an OpenAI-compatible endpoint")
    models_p.add_argument("--base-url", required=True, help="Base URL of the vendor")
    models_p.add_argument("--api-key", required=True, help="API key")
    models_p.add_argument("--timeout-ms", type=int, default=None, help="Per-request timeout")
    models_p.add_argument(
        "--json", action="store_true", dest="json_output",
        help="Full JSON output (models, fixedBaseUrl, latency)",
    )

    # chat
    chat_p = sub.add_parser("chat", help="Send one message to the configured provider")
    chat_p.add_argument("text", help="Message text")
    chat_p.add_argument("--model", default=None, help="Override the provider's default model")
    chat_p.add_argument("--workspace", default="cli", help="Workspace id")

    return parser


# ─────────────────────────────────────────────────────────────────────
# COMMANDS
# ─────────────────────────────────────────────────────────────────────


async def _cmd_detect(
    base_url: str,
    api_key: str,
    prefer: Optional[str] = None,
    timeout_ms: Optional[int] = None,
) -> int:
    """Print the detection result as JSON. Exit 0 only when confirmed."""
    from vendorlink.vendors import ProtocolType, detect_protocol

    result = await detect_protocol(
        base_url,
        api_key,
        timeout_ms=timeout_ms,
        preferred_protocol=ProtocolType(prefer) if prefer else None,
    )
    json.dump(result.to_dict(), sys.stdout, indent=2)
    sys.stdout.write("\n")
    return 0 if result.success else 1


async def _cmd_models(
    base_url: str,
    api_key: str,
    timeout_ms: Optional[int] = None,
    json_output: bool = False,
) -> int:
    """List models. Returns exit code."""
    from vendorlink.vendors import probe_openai_models

    result = await probe_openai_models(base_url, api_key, timeout_ms=timeout_ms)

    if json_output:
        json.dump(result.to_dict(), sys.stdout, indent=2)
        sys.stdout.write("\n")
    elif result.success:
        for model_id in result.models or []:
            print(model_id)
    else:
        print(f"Error: {result.error}", file=sys.stderr)

    return 0 if result.success else 1


async def _cmd_chat(text: str, model: Optional[str] = None, workspace: str = "cli") -> int:
    """Stream one turn to stdout. Returns exit code."""
    from vendorlink.config import SendMessageParams, load_providers_from_env
    from vendorlink.engine import EngineManager
    from vendorlink.events import TextDelta, TurnCompleted, TurnError

    manager = EngineManager(load_providers_from_env)
    code = 1

    async with manager.subscribe(workspace) as subscription:
        task = manager.send_message(workspace, SendMessageParams(text=text, model=model))
        async for item in subscription:
            event = item.event
            if isinstance(event, TextDelta):
                sys.stdout.write(event.text)
                sys.stdout.flush()
            elif isinstance(event, TurnCompleted):
                sys.stdout.write("\n")
                code = 0
                break
            elif isinstance(event, TurnError):
                print(f"Error: {event.error}", file=sys.stderr)
                break
        await task

    return code


# ─────────────────────────────────────────────────────────────────────
# ENTRY POINT
# ─────────────────────────────────────────────────────────────────────


def main():
    parser = _build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    # Logging
    level = logging.DEBUG if args.verbose else logging.WARNING
    logging.basicConfig(level=level, format="%(name)s %(message)s", stream=sys.stderr)

    # Load env
    load_dotenv()

    # Dispatch
    if args.command == "detect":
        code = asyncio.run(_cmd_detect(
            base_url=args.base_url,
            api_key=args.api_key,
            prefer=args.prefer,
            timeout_ms=args.timeout_ms,
        ))
    elif args.command == "models":
        code = asyncio.run(_cmd_models(
            base_url=args.base_url,
            api_key=args.api_key,
            timeout_ms=args.timeout_ms,
            json_output=args.json_output,
        ))
    elif args.command == "chat":
        code = asyncio.run(_cmd_chat(
            text=args.text,
            model=args.model,
            workspace=args.workspace,
        ))
    else:
        parser.print_help()
        code = 1

    sys.exit(code)


if __name__ == "__main__":
    main()
