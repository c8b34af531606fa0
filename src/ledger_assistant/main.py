"""Console entry point.

Usage:
    ledger-assistant "What did I spend on groceries last month?"
    ledger-assistant --summary
    echo "Any unusual expenses?" | ledger-assistant --no-stream

Ctrl+C cancels the request in flight.
"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys
from typing import TextIO

from ledger_assistant import __version__
from ledger_assistant.config import get_settings
from ledger_assistant.domain.assistant import AssistantSession, ConversationMessage
from ledger_assistant.domain.assistant.store import Snapshot
from ledger_assistant.infrastructure.transport import close_transport, get_transport
from ledger_assistant.shared.exceptions import AssistantCanceledError, LedgerAssistantError
from ledger_assistant.shared.logging import get_logger, setup_logging

logger = get_logger(__name__)


class ReplyPrinter:
    """Writes the newest assistant reply to ``out`` as it grows."""

    def __init__(self, out: TextIO) -> None:
        self.out = out
        self._message_id: str | None = None
        self._printed = ""

    def __call__(self, snapshot: Snapshot) -> None:
        if not snapshot or snapshot[-1].role != "assistant":
            return

        message = snapshot[-1]
        if message.id != self._message_id:
            self._message_id = message.id
            self._printed = ""

        text = message.content
        if text.startswith(self._printed):
            self.out.write(text[len(self._printed) :])
        else:
            # A final reply replaced the streamed text
            self.out.write("\n" + text)
        self._printed = text
        self.out.flush()


# Ledger amounts are fixed-point with two decimals whatever the currency
AMOUNT_SCALE = 100


def format_references(message: ConversationMessage) -> list[str]:
    lines = []
    for ref in message.references or ():
        amount = f"{ref.source_amount / AMOUNT_SCALE:.2f}"
        if ref.currency:
            amount = f"{amount} {ref.currency}"
        label = ref.category_name or ref.comment or ref.id
        when = ref.time_text or str(ref.time)
        lines.append(f"  - {when}  {label}  {amount}")
    return lines


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ledger-assistant",
        description="Ask the bookkeeping assistant a question.",
        epilog="Amounts of referenced transactions are shown with two decimals, "
        "as the ledger stores them.",
    )
    parser.add_argument("message", nargs="?", help="question to ask (read from stdin if omitted)")
    parser.add_argument("--summary", action="store_true", help="request a bookkeeping summary")
    parser.add_argument(
        "--no-stream",
        dest="stream",
        action="store_false",
        default=None,
        help="wait for the complete reply instead of streaming it",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


async def _run(args: argparse.Namespace) -> int:
    settings = get_settings()
    setup_logging(settings)

    session = AssistantSession(get_transport(), settings=settings)
    unsubscribe = session.store.subscribe(ReplyPrinter(sys.stdout))

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, session.cancel_current_request)
        handles_sigint = True
    except NotImplementedError:
        # Windows event loops have no signal handlers
        handles_sigint = False

    try:
        if args.summary:
            reply = await session.generate_summary(stream=args.stream)
        else:
            reply = await session.send_message(args.message or "", stream=args.stream)

        if reply is None:
            print("Nothing to send.", file=sys.stderr)
            return 2

        print()
        references = format_references(reply)
        if references:
            print("Referenced transactions:")
            print("\n".join(references))
        return 0
    except AssistantCanceledError:
        print("\nCanceled.", file=sys.stderr)
        return 130
    except LedgerAssistantError as e:
        print(f"\n{e.message}", file=sys.stderr)
        return 1
    finally:
        if handles_sigint:
            loop.remove_signal_handler(signal.SIGINT)
        unsubscribe()
        await close_transport()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    if not args.summary and args.message is None:
        # Read before the loop starts so Ctrl+C interrupts the read
        try:
            args.message = sys.stdin.read()
        except KeyboardInterrupt:
            print("\nCanceled.", file=sys.stderr)
            return 130
    return asyncio.run(_run(args))


if __name__ == "__main__":
    sys.exit(main())
