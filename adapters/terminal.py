"""
Terminal REPL for gsio.

Plain line-based rendering of the session: new messages are printed as they
arrive, Execution text is streamed as it grows. Commands:

    /approve [always]   approve the selected tool call
    /reject [always]    reject the selected tool call
    /select N           move the approval cursor
    /heard TEXT         feed an ambient utterance (linger mode)
    /events             show the event log tail
    /todos              show the todo list
    /quit               exit
"""

import asyncio
import sys
from typing import Optional

from core.bridge import CoreBridge, get_bridge
from core.errors import TurnBusyError
from core.lifecycle.task import get_todo_store
from core.models import MessageRole
from core.session import SessionSnapshot

HELP = __doc__.split("Commands:", 1)[1]


class TerminalRenderer:
    def __init__(self, out=None):
        self.out = out or sys.stdout
        self._printed = 0
        self._live = ""
        self._pending_ids = ()
        self._streamed = ""

    def __call__(self, snap: SessionSnapshot):
        if snap.live_text and snap.live_text.startswith(self._live):
            self._write(snap.live_text[len(self._live):])
            self._live = snap.live_text
        elif not snap.live_text and self._live:
            self._write("\n")
            self._streamed, self._live = self._live, ""

        for msg in snap.messages[self._printed:]:
            if msg.role == MessageRole.ASSISTANT and self._streamed and msg.content == self._streamed.strip():
                # Already streamed live
                self._streamed = ""
                continue
            label = "you" if msg.role == MessageRole.USER else "gsio"
            self._write(f"{label}> {msg.content}\n")
        self._printed = len(snap.messages)

        ids = tuple(p.id for p in snap.pending)
        if ids and ids != self._pending_ids:
            self._write("Pending approvals:\n")
            for i, p in enumerate(snap.pending):
                marker = ">" if i == snap.cursor else " "
                args = f" {p.args_summary}" if p.args_summary else ""
                self._write(f" {marker} [{p.source.value}] {p.tool_name}{args}\n")
        self._pending_ids = ids

    def _write(self, text: str):
        self.out.write(text)
        self.out.flush()


async def _read_line(prompt: str) -> str:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, input, prompt)


async def handle_command(bridge: CoreBridge, line: str, out=None) -> bool:
    """Returns False when the REPL should stop."""
    out = out or sys.stdout
    command, _, rest = line.partition(" ")
    rest = rest.strip()
    orchestrator = bridge.orchestrator

    if command == "/quit":
        return False
    if command in ("/approve", "/reject"):
        decision = await orchestrator.decide(approve=command == "/approve", always=rest == "always")
        if not decision.applied:
            out.write(f"! {decision.error}\n")
    elif command == "/select":
        try:
            out.write(f"cursor → {orchestrator.select(int(rest))}\n")
        except ValueError:
            out.write("! usage: /select N\n")
    elif command == "/heard":
        task = await bridge.hear(rest)
        if task is not None:
            await task
    elif command == "/events":
        for line_ in bridge.session.event_log.lines(20):
            out.write(f"  {line_}\n")
    elif command == "/todos":
        for todo in get_todo_store().list():
            out.write(f"  {todo.label()}\n")
    else:
        out.write(HELP)
    return True


async def repl(bridge: Optional[CoreBridge] = None):
    bridge = bridge or get_bridge()
    bridge.session.subscribe(TerminalRenderer())
    print("gsio - type /help for commands")
    while True:
        try:
            line = (await _read_line("> ")).strip()
        except (EOFError, KeyboardInterrupt):
            break
        if not line:
            continue
        if line.startswith("/"):
            if not await handle_command(bridge, line):
                break
            continue
        try:
            task = bridge.send_user_message(line)
        except TurnBusyError as e:
            print(f"! {e}")
            continue
        await task
    await bridge.orchestrator.wait_idle()


def main():
    asyncio.run(repl())


if __name__ == "__main__":
    main()
