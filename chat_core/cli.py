"""终端聊天控制台。

用法：
    chat-core                       # 交互模式
    chat-core --once "hello"        # 单次发送后退出
    chat-core --provider ollama --attach notes.txt

交互命令：/new、/list、/open N、/delete N、/quit；回复过程中 Ctrl-C 取消本次发送。
"""

import argparse
import asyncio
import signal
import sys
from pathlib import Path
from typing import Dict, List, Optional

from chat_core.config.settings import settings
from chat_core.domain.exceptions import BusinessError
from chat_core.domain.conversation import NullObserver
from chat_core.domain.models import Attachment
from chat_core.infrastructure.storage.json_store import JsonChatStore
from chat_core.providers import BACKENDS, create_backend
from chat_core.session.controller import ChatSession
from chat_core.session.state import SendState


class ConsoleObserver(NullObserver):
    """把流式增量直接打印到终端。"""

    def __init__(self, out=None):
        self._out = out or sys.stdout
        self._printed: Dict[str, int] = {}

    def on_chunk(self, chat_id: str, text: str) -> None:
        done = self._printed.get(chat_id, 0)
        self._out.write(text[done:])
        self._out.flush()
        self._printed[chat_id] = len(text)

    def on_commit(self, chat_id: str, message) -> None:
        if chat_id in self._printed:
            self._printed.pop(chat_id)
            self._out.write("\n")
        else:
            self._out.write(f"{message.content}\n")
        self._out.flush()

    def on_error(self, message: str) -> None:
        self._out.write(f"[error] {message}\n")
        self._out.flush()

    def on_suggestions(self, suggestions: List[str]) -> None:
        for i, s in enumerate(suggestions, 1):
            self._out.write(f"  ({i}) {s}\n")
        self._out.flush()

    def reset(self) -> None:
        self._printed.clear()


def _attachments(paths: List[str]) -> List[Attachment]:
    items = []
    for p in paths:
        path = Path(p)
        size = path.stat().st_size if path.exists() else 0
        items.append(Attachment(name=path.name, size=size, type=path.suffix.lstrip(".")))
    return items


async def _send(session: ChatSession, observer: ConsoleObserver) -> None:
    observer.reset()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, session.abort)
        installed = True
    except (NotImplementedError, RuntimeError):
        installed = False
    try:
        await session.submit()
    finally:
        if installed:
            loop.remove_signal_handler(signal.SIGINT)
    if session.state.send_state is SendState.ABORTED:
        print("\n[cancelled]")


def _print_chats(session: ChatSession) -> None:
    if not session.state.chats:
        print("(no chats)")
    for i, chat in enumerate(session.state.chats, 1):
        marker = "*" if chat.id == session.state.current_chat_id else " "
        print(f"{marker}{i}. {chat.title} ({len(chat.messages)} messages)")


def _pick(session: ChatSession, arg: str) -> Optional[str]:
    try:
        return session.state.chats[int(arg) - 1].id
    except (ValueError, IndexError):
        print(f"no chat #{arg}")
        return None


async def _interactive(session: ChatSession, observer: ConsoleObserver) -> None:
    while True:
        try:
            line = await asyncio.to_thread(input, "> ")
        except EOFError:
            return
        line = line.strip()
        if not line:
            continue
        cmd, _, arg = line.partition(" ")
        if cmd == "/quit":
            return
        if cmd == "/new":
            session.new_chat()
            continue
        if cmd == "/list":
            _print_chats(session)
            continue
        if cmd in ("/open", "/delete"):
            chat_id = _pick(session, arg)
            if chat_id is None:
                continue
            if cmd == "/open":
                chat = session.select_chat(chat_id)
                for m in chat.messages:
                    print(f"{m.role}: {m.content}")
            else:
                session.delete_chat(chat_id)
            continue
        if line.isdigit() and 1 <= int(line) <= len(session.state.suggestions):
            line = session.state.suggestions[int(line) - 1]
        session.set_input(line)
        await _send(session, observer)


async def _run(args: argparse.Namespace) -> int:
    backend = create_backend(args.provider)
    observer = ConsoleObserver()
    session = ChatSession(backend, JsonChatStore(args.storage), observer=observer)
    if args.attach:
        session.attach(_attachments(args.attach))
    if args.once:
        session.set_input(args.once)
        await _send(session, observer)
        return 1 if session.state.error else 0
    await _interactive(session, observer)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="chat-core", description="Terminal chat console")
    parser.add_argument("--provider", choices=sorted(BACKENDS), default=None, help="backend name")
    parser.add_argument("--storage", default=settings.storage_root, help="snapshot directory")
    parser.add_argument("--once", metavar="PROMPT", help="send a single prompt and exit")
    parser.add_argument("--attach", nargs="*", default=[], metavar="FILE", help="files to list in the prompt")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return asyncio.run(_run(args))
    except BusinessError as e:
        print(f"[error] {e.message}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
