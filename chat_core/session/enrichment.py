"""会话补全：根据已提交的回复生成会话标题与后续提问建议。

补全请求直接走 handle_user_input（不带取消句柄，单次调用），不会经过
ChatSession.submit，因此补全本身不会再触发补全。补全失败从不暴露给用户，
一律回退到确定性的启发式结果。
"""

import re
from typing import List

from chat_core.domain.models import DEFAULT_TITLE, ELLIPSIS
from chat_core.infrastructure.logging.logger import logger
from chat_core.providers.base import ChatBackend
from chat_core.session.input_handler import handle_user_input

TITLE_PROMPT = (
    "Generate a concise 3-6 word conversation title (no punctuation) summarizing this assistant reply:"
    '\n\n"{reply}"\n\nTitle:'
)

SUGGESTIONS_PROMPT = (
    "From the assistant reply below, produce exactly 3 short follow-up user prompts (2-8 words each), "
    "each on a separate line. Do NOT add numbering.\n\nAssistant reply:\n{reply}\n\nSuggestions:\n"
)

MAX_SUGGESTIONS = 3

_NON_ALNUM = re.compile(r"[^A-Za-z0-9\s]")


def generate_title_from_message(text: str) -> str:
    """启发式标题：去掉非字母数字字符，取前六个长度大于 2 的词，首字母大写并追加省略号。"""

    if not text:
        return DEFAULT_TITLE
    words = [w for w in _NON_ALNUM.sub("", text).split() if len(w) > 2][:6]
    cleaned = " ".join(words)
    if not cleaned:
        return DEFAULT_TITLE
    return cleaned[0].upper() + cleaned[1:] + ELLIPSIS


def is_placeholder_title(title: str) -> bool:
    """默认标题或以省略号结尾的启发式标题仍可被补全改写。"""

    return title == DEFAULT_TITLE or title.endswith(ELLIPSIS)


def parse_title(raw: str) -> str:
    lines = (raw or "").strip().splitlines()
    return lines[0].strip() if lines else ""


def parse_suggestions(raw: str) -> List[str]:
    lines = [line.strip() for line in (raw or "").strip().splitlines()]
    return [line for line in lines if line][:MAX_SUGGESTIONS]


def fallback_suggestions(reply_text: str) -> List[str]:
    topic = " ".join(reply_text.split()[:4])
    return [
        f"Tell me more about {topic}",
        f"Give examples related to {topic}",
        f"Summarize key points about {topic}",
    ]


async def request_title(backend: ChatBackend, reply_text: str) -> str:
    """请求 backend 生成标题，失败或为空时返回启发式标题。"""

    try:
        reply = await handle_user_input(backend, TITLE_PROMPT.format(reply=reply_text))
        title = parse_title(reply.content)
    except Exception as exc:
        logger.warning(
            "Title generation failed, used fallback",
            extra={"extra": {"provider": getattr(backend, "name", ""), "error": repr(exc)}},
        )
        title = ""
    return title or generate_title_from_message(reply_text)


async def request_suggestions(backend: ChatBackend, reply_text: str) -> List[str]:
    """请求 backend 生成三条后续提问，失败或解析为空时返回模板化建议。"""

    try:
        reply = await handle_user_input(backend, SUGGESTIONS_PROMPT.format(reply=reply_text))
        suggestions = parse_suggestions(reply.content)
    except Exception as exc:
        logger.warning(
            "Suggestion generation failed, used fallback",
            extra={"extra": {"provider": getattr(backend, "name", ""), "error": repr(exc)}},
        )
        suggestions = []
    return suggestions or fallback_suggestions(reply_text)
