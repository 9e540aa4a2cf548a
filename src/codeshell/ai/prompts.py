"""Prompt construction shared by the model adapters."""

from __future__ import annotations

import re

from codeshell.core.models import DispatchRequest

CHAT_SYSTEM_PROMPT = (
    "You are an expert software developer specializing in Salesforce development "
    "(Apex, LWC, SOQL), JavaScript, Python, and Java. Provide helpful, accurate, "
    "and concise responses."
)

CURSOR_MARKER = "<CURSOR>"
INLINE_STOP_SEQUENCES = ["\n\n", "```", "</code>"]

_LINES_BEFORE_CURSOR = 10
_LINES_AFTER_CURSOR = 5
_CODE_END_MARKERS = ("\n\n", "Explanation:", "This code", "The above")
_FENCE_RE = re.compile(r"```[\w]*\n?")


def build_completion_prompt(request: DispatchRequest) -> str:
    """Prefix the raw prompt with language and file context lines."""
    context = request.context
    parts: list[str] = []
    if context.language:
        parts.append(f"Language: {context.language}\n")
    if context.file_path:
        parts.append(f"File: {context.file_path}\n")
    if context.language in ("apex", "lwc"):
        parts.append("Context: Salesforce development\n")
    parts.append(f"\nCode completion request:\n{request.payload}")
    return "".join(parts)


def build_chat_transcript(request: DispatchRequest) -> str:
    """Flatten history + message into a Human/Assistant transcript.

    Used by backends that only expose a raw text-generation endpoint.
    """
    prompt = (request.system_prompt or CHAT_SYSTEM_PROMPT) + "\n\n"
    for msg in request.context.history:
        speaker = "Human" if msg.role == "user" else "Assistant"
        prompt += f"{speaker}: {msg.content}\n"
    prompt += f"Human: {request.payload}\nAssistant: "
    return prompt


def build_chat_messages(request: DispatchRequest) -> list[dict[str, str]]:
    """History + message as role/content dicts for chat-style APIs.

    System turns in the history are dropped; the system prompt is passed
    separately by the adapter.
    """
    messages = [
        {"role": "user" if m.role == "user" else "assistant", "content": m.content}
        for m in request.context.history
        if m.role != "system"
    ]
    messages.append({"role": "user", "content": request.payload})
    return messages


def build_inline_prompt(request: DispatchRequest) -> str:
    """Surround the cursor line with nearby code and mark the cursor position."""
    code = request.context.code if request.context.code is not None else request.payload
    position = request.context.position
    line_no = position.line if position else 0
    column = position.column if position else 0

    lines = code.split("\n")
    current = lines[line_no] if 0 <= line_no < len(lines) else ""
    before_cursor = current[:column]
    after_cursor = current[column:]

    prompt = f"Complete the following {request.language} code:\n\n"

    context_before = lines[max(0, line_no - _LINES_BEFORE_CURSOR):line_no]
    if context_before:
        prompt += "\n".join(context_before) + "\n"

    prompt += before_cursor + CURSOR_MARKER
    if after_cursor.strip():
        prompt += after_cursor

    context_after = lines[line_no + 1:min(len(lines), line_no + 1 + _LINES_AFTER_CURSOR)]
    if context_after:
        prompt += "\n" + "\n".join(context_after)

    prompt += f"\n\nComplete the code at {CURSOR_MARKER} position:"
    return prompt


def clean_inline_completion(completion: str) -> str:
    """Strip explanations and markdown fences from a raw suggestion."""
    cleaned = completion.strip()
    for marker in _CODE_END_MARKERS:
        index = cleaned.find(marker)
        if index != -1:
            cleaned = cleaned[:index]
    cleaned = _FENCE_RE.sub("", cleaned)
    return cleaned.strip()
