"""Text-generation commands backed by the OpenAI chat completions API.

These are registered as remote commands; the runtime gives them the
aggressive retry preset because LLM endpoints rate-limit readily.
"""
from __future__ import annotations

from loguru import logger
from openai import OpenAI

from ..context import ExecutionContext
from .http import settings_of


def complete(ctx: ExecutionContext, prompt: str) -> str:
    settings = settings_of(ctx)
    if not settings.openai_api_key:
        raise RuntimeError("OPENAI_API_KEY not set - required for this command")
    ctx.raise_if_cancelled("llm call")
    client = OpenAI(api_key=settings.openai_api_key, timeout=settings.http_timeout * 4)
    logger.debug("[llm] {} prompt ({} chars)", settings.model, len(prompt))
    resp = client.chat.completions.create(
        model=settings.model,
        messages=[{"role": "user", "content": prompt}],
    )
    if not resp or not resp.choices:
        return ""
    return resp.choices[0].message.content or ""


def ask(ctx: ExecutionContext, question: str, _arg2: str, input: str) -> str:
    """ask "question" - answer a question, using the piped input as context."""
    prompt = question
    if input:
        prompt = f"{question}\n\nContext:\n{input}"
    return complete(ctx, prompt)


def summarize(ctx: ExecutionContext, _arg1: str, _arg2: str, input: str) -> str:
    """summarize - condense the piped input."""
    return complete(ctx, "Summarize the following content concisely:\n\n" + input)


def analyze(ctx: ExecutionContext, focus: str, _arg2: str, input: str) -> str:
    """analyze "focus" - analyse the piped input, optionally with a focus."""
    prompt = "Analyze the following"
    if focus:
        prompt += " focusing on " + focus
    return complete(ctx, prompt + ":\n\n" + input)


def translate(ctx: ExecutionContext, language: str, _arg2: str, input: str) -> str:
    """translate "language" - translate the piped input."""
    if not language:
        raise ValueError("translate requires a target language")
    return complete(ctx, f"Translate the following text to {language}. Return only the translation.\n\n{input}")
