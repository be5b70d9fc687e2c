"""Echo removal — drop the prompt the generator repeats before answering.

llama.cpp style generators print the submitted prompt back on stdout
before any new tokens. The removal runs once per turn, as soon as the
accumulated output is at least as long (in UTF-8 bytes) as the prompt.

Modes:
    match   strip the prompt only when the output actually starts with it
            (leading whitespace tolerated); otherwise keep the output intact
    length  legacy behaviour: drop exactly len(prompt) bytes, unchecked
    off     never strip
"""
from __future__ import annotations

import logging
from enum import Enum

logger = logging.getLogger(__name__)


class EchoMode(Enum):
    MATCH = "match"
    LENGTH = "length"
    OFF = "off"


def parse_echo_mode(value: str | EchoMode | None) -> EchoMode:
    if isinstance(value, EchoMode):
        return value
    try:
        return EchoMode((value or "").strip().lower())
    except ValueError:
        logger.warning("Unknown echo_strip mode %r; using 'match'", value)
        return EchoMode.MATCH


def strip_echo(
    response: str,
    prompt: str,
    mode: EchoMode = EchoMode.MATCH,
) -> tuple[str, bool]:
    """Try to remove the echoed prompt from ``response``.

    Returns ``(text, done)``. ``done`` is False while more output is
    needed before a decision can be made; the caller keeps calling until
    it flips to True and never again afterwards.
    """
    if mode is EchoMode.OFF or not prompt:
        return response, True

    response_bytes = response.encode("utf-8")
    prompt_bytes = prompt.encode("utf-8")
    if len(response_bytes) < len(prompt_bytes):
        return response, False

    if mode is EchoMode.LENGTH:
        rest = response_bytes[len(prompt_bytes):]
        return rest.decode("utf-8", errors="replace"), True

    if response_bytes.startswith(prompt_bytes):
        return response_bytes[len(prompt_bytes):].decode("utf-8"), True

    body = response.lstrip()
    core = prompt.lstrip()
    if body.startswith(core):
        return body[len(core):], True
    if core.startswith(body):
        # Leading whitespace pushed the echo past the byte threshold.
        return response, False

    logger.debug(
        "Generator output does not start with the prompt; leaving it intact"
    )
    return response, True
