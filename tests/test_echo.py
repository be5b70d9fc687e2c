"""Tests for removing the prompt echoed back by the generator."""

from __future__ import annotations

from sulmo.engine.echo import EchoMode, parse_echo_mode, strip_echo

PROMPT = "###Instruction: Hello ###Response: "


def test_output_shorter_than_prompt_waits():
    text, done = strip_echo("###Instr", PROMPT)
    assert text == "###Instr"
    assert done is False


def test_exact_echo_is_removed():
    text, done = strip_echo(PROMPT + "World", PROMPT)
    assert text == "World"
    assert done is True


def test_echo_with_leading_whitespace_is_removed():
    text, done = strip_echo(" " + PROMPT + "World", PROMPT)
    assert text == "World"
    assert done is True


def test_leading_whitespace_waits_for_the_rest_of_the_echo():
    # Long enough in bytes, but the echo is not complete yet.
    partial = "\n\n" + PROMPT[:-1]
    text, done = strip_echo(partial, PROMPT)
    assert text == partial
    assert done is False


def test_match_mode_keeps_output_that_is_not_an_echo():
    output = "The generator did not repeat the prompt at all."
    text, done = strip_echo(output, PROMPT)
    assert text == output
    assert done is True


def test_length_mode_drops_prompt_bytes_unchecked():
    text, done = strip_echo("x" * len(PROMPT) + "tail", PROMPT, EchoMode.LENGTH)
    assert text == "tail"
    assert done is True


def test_length_mode_counts_bytes_not_characters():
    prompt = "é"  # two bytes
    text, done = strip_echo("ab" + "c", prompt, EchoMode.LENGTH)
    assert text == "c"
    assert done is True


def test_off_mode_never_strips():
    text, done = strip_echo(PROMPT + "World", PROMPT, EchoMode.OFF)
    assert text == PROMPT + "World"
    assert done is True


def test_empty_prompt_is_done_immediately():
    assert strip_echo("World", "") == ("World", True)


def test_multibyte_prompt_is_stripped():
    prompt = "### 日本語 ### "
    text, done = strip_echo(prompt + "答え", prompt)
    assert (text, done) == ("答え", True)


def test_parse_echo_mode():
    assert parse_echo_mode("MATCH") is EchoMode.MATCH
    assert parse_echo_mode(" length ") is EchoMode.LENGTH
    assert parse_echo_mode("off") is EchoMode.OFF
    assert parse_echo_mode(EchoMode.OFF) is EchoMode.OFF


def test_parse_echo_mode_falls_back_to_match():
    assert parse_echo_mode("bogus") is EchoMode.MATCH
    assert parse_echo_mode(None) is EchoMode.MATCH


def test_prompt_with_leading_whitespace_is_removed_when_echo_adds_more():
    text, done = strip_echo("  Q: hi A: world", " Q: hi A: ")
    assert (text, done) == ("world", True)


def test_prompt_with_leading_whitespace_waits_for_partial_echo():
    text, done = strip_echo("\n\n\n\n Q: hi", " Q: hi A: ")
    assert (text, done) == ("\n\n\n\n Q: hi", False)
