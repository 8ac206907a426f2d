"""Textual repair of almost-JSON plan responses.

Smaller models tend to emit plan JSON with code fences, missing colons,
unquoted tokens or a truncated tail.  Each pass below is a pure
``str -> str`` function that leaves valid JSON alone; the pipeline runs them
in a fixed order.  Everything except the first pass only touches text
outside string literals.
"""

import functools
import json
import logging
import re
from typing import Callable, Mapping, NamedTuple

logger = logging.getLogger(__name__)

_LITERAL = re.compile(r'^(true|false|null|-?\d+(\.\d+)?([eE][+-]?\d+)?)$')
_FENCE_LINE = re.compile(r'(?m)^[ \t]*```[\w-]*[ \t]*(\n|$)')
_OPEN_FENCE = re.compile(r'^\s*```[\w-]*')
_CLOSE_FENCE = re.compile(r'```\s*$')
_CLOSERS = {'{': '}', '[': ']'}


class Segment(NamedTuple):
    text: str
    is_string: bool
    closed: bool = True


def split_segments(text: str) -> list[Segment]:
    """Split *text* into alternating string literals and everything else.

    A string literal that runs to the end of the text without its closing
    quote is returned with ``closed=False``.
    """
    segments: list[Segment] = []
    start = 0
    i = 0
    n = len(text)
    while i < n:
        if text[i] != '"':
            i += 1
            continue
        if start < i:
            segments.append(Segment(text[start:i], False))
        j = i + 1
        while j < n and text[j] != '"':
            j += 2 if text[j] == '\\' else 1
        closed = j < n
        end = j + 1 if closed else n
        segments.append(Segment(text[i:end], True, closed))
        i = start = end
    if start < n:
        segments.append(Segment(text[start:], False))
    return segments


def _join(segments: list[Segment]) -> str:
    return ''.join(segment.text for segment in segments)


def _sub_outside_strings(text: str, pattern: str, replacement: str) -> str:
    return _join([
        segment if segment.is_string else Segment(re.sub(pattern, replacement, segment.text), False)
        for segment in split_segments(text)
    ])


def _last_significant(segment: Segment | None) -> str:
    if segment is None:
        return ''
    if segment.is_string:
        return '"'
    stripped = segment.text.rstrip()
    return stripped[-1] if stripped else ''


def strip_code_fences(text: str) -> str:
    """Remove Markdown code fence markers such as ```json and ```."""
    text = _OPEN_FENCE.sub('', text, count=1)
    text = _CLOSE_FENCE.sub('', text, count=1)
    return _FENCE_LINE.sub('', text)


def name_empty_keys(text: str) -> str:
    """``"": [`` becomes ``"steps": [`` and ``"": {`` becomes ``"parameters": {``."""
    segments = split_segments(text)
    for index, segment in enumerate(segments[:-1]):
        if not segment.is_string or segment.text != '""':
            continue
        follower = segments[index + 1]
        if follower.is_string:
            continue
        match = re.match(r'\s*:\s*([\[{])', follower.text)
        if match:
            key = '"steps"' if match.group(1) == '[' else '"parameters"'
            segments[index] = Segment(key, True)
    return _join(segments)


def tighten_delimiters(text: str) -> str:
    """Collapse whitespace in ``[ {`` and ``, {`` sequences."""
    text = _sub_outside_strings(text, r'\[\s+\{', '[{')
    return _sub_outside_strings(text, r',\s+\{', ',{')


def insert_missing_colons(text: str) -> str:
    """Insert ``: `` between a key and its value when the model dropped it."""
    segments = split_segments(text)
    result: list[Segment] = []
    index = 0
    while index < len(segments):
        segment = segments[index]
        result.append(segment)
        index += 1
        if not (segment.is_string and segment.closed):
            continue
        previous = result[-2] if len(result) >= 2 else None
        if _last_significant(previous) not in ('{', ','):
            continue
        if index < len(segments) and segments[index].is_string:
            result.append(Segment(': ', False))
        elif (index + 1 < len(segments) and not segments[index].text.strip()
              and segments[index + 1].is_string):
            result.append(Segment(': ', False))
            index += 1
    return _join(result)


def canonicalize_tool_names(text: str, aliases: Mapping[str, str]) -> str:
    """Replace known-wrong tool names, only where they are the value of a ``"tool"`` key."""
    if not aliases:
        return text
    segments = split_segments(text)
    for index in range(len(segments) - 2):
        key, separator, value = segments[index:index + 3]
        if not (key.is_string and key.text == '"tool"'):
            continue
        if separator.is_string or separator.text.strip() != ':':
            continue
        if not (value.is_string and value.closed):
            continue
        canonical = aliases.get(value.text[1:-1])
        if canonical is not None:
            segments[index + 2] = Segment(json.dumps(canonical), True)
    return _join(segments)


def close_open_string(text: str) -> str:
    """Append a closing quote when the text ends inside a string literal."""
    segments = split_segments(text)
    if not segments or not segments[-1].is_string or segments[-1].closed:
        return text
    backslashes = len(segments[-1].text) - len(segments[-1].text.rstrip('\\'))
    if backslashes % 2:
        # dangling escape would swallow the quote
        text = text[:-1]
    return text + '"'


def balance_brackets(text: str) -> str:
    """Append the closers for every bracket still open at the end, innermost first.

    Text that ends inside a string literal is returned unchanged.
    """
    segments = split_segments(text)
    if segments and not segments[-1].closed:
        return text
    stack: list[str] = []
    for segment in segments:
        if segment.is_string:
            continue
        for ch in segment.text:
            if ch in _CLOSERS:
                stack.append(_CLOSERS[ch])
            elif ch in ('}', ']') and stack and stack[-1] == ch:
                stack.pop()
    if not stack:
        return text
    return text + ''.join(reversed(stack))


def looks_truncated(text: str) -> bool:
    """Whether *text* ends inside a string or has unmatched braces or brackets."""
    segments = split_segments(text)
    if segments and not segments[-1].closed:
        return True
    code = ''.join(segment.text for segment in segments if not segment.is_string)
    return code.count('{') != code.count('}') or code.count('[') != code.count(']')


def strip_trailing_commas(text: str) -> str:
    """Drop commas directly in front of ``}`` or ``]``."""
    return _sub_outside_strings(text, r',(\s*[}\]])', r'\1')


def quote_bare_tokens(text: str) -> str:
    """Quote bare keys, and bare values that are not ``true``/``false``/``null`` or numbers."""
    out: list[str] = []
    last = ''
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == '"':
            j = i + 1
            while j < n and text[j] != '"':
                j += 2 if text[j] == '\\' else 1
            j = min(j + 1, n)
            out.append(text[i:j])
            last = '"'
            i = j
        elif ch.isspace():
            out.append(ch)
            i += 1
        elif ch in '{}[],:':
            out.append(ch)
            last = ch
            i += 1
        elif last == ':':
            j = i
            while j < n and text[j] not in ',}]\n"':
                j += 1
            token = text[i:j].rstrip()
            out.append(token if _LITERAL.match(token) else json.dumps(token, ensure_ascii=False))
            out.append(text[i + len(token):j])
            last = '"'
            i = j
        else:
            j = i
            while j < n and not text[j].isspace() and text[j] not in '{}[],:"':
                j += 1
            token = text[i:j]
            k = j
            while k < n and text[k].isspace():
                k += 1
            is_key = k < n and text[k] == ':'
            out.append(json.dumps(token, ensure_ascii=False) if is_key else token)
            last = '"' if is_key else token[-1]
            i = j
    return ''.join(out)


class RepairPass(NamedTuple):
    name: str
    apply: Callable[[str], str]


class JsonRepairPipeline:
    """Runs the repair passes in order over one candidate JSON text."""

    def __init__(self, tool_aliases: Mapping[str, str] | None = None):
        self.tool_aliases = dict(tool_aliases or {})
        self.passes: tuple[RepairPass, ...] = (
            RepairPass('strip_code_fences', strip_code_fences),
            RepairPass('name_empty_keys', name_empty_keys),
            RepairPass('tighten_delimiters', tighten_delimiters),
            RepairPass('insert_missing_colons', insert_missing_colons),
            RepairPass('canonicalize_tool_names',
                       functools.partial(canonicalize_tool_names, aliases=self.tool_aliases)),
            RepairPass('close_open_string', close_open_string),
            RepairPass('balance_brackets', balance_brackets),
            RepairPass('strip_trailing_commas', strip_trailing_commas),
            RepairPass('quote_bare_tokens', quote_bare_tokens),
        )

    def run(self, text: str) -> tuple[str, list[str]]:
        """Repair *text*, returning the result and the names of the passes that changed it."""
        applied: list[str] = []
        for repair_pass in self.passes:
            repaired = repair_pass.apply(text)
            if repaired != text:
                applied.append(repair_pass.name)
                text = repaired
        if applied:
            logger.debug(f"Repaired plan JSON with passes: {', '.join(applied)}")
        return text, applied

    def repair(self, text: str) -> str:
        return self.run(text)[0]
