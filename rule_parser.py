#!/usr/bin/env python3
"""
Rule Parser for Kenosis

Reads the small, line-oriented list-of-records format used for scan rules:

    - id: browser_cache
      path: "$HOME/.cache/mozilla"
      min_age_days: 7
      explain: "Firefox cache"

This is deliberately not a YAML parser. Only the "- " record marker and the
four recognized keys carry meaning; everything else is ignored.
"""

import logging
import pathlib
import re
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, Union

logger = logging.getLogger(__name__)

RECORD_MARKER = "-"
RULE_KEYS = ("id", "path", "min_age_days", "explain")

_INTEGER = re.compile(r"[+-]?[0-9]+")


@dataclass(frozen=True)
class Rule:
    """One candidate scan location"""

    id: str = ""
    path: str = ""  # may start with $HOME or ~
    min_age_days: int = 0
    explain: str = ""


class ParseStatus(Enum):
    OK = "ok"
    EMPTY = "empty"  # nothing but blank or comment lines
    MALFORMED = "malformed"  # content present, no records extracted


@dataclass(frozen=True)
class ParseResult:
    rules: tuple[Rule, ...] = field(default_factory=tuple)
    status: ParseStatus = ParseStatus.EMPTY

    @property
    def ok(self) -> bool:
        return bool(self.rules)


def _unquote(value: str) -> str:
    """Trim *value* and strip one matching pair of surrounding quotes"""
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def _apply_field(rule: Rule, line: str) -> Rule:
    """Return *rule* updated with the "key: value" pair on *line*, if recognized"""
    key, sep, value = line.partition(":")
    if not sep:
        return rule
    key = key.strip()
    if key not in RULE_KEYS:
        return rule

    if key == "min_age_days":
        value = value.strip()
        if not _INTEGER.fullmatch(value):
            logger.debug("Ignoring non-numeric min_age_days %r", value)
            return rule
        return replace(rule, min_age_days=max(0, int(value)))

    return replace(rule, **{key: _unquote(value)})


def _starts_record(line: str) -> bool:
    return line.startswith(RECORD_MARKER + " ")


def parse_rules(text: str) -> ParseResult:
    """Parse rule definition text into an ordered sequence of rules"""
    rules: list[Rule] = []
    current: Optional[Rule] = None
    has_content = False

    for raw in text.splitlines():
        line = raw.strip()
        if line and not line.startswith("#"):
            has_content = True

        if _starts_record(line):
            if current is not None:
                rules.append(current)
            current = _apply_field(Rule(), line[len(RECORD_MARKER) :].strip())
            continue

        if current is None:
            continue
        current = _apply_field(current, line)

    if current is not None:
        rules.append(current)

    if rules:
        status = ParseStatus.OK
    elif has_content:
        status = ParseStatus.MALFORMED
    else:
        status = ParseStatus.EMPTY

    return ParseResult(rules=tuple(rules), status=status)


def load_rules_file(path: Union[str, pathlib.Path]) -> ParseResult:
    """Read and parse a rules file

    Raises:
        OSError: If the file cannot be read
    """
    text = pathlib.Path(path).read_text(encoding="utf-8")
    result = parse_rules(text)
    logger.debug("Parsed %d rules from %s (%s)", len(result.rules), path, result.status.value)
    return result
