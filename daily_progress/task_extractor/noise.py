"""Noise classification for lines recovered from schedule documents."""
from __future__ import annotations

import re
import string
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass

WEEKDAYS = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)
WEEKDAY_ABBREVIATIONS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")
WEEKDAY_TOKENS = frozenset(WEEKDAYS + WEEKDAY_ABBREVIATIONS)

# Headers seen repeated across every column of exported weekly planners.
KNOWN_REPEATED_HEADERS = (
    "run 101",
    "gym 101",
    "fs 201",
    "fullstack stuff idk",
)

_DAY = "(?:" + "|".join(WEEKDAYS) + ")"
_ABBR = "(?:" + "|".join(WEEKDAY_ABBREVIATIONS) + ")"


@dataclass(frozen=True)
class NoiseRule:
    """Named predicate over a trimmed line."""

    name: str
    check: Callable[[str], bool]

    def __call__(self, text: str) -> bool:
        return self.check(text)


def pattern_rule(name: str, patterns: Iterable[str], *, anchored: bool = False) -> NoiseRule:
    compiled = tuple(re.compile(pattern, re.IGNORECASE) for pattern in patterns)

    def check(text: str) -> bool:
        if anchored:
            return any(regex.fullmatch(text) for regex in compiled)
        return any(regex.search(text) for regex in compiled)

    return NoiseRule(name, check)


def repeated_header_rule(phrases: Iterable[str]) -> NoiseRule:
    patterns = []
    for phrase in phrases:
        body = r"\s+".join(re.escape(word) for word in phrase.split())
        if body:
            patterns.append(rf"{body}\s+{body}")
    return pattern_rule("repeated-header", patterns)


def count_weekday_tokens(text: str) -> int:
    tokens = (token.strip(string.punctuation) for token in text.lower().split())
    return sum(1 for token in tokens if token in WEEKDAY_TOKENS)


def has_weekday_density(text: str, threshold: int = 3) -> bool:
    return count_weekday_tokens(text) >= threshold


def is_repetitive(text: str) -> bool:
    words = text.lower().split()
    if len(words) <= 4:
        return False
    return len(set(words)) < len(words) / 2


def is_too_short(text: str, minimum: int = 4) -> bool:
    return len(text.strip()) < minimum


GENERIC_HEADER_RULE = pattern_rule(
    "generic-header",
    [
        r"weekly\s+schedule",
        r"month'?s?\s+plan",
        r"^time$",
        r"^tasks?$",
        r"^today'?s?\s+tasks?",
        r"^save\s+progress$",
        r"^clear\s+tasks$",
        r"^pending$",
    ],
)
DATE_TOKEN_RULE = pattern_rule("date-token", [r"\d{1,2}/\d{1,2}/\d{4}"])
BARE_YEAR_RULE = pattern_rule("bare-year", [r"\d{4}"], anchored=True)
NUMERIC_ONLY_RULE = pattern_rule("numeric-only", [r"[\d\s\-/]+"], anchored=True)
WEEKDAY_HEADER_RULE = pattern_rule(
    "weekday-header",
    [
        rf"^{_DAY}(?:\s+{_DAY})*$",
        rf"^{_ABBR}(?:\s+{_ABBR})*$",
        rf"^time\s+{_DAY}\b",
        rf"^time\s+{_ABBR}\b",
        rf"\b{_DAY}\s+{_DAY}\b",
        rf"\b{_ABBR}\s+{_ABBR}\b",
    ],
)
PLACEHOLDER_RULE = pattern_rule(
    "placeholder",
    [r"empty", r"n/a", r"-+", r"\.+"],
    anchored=True,
)
WEEKDAY_DENSITY_RULE = NoiseRule("weekday-density", has_weekday_density)
REPETITION_RULE = NoiseRule("repetition", is_repetitive)
TOO_SHORT_RULE = NoiseRule("too-short", is_too_short)


def build_policy(
    extra_rules: Iterable[NoiseRule] = (),
    *,
    repeated_headers: Iterable[str] = KNOWN_REPEATED_HEADERS,
) -> tuple[NoiseRule, ...]:
    """Assemble the ordered rule set; ``extra_rules`` run after the defaults."""

    return (
        GENERIC_HEADER_RULE,
        DATE_TOKEN_RULE,
        BARE_YEAR_RULE,
        NUMERIC_ONLY_RULE,
        WEEKDAY_HEADER_RULE,
        repeated_header_rule(repeated_headers),
        PLACEHOLDER_RULE,
        WEEKDAY_DENSITY_RULE,
        REPETITION_RULE,
        TOO_SHORT_RULE,
        *extra_rules,
    )


DEFAULT_POLICY = build_policy()

# Whole-line heuristics; a short task name such as "Gym" is fine on its own.
LINE_ONLY_RULES = frozenset({WEEKDAY_DENSITY_RULE.name, REPETITION_RULE.name, TOO_SHORT_RULE.name})


def name_policy(policy: Sequence[NoiseRule] = DEFAULT_POLICY) -> tuple[NoiseRule, ...]:
    """Rules that also apply to the task name a pattern tier pulled out of a line."""

    return tuple(rule for rule in policy if rule.name not in LINE_ONLY_RULES)


def matching_rule(text: str, policy: Sequence[NoiseRule] = DEFAULT_POLICY) -> NoiseRule | None:
    cleaned = text.strip()
    for rule in policy:
        if rule(cleaned):
            return rule
    return None


def is_noise(text: str, policy: Sequence[NoiseRule] = DEFAULT_POLICY) -> bool:
    return matching_rule(text, policy) is not None
