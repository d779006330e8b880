"""Pattern compiler and scorer.

Turns a path template into an anchored matcher plus a precedence score.
Templates are ``/``-separated segments of five kinds::

    "users"   static literal
    ":id"     required dynamic, matches one segment
    ":tab?"   optional dynamic, matches zero or one segment
    "*"       wildcard, matches the remainder
    "**"      deep wildcard, matches the remainder

Wildcard captures are stored under ascending numeric keys (``"0"``,
``"1"``, ...) in the order they appear, so the *tail* (the highest key) is
found without knowing how many wildcards preceded it. A non-leading
wildcard captures its leading slash, which lets the tail be handed to a
child node as an absolute path::

    match("/client/orders", compile_pattern("/client/*"))
    -> {"0": "/orders"}

Scores rank templates so that the most literally specific one wins::

    static*1000 + dynamic*100 + optional*10 - wildcard*50 + depth + specificity*0.1
"""

import re
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from waypoint.errors import InvalidTemplate

# Ranking weights, in order of importance
STATIC_WEIGHT = 1000
DYNAMIC_WEIGHT = 100
OPTIONAL_WEIGHT = 10
WILDCARD_PENALTY = -50
DEPTH_BONUS = 1
SPECIFICITY_BONUS = 0.1


class SegmentKind(Enum):
    """Classification of a template segment."""

    STATIC = "static"
    DYNAMIC = "dynamic"
    OPTIONAL = "optional"
    WILDCARD = "wildcard"
    DEEP_WILDCARD = "deep_wildcard"

    @property
    def is_wildcard(self) -> bool:
        return self in (SegmentKind.WILDCARD, SegmentKind.DEEP_WILDCARD)


@dataclass(frozen=True, slots=True)
class PathSegment:
    """A parsed segment of a path template.

    Static:   ``users``  (kind=STATIC, name=None)
    Dynamic:  ``:id``    (kind=DYNAMIC, name="id")
    Optional: ``:tab?``  (kind=OPTIONAL, name="tab")
    Wildcard: ``*``      (kind=WILDCARD, name="0" for the first wildcard)
    """

    value: str
    kind: SegmentKind = SegmentKind.STATIC
    name: str | None = None


@dataclass(frozen=True, slots=True)
class ScoreBreakdown:
    """Segment counts a score is computed from."""

    static: int = 0
    dynamic: int = 0
    optional: int = 0
    wildcard: int = 0
    depth: int = 0

    @property
    def total(self) -> int:
        return self.static + self.dynamic + self.optional + self.wildcard


@dataclass(frozen=True, slots=True)
class Score:
    """Precedence score of a template. Higher wins."""

    value: float
    breakdown: ScoreBreakdown
    specificity: float


# The empty/root template scores like a single static segment
ROOT_SCORE = Score(
    value=STATIC_WEIGHT,
    breakdown=ScoreBreakdown(static=1, depth=1),
    specificity=1.0,
)


@dataclass(frozen=True, slots=True)
class CompiledPattern:
    """A compiled template: matcher, ordered capture slots, and score.

    ``param_names`` lists one entry per capture group, in group order.
    Dynamic and optional segments use their parameter name; wildcards use
    their numeric key.
    """

    template: str
    regex: re.Pattern[str]
    param_names: tuple[str, ...]
    segments: tuple[PathSegment, ...]
    score: float
    breakdown: ScoreBreakdown
    specificity: float

    @property
    def has_wildcard(self) -> bool:
        return any(seg.kind.is_wildcard for seg in self.segments)

    def test(self, pathname: str) -> bool:
        """True if *pathname* matches this pattern."""
        return self.regex.match(normalize_pathname(pathname)) is not None

    def match(self, pathname: str) -> dict[str, str] | None:
        """Shorthand for ``match(pathname, self)``."""
        return match(pathname, self)


def parse_template(template: str) -> list[PathSegment]:
    """Parse a template string into classified segments.

    Empty segments are discarded, so ``"/"``, ``""`` and ``"//"`` all parse
    to ``[]``.

    Examples::

        "/users"           -> [PathSegment("users")]
        "/users/:id"       -> [..., PathSegment(":id", DYNAMIC, "id")]
        "/files/**"        -> [..., PathSegment("**", DEEP_WILDCARD, "0")]

    Raises ``InvalidTemplate`` for empty, numeric, or repeated parameter names.
    """
    segments: list[PathSegment] = []
    seen: set[str] = set()
    wildcard_index = 0
    for part in template.split("/"):
        if not part:
            continue
        if part in ("*", "**"):
            kind = SegmentKind.WILDCARD if part == "*" else SegmentKind.DEEP_WILDCARD
            segments.append(PathSegment(value=part, kind=kind, name=str(wildcard_index)))
            wildcard_index += 1
            continue
        if not part.startswith(":"):
            segments.append(PathSegment(value=part))
            continue

        optional = part.endswith("?")
        name = part[1:-1] if optional else part[1:]
        if not name:
            raise InvalidTemplate(template, f"segment {part!r} has no parameter name")
        if name.isdigit():
            raise InvalidTemplate(
                template,
                f"parameter {name!r} is numeric; numeric keys are reserved for wildcards",
            )
        if name in seen:
            raise InvalidTemplate(template, f"parameter {name!r} appears more than once")
        seen.add(name)
        segments.append(
            PathSegment(
                value=part,
                kind=SegmentKind.OPTIONAL if optional else SegmentKind.DYNAMIC,
                name=name,
            )
        )
    return segments


def score(template: str) -> Score:
    """Compute the precedence score of *template*.

    Any additional static segment outranks any combination of dynamic,
    optional, and wildcard differences that does not itself add a static
    segment.
    """
    segments = parse_template(template)
    if not segments:
        return ROOT_SCORE
    return _score_segments(segments)


def _score_segments(segments: list[PathSegment]) -> Score:
    counts = {kind: 0 for kind in SegmentKind}
    for seg in segments:
        counts[seg.kind] += 1

    breakdown = ScoreBreakdown(
        static=counts[SegmentKind.STATIC],
        dynamic=counts[SegmentKind.DYNAMIC],
        optional=counts[SegmentKind.OPTIONAL],
        wildcard=counts[SegmentKind.WILDCARD] + counts[SegmentKind.DEEP_WILDCARD],
        depth=len(segments),
    )
    total = breakdown.total
    specificity = breakdown.static / total if total else 0.0
    value = (
        breakdown.static * STATIC_WEIGHT
        + breakdown.dynamic * DYNAMIC_WEIGHT
        + breakdown.optional * OPTIONAL_WEIGHT
        + breakdown.wildcard * WILDCARD_PENALTY
        + breakdown.depth * DEPTH_BONUS
        + specificity * SPECIFICITY_BONUS
    )
    return Score(value=value, breakdown=breakdown, specificity=specificity)


def compile_pattern(template: str) -> CompiledPattern:
    """Compile *template* into an anchored matcher.

    The leading slash and a single trailing slash are optional. Static
    segments are escaped literally, ``:name`` matches one non-empty segment,
    ``:name?`` matches zero or one segment lazily, and ``*``/``**`` match the
    remainder greedily. A leading wildcard captures the whole input; any
    later wildcard captures from its preceding slash.
    """
    segments = parse_template(template)
    if not segments:
        return CompiledPattern(
            template=template,
            regex=re.compile(r"^/?$"),
            param_names=(),
            segments=(),
            score=ROOT_SCORE.value,
            breakdown=ROOT_SCORE.breakdown,
            specificity=ROOT_SCORE.specificity,
        )

    parts: list[str] = ["^"]
    param_names: list[str] = []
    for i, seg in enumerate(segments):
        sep = "/?" if i == 0 else "/"
        if seg.kind is SegmentKind.STATIC:
            parts.append(sep + re.escape(seg.value))
            continue

        if seg.kind is SegmentKind.DYNAMIC:
            parts.append(sep + "([^/]+)")
        elif seg.kind is SegmentKind.OPTIONAL:
            parts.append(f"(?:{sep}([^/]+?))?")
        elif i == 0:
            parts.append("(.*)")
        else:
            parts.append("((?:/.*)?)")
        param_names.append(seg.name or "")
    parts.append("/?$")

    scored = _score_segments(segments)
    return CompiledPattern(
        template=template,
        regex=re.compile("".join(parts)),
        param_names=tuple(param_names),
        segments=tuple(segments),
        score=scored.value,
        breakdown=scored.breakdown,
        specificity=scored.specificity,
    )


def normalize_pathname(pathname: str) -> str:
    """Strip a single trailing slash, unless the path is exactly ``/``."""
    if pathname.endswith("/") and pathname != "/":
        return pathname[:-1]
    return pathname


def match(pathname: str, pattern: CompiledPattern) -> dict[str, str] | None:
    """Match *pathname* against a compiled pattern.

    Returns a dict mapping parameter names (and wildcard keys) to captured
    strings, or ``None`` when the pattern does not match. An optional
    parameter that matched nothing is left out of the dict.
    """
    found = pattern.regex.match(normalize_pathname(pathname))
    if found is None:
        return None

    params: dict[str, str] = {}
    for name, value in zip(pattern.param_names, found.groups(), strict=True):
        if value is not None:
            params[name] = value
    return params


def tail_key(params: Mapping[str, Any]) -> str | None:
    """Return the highest numeric key in *params*, or ``None``."""
    keys = [key for key in params if key.isdigit()]
    if not keys:
        return None
    return max(keys, key=int)


def tail_capture(params: Mapping[str, Any]) -> str | None:
    """Return the tail capture: the wildcard value with the highest key.

    ``None`` means the match had no wildcard. An empty string is a real
    tail (the wildcard matched nothing) and is still handed to children.
    """
    key = tail_key(params)
    return None if key is None else params[key]
