"""Semantic version requirements as Cargo interprets them.

Supports the requirement forms found in Cargo.toml:
- bare and caret: ``1.2`` / ``^1.2`` -> ``>=1.2.0, <2.0.0``; ``0.3`` -> ``>=0.3.0, <0.4.0``
- tilde: ``~1.2.3`` -> ``>=1.2.3, <1.3.0``
- exact: ``=1.2.3``
- comparisons: ``>``, ``>=``, ``<``, ``<=`` with partial versions
- wildcards: ``*``, ``1.*``, ``1.2.*``
- comma conjunctions: ``>=1.2, <1.5``

Pre-release versions only satisfy a requirement that names a pre-release
of the same major.minor.patch.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

_VERSION_RE = re.compile(
    r"^(?P<major>0|[1-9]\d*)\.(?P<minor>0|[1-9]\d*)\.(?P<patch>0|[1-9]\d*)"
    r"(?:-(?P<pre>[0-9A-Za-z.-]+))?(?:\+(?P<build>[0-9A-Za-z.-]+))?$"
)
_COMPARATOR_RE = re.compile(
    r"^(?P<op>=|>=|>|<=|<|~|\^)?\s*"
    r"(?P<major>\d+|\*)(?:\.(?P<minor>\d+|\*))?(?:\.(?P<patch>\d+|\*))?"
    r"(?:-(?P<pre>[0-9A-Za-z.-]+))?(?:\+[0-9A-Za-z.-]+)?$"
)


class VersionError(ValueError):
    """Raised when a version or requirement string cannot be parsed."""


def _pre_key(pre: tuple[str, ...]) -> tuple[object, ...]:
    # A release sorts after every pre-release of the same version
    if not pre:
        return (1,)
    parts: list[tuple[int, object]] = []
    for ident in pre:
        if ident.isdigit():
            parts.append((0, int(ident)))
        else:
            parts.append((1, ident))
    return (0, *parts)


@dataclass(frozen=True)
class Version:
    """A semantic version (build metadata is ignored for ordering)."""

    major: int
    minor: int
    patch: int
    pre: tuple[str, ...] = field(default=())

    @classmethod
    def parse(cls, text: str) -> Version:
        """Parse ``MAJOR.MINOR.PATCH[-pre][+build]``.

        Raises:
            VersionError: If the text is not a semantic version.
        """
        match = _VERSION_RE.match(text.strip())
        if match is None:
            raise VersionError(f"invalid version: {text!r}")
        pre = tuple(match.group("pre").split(".")) if match.group("pre") else ()
        return cls(
            int(match.group("major")),
            int(match.group("minor")),
            int(match.group("patch")),
            pre,
        )

    @property
    def release(self) -> tuple[int, int, int]:
        return (self.major, self.minor, self.patch)

    def _key(self) -> tuple[object, ...]:
        return (self.major, self.minor, self.patch, _pre_key(self.pre))

    def __lt__(self, other: Version) -> bool:
        return self._key() < other._key()  # type: ignore[operator]

    def __le__(self, other: Version) -> bool:
        return self._key() <= other._key()  # type: ignore[operator]

    def __gt__(self, other: Version) -> bool:
        return self._key() > other._key()  # type: ignore[operator]

    def __ge__(self, other: Version) -> bool:
        return self._key() >= other._key()  # type: ignore[operator]

    def __str__(self) -> str:
        base = f"{self.major}.{self.minor}.{self.patch}"
        return f"{base}-{'.'.join(self.pre)}" if self.pre else base


@dataclass(frozen=True)
class _Bound:
    op: str
    version: Version

    def matches(self, version: Version) -> bool:
        if self.op == ">=":
            return version >= self.version
        if self.op == ">":
            return version > self.version
        if self.op == "<":
            return version < self.version
        if self.op == "<=":
            return version <= self.version
        return version == self.version


@dataclass(frozen=True)
class Comparator:
    """One comparator of a requirement, expanded into primitive bounds."""

    text: str
    bounds: tuple[_Bound, ...]
    pre_release: tuple[int, int, int] | None = None

    @classmethod
    def parse(cls, text: str) -> Comparator:
        """Parse a single comparator such as ``^1.2`` or ``>=0.4.1``.

        Raises:
            VersionError: If the comparator is malformed.
        """
        match = _COMPARATOR_RE.match(text.strip())
        if match is None:
            raise VersionError(f"invalid version requirement: {text!r}")

        op = match.group("op") or "^"
        raw = [match.group("major"), match.group("minor"), match.group("patch")]
        if "*" in [part for part in raw if part is not None]:
            # Wildcards only make sense as the trailing component
            op = "*"
            raw = [part if part != "*" else None for part in raw]
            if raw[0] is None and (raw[1] is not None or raw[2] is not None):
                raise VersionError(f"invalid wildcard requirement: {text!r}")
        major, minor, patch = (int(part) if part is not None else None for part in raw)
        if major is None:
            return cls(text=text.strip(), bounds=())

        pre = tuple(match.group("pre").split(".")) if match.group("pre") else ()
        lower = Version(major, minor or 0, patch or 0, pre)
        bounds = _expand(op, major, minor, patch, lower)
        pre_release = lower.release if pre else None
        return cls(text=text.strip(), bounds=bounds, pre_release=pre_release)

    def matches(self, version: Version) -> bool:
        return all(bound.matches(version) for bound in self.bounds)


def _expand(
    op: str,
    major: int,
    minor: int | None,
    patch: int | None,
    lower: Version,
) -> tuple[_Bound, ...]:
    def upper(next_major: int, next_minor: int = 0, next_patch: int = 0) -> _Bound:
        # Exclusive upper bounds exclude pre-releases of the bound itself
        return _Bound("<", Version(next_major, next_minor, next_patch, ("0",)))

    if op in ("*", "="):
        if minor is None:
            return (_Bound(">=", lower), upper(major + 1))
        if patch is None:
            return (_Bound(">=", lower), upper(major, minor + 1))
        return (_Bound("==", lower),)

    if op == "^":
        if major > 0 or minor is None:
            return (_Bound(">=", lower), upper(major + 1))
        if minor > 0 or patch is None:
            return (_Bound(">=", lower), upper(0, minor + 1))
        return (_Bound(">=", lower), upper(0, 0, patch + 1))

    if op == "~":
        if minor is None:
            return (_Bound(">=", lower), upper(major + 1))
        return (_Bound(">=", lower), upper(major, minor + 1))

    if op == ">":
        if minor is None:
            return (_Bound(">=", Version(major + 1, 0, 0)),)
        if patch is None:
            return (_Bound(">=", Version(major, minor + 1, 0)),)
        return (_Bound(">", lower),)

    if op == ">=":
        return (_Bound(">=", lower),)

    if op == "<":
        return (_Bound("<", Version(major, minor or 0, patch or 0, lower.pre or ("0",))),)

    # "<="
    if minor is None:
        return (upper(major + 1),)
    if patch is None:
        return (upper(major, minor + 1),)
    return (_Bound("<=", lower),)


@dataclass(frozen=True)
class VersionReq:
    """A comma-separated conjunction of comparators.

    Example:
        >>> VersionReq.parse("1.0").matches(Version.parse("1.4.2"))
        True
        >>> VersionReq.parse("0.3").matches(Version.parse("0.4.0"))
        False
    """

    text: str
    comparators: tuple[Comparator, ...]

    @classmethod
    def parse(cls, text: str) -> VersionReq:
        """Parse a requirement string.

        Raises:
            VersionError: If any comparator is malformed.
        """
        stripped = text.strip()
        if not stripped:
            raise VersionError("empty version requirement")
        parts = stripped.split(",")
        if any(not part.strip() for part in parts):
            raise VersionError(f"invalid version requirement: {text!r}")
        return cls(text=stripped, comparators=tuple(Comparator.parse(part) for part in parts))

    def matches(self, version: Version) -> bool:
        """Check whether a locked version satisfies this requirement."""
        if version.pre and not any(
            comparator.pre_release == version.release for comparator in self.comparators
        ):
            return False
        return all(comparator.matches(version) for comparator in self.comparators)

    def __str__(self) -> str:
        return self.text
