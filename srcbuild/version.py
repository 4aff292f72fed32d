"""Source version parsing.

A source version is a dependency version string that embeds one or more
source-control coordinates after the ``-SRC-`` infix, for example::

    1.0-SRC-tag-v1.0
    2.1-SRC-revision-0a5ab90;branch-main

Each coordinate is a ``type-value`` pair; pairs are separated by ``;``.
"""

from __future__ import annotations

from dataclasses import dataclass

from srcbuild.errors import MalformedVersionError
from srcbuild.types import WellKnownType

SRC_VERSION_INFIX = "-SRC-"
SRC_VERSION_DELIMITER = "-"
SRC_VERSION_ELEMENT_DELIMITER = ";"


@dataclass(frozen=True)
class VersionElement:
    """One source-control coordinate of a source version.

    Attributes:
        version_type: How ``version`` is interpreted (branch, tag, revision...).
        version: Branch name, tag name or commit id.
    """

    version_type: str
    version: str

    @property
    def well_known_type(self) -> WellKnownType:
        """Return the version type as a WellKnownType.

        Raises:
            MalformedVersionError: If the type is not well known.
        """
        try:
            return WellKnownType(self.version_type)
        except ValueError:
            known = ", ".join(t.value for t in WellKnownType)
            raise MalformedVersionError(
                f"Unexpected version type [{self.version_type}]; expected one of {known}"
            ) from None

    def __str__(self) -> str:
        return f"{self.version_type}{SRC_VERSION_DELIMITER}{self.version}"


@dataclass(frozen=True, eq=False)
class SourceVersion:
    """Immutable parsed source version, compared by its raw string."""

    raw: str
    elements: tuple[VersionElement, ...]

    @classmethod
    def parse(cls, raw: str) -> SourceVersion | None:
        """Parse a raw version string.

        Args:
            raw: The version string.

        Returns:
            A SourceVersion, or None if ``raw`` has no ``-SRC-`` infix.

        Raises:
            MalformedVersionError: If the infix is not followed by valid
                ``type-value`` pairs.
        """
        pos = raw.find(SRC_VERSION_INFIX)
        if pos < 0:
            return None

        tail = raw[pos + len(SRC_VERSION_INFIX) :]
        if not tail:
            raise MalformedVersionError(
                f"Version string '{raw}' contains '{SRC_VERSION_INFIX}' that is not "
                "followed by a version type such as 'tag', 'branch', or 'revision'"
            )

        elements: list[VersionElement] = []
        for token in tail.split(SRC_VERSION_ELEMENT_DELIMITER):
            version_type, delimiter, version = token.partition(SRC_VERSION_DELIMITER)
            if not delimiter or not version_type or not version:
                raise MalformedVersionError(
                    f"Version string '{raw}' must contain pairs of versionType-version "
                    f"separated by '{SRC_VERSION_ELEMENT_DELIMITER}'; found '{token}'"
                )
            elements.append(VersionElement(version_type, version))

        return cls(raw=raw, elements=tuple(elements))

    @property
    def primary(self) -> VersionElement:
        """Return the first version element."""
        return self.elements[0]

    def __eq__(self, other: object) -> bool:
        if isinstance(other, SourceVersion):
            return self.raw == other.raw
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.raw)

    def __str__(self) -> str:
        return self.raw


def is_src_version(raw: str) -> bool:
    """Tell whether a version string is a source version."""
    return SRC_VERSION_INFIX in raw


def parse_version(raw: str) -> SourceVersion | None:
    """Parse a raw version string; see SourceVersion.parse."""
    return SourceVersion.parse(raw)


def format_version(version: SourceVersion) -> str:
    """Format a source version back to the string it was parsed from."""
    return version.raw


__all__ = [
    "SRC_VERSION_DELIMITER",
    "SRC_VERSION_ELEMENT_DELIMITER",
    "SRC_VERSION_INFIX",
    "SourceVersion",
    "VersionElement",
    "format_version",
    "is_src_version",
    "parse_version",
]
