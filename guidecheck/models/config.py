# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT

"""Pydantic models for guidecheck configuration (~/.config/guidecheck/config.yml)."""

import re
from typing import List, Optional, Pattern

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator

from guidecheck.paths import ContainerDefaults


# Debian-style package names: lowercase alnum plus . + -
VALID_PACKAGE_PATTERN = re.compile(r"^[a-z0-9][a-z0-9.+-]*$")

# OpenPGP v4 fingerprints are 40 hex digits
FINGERPRINT_PATTERN = re.compile(r"^[0-9A-F]{40}$")

# Release signing key the guides tell readers to import
DEFAULT_FINGERPRINT = "35BAA0B33E9EB396F59CA838C0BA5CE6DC6315A3"

# Download tool, key tool, CA bundle, plus what guide commands invoke directly
DEFAULT_PREREQUISITES = ("ca-certificates", "gnupg", "lsb-release", "sudo", "wget")


class PatternRule(BaseModel):
    """A named regular expression with a user-facing message.

    Used for the normalizer denylist and the validator's required and
    danger tables.
    """

    id: str
    pattern: str
    message: str

    _regex: Optional[Pattern[str]] = PrivateAttr(default=None)

    @field_validator("pattern")
    @classmethod
    def validate_pattern(cls, v: str) -> str:
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"Invalid regular expression {v!r}: {e}")
        return v

    @property
    def regex(self) -> Pattern[str]:
        if self._regex is None:
            self._regex = re.compile(self.pattern, re.MULTILINE)
        return self._regex

    def matches(self, text: str) -> bool:
        return self.regex.search(text) is not None


class MarkerConfig(BaseModel):
    """Markup markers delimiting command blocks."""

    container_tag: str = "div"
    container_class: str = "code-block"
    control_tag: str = "button"
    control_class: str = "copy-button"


DEFAULT_DENYLIST = [
    PatternRule(
        id="distro-query",
        pattern=r"^\s*(?:sudo\s+)?lsb_release\b",
        message="Distribution query shown for the reader's information",
    ),
]

DEFAULT_REQUIRED_PATTERNS = [
    PatternRule(
        id="trusted-keyring",
        pattern=r"apt-key\s+add|/etc/apt/(?:trusted\.gpg\.d|keyrings)/|signed-by=",
        message="No command adds a trusted keyring",
    ),
    PatternRule(
        id="signing-key",
        pattern=r"\bgpg\b.*--(?:import|dearmor|recv-keys?)\b|apt-key\s+(?:add|adv)\b",
        message="No command fetches and imports a signing key",
    ),
    PatternRule(
        id="package-source",
        pattern=r"/etc/apt/sources\.list|add-apt-repository",
        message="No command registers a package source",
    ),
    PatternRule(
        id="package-install",
        pattern=r"\bapt(?:-get)?\s+(?:-\S+\s+)*install\b",
        message="No command installs via the system package manager",
    ),
]

DEFAULT_DANGER_PATTERNS = [
    PatternRule(
        id="recursive-force-remove",
        pattern=(
            r"\brm\s+(?:-\S+\s+)*"
            r"(?:-[a-zA-Z]*(?:[rR][a-zA-Z]*f|f[a-zA-Z]*[rR])[a-zA-Z]*"
            r"|(?:-[rR]|--recursive)\s+(?:-\S+\s+)*(?:-f|--force)"
            r"|(?:-f|--force)\s+(?:-\S+\s+)*(?:-[rR]|--recursive))\b"
        ),
        message="Command performs a recursive forced removal",
    ),
]


class GuidecheckConfigModel(BaseModel):
    """Root configuration model."""

    model_config = ConfigDict(extra="ignore")

    image: str = ContainerDefaults.BASE_IMAGE
    execute: bool = False
    extract_only: bool = False
    timeout_seconds: float = Field(default=1800.0, ge=0)
    work_dir: Optional[str] = None
    product_name: str = "mina"
    expected_fingerprint: str = DEFAULT_FINGERPRINT
    prerequisites: List[str] = Field(default_factory=lambda: list(DEFAULT_PREREQUISITES))
    markers: MarkerConfig = Field(default_factory=MarkerConfig)
    denylist: List[PatternRule] = Field(default_factory=lambda: list(DEFAULT_DENYLIST))
    required_patterns: List[PatternRule] = Field(
        default_factory=lambda: list(DEFAULT_REQUIRED_PATTERNS)
    )
    danger_patterns: List[PatternRule] = Field(
        default_factory=lambda: list(DEFAULT_DANGER_PATTERNS)
    )

    @field_validator("prerequisites")
    @classmethod
    def validate_prerequisites(cls, v: List[str]) -> List[str]:
        for pkg in v:
            if not VALID_PACKAGE_PATTERN.match(pkg):
                raise ValueError(f"Invalid package name: {pkg!r}")
        return v

    @field_validator("expected_fingerprint")
    @classmethod
    def normalize_fingerprint(cls, v: str) -> str:
        # gpg prints fingerprints in upper case without spaces
        v = v.replace(" ", "").upper()
        if not FINGERPRINT_PATTERN.match(v):
            raise ValueError(f"Fingerprint must be 40 hex digits, got {v!r}")
        return v

    @field_validator("image")
    @classmethod
    def validate_image(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Image must not be empty")
        return v
