# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT

"""Pydantic configuration models."""

from guidecheck.models.config import GuidecheckConfigModel, MarkerConfig, PatternRule

__all__ = ["GuidecheckConfigModel", "MarkerConfig", "PatternRule"]
