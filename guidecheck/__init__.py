# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT
# See LICENSE file in the project root for full license information.

"""guidecheck - Verify that HTML installation guides actually install."""

__version__ = "0.1.0"
