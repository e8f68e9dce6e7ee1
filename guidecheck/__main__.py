# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT

"""Allow running as ``python -m guidecheck``."""

from guidecheck.cli import main

if __name__ == "__main__":
    main()
