#!/usr/bin/env python3
"""
Font Inspector - detection script.
Identifies the fonts that render a web page using Playwright.
"""

from font_inspector.cli import main


if __name__ == "__main__":
    main()
