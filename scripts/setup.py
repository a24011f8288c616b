#!/usr/bin/env python3
"""
Setup script for Font Inspector.
Installs the package, its dependencies and the Chromium browser Playwright drives.
"""

import subprocess
import sys
from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parent.parent


def run_command(cmd, description):
    """Run a command and report status."""
    print(f"\n📦 {description}...")
    try:
        result = subprocess.run(cmd, shell=True, check=True, capture_output=True, text=True)
        print(f"✅ {description} completed")
        if result.stdout:
            print(result.stdout)
        return True
    except subprocess.CalledProcessError as e:
        print(f"❌ {description} failed")
        if e.stderr:
            print(e.stderr)
        return False


def main():
    print("🚀 Setting up Font Inspector...")

    if sys.version_info < (3, 9):
        print("❌ Python 3.9+ required")
        sys.exit(1)

    if not run_command(
        f'{sys.executable} -m pip install -e "{PROJECT_ROOT}[test]"',
        "Installing font_inspector with playwright, fonttools and brotli"
    ):
        sys.exit(1)

    if not run_command(
        f"{sys.executable} -m playwright install chromium",
        "Installing Chromium browser"
    ):
        sys.exit(1)

    print("\n✅ Setup complete! You can now run:")
    print("   python scripts/detect_fonts.py <url> --output ./font-inspector-output")


if __name__ == "__main__":
    main()
