from __future__ import annotations

from arcore.ui.cli import run

if __name__ == "__main__":
    run()
