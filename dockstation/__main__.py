"""CLI entry point for DockStation: python -m dockstation."""

from dockstation.cli import app

if __name__ == "__main__":
    app()
