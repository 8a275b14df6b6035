"""CLI entrypoint for HomeRec."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

import fire  # type: ignore[import-untyped]

from homerec.app import Application
from homerec.config import ConfigError, load_config
from homerec.logging_setup import configure_logging
from homerec.models.storage import ReclaimResult
from homerec.storage.reclaimer import Reclaimer


def setup_logging(level: str = "INFO") -> None:
    """Configure logging for CLI."""
    configure_logging(log_level=level)


def _format_bytes(value: int) -> str:
    size = float(value)
    for unit in ("B", "KiB", "MiB", "GiB", "TiB"):
        if size < 1024 or unit == "TiB":
            return f"{size:.1f} {unit}" if unit != "B" else f"{int(size)} B"
        size /= 1024
    return f"{value} B"


class HomeRec:
    """HomeRec CLI - supervised camera recorders with a disk budget."""

    def run(self, config: str, log_level: str = "INFO") -> None:
        """Run every configured recorder and the reclaim ticker.

        Args:
            config: Path to YAML or JSON config file
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        """
        setup_logging(log_level)

        app = Application(Path(config))

        try:
            asyncio.run(app.run())
        except ConfigError as e:
            print(f"✗ Config invalid: {e}", file=sys.stderr)
            sys.exit(1)
        except KeyboardInterrupt:
            pass  # Handled by signal handlers

    def validate(self, config: str) -> None:
        """Validate config file without running.

        Args:
            config: Path to YAML or JSON config file
        """
        config_path = Path(config)

        try:
            cfg = load_config(config_path)
        except ConfigError as e:
            print(f"✗ Config invalid: {e}", file=sys.stderr)
            sys.exit(1)

        print(f"✓ Config valid: {config_path}")
        print(f"  Storage dir: {cfg.storage_dir}")
        print(f"  Cleanup threshold: {_format_bytes(cfg.cleanup_threshold)}")
        print(f"  Cameras: {[camera.name for camera in cfg.enabled_cameras]}")
        disabled = [camera.name for camera in cfg.cameras if not camera.enabled]
        if disabled:
            print(f"  Disabled cameras: {disabled}")

    def reclaim(self, config: str, dry_run: bool = True, log_level: str = "INFO") -> None:
        """Run a single reclaim tick against the configured storage dir.

        Args:
            config: Path to YAML or JSON config file
            dry_run: If True, log what would be deleted without deleting
            log_level: Logging level
        """
        setup_logging(log_level)

        try:
            cfg = load_config(Path(config))
        except ConfigError as e:
            print(f"✗ Config invalid: {e}", file=sys.stderr)
            sys.exit(1)

        reclaimer = Reclaimer(dry_run=dry_run)
        storage_dir = Path(cfg.storage_dir).expanduser()
        result = asyncio.run(reclaimer.tick(storage_dir, cfg.cleanup_threshold))
        _print_reclaim_result(result)
        if result is None:
            sys.exit(1)


def _print_reclaim_result(result: ReclaimResult | None) -> None:
    if result is None:
        print("✗ Could not sample free space; nothing reclaimed", file=sys.stderr)
        return
    if result.requested_bytes == 0:
        print("✓ Free space above threshold; nothing to reclaim")
        return
    verb = "Would free" if result.dry_run else "Freed"
    print(
        f"{'✓' if result.satisfied else '✗'} {verb} {_format_bytes(result.freed_bytes)} "
        f"of {_format_bytes(result.requested_bytes)} "
        f"({len(result.deleted)} file(s), {len(result.failed)} failed)"
    )


def main() -> None:
    """Main CLI entrypoint."""
    # Strip --help/-h when it's the only arg so Fire shows its commands list
    if len(sys.argv) == 2 and sys.argv[1] in ("--help", "-h"):
        sys.argv.pop()
    fire.Fire(HomeRec)


if __name__ == "__main__":
    main()
