"""
SherpaKit CLI argument parser.

This module implements the command-line interface for SherpaKit using argparse.
"""

import argparse
import importlib
import logging
import sys
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import List, Optional

from sherpakit.cli.utils import add_settings_arguments, configure_logging, print_error
from sherpakit.core.exceptions import SherpaKitError

try:
    __version__ = version("sherpakit")
except PackageNotFoundError:
    __version__ = "0.1.0"

logger = logging.getLogger(__name__)


class CLI:
    """SherpaKit command-line interface."""

    def __init__(self):
        """Initialize CLI with argument parser."""
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """
        Create argument parser with all subcommands.

        Returns:
            Configured ArgumentParser instance
        """
        parser = argparse.ArgumentParser(
            prog="sherpakit",
            description="SherpaKit - sherpa-onnx native dependency resolver",
            epilog='Use "sherpakit COMMAND --help" for command-specific help',
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )

        # Global options
        parser.add_argument(
            "--version", action="version", version=f"SherpaKit {__version__}"
        )
        parser.add_argument(
            "--verbose", "-v", action="store_true", help="Enable verbose output"
        )
        parser.add_argument(
            "--quiet",
            "-q",
            action="store_true",
            help="Enable minimal output (errors only)",
        )
        parser.add_argument(
            "--config",
            type=Path,
            metavar="PATH",
            help="Path to configuration file (default: ./sherpakit.yaml)",
        )
        parser.add_argument(
            "--project-root",
            type=Path,
            metavar="PATH",
            default=Path.cwd(),
            help="Project root directory (default: current directory)",
        )

        # Subcommands
        subparsers = parser.add_subparsers(
            dest="command", help="Available commands", metavar="COMMAND"
        )

        self._add_build_command(subparsers)
        self._add_resolve_command(subparsers)
        self._add_digest_command(subparsers)
        self._add_cache_command(subparsers)

        return parser

    def _add_build_command(self, subparsers):
        """Add 'build' subcommand."""
        parser = subparsers.add_parser(
            "build",
            help="Resolve sherpa-onnx and emit link directives",
            description=(
                "Resolve the sherpa-onnx libraries for the target (prebuilt "
                "archive, cache or native build), print link directives and "
                "copy shared libraries next to the build outputs"
            ),
        )
        add_settings_arguments(parser)
        parser.add_argument(
            "--from-source",
            action="store_true",
            help="Build sherpa-onnx from source even if a prebuilt archive exists",
        )
        parser.add_argument(
            "--json",
            action="store_true",
            help="Print the result as JSON instead of directives",
        )

    def _add_resolve_command(self, subparsers):
        """Add 'resolve' subcommand."""
        parser = subparsers.add_parser(
            "resolve",
            help="Show the prebuilt archive selected for a target",
            description="Look up the distribution manifest without downloading",
        )
        add_settings_arguments(parser)
        parser.add_argument(
            "--dist",
            type=Path,
            metavar="PATH",
            help="dist.json to use (default: packaged manifest)",
        )

    def _add_digest_command(self, subparsers):
        """Add 'digest' subcommand."""
        parser = subparsers.add_parser(
            "digest",
            help="Refresh archive checksums for a release",
            description=(
                "Download every archive of the manifest, optionally for a new "
                "release tag, and rewrite the checksum table"
            ),
        )
        parser.add_argument(
            "--dist",
            type=Path,
            metavar="PATH",
            help="dist.json to update (default: packaged manifest)",
        )
        parser.add_argument("--tag", metavar="TAG", help="New release tag, e.g. v1.12.10")
        parser.add_argument(
            "--keep-going",
            action="store_true",
            help="Skip archives that fail to download",
        )

    def _add_cache_command(self, subparsers):
        """Add 'cache' subcommand."""
        parser = subparsers.add_parser(
            "cache",
            help="Inspect or clean the archive cache",
            description="List or delete cached prebuilt archives",
        )
        parser.add_argument("--cache-dir", type=Path, metavar="DIR", help="Cache root")
        group = parser.add_mutually_exclusive_group()
        group.add_argument(
            "--list", action="store_true", help="List cached archives (default)"
        )
        group.add_argument("--clean", action="store_true", help="Delete cached archives")
        parser.add_argument(
            "--target",
            metavar="TRIPLE",
            help="Only clean entries of this target",
        )

    def parse_args(self, args: Optional[List[str]] = None):
        """
        Parse command-line arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Parsed arguments namespace
        """
        return self.parser.parse_args(args)

    def run(self, args: Optional[List[str]] = None) -> int:
        """
        Run CLI with given arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Exit code (0 for success, non-zero for error)
        """
        parsed_args = self.parse_args(args)

        # Configure logging
        configure_logging(parsed_args.verbose, parsed_args.quiet)

        # Check if command specified
        if not parsed_args.command:
            self.parser.print_help()
            return 1

        # Dispatch to command handler
        try:
            return self._dispatch_command(parsed_args)
        except KeyboardInterrupt:
            logger.info("Operation cancelled by user")
            return 130  # Standard exit code for SIGINT
        except SherpaKitError as e:
            print_error(str(e))
            if parsed_args.verbose:
                import traceback

                traceback.print_exc()
            return 1

    def _dispatch_command(self, args) -> int:
        """
        Dispatch to appropriate command handler.

        Args:
            args: Parsed arguments with command field

        Returns:
            Exit code from command handler
        """
        command_map = {
            "build": "sherpakit.cli.commands.build",
            "resolve": "sherpakit.cli.commands.resolve",
            "digest": "sherpakit.cli.commands.digest",
            "cache": "sherpakit.cli.commands.cache",
        }

        module_name = command_map.get(args.command)
        if not module_name:
            logger.error(f"Unknown command: {args.command}")
            return 1

        module = importlib.import_module(module_name)
        return module.run(args)


def main():
    """Main entry point for CLI."""
    cli = CLI()
    sys.exit(cli.run())


if __name__ == "__main__":
    main()
