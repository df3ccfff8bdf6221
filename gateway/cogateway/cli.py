#!/usr/bin/env python3
"""
CoGateway CLI

Command-line access to the redeem tooling.

Usage:
    cogateway <command> [subcommand] [options]

Commands:
    hashlock    Compute and verify hash locks, generate unlock secrets
    scenario    Validate and run scripted redeem scenarios
    config      Configuration management

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import argparse
import json
import sys
from enum import Enum
from typing import Any, List, Optional

import yaml

from gateway import __version__
from gateway.cogateway import hashlock
from gateway.cogateway.config import ConfigError, get_config_manager
from gateway.cogateway.observability import configure_logging


class OutputFormat(Enum):
    """Output format options."""
    JSON = "json"
    YAML = "yaml"
    TEXT = "text"


class CLIError(Exception):
    """CLI error with exit code."""
    def __init__(self, message: str, exit_code: int = 1):
        super().__init__(message)
        self.exit_code = exit_code


def format_output(data: Any, fmt: OutputFormat = OutputFormat.JSON) -> str:
    """Format data for output."""
    if fmt == OutputFormat.JSON:
        return json.dumps(data, indent=2, default=str)
    elif fmt == OutputFormat.YAML:
        return yaml.dump(data, default_flow_style=False)
    elif isinstance(data, dict):
        return "\n".join(f"{k}: {v}" for k, v in data.items())
    return str(data)


class CoGatewayCLI:
    """Main CLI application."""

    def __init__(self):
        self.parser = argparse.ArgumentParser(
            prog="cogateway",
            description="CoGateway redeem and unstake tooling",
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )
        self.parser.add_argument(
            "--version", "-V",
            action="version",
            version=f"cogateway {__version__}",
        )
        self.parser.add_argument(
            "--format", "-f",
            choices=["json", "yaml", "text"],
            default="json",
            help="Output format (default: json)",
        )
        self.parser.add_argument(
            "--config", "-c",
            help="Configuration file (YAML)",
        )
        self.parser.add_argument(
            "--quiet", "-q",
            action="store_true",
            help="Suppress non-essential output",
        )

        self.subparsers = self.parser.add_subparsers(dest="command", help="Commands")
        self._register_commands()

    def _register_commands(self) -> None:
        self._register_hashlock_commands()
        self._register_scenario_commands()
        self._register_config_commands()

    def _register_hashlock_commands(self) -> None:
        hl = self.subparsers.add_parser("hashlock", help="Hash lock operations")
        hl_sub = hl.add_subparsers(dest="subcommand")

        compute = hl_sub.add_parser("compute", help="Compute the hash lock of a secret")
        compute.add_argument("secret", help="Unlock secret")

        verify = hl_sub.add_parser("verify", help="Check a secret against a hash lock")
        verify.add_argument("secret", help="Unlock secret")
        verify.add_argument("hash_lock", help="Hash lock (0x + 64 hex)")

        generate = hl_sub.add_parser("generate", help="Generate a random secret and its hash lock")
        generate.add_argument("--bytes", "-n", type=int, default=32, help="Secret length in bytes")

    def _register_scenario_commands(self) -> None:
        scenario = self.subparsers.add_parser("scenario", help="Scripted redeem scenarios")
        scenario_sub = scenario.add_subparsers(dest="subcommand")

        run = scenario_sub.add_parser("run", help="Run a scenario file")
        run.add_argument("file", help="Scenario file (YAML or JSON)")

        validate = scenario_sub.add_parser("validate", help="Validate a scenario file")
        validate.add_argument("file", help="Scenario file (YAML or JSON)")

    def _register_config_commands(self) -> None:
        config = self.subparsers.add_parser("config", help="Configuration management")
        config_sub = config.add_subparsers(dest="subcommand")

        get = config_sub.add_parser("get", help="Get configuration value")
        get.add_argument("path", help="Config path (e.g., redeem.revert_timeout_blocks)")

        set_cmd = config_sub.add_parser("set", help="Set configuration value")
        set_cmd.add_argument("path", help="Config path")
        set_cmd.add_argument("value", help="Value to set")

        config_sub.add_parser("show", help="Show all configuration")
        config_sub.add_parser("validate", help="Validate configuration")
        config_sub.add_parser("schema", help="Export configuration schema")

    def run(self, args: Optional[List[str]] = None) -> int:
        """Run the CLI."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 0

        try:
            mgr = get_config_manager()
            if parsed.config:
                mgr.load_from_file(parsed.config)
            else:
                mgr.load_defaults()
            obs = mgr.config.observability
            configure_logging(
                "error" if parsed.quiet else obs.log_level.get(),
                obs.log_format.get(),
            )

            fmt = OutputFormat(parsed.format)
            result = self._dispatch(parsed)

            if result is not None:
                print(format_output(result, fmt))

            return 0

        except CLIError as e:
            if not parsed.quiet:
                print(f"Error: {e}", file=sys.stderr)
            return e.exit_code

        except Exception as e:
            if not parsed.quiet:
                print(f"Error: {e}", file=sys.stderr)
            return 1

    def _dispatch(self, args: argparse.Namespace) -> Any:
        """Dispatch command to handler."""
        cmd = args.command
        subcmd = getattr(args, "subcommand", None)

        handler_name = f"_handle_{cmd}_{subcmd}" if subcmd else f"_handle_{cmd}"
        handler = getattr(self, handler_name, None)

        if handler is None:
            raise CLIError(f"Unknown command: {cmd} {subcmd or ''}", exit_code=2)

        return handler(args)

    # Hash lock handlers
    def _handle_hashlock_compute(self, args: argparse.Namespace) -> Any:
        return {"secret": args.secret, "hash_lock": hashlock.compute_hash_lock(args.secret)}

    def _handle_hashlock_verify(self, args: argparse.Namespace) -> Any:
        valid = hashlock.verify(args.secret, args.hash_lock)
        if not valid:
            raise CLIError("secret does not match hash lock", exit_code=3)
        return {"valid": True, "hash_lock": args.hash_lock}

    def _handle_hashlock_generate(self, args: argparse.Namespace) -> Any:
        secret = hashlock.generate_secret(args.bytes)
        return {"secret": secret, "hash_lock": hashlock.compute_hash_lock(secret)}

    # Scenario handlers
    def _handle_scenario_run(self, args: argparse.Namespace) -> Any:
        from gateway.cogateway.scenario import ScenarioError, ScenarioRunner
        try:
            runner = ScenarioRunner.from_file(args.file, config=get_config_manager().config)
            return runner.run().to_dict()
        except ScenarioError as e:
            raise CLIError(str(e), exit_code=4) from e

    def _handle_scenario_validate(self, args: argparse.Namespace) -> Any:
        from gateway.core import load_document
        from gateway.cogateway.scenario import validate_scenario
        errors = validate_scenario(load_document(args.file))
        if errors:
            raise CLIError("; ".join(errors), exit_code=4)
        return {"valid": True, "file": args.file}

    # Config handlers
    def _handle_config_get(self, args: argparse.Namespace) -> Any:
        try:
            return {"path": args.path, "value": get_config_manager().get(args.path)}
        except ConfigError as e:
            raise CLIError(str(e), exit_code=2) from e

    def _handle_config_set(self, args: argparse.Namespace) -> Any:
        mgr = get_config_manager()
        try:
            mgr.set(args.path, args.value)
        except ConfigError as e:
            raise CLIError(str(e), exit_code=2) from e
        return {"path": args.path, "value": mgr.get(args.path), "status": "updated"}

    def _handle_config_show(self, args: argparse.Namespace) -> Any:
        return get_config_manager().config.to_dict()

    def _handle_config_validate(self, args: argparse.Namespace) -> Any:
        errors = get_config_manager().validate()
        return {"valid": len(errors) == 0, "errors": errors}

    def _handle_config_schema(self, args: argparse.Namespace) -> Any:
        return get_config_manager().export_schema()


def main() -> int:
    cli = CoGatewayCLI()
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
