"""
Policy adapter command line entry point.
"""

import logging
import sys
from pathlib import Path

import casbin

from policy_adapter.config import load_config, Config
from policy_adapter.exceptions import AdapterError
from policy_adapter.services.adapter import Adapter, SAVED_SECTIONS, iter_model_records


logger = logging.getLogger(__name__)


def _load_cli_config(args) -> Config | None:
    """Load config and set up logging, or print an error and return None."""
    config_path = Path(args.config)
    if not config_path.exists():
        print(f"Error: Config file not found: {config_path}")
        print("Please create a config.yaml file or specify a different path with -c")
        return None

    config = load_config(config_path)

    logging.basicConfig(
        level=getattr(logging, config.logging.level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    return config


def format_policy_lines(model) -> list[str]:
    """Render the saved sections of a model as CSV policy lines."""
    lines = []
    for sec in SAVED_SECTIONS:
        for ptype, assertion in model.model.get(sec, {}).items():
            for rule in assertion.policy:
                lines.append(", ".join([ptype, *rule]))
    return lines


def cmd_init(args):
    """Create the policy database and table."""
    config = _load_cli_config(args)
    if config is None:
        return 1

    try:
        with Adapter.from_config(config.database):
            pass
    except AdapterError as e:
        print(f"Error: {e}")
        return 1

    print(f"Policy store ready at {config.database.url}")
    return 0


def cmd_import(args):
    """Replace the stored policy with the rules of a CSV policy file."""
    config = _load_cli_config(args)
    if config is None:
        return 1

    for path in (args.model, args.policy):
        if not Path(path).exists():
            print(f"Error: File not found: {path}")
            return 1

    # Read the CSV through casbin's file adapter, then write the model out
    source = casbin.Enforcer(args.model, args.policy)
    model = source.get_model()

    try:
        count = sum(1 for _ in iter_model_records(model))
        with Adapter.from_config(config.database) as adapter:
            adapter.save_policy(model)
    except AdapterError as e:
        print(f"Error: {e}")
        return 1

    print(f"Imported {count} policy rules from {args.policy}")
    return 0


def cmd_export(args):
    """Write the stored policy as CSV lines."""
    config = _load_cli_config(args)
    if config is None:
        return 1

    if not Path(args.model).exists():
        print(f"Error: File not found: {args.model}")
        return 1

    try:
        with Adapter.from_config(config.database) as adapter:
            enforcer = casbin.Enforcer(args.model, adapter)
            lines = format_policy_lines(enforcer.get_model())
    except AdapterError as e:
        print(f"Error: {e}")
        return 1

    content = "".join(f"{line}\n" for line in lines)
    if args.output:
        Path(args.output).write_text(content, encoding="utf-8")
        print(f"Exported {len(lines)} policy rules to {args.output}")
    else:
        sys.stdout.write(content)

    return 0


def main():
    """Main entry point."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Casbin policy storage adapter",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-c", "--config",
        default="config.yaml",
        help="Path to configuration file (default: config.yaml)",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # init command
    subparsers.add_parser("init", help="Create the policy database and table")

    # import command
    import_parser = subparsers.add_parser("import", help="Replace stored policy with a CSV policy file")
    import_parser.add_argument("model", help="Path to the Casbin model .conf file")
    import_parser.add_argument("policy", help="Path to the CSV policy file")

    # export command
    export_parser = subparsers.add_parser("export", help="Print stored policy as CSV")
    export_parser.add_argument("model", help="Path to the Casbin model .conf file")
    export_parser.add_argument("-o", "--output", help="Write to a file instead of stdout")

    args = parser.parse_args()

    if args.command == "init":
        return cmd_init(args)
    elif args.command == "import":
        return cmd_import(args)
    elif args.command == "export":
        return cmd_export(args)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    exit(main())
