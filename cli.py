"""
Command-line interface for the host metrics agent: run, test, sample-config, list, api.
"""
from __future__ import annotations

import argparse
import json
import sys

from rich.console import Console
from rich.table import Table

import config
from agent import Agent, build_registry
from errors import AgentError
from models import Measurement
from utils import setup_logging


def _load(args: argparse.Namespace) -> None:
    config.load_config_file(getattr(args, "config", None))
    setup_logging(
        getattr(args, "log_level", None) or config.get("agent.log_level", "INFO"),
        config.get("agent.log_file"),
    )


def _print_measurements(measurements: list[Measurement], console: Console) -> None:
    table = Table(title="Measurements")
    table.add_column("Name", style="cyan")
    table.add_column("Tags", style="magenta")
    table.add_column("Fields", style="green")
    table.add_column("Timestamp", style="dim")
    for m in measurements:
        tags = ",".join(f"{k}={v}" for k, v in sorted(m.tags.items()))
        fields = " ".join(f"{k}={v.to_json()!r}" for k, v in m.fields.items())
        table.add_row(m.name, tags, fields, m.timestamp.isoformat(timespec="seconds"))
    console.print(table)


def cmd_run(args: argparse.Namespace) -> int:
    _load(args)
    agent = Agent.from_config()
    if not agent.scheduler.slots:
        print("No inputs configured", file=sys.stderr)
        return 1
    agent.run()
    return 0


def cmd_test(args: argparse.Namespace) -> int:
    """Gather every configured input once and print what it produced."""
    _load(args)
    agent = Agent.from_config()
    results = agent.gather_once()
    measurements = agent.buffer.get_buffer() if agent.buffer is not None else []
    if args.json:
        print(json.dumps([m.to_dict() for m in measurements], indent=2 if args.pretty else None))
    else:
        console = Console()
        _print_measurements(measurements, console)
        for report in agent.failures.get_events():
            console.print(f"[red]{report.instance_id}[/red] {report.kind.value}: {report.error}")
    return 0 if all(results.values()) else 1


def cmd_sample_config(args: argparse.Namespace) -> int:
    registry = build_registry()
    names = args.plugins or None
    for name in names or []:
        if name not in registry:
            print(f"unknown plugin {name!r}", file=sys.stderr)
            return 1
    print("inputs:")
    print(registry.sample_config(names))
    return 0


def cmd_list(args: argparse.Namespace) -> int:
    registry = build_registry()
    table = Table(title="Input plugins")
    table.add_column("Plugin", style="cyan")
    table.add_column("Description", style="green")
    for name, desc in registry.describe().items():
        table.add_row(name, desc)
    Console().print(table)
    return 0


def cmd_api(args: argparse.Namespace) -> int:
    import uvicorn

    from api import create_app

    _load(args)
    agent = Agent.from_config()
    agent.start()
    port = args.port or int(config.get("outputs.api.port", 8765))
    try:
        uvicorn.run(create_app(agent), host=str(config.get("outputs.api.host", "127.0.0.1")), port=port)
    finally:
        agent.stop()
    return 0


def cmd_validate_config(args: argparse.Namespace) -> int:
    loaded = config.load_config_file(getattr(args, "config", None))
    print("Config file loaded:", loaded or "(none, defaults only)")
    registry = build_registry()
    ok = True
    for cfg in config.plugin_configs():
        status = "ok"
        if cfg.plugin not in registry:
            status = "UNKNOWN PLUGIN"
            ok = False
        else:
            try:
                registry.instantiate(cfg.plugin).configure(cfg.options)
            except (AgentError, TypeError, ValueError) as e:
                status = f"INVALID: {e}"
                ok = False
        print(f"  {cfg.instance_id} ({cfg.plugin}, every {cfg.interval_sec:g}s): {status}")
    return 0 if ok else 1


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="host_metrics_agent", description="Host metrics agent CLI")
    sub = parser.add_subparsers(dest="command", required=True)

    def with_config(p: argparse.ArgumentParser) -> argparse.ArgumentParser:
        p.add_argument("-c", "--config", default=None, help="Path to YAML config")
        p.add_argument("--log-level", default=None, help="Override agent.log_level")
        return p

    p_run = with_config(sub.add_parser("run", help="Run the agent until interrupted"))
    p_run.set_defaults(run=cmd_run)

    p_test = with_config(sub.add_parser("test", help="Gather every input once and print the result"))
    p_test.add_argument("--json", action="store_true", help="Output JSON")
    p_test.add_argument("--pretty", action="store_true", help="Pretty-print JSON")
    p_test.set_defaults(run=cmd_test)

    p_sample = sub.add_parser("sample-config", help="Print sample configuration for plugins")
    p_sample.add_argument("plugins", nargs="*", help="Restrict to these plugins")
    p_sample.set_defaults(run=cmd_sample_config)

    p_list = sub.add_parser("list", help="List registered input plugins")
    p_list.set_defaults(run=cmd_list)

    p_api = with_config(sub.add_parser("api", help="Run the agent with the status API"))
    p_api.add_argument("--port", type=int, default=None, help="Port")
    p_api.set_defaults(run=cmd_api)

    p_validate = sub.add_parser("validate-config", help="Validate config and inputs")
    p_validate.add_argument("-c", "--config", default=None, help="Path to YAML config")
    p_validate.set_defaults(run=cmd_validate_config)

    args = parser.parse_args(argv)
    try:
        return args.run(args)
    except AgentError as e:
        where = f" [{e.plugin}]" if e.plugin else ""
        print(f"fatal{where}: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
