"""
CLI interface for fallchain.

Provides commands to run operations through their fallback chains, inspect
the declared operations, and check the platform gate.

Operations are declared in a YAML definitions file (see
fallchain.definitions), located via --definitions or the `definitions` key
of $FALLCHAIN_HOME/config.yaml.

Exit codes for `fallchain run`:
    0  an implementation succeeded
    1  configuration or platform error
    2  every implementation failed (exhausted)
    3  cancelled (Ctrl-C)
"""

import signal
import threading
from pathlib import Path
from typing import Optional

import click
import yaml

from fallchain import __version__
from fallchain.errors import ConfigurationError, EnvironmentMismatch

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_EXHAUSTED = 2
EXIT_CANCELLED = 3


@click.group()
@click.version_option(version=__version__, prog_name="fallchain")
@click.pass_context
def main(ctx):
    """
    fallchain - Ranked fallback execution for platform workarounds.

    Run an operation; if its preferred implementation fails, the next
    ranked fallback is tried until one succeeds.
    """
    from fallchain.config import load_config

    ctx.ensure_object(dict)
    try:
        ctx.obj["config"] = load_config()
    except FileNotFoundError:
        # No config yet; commands fall back to defaults and explicit options
        ctx.obj["config"] = None
    except ConfigurationError as e:
        ctx.obj["config"] = None
        ctx.obj["config_error"] = str(e)


def _get_config(ctx):
    from fallchain.config import FallchainConfig

    if ctx.obj.get("config_error"):
        click.echo(f"✗ Invalid config: {ctx.obj['config_error']}", err=True)
        raise SystemExit(EXIT_ERROR)
    return ctx.obj.get("config") or FallchainConfig()


def _load_registry(config, definitions: Optional[str]):
    """Load the registry from --definitions or the configured path."""
    from fallchain.definitions import load_definitions

    path = Path(definitions) if definitions else config.definitions_path
    if path is None:
        click.echo("✗ No definitions file. Pass --definitions or set 'definitions' in config.yaml.", err=True)
        click.echo("Run 'fallchain init' to create a configuration file.", err=True)
        raise SystemExit(EXIT_ERROR)

    try:
        return load_definitions(path)
    except ConfigurationError as e:
        click.echo(f"✗ {e}", err=True)
        raise SystemExit(EXIT_ERROR)


definitions_option = click.option(
    "--definitions", "-d",
    type=click.Path(dir_okay=False),
    help="Operation definitions file (YAML or JSON)",
)


@main.command("run")
@click.argument("operation")
@click.option("--arg", "-a", "arg_pairs", multiple=True, help="Argument as key=value (repeatable)")
@click.option("--timeout", "-t", type=float, help="Per-implementation timeout in seconds")
@click.option("--platform", "required_platform", help="Required platform (overrides config)")
@click.option(
    "--format", "output_format",
    type=click.Choice(["rich", "text", "kv", "json"]),
    default="rich",
    show_default=True,
    help="Output format",
)
@definitions_option
@click.pass_context
def run(ctx, operation: str, arg_pairs: tuple[str, ...], timeout: Optional[float],
        required_platform: Optional[str], output_format: str, definitions: Optional[str]):
    """
    Run OPERATION through its fallback chain.

    Examples:

        fallchain run resolve-url -a version=26.0

        fallchain run resolve-url --timeout 10 --format kv

        fallchain run create-sandbox -d ./operations.yaml --format json
    """
    from fallchain.executor import FallbackExecutor
    from fallchain.reporter import print_result, render, render_json, render_kv
    from fallchain.schemas import Cancelled, Succeeded
    from fallchain.utils import parse_key_values, setup_logging

    config = _get_config(ctx)
    setup_logging(config.log_level, config.log_format, log_file=config.log_file_path)

    try:
        args = parse_key_values(arg_pairs)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--arg")

    if timeout is not None and timeout <= 0:
        raise click.BadParameter("must be positive", param_hint="--timeout")

    registry = _load_registry(config, definitions)
    executor = FallbackExecutor(
        registry,
        required_platform=required_platform or config.required_platform,
        default_timeout=config.default_timeout,
    )

    # Ctrl-C sets the cancel event; no new rank starts once it is observed
    cancel_event = threading.Event()
    previous_handler = None
    if threading.current_thread() is threading.main_thread():
        previous_handler = signal.signal(signal.SIGINT, lambda signum, frame: cancel_event.set())

    try:
        result = executor.execute(operation, args, timeout=timeout, cancel_event=cancel_event)
    except EnvironmentMismatch as e:
        click.echo(f"✗ {e}", err=True)
        raise SystemExit(EXIT_ERROR)
    except ConfigurationError as e:
        click.echo(f"✗ {e}", err=True)
        raise SystemExit(EXIT_ERROR)
    finally:
        if previous_handler is not None:
            signal.signal(signal.SIGINT, previous_handler)

    if output_format == "json":
        click.echo(render_json(result))
    elif output_format == "kv":
        click.echo(render_kv(result))
    elif output_format == "text":
        click.echo(render(result))
    else:
        print_result(result)

    if isinstance(result, Succeeded):
        if output_format == "rich" and result.value is not None:
            click.echo(result.value)
        raise SystemExit(EXIT_OK)
    if isinstance(result, Cancelled):
        raise SystemExit(EXIT_CANCELLED)
    raise SystemExit(EXIT_EXHAUSTED)


@main.group("ops")
def ops_group():
    """Inspect declared operations."""
    pass


@ops_group.command("list")
@definitions_option
@click.pass_context
def list_ops(ctx, definitions: Optional[str]):
    """List declared operations and their implementation counts."""
    config = _get_config(ctx)
    registry = _load_registry(config, definitions)

    names = registry.list_operations()
    if not names:
        click.echo("No operations declared.")
        return

    for name in names:
        op_def = registry.get(name)
        line = f"{name} ({len(op_def.implementations)} implementation(s))"
        if op_def.description:
            line += f" - {op_def.description}"
        click.echo(line)


@ops_group.command("show")
@click.argument("operation")
@definitions_option
@click.pass_context
def show_op(ctx, operation: str, definitions: Optional[str]):
    """Show the fallback chain of OPERATION."""
    from fallchain.errors import UnknownOperation

    config = _get_config(ctx)
    registry = _load_registry(config, definitions)

    try:
        op_def = registry.get(operation)
    except UnknownOperation as e:
        click.echo(f"✗ {e}", err=True)
        raise SystemExit(EXIT_ERROR)

    click.echo(f"Operation: {op_def.name}")
    if op_def.description:
        click.echo(f"Description: {op_def.description}")
    click.echo(f"Platform: {op_def.required_platform or 'any'}")
    click.echo("Chain:")
    for impl in op_def.implementations:
        line = f"  {impl.rank}. {impl.label}"
        if impl.timeout is not None:
            line += f" (timeout {impl.timeout:g}s)"
        click.echo(line)


@main.command("check-platform")
@click.argument("platform")
@click.option("--current", help="Platform to check instead of the detected one")
def check_platform(platform: str, current: Optional[str]):
    """
    Check whether this host satisfies PLATFORM.

    Examples:

        fallchain check-platform linux

        fallchain check-platform posix
    """
    from fallchain.platform_gate import check_environment, detect_platform

    try:
        check_environment(platform, current=current)
    except EnvironmentMismatch as e:
        click.echo(f"✗ {e}", err=True)
        raise SystemExit(EXIT_ERROR)

    click.echo(f"✓ {current or detect_platform()} satisfies {platform}")


@main.command("init")
@click.option("--force", is_flag=True, help="Overwrite existing configuration")
def init(force: bool):
    """Initialize fallchain configuration."""
    from fallchain.config import default_config_dict, get_fallchain_home

    home = get_fallchain_home()
    if not home.exists():
        home.mkdir(parents=True)

    cfg_path = home / "config.yaml"
    if cfg_path.exists() and not force:
        click.echo(f"Config already exists at {cfg_path}. Use --force to overwrite.", err=True)
        raise SystemExit(EXIT_ERROR)

    cfg_path.write_text(yaml.safe_dump(default_config_dict(), sort_keys=False))

    defs_path = home / "operations.yaml"
    if not defs_path.exists():
        defs_path.write_text(yaml.safe_dump({"operations": {}}, sort_keys=False))

    click.echo(f"Initialized fallchain config at {cfg_path}")
    click.echo(f"Declare operations in {defs_path}")


if __name__ == "__main__":
    main()
