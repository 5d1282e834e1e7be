"""Typer CLI entrypoint for kevm_dispatch."""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import click
import typer
import yaml
from typer.core import TyperGroup

from kevm_dispatch.config import AppSettings, load_settings
from kevm_dispatch.dispatch.environment import build_dispatch_config
from kevm_dispatch.dispatch.errors import DispatchError, RoutingError, ToolFailure
from kevm_dispatch.dispatch.models import Invocation, Subcommand
from kevm_dispatch.dispatch.router import STDIN_TARGET, Router, parse_invocation
from kevm_dispatch.dispatch.tools import ToolRunner
from kevm_dispatch.logging_utils import configure_logging
from kevm_dispatch.utils.paths import spooled_stdin

USAGE = """usage: kevm run        [--backend (ocaml|java|llvm|haskell)] <pgm>  <K arg>*
       kevm kast       [--backend (ocaml|java|llvm|haskell)] <pgm>  <output format> <K arg>*
       kevm interpret  [--backend (ocaml|llvm)]              <pgm>
       kevm prove      [--backend (java|haskell)]            <spec> <K arg>*
       kevm klab-run                                         <pgm>  <K arg>*
       kevm klab-prove                                       <spec> <K arg>*
       kevm show-config
       kevm help

    kevm run       : Run a single EVM program
    kevm kast      : Parse an EVM program and output it in a supported format
    kevm interpret : Run JSON EVM programs without K Frontend (external parser)
    kevm prove     : Run an EVM K proof
    kevm klab-(run|prove) : Run program or prove spec and dump StateLogs which KLab can read

    Note: <pgm> is a path to a file containing an EVM program/test, or '-' to read it from stdin.
          <spec> is a K specification to be proved.
          <K arg> is an argument you want to pass to K.
          <output format> is the format for Kast to output the term in.

    Environment: MODE (default NORMAL) and SCHEDULE (default BYZANTIUM) select the
    semantic variant passed to every backend tool.
"""

PASSTHROUGH_CONTEXT: dict[str, Any] = {
    "allow_extra_args": True,
    "ignore_unknown_options": True,
}


class DispatchGroup(TyperGroup):
    """Unknown command names fall back to ``help``."""

    def get_command(self, ctx: click.Context, cmd_name: str) -> click.Command | None:
        command = super().get_command(ctx, cmd_name)
        if command is None:
            return super().get_command(ctx, "help")
        return command


app = typer.Typer(
    cls=DispatchGroup,
    add_completion=False,
    help="Dispatch K toolchain commands to the ocaml, java, llvm and haskell backends.",
    invoke_without_command=True,
    no_args_is_help=False,
)


@dataclass(frozen=True, slots=True)
class CliState:
    """Global options shared by every subcommand."""

    config_file: Path | None
    verbose: bool


def _load_and_optionally_configure_logger(
    config_file: Path | None,
    configure: bool,
    verbose: bool = False,
) -> tuple[AppSettings, logging.Logger]:
    settings = load_settings(config_file=config_file)
    if configure:
        level = logging.INFO if verbose else logging.getLevelName(settings.logging.level)
        logger = configure_logging(settings.logging.file, level=level)
    else:
        logger = logging.getLogger("kevm_dispatch")
    return settings, logger


@contextmanager
def _materialized_target(invocation: Invocation) -> Iterator[Invocation]:
    """Spool a ``-`` target from stdin into a scoped temporary file."""

    if str(invocation.target_path) != STDIN_TARGET:
        yield invocation
        return
    with spooled_stdin(typer.get_binary_stream("stdin")) as spooled:
        yield dataclasses.replace(invocation, target_path=spooled)


def _execute(ctx: typer.Context, subcommand: Subcommand) -> None:
    state: CliState = ctx.obj
    settings, logger = _load_and_optionally_configure_logger(state.config_file, configure=True, verbose=state.verbose)
    try:
        invocation = parse_invocation(subcommand.value, ctx.args)
        config = build_dispatch_config(settings)
        router = Router(config, runner=ToolRunner(logger=logger), logger=logger)
        with _materialized_target(invocation) as materialized:
            status = router.dispatch(materialized)
    except RoutingError as exc:
        logger.info("cli.routing_fallback reason=%s", exc)
        typer.echo(USAGE)
        raise typer.Exit(code=0)
    except ToolFailure as exc:
        if not exc.started:
            typer.echo(f"[FATAL] {exc}", err=True)
        raise typer.Exit(code=exc.status)
    except DispatchError as exc:
        typer.echo(f"[FATAL] {exc}", err=True)
        raise typer.Exit(code=exc.exit_code)
    raise typer.Exit(code=status)


@app.callback()
def main_callback(
    ctx: typer.Context,
    config_file: Path | None = typer.Option(
        None,
        "--config-file",
        help="Optional settings YAML path.",
        exists=False,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log routing and tool calls at INFO level."),
) -> None:
    """Dispatch K toolchain commands to the ocaml, java, llvm and haskell backends."""

    ctx.obj = CliState(config_file=config_file, verbose=verbose)
    if ctx.invoked_subcommand is None:
        typer.echo(USAGE)
        raise typer.Exit(code=0)


@app.command("run", context_settings=PASSTHROUGH_CONTEXT, add_help_option=False)
def run_cmd(ctx: typer.Context) -> None:
    """Run a single program with the backend's krun."""

    _execute(ctx, Subcommand.RUN)


@app.command("kast", context_settings=PASSTHROUGH_CONTEXT, add_help_option=False)
def kast_cmd(ctx: typer.Context) -> None:
    """Parse a program and print it in the requested output format."""

    _execute(ctx, Subcommand.KAST)


@app.command("interpret", context_settings=PASSTHROUGH_CONTEXT, add_help_option=False)
def interpret_cmd(ctx: typer.Context) -> None:
    """Run a program through the ocaml or llvm interpreter binary."""

    _execute(ctx, Subcommand.INTERPRET)


@app.command("prove", context_settings=PASSTHROUGH_CONTEXT, add_help_option=False)
def prove_cmd(ctx: typer.Context) -> None:
    """Prove a K specification against the verification module."""

    _execute(ctx, Subcommand.PROVE)


@app.command("klab-run", context_settings=PASSTHROUGH_CONTEXT, add_help_option=False)
def klab_run_cmd(ctx: typer.Context) -> None:
    """Run with java state logging, then open the log in KLab."""

    _execute(ctx, Subcommand.KLAB_RUN)


@app.command("klab-prove", context_settings=PASSTHROUGH_CONTEXT, add_help_option=False)
def klab_prove_cmd(ctx: typer.Context) -> None:
    """Prove with java state logging, then open the log in KLab."""

    _execute(ctx, Subcommand.KLAB_PROVE)


@app.command("help", context_settings=PASSTHROUGH_CONTEXT, add_help_option=False)
def help_cmd(ctx: typer.Context) -> None:
    """Print usage."""

    typer.echo(USAGE)


@app.command("show-config")
def show_config(ctx: typer.Context) -> None:
    """Print the effective configuration after env overrides."""

    state: CliState = ctx.obj
    settings, _ = _load_and_optionally_configure_logger(state.config_file, configure=False)
    rendered = yaml.safe_dump(settings.as_dict(), sort_keys=False)
    typer.echo(rendered)


def main() -> None:
    """Console-script entry point."""

    app(prog_name="kevm")


if __name__ == "__main__":
    main()
