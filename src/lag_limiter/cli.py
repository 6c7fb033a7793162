from __future__ import annotations

import json
import sys
from dataclasses import dataclass
from typing import List, Optional

import typer
from loguru import logger
from prometheus_client import start_http_server
from pydantic import ValidationError

from .agent import AgentLogger, ExitStatus, LogLevel, level_number
from .config import Settings, get_settings
from .errors import LagQueryError, ReplicaTimeout, SpecError
from .lag_source import PgReplicaLag
from .limiter import ConsoleProgress, Replica, ReplicaBarrier
from .spec import validate_spec

app = typer.Typer(help="Replication-safe pacing CLI (replica lag checks and waits)")


@dataclass
class CliState:
    settings: Settings
    status: ExitStatus
    agent: AgentLogger


# ---------------------------
# Common options
# ---------------------------


def replica_opt() -> List[str]:
    return typer.Option(
        ..., "--replica", "-r", help="Replica as NAME=DSN; repeat for each replica, in wait order"
    )


def _parse_replicas(values: List[str]) -> List[Replica]:
    replicas = []
    for value in values:
        name, sep, dsn = value.partition("=")
        if not sep or not name or not dsn:
            raise typer.BadParameter(f"expected NAME=DSN, got {value!r}", param_hint="--replica")
        replicas.append(Replica(name=name, dsn=dsn))
    return replicas


def _finish(ctx: typer.Context) -> None:
    state: CliState = ctx.obj
    raise typer.Exit(code=state.status.exit_code)


@app.callback()
def main(
    ctx: typer.Context,
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="DEBUG, INFO, WARNING, ERROR or FATAL"
    ),
    status_link: Optional[str] = typer.Option(
        None, "--status-link", help="URL to forward log events to"
    ),
):
    try:
        settings = get_settings()
    except ValidationError as e:
        typer.echo(f"Invalid settings: {e}", err=True)
        raise typer.Exit(code=2)
    try:
        level = LogLevel(level_number(log_level or settings.LOG_LEVEL))
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="--log-level")

    # Library logs go to stderr; user-facing lines come from the agent logger
    logger.remove()
    logger.add(
        sys.stderr,
        level="DEBUG" if level == LogLevel.DEBUG else "WARNING",
        filter=lambda r: "agent_logger" not in r["extra"],
    )

    if settings.METRICS_PORT:
        start_http_server(settings.METRICS_PORT)
        logger.debug(f"Metrics exporter listening on :{settings.METRICS_PORT}")

    status = ExitStatus()
    agent = AgentLogger(status, level, status_link=status_link or settings.STATUS_LINK)
    ctx.obj = CliState(settings=settings, status=status, agent=agent)
    ctx.call_on_close(agent.close)


# ---------------------------
# Commands
# ---------------------------


@app.command("validate-spec")
def validate_spec_cmd(
    ctx: typer.Context,
    tokens: List[str] = typer.Argument(..., help="Spec tokens, e.g. max=1 timeout=60"),
):
    """Validate a wait spec and print it as JSON."""
    state: CliState = ctx.obj
    try:
        spec = validate_spec(tokens, check=state.settings.CHECK_INTERVAL)
    except SpecError as e:
        state.agent.error(f"Invalid spec: {e}")
        raise typer.Exit(code=2)
    typer.echo(json.dumps(spec.model_dump(by_alias=True)))
    _finish(ctx)


@app.command("lag")
def lag(ctx: typer.Context, replica: List[str] = replica_opt()):
    """Print each replica's current lag (seconds, or null if unknown)."""
    state: CliState = ctx.obj
    replicas = _parse_replicas(replica)
    with PgReplicaLag(connect_timeout=state.settings.CONNECT_TIMEOUT) as get_lag:
        for r in replicas:
            try:
                value = get_lag(r)
            except LagQueryError as e:
                state.agent.error(f"Cannot check lag on {r}: {e}")
                continue
            typer.echo(json.dumps({"replica": r.name, "lag": value}))
    _finish(ctx)


@app.command("wait")
def wait(
    ctx: typer.Context,
    replica: List[str] = replica_opt(),
    spec: List[str] = typer.Option(
        ..., "--spec", "-s", help="Spec token (max=N, timeout=N, continue=yes|no); repeatable"
    ),
):
    """Block until all replicas have caught up (or the spec's timeout fires)."""
    state: CliState = ctx.obj
    replicas = _parse_replicas(replica)
    try:
        wait_spec = validate_spec(spec, check=state.settings.CHECK_INTERVAL)
    except SpecError as e:
        state.agent.error(f"Invalid spec: {e}")
        raise typer.Exit(code=2)

    state.agent.debug(f"Waiting on {len(replicas)} replicas: {', '.join(map(str, replicas))}")
    with PgReplicaLag(connect_timeout=state.settings.CONNECT_TIMEOUT) as get_lag:
        try:
            ReplicaBarrier().wait(wait_spec, replicas, get_lag, ConsoleProgress(replicas))
        except ReplicaTimeout as e:
            state.agent.error(str(e))
            raise typer.Exit(code=1)
        except LagQueryError as e:
            state.agent.fatal(f"Cannot check replica lag: {e}")
            raise typer.Exit(code=1)
    state.agent.info("All replicas caught up")
    _finish(ctx)


if __name__ == "__main__":
    app()
