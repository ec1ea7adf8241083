from __future__ import annotations

"""
qmarket.cli.main
----------------

Command-line front end for a local marketplace whose state lives in a JSON
file. Every state-changing command is one ledger transaction; the file is
rewritten only when it commits.

Examples
--------
# Fund a client, register a provider, submit and execute a job
qmarket --state dev.json deposit --to alice --amount 1000
qmarket --state dev.json register-provider --from prov --name qpu-5 --capacity 5 --exec-time 60 --price 10
qmarket --state dev.json submit-job --from alice --algorithm QmAlg --capacity 3 --hours 1 --value 100
qmarket --state dev.json accept-job --from prov --job 1 --result QmRes

# Inspect
qmarket --state dev.json job 1 --json
qmarket --state dev.json providers --min-capacity 3

# Serve REST + JSON-RPC + metrics over HTTP
qmarket --state dev.json serve --port 8080
"""

import json
import logging
from dataclasses import asdict, is_dataclass
from typing import Any, Callable, Dict, List, Optional

import typer

from qmarket.config import pretty as pretty_config
from qmarket.errors import MarketError
from qmarket.market import Marketplace
from qmarket.qtypes.job import JobStatus
from qmarket.version import __version__

from ._state import DEFAULT_STATE, open_market, save_market

log = logging.getLogger(__name__)

app = typer.Typer(
    name="qmarket",
    add_completion=False,
    no_args_is_help=True,
    help="Compute-job marketplace: providers, escrowed jobs, settlement and disputes.",
)

# -------------------- utils --------------------


def _state_path(ctx: typer.Context) -> str:
    return (ctx.obj or {}).get("state", DEFAULT_STATE)


def _to_dict(x: Any) -> Any:
    if hasattr(x, "to_dict"):
        return x.to_dict()
    if is_dataclass(x):
        return asdict(x)  # type: ignore[arg-type]
    if isinstance(x, list):
        return [_to_dict(i) for i in x]
    return x


def _fail(e: MarketError) -> None:
    typer.secho(f"{e.code}: {e.message}", fg=typer.colors.RED, err=True)
    raise typer.Exit(1)


def _mutate(ctx: typer.Context, op: Callable[[Marketplace], Any]) -> Any:
    path = _state_path(ctx)
    market = open_market(path)
    try:
        result = op(market)
    except MarketError as e:
        _fail(e)
    save_market(path, market)
    return result


def _query(ctx: typer.Context, op: Callable[[Marketplace], Any]) -> Any:
    market = open_market(_state_path(ctx))
    try:
        return op(market)
    except MarketError as e:
        _fail(e)


def _show(obj: Any, json_out: bool, title: Optional[str] = None) -> None:
    data = _to_dict(obj)
    if json_out:
        typer.echo(json.dumps(data, indent=2, sort_keys=True))
        return
    if title:
        typer.secho(title, bold=True)
    if isinstance(data, dict):
        for k, v in data.items():
            typer.echo(f"- {k}: {v}")
    elif isinstance(data, list):
        for item in data:
            typer.echo(f"- {item}")
    else:
        typer.echo(str(data))


def _job_row(j: Dict[str, Any]) -> str:
    prov = j.get("provider") or "-"
    return f"#{j['job_id']:<5} {j['status']:<10} client={j['client']} provider={prov} payment={j['payment']}"


# -------------------- global options --------------------


@app.callback()
def _main(
    ctx: typer.Context,
    state: str = typer.Option(DEFAULT_STATE, "--state", envvar="QMARKET_STATE", help="Path to the JSON state file."),
    log_level: str = typer.Option("WARNING", "--log-level", help="Python logging level."),
) -> None:
    logging.basicConfig(level=getattr(logging, log_level.upper(), logging.WARNING),
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    ctx.obj = {"state": state}


# -------------------- write commands --------------------


@app.command("deposit")
def cmd_deposit(
    ctx: typer.Context,
    to: str = typer.Option(..., "--to", help="Address to fund."),
    amount: int = typer.Option(..., "--amount", min=1, help="Amount in base units."),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Devnet faucet: mint funds to an address."""
    bal = _mutate(ctx, lambda m: m.deposit(to, amount))
    _show({"address": to, "balance": bal}, json_out, "Deposited:")


@app.command("register-provider")
def cmd_register_provider(
    ctx: typer.Context,
    caller: str = typer.Option(..., "--from", help="Provider address (the caller)."),
    name: str = typer.Option(..., "--name"),
    capacity: int = typer.Option(..., "--capacity", help="Qubit capacity."),
    exec_time: int = typer.Option(..., "--exec-time", help="Advertised execution time."),
    price: int = typer.Option(..., "--price", help="Advertised price."),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    p = _mutate(
        ctx, lambda m: m.register_provider(caller, name=name, capacity=capacity, exec_time=exec_time, price=price)
    )
    _show(p, json_out, "Provider registered:")


@app.command("submit-job")
def cmd_submit_job(
    ctx: typer.Context,
    caller: str = typer.Option(..., "--from", help="Client address (the caller)."),
    algorithm: str = typer.Option(..., "--algorithm", help="Content reference of the algorithm."),
    capacity: int = typer.Option(..., "--capacity", help="Required qubit capacity."),
    hours: int = typer.Option(..., "--hours", help="Deadline offset in hours."),
    value: int = typer.Option(..., "--value", help="Payment to escrow."),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    j = _mutate(
        ctx,
        lambda m: m.submit_job(
            caller, algorithm_ref=algorithm, required_capacity=capacity, deadline_hours=hours, value=value
        ),
    )
    _show(j, json_out, "Job submitted:")


@app.command("accept-job")
def cmd_accept_job(
    ctx: typer.Context,
    caller: str = typer.Option(..., "--from", help="Provider address (the caller)."),
    job_id: int = typer.Option(..., "--job"),
    result: str = typer.Option(..., "--result", help="Content reference of the result."),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Claim, complete and settle a pending job in one step."""
    s = _mutate(ctx, lambda m: m.accept_and_execute_job(caller, job_id=job_id, result_ref=result))
    _show(s, json_out, "Job executed and settled:")


@app.command("register-algorithm")
def cmd_register_algorithm(
    ctx: typer.Context,
    caller: str = typer.Option(..., "--from", help="Creator address (the caller)."),
    ipfs_hash: str = typer.Option(..., "--hash", help="Content reference (unique key)."),
    name: str = typer.Option(..., "--name"),
    min_qubits: int = typer.Option(..., "--min-qubits"),
    est_time: int = typer.Option(..., "--est-time"),
    price: int = typer.Option(..., "--price"),
    public: bool = typer.Option(True, "--public/--private"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    a = _mutate(
        ctx,
        lambda m: m.register_algorithm(
            caller,
            ipfs_hash=ipfs_hash,
            name=name,
            min_qubits=min_qubits,
            est_time=est_time,
            price=price,
            is_public=public,
        ),
    )
    _show(a, json_out, "Algorithm registered:")


@app.command("cancel-job")
def cmd_cancel_job(
    ctx: typer.Context,
    caller: str = typer.Option(..., "--from", help="Client address (the caller)."),
    job_id: int = typer.Option(..., "--job"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    r = _mutate(ctx, lambda m: m.cancel_job(caller, job_id=job_id))
    _show(r, json_out, "Job cancelled:")


@app.command("dispute-job")
def cmd_dispute_job(
    ctx: typer.Context,
    caller: str = typer.Option(..., "--from", help="Client address (the caller)."),
    job_id: int = typer.Option(..., "--job"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    j = _mutate(ctx, lambda m: m.dispute_job(caller, job_id=job_id))
    _show(j, json_out, "Job disputed:")


# -------------------- queries --------------------


@app.command("job")
def cmd_job(
    ctx: typer.Context,
    job_id: int = typer.Argument(...),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    _show(_query(ctx, lambda m: m.get_job(job_id)), json_out, f"Job #{job_id}:")


@app.command("provider")
def cmd_provider(
    ctx: typer.Context,
    address: str = typer.Argument(...),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    _show(_query(ctx, lambda m: m.get_provider(address)), json_out, f"Provider {address}:")


@app.command("providers")
def cmd_providers(
    ctx: typer.Context,
    min_capacity: int = typer.Option(0, "--min-capacity", help="Only providers with at least this capacity."),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List active providers in registration order."""
    rows: List[Dict[str, Any]] = _to_dict(_query(ctx, lambda m: m.get_available_providers(min_capacity)))
    if json_out:
        typer.echo(json.dumps(rows, indent=2, sort_keys=True))
        return
    if not rows:
        typer.echo("(no providers)")
        return
    for p in rows:
        typer.echo(f"{p['address']:<20} {p['name']:<16} cap={p['capacity']:<4} rep={p['reputation']:<4} runs={p['total_executions']}")


@app.command("jobs")
def cmd_jobs(
    ctx: typer.Context,
    client: Optional[str] = typer.Option(None, "--client"),
    provider: Optional[str] = typer.Option(None, "--provider"),
    status: Optional[str] = typer.Option(None, "--status", help="pending|executing|completed|failed|disputed"),
    limit: int = typer.Option(50, "--limit", min=1),
    offset: int = typer.Option(0, "--offset", min=0),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    st: Optional[JobStatus] = None
    if status is not None:
        try:
            st = JobStatus(status)
        except ValueError:
            typer.secho(f"Unknown status '{status}'.", fg=typer.colors.RED, err=True)
            raise typer.Exit(2)
    rows: List[Dict[str, Any]] = _to_dict(
        _query(ctx, lambda m: m.list_jobs(status=st, client=client, provider=provider, offset=offset, limit=limit))
    )
    if json_out:
        typer.echo(json.dumps(rows, indent=2, sort_keys=True))
        return
    if not rows:
        typer.echo("(no jobs)")
        return
    for j in rows:
        typer.echo(_job_row(j))


@app.command("algorithm")
def cmd_algorithm(
    ctx: typer.Context,
    ipfs_hash: str = typer.Argument(...),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    _show(_query(ctx, lambda m: m.get_algorithm(ipfs_hash)), json_out, f"Algorithm {ipfs_hash}:")


@app.command("balance")
def cmd_balance(
    ctx: typer.Context,
    address: str = typer.Argument(...),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    bal = _query(ctx, lambda m: m.balance_of(address))
    if json_out:
        typer.echo(json.dumps({"address": address, "balance": bal}))
        return
    typer.echo(f"{address}: {bal}")


@app.command("config")
def cmd_config() -> None:
    """Print the effective configuration (defaults, file, environment)."""
    typer.echo(pretty_config())


@app.command("version")
def cmd_version() -> None:
    typer.echo(__version__)


# -------------------- server --------------------


@app.command("serve")
def cmd_serve(
    ctx: typer.Context,
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(8080, "--port"),
) -> None:
    """Serve REST, JSON-RPC, WebSocket and metrics; state is saved on shutdown."""
    import uvicorn

    from qmarket.rpc.app import create_app

    path = _state_path(ctx)
    market = open_market(path)
    typer.secho(f"qmarket {__version__} serving on http://{host}:{port} (state: {path})", bold=True)
    try:
        uvicorn.run(create_app(market), host=host, port=port, log_level="info")
    finally:
        save_market(path, market)


def get_app() -> typer.Typer:
    return app


if __name__ == "__main__":
    app()
