"""Merkle accumulator CLI: init, insert, show, proof, root."""
import asyncio
import hashlib
import json
import sys
from typing import NoReturn

import click

from merkle_accumulator.accumulator.state import AccumulatorError, MaxLeavesExceeded
from merkle_accumulator.core.config import settings
from merkle_accumulator.core.logging import setup_logging
from merkle_accumulator.crypto.merkle import merkle_root, parse_hash32
from merkle_accumulator.services.accumulator_service import AccumulatorService
from merkle_accumulator.services.errors import AccumulatorServiceError
from merkle_accumulator.services.store import FileAccumulatorStore


def _service(ctx: click.Context) -> AccumulatorService:
    store = FileAccumulatorStore(ctx.obj["data_dir"], root_strategy=ctx.obj["root_strategy"])
    return AccumulatorService(store=store)


def _fail(message: str, code: int = 1) -> NoReturn:
    click.echo(f"Error: {message}", err=True)
    sys.exit(code)


@click.group()
@click.version_option(version=settings.VERSION)
@click.option('--data-dir', default=settings.DATA_DIR, show_default=True,
              type=click.Path(file_okay=False), help='Directory holding accumulator records')
@click.option('--root-strategy', type=click.Choice(['full', 'frontier']),
              default=settings.ROOT_STRATEGY, show_default=True)
@click.option('--log-level', default=settings.LOG_LEVEL, show_default=True)
@click.pass_context
def cli(ctx: click.Context, data_dir: str, root_strategy: str, log_level: str):
    """Fixed-capacity Merkle accumulator."""
    setup_logging(log_level)
    ctx.ensure_object(dict)
    ctx.obj["data_dir"] = data_dir
    ctx.obj["root_strategy"] = root_strategy


@cli.command()
@click.argument('accumulator_id', required=False)
@click.pass_context
def init(ctx: click.Context, accumulator_id: str | None):
    """Provision an empty accumulator."""
    try:
        accumulator_id, acc = asyncio.run(_service(ctx).initialize(accumulator_id))
    except AccumulatorServiceError as e:
        _fail(str(e))
    click.echo(f"id:   {accumulator_id}")
    click.echo(f"root: {acc.root.hex()}")


@cli.command()
@click.argument('accumulator_id')
@click.argument('leaf', required=False)
@click.option('--data', 'payload', help='Hash this text with SHA-256 and insert the digest')
@click.pass_context
def insert(ctx: click.Context, accumulator_id: str, leaf: str | None, payload: str | None):
    """Insert a 32-byte hex LEAF (or the digest of --data)."""
    if (leaf is None) == (payload is None):
        _fail("Provide exactly one of LEAF or --data", code=2)
    if payload is not None:
        leaf = hashlib.sha256(payload.encode("utf-8")).hexdigest()

    try:
        root = asyncio.run(_service(ctx).insert_leaf(accumulator_id, leaf))
    except MaxLeavesExceeded as e:
        _fail(f"MaxLeavesExceeded: {e}")
    except (AccumulatorError, AccumulatorServiceError) as e:
        _fail(str(e))
    click.echo(f"leaf: {leaf}")
    click.echo(f"root: {root.hex()}")


@cli.command()
@click.argument('accumulator_id')
@click.option('--json', 'as_json', is_flag=True, help='Emit JSON')
@click.pass_context
def show(ctx: click.Context, accumulator_id: str, as_json: bool):
    """Show the root and leaves of an accumulator."""
    try:
        acc = asyncio.run(_service(ctx).get(accumulator_id))
    except (AccumulatorError, AccumulatorServiceError) as e:
        _fail(str(e))

    snapshot = acc.snapshot()
    if as_json:
        click.echo(json.dumps({
            "id": accumulator_id,
            "root": snapshot.root.hex(),
            "leaf_count": snapshot.leaf_count,
            "capacity": acc.capacity,
            "leaves": [leaf.hex() for leaf in snapshot.leaves],
        }, indent=2))
        return

    click.echo(f"id:     {accumulator_id}")
    click.echo(f"root:   {snapshot.root.hex()}")
    click.echo(f"leaves: {snapshot.leaf_count}/{acc.capacity}")
    for i, leaf in enumerate(snapshot.leaves):
        click.echo(f"  [{i:2d}] {leaf.hex()}")


@cli.command()
@click.argument('accumulator_id')
@click.argument('index', type=int)
@click.pass_context
def proof(ctx: click.Context, accumulator_id: str, index: int):
    """Print the inclusion proof for leaf INDEX as JSON."""
    try:
        result = asyncio.run(_service(ctx).get_proof(accumulator_id, index))
    except IndexError as e:
        _fail(str(e))
    except (AccumulatorError, AccumulatorServiceError) as e:
        _fail(str(e))
    click.echo(json.dumps(result.to_dict(), indent=2))


@cli.command()
@click.argument('leaves', nargs=-1, required=True)
def root(leaves: tuple):
    """Compute the Merkle root of hex LEAVES without storing them."""
    try:
        parsed = [parse_hash32(leaf) for leaf in leaves]
    except ValueError as e:
        _fail(str(e), code=2)
    click.echo(merkle_root(parsed).hex())


if __name__ == "__main__":
    cli()
