#!/usr/bin/env python3
"""
Spin Engine CLI

Command-line tools for inspecting the shipped games and simulating them:
- List the game registry
- Print a game's pinned payline set
- Generate and evaluate a single spin
- Run a headless Monte-Carlo simulation

Usage:
    python -m spin_engine.sim_cli --help
    python -m spin_engine.sim_cli list-games
    python -m spin_engine.sim_cli paylines dragon-fortune
    python -m spin_engine.sim_cli spin neon-vegas --seed 42
    python -m spin_engine.sim_cli simulate piggy-riches --spins 10000 --bet 10000 --seed 7
"""

import json
import logging
import sys

import click
from marshmallow import ValidationError

from spin_engine.config import Config
from spin_engine.exceptions import AppException
from spin_engine.logging_setup import configure_logging
from spin_engine.schemas import PaylineSchema, SpinRequestSchema, WinResultSchema
from spin_engine.utils.game_config_manager import GameConfigManager
from spin_engine.utils.grid_generator import generate_spin_outcome
from spin_engine.utils.paylines import PaylineRegistry
from spin_engine.utils.rng import create_rng
from spin_engine.utils.slot_tester import SlotTester
from spin_engine.utils.symbol_tables import pity_timer_from_config
from spin_engine.utils.win_calculator import calculate_win


@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Log every spin and balance movement')
@click.pass_context
def cli(ctx, verbose):
    """Spin Engine CLI - inspect and simulate the slot games."""
    ctx.ensure_object(dict)
    ctx.obj['verbose'] = verbose
    logger = configure_logging(debug=Config.DEBUG)
    if not verbose:
        logger.setLevel(logging.WARNING)


@cli.command('list-games')
def list_games():
    """List every game in the registry."""
    try:
        configs = GameConfigManager.get_all_configs()
    except AppException as e:
        click.echo(f"❌ Error loading games: {e.status_message}", err=True)
        sys.exit(1)

    click.echo(f"\n🎰 {len(configs)} games")
    click.echo("=" * 60)
    for config in configs:
        click.echo(f"{config.id:<16} {config.name:<18} {config.theme.value:<11} "
                   f"{config.reels}x{config.rows}  scatters: {config.scatters_to_trigger}")
    click.echo("=" * 60)


@cli.command()
@click.argument('game_id')
@click.option('--json', 'as_json', is_flag=True, help='Print the paylines as JSON')
def paylines(game_id, as_json):
    """Print the pinned payline set of GAME_ID."""
    try:
        config = GameConfigManager.get_game_config(game_id)
    except AppException as e:
        click.echo(f"❌ Error: {e.status_message}", err=True)
        sys.exit(1)

    lines = PaylineRegistry.get_paylines(config)
    if as_json:
        click.echo(json.dumps(PaylineSchema(many=True).dump(lines), indent=2))
        return
    click.echo(f"\n{config.name}: {len(lines)} paylines on {config.reels}x{config.rows}")
    for line in lines:
        click.echo(f"  #{line.id:<4} {' '.join(str(row) for row in line.indices)}  {line.color}")


@cli.command()
@click.argument('game_id')
@click.option('--spins', default=10000, show_default=True, type=click.IntRange(min=1), help='Number of paid spins')
@click.option('--bet', default=10000, show_default=True, type=int, help='Bet per paid spin')
@click.option('--seed', default=None, type=int, help='RNG seed for a reproducible run')
@click.option('--json', 'as_json', is_flag=True, help='Print the statistics as JSON')
def simulate(game_id, spins, bet, seed, as_json):
    """Simulate GAME_ID headlessly and report RTP, hit rate and volatility."""
    try:
        SpinRequestSchema().load({'bet_amount': bet})
    except ValidationError as err:
        click.echo(f"❌ Invalid bet: {err.messages}", err=True)
        sys.exit(1)

    try:
        tester = SlotTester(game_id, spins, bet, seed=seed)
        stats = tester.run_simulation()
    except AppException as e:
        click.echo(f"❌ Error: {e.status_message}", err=True)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(stats, indent=2))
    else:
        click.echo(SlotTester.format_report(stats))


@cli.command()
@click.argument('game_id')
@click.option('--bet', default=10000, show_default=True, type=int, help='Bet for the spin')
@click.option('--seed', default=None, type=int, help='RNG seed for a reproducible grid')
def spin(game_id, bet, seed):
    """Generate and evaluate one paid spin of GAME_ID, printed as JSON."""
    try:
        SpinRequestSchema().load({'bet_amount': bet})
    except ValidationError as err:
        click.echo(f"❌ Invalid bet: {err.messages}", err=True)
        sys.exit(1)

    try:
        config = GameConfigManager.get_game_config(game_id)
    except AppException as e:
        click.echo(f"❌ Error: {e.status_message}", err=True)
        sys.exit(1)

    outcome = generate_spin_outcome(config, False, 0, create_rng(seed), pity_timer_from_config(Config))
    result = calculate_win(outcome.grid, bet, config, PaylineRegistry.get_paylines(config))
    click.echo(json.dumps({
        'game_id': config.id,
        'bet_amount': bet,
        'grid': [[symbol.value for symbol in column] for column in outcome.grid],
        'result': WinResultSchema().dump(result),
    }, indent=2))


if __name__ == '__main__':
    cli()
