"""
TAHMIN Command Line Interface
=============================

Usage:
    tahmin predict fixtures.json --bankroll 1000
    tahmin value --selection home --prob 0.58 --odds home=1.90 --odds draw=3.40 --odds away=4.20
    tahmin kelly --odds 2.0 --prob 0.6 --bankroll 1000
    tahmin coupon --odds 1.5 --odds 1.8 --odds 2.1 --odds 1.7 --system 3/4 --stake 10
    tahmin live-scan ticks.json
    tahmin config-check
"""

import click
import json
import logging
from pathlib import Path
from typing import Dict, Optional, Tuple

from tahmin.config import Config, ConfigError, setup_logging

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def _header(title: str) -> None:
    click.echo(f"\n{'='*50}")
    click.echo(title)
    click.echo(f"{'='*50}\n")


def _fail(ctx, message: str, code: int = 1) -> None:
    click.echo(f"❌ {message}", err=True)
    if ctx.obj.get("verbose"):
        import traceback
        traceback.print_exc()
    ctx.exit(code)


def _parse_odds(pairs: Tuple[str, ...]) -> Dict[str, float]:
    odds = {}
    for pair in pairs:
        if "=" not in pair:
            raise click.BadParameter(f"expected outcome=price, got {pair!r}", param_hint="--odds")
        key, value = pair.split("=", 1)
        try:
            odds[key.strip()] = float(value)
        except ValueError:
            raise click.BadParameter(f"price for {key!r} is not a number", param_hint="--odds")
    return odds


def _load_json(path: str):
    try:
        return json.loads(Path(path).read_text())
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"{path} is not valid JSON: {e}")


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option("--config", "-c", type=click.Path(exists=True), help="JSON config overrides")
@click.option("--log-dir", type=click.Path(file_okay=False), help="Also write rotating logs here")
@click.pass_context
def cli(ctx, verbose: bool, config: Optional[str], log_dir: Optional[str]):
    """TAHMIN - Football Prediction and Value-Betting Engine"""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose

    try:
        cfg = Config.from_file(config) if config else Config()
    except ConfigError as e:
        click.echo(f"❌ Invalid configuration: {e}", err=True)
        ctx.exit(2)
        return

    level = "DEBUG" if verbose else cfg.log_level
    if log_dir:
        setup_logging(level=level, log_dir=Path(log_dir))
    else:
        logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)

    ctx.obj["config"] = cfg


@cli.command()
@click.argument("fixtures_file", type=click.Path(exists=True))
@click.option("--bankroll", "-b", type=float, help="Bankroll for Kelly stakes")
@click.option("--output", "-o", type=click.Path(file_okay=False), help="Write JSON + CSV output here")
@click.option("--top", type=int, default=10, help="Suggestions to print")
@click.pass_context
def predict(ctx, fixtures_file: str, bankroll: Optional[float], output: Optional[str], top: int):
    """Score fixtures from a JSON file (one fixture or a list)."""
    _header("🎯 TAHMIN Match Predictions")

    from tahmin.pipelines import DailyPipeline

    data = _load_json(fixtures_file)
    fixtures = data if isinstance(data, list) else [data]

    pipeline = DailyPipeline(config=ctx.obj["config"])
    click.echo(f"📊 Scoring {len(fixtures)} fixture(s)...\n")
    batch = pipeline.run(fixtures, bankroll=bankroll)

    for result in batch.results:
        mr = result.match_result
        click.echo(f"{result.home_team} vs {result.away_team}")
        click.echo(
            f"   1: {mr['home'].probability:.1%}  X: {mr['draw'].probability:.1%}  "
            f"2: {mr['away'].probability:.1%}  (conf {result.overall_confidence:.0f})"
        )
        xg = result.expected_goals
        click.echo(f"   xG: {xg['home']:.2f} - {xg['away']:.2f}")
        if result.recommended_pick:
            click.echo(f"   ✅ Pick: {result.recommended_pick}")
        else:
            click.echo("   ⚪ No recommendation")
        if result.best_bet:
            b = result.best_bet
            click.echo(
                f"   💰 Best bet: {b.market.label} @ {b.odds:.2f} "
                f"(edge {b.edge:+.1f}%, stake {b.stake_amount:.2f})"
            )
        click.echo()

    suggestions = batch.to_dataframe()
    if not suggestions.empty:
        click.echo(f"✅ {len(suggestions)} value bet(s), top {min(top, len(suggestions))}:")
        for _, row in suggestions.head(top).iterrows():
            click.echo(
                f"   {row['match']} | {row['market']} {row['pick']} @ {row['odds']:.2f} | "
                f"edge {row['edge']:+.1f}% | {row['recommendation']}"
            )
    else:
        click.echo("❌ No value bets found")

    for err in batch.errors:
        click.echo(f"⚠️  Fixture {err.fixture_id} skipped: {err.error}", err=True)

    if output:
        path = pipeline.save_output(batch, Path(output))
        click.echo(f"\n💾 Saved to {path}")


@cli.command()
@click.option("--selection", "-s", required=True, help="Outcome to evaluate (home/draw/away, over/under, yes/no)")
@click.option("--prob", "-p", type=float, required=True, help="Model probability (0-1)")
@click.option("--odds", "odds_pairs", multiple=True, required=True, help="outcome=price, one per outcome")
@click.option("--market", "-m", type=click.Choice(["match_result", "over_under", "btts"]),
              help="Market the selection belongs to (inferred from the selection by default)")
@click.pass_context
def value(ctx, selection: str, prob: float, odds_pairs: Tuple[str, ...], market: Optional[str]):
    """Edge of a model probability against a full market."""
    from tahmin.data.processors.validate import InputValidationError
    from tahmin.strategy import ValueBetDetector

    cfg = ctx.obj["config"]
    odds = _parse_odds(odds_pairs)
    try:
        result = ValueBetDetector(cfg.value).evaluate(selection, prob, odds, market=market)
    except InputValidationError as e:
        _fail(ctx, str(e))
        return

    if result.edge is None:
        click.echo(f"⚠️  {result.reason}: {'; '.join(result.warnings)}")
        return

    click.echo(f"Selection:     {selection} @ {result.odds:.2f}")
    click.echo(f"Implied prob:  {result.implied_prob:.2%}")
    click.echo(f"Fair odds:     {result.fair_odds:.2f}")
    click.echo(f"Edge:          {result.edge:+.2f}%")
    click.echo(f"Tier:          {result.tier.value}")
    for w in result.warnings:
        click.echo(f"⚠️  {w}")


@cli.command()
@click.option("--odds", type=float, required=True, help="Decimal odds")
@click.option("--prob", "-p", type=float, required=True, help="Win probability (0-1)")
@click.option("--bankroll", "-b", type=float, help="Bankroll (defaults to config)")
@click.option("--fraction", "-f", type=float, help="Kelly fraction (defaults to config)")
@click.pass_context
def kelly(ctx, odds: float, prob: float, bankroll: Optional[float], fraction: Optional[float]):
    """Fractional Kelly stake with the configured caps."""
    from tahmin.data.processors.validate import InputValidationError
    from tahmin.strategy import calculate_kelly

    cfg = ctx.obj["config"]
    limits = cfg.risk
    try:
        result = calculate_kelly(
            odds=odds,
            probability=prob,
            bankroll=bankroll if bankroll is not None else cfg.bankroll,
            kelly_fraction=fraction if fraction is not None else limits.kelly_fraction,
            max_bet_pct=limits.max_bet_pct,
            max_single_bet=limits.max_single_bet,
            min_stake_amount=limits.min_stake_amount,
        )
    except (InputValidationError, ValueError) as e:
        _fail(ctx, str(e))
        return

    click.echo(f"Full Kelly:    {result.full_kelly_pct:.2f}%")
    click.echo(f"Stake:         {result.suggested_amount:.2f} ({result.fractional_kelly_pct:.2f}%)")
    click.echo(f"Edge:          {result.edge:+.2f}%")
    click.echo(f"Expected:      {result.expected_value:+.2f}")
    click.echo(f"Risk level:    {result.risk_level.value}")
    for w in result.warnings:
        click.echo(f"⚠️  {w}")


@cli.command()
@click.option("--odds", "odds_list", type=float, multiple=True, required=True, help="Selection odds")
@click.option("--system", default="full", help="single, full or k/n")
@click.option("--stake", type=float, default=10.0, help="Stake per combination")
@click.pass_context
def coupon(ctx, odds_list: Tuple[float, ...], system: str, stake: float):
    """Combinations, total stake and payout of a coupon."""
    from tahmin.data.schemas import CouponSelection
    from tahmin.strategy import CouponCombiner, InvalidSystemError

    try:
        selections = [CouponSelection(fixture_id=i + 1, odds=o) for i, o in enumerate(odds_list)]
        result = CouponCombiner().calculate(selections, system, stake)
    except InvalidSystemError as e:
        _fail(ctx, str(e))
        return
    except ValueError as e:
        _fail(ctx, f"Invalid selection: {e}")
        return

    click.echo(f"System:        {result.system}")
    click.echo(f"Combinations:  {result.total_combinations}")
    click.echo(f"Total stake:   {result.total_stake:.2f}")
    click.echo(f"Max payout:    {result.potential_win:.2f}")
    click.echo(f"Win range:     {result.min_win:.2f} - {result.max_win:.2f}")


@cli.command("live-scan")
@click.argument("ticks_file", type=click.Path(exists=True))
@click.pass_context
def live_scan(ctx, ticks_file: str):
    """Replay in-play snapshots (JSON list, in arrival order) through the scanner."""
    _header("⚡ TAHMIN Live Scanner")

    from tahmin.data.processors.validate import InputValidationError
    from tahmin.prediction import LiveSignalScanner

    data = _load_json(ticks_file)
    ticks = data if isinstance(data, list) else [data]
    scanner = LiveSignalScanner(ctx.obj["config"].live)

    emitted = 0
    for tick in ticks:
        try:
            opp = scanner.scan(tick)
        except InputValidationError as e:
            click.echo(f"⚠️  Skipped tick: {e}", err=True)
            continue
        if opp is None:
            continue
        emitted += 1
        icon = {"critical": "🔥", "high": "⚡", "medium": "👀"}[opp.urgency.value]
        click.echo(
            f"{icon} [{opp.urgency.value.upper()}] fixture {opp.fixture_id} {opp.minute}' "
            f"{opp.score} | {opp.market} {opp.pick} @ ~{opp.estimated_odds:.2f} "
            f"(conf {opp.confidence:.0f})"
        )
        click.echo(f"   {opp.reasoning}")

    click.echo(f"\n{emitted} opportunit{'y' if emitted == 1 else 'ies'} from {len(ticks)} tick(s)")


@cli.command("config-check")
@click.pass_context
def config_check(ctx):
    """Validate and print the effective configuration."""
    cfg = ctx.obj["config"]
    _header("📋 TAHMIN Configuration")

    weights = cfg.weights.as_dict()
    click.echo("Ensemble weights:")
    for name, w in weights.items():
        click.echo(f"  {name:<12} {w:.2f}")
    click.echo(f"  poisson blend {cfg.poisson_weight:.2f}")
    click.echo()
    click.echo(f"Min confidence:  {cfg.min_confidence:.0f}")
    click.echo(
        f"Value edges:     {cfg.value.min_value_edge:.0f}% / "
        f"{cfg.value.high_edge:.0f}% / {cfg.value.strong_edge:.0f}%"
    )
    click.echo(
        f"Kelly:           fraction {cfg.risk.kelly_fraction:.2f}, "
        f"max {cfg.risk.max_bet_pct:.0%} / {cfg.risk.max_single_bet:.0f}"
    )
    click.echo(f"Live cooldown:   {cfg.live.cooldown_minutes:.0f} min")
    click.echo()
    click.echo("✅ Configuration valid")


def main():
    """Entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
