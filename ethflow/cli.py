import asyncio
from pathlib import Path
import click
from dotenv import load_dotenv
from loguru import logger

from ethflow.core.config import AppConfig, load_config
from ethflow.core.clock import ms_to_iso
from ethflow.dashboard import DashboardSnapshot, build_dashboard
from ethflow.data.frames import combined_frame, export_frame, volume_frame


def _setup(config_path: str) -> AppConfig:
    load_dotenv()
    cfg = load_config(config_path)
    log_file = Path(cfg.system.log_file)
    log_file.parent.mkdir(exist_ok=True, parents=True)
    logger.add(str(log_file), level=cfg.system.log_level, rotation="10 MB", retention="14 days", enqueue=True)
    return cfg


def _print_snapshot(snap: DashboardSnapshot) -> None:
    cp = snap.current_price
    if cp:
        click.echo(f"ETH ${cp.current:,.2f}  24h high ${cp.high_24h:,.2f}  low ${cp.low_24h:,.2f}  "
                   f"change {cp.price_change_percentage_24h:+.2f}%")
    click.echo(f"price data: {snap.price_status.value} | volume data: {snap.volume_status.value}"
               f"{' | WHALE MODE' if snap.whale_mode else ''} | generated {ms_to_iso(snap.generated_at_ms)}")
    if snap.uses_fallback:
        click.echo("Showing synthetic data for at least one feed (upstream unavailable or rate limited).")
    if snap.is_empty:
        click.echo("No overlapping net-flow and price data for this window.")
        return
    click.echo(f"{len(snap.combined)} aligned hours, {len(snap.divergences)} divergences")
    div = combined_frame(snap.divergences)
    if not div.empty:
        click.echo(div[['net_flow_usd', 'price', 'divergence_message']].to_string())


@click.group()
def cli(): pass

@cli.command()
@click.option('--whale', is_flag=True, help="Only count swaps above the whale threshold.")
@click.option('--config', 'config_path', default="configs/config.yaml", show_default=True)
@click.option('--out', default=None, help="Export the combined series (.csv or .parquet).")
@click.option('--volume-out', default=None, help="Export hourly volume buckets (.csv or .parquet).")
def snapshot(whale, config_path, out, volume_out):
    """Fetch once, print price summary and divergences."""
    cfg = _setup(config_path)

    async def _run():
        svc = build_dashboard(cfg)
        try:
            return await svc.refresh(whale_mode=whale, force_refresh=True)
        finally:
            await svc.aclose()

    snap = asyncio.run(_run())
    _print_snapshot(snap)
    if out:
        logger.info(f"Wrote {export_frame(combined_frame(snap.combined), out)}")
    if volume_out:
        logger.info(f"Wrote {export_frame(volume_frame(snap.buckets, snap.ratios), volume_out)}")

@cli.command()
@click.option('--whale', is_flag=True)
@click.option('--config', 'config_path', default="configs/config.yaml", show_default=True)
@click.option('--interval', type=int, default=None, help="Seconds between refreshes (defaults to system.loop_interval_seconds).")
def watch(whale, config_path, interval):
    """Refresh on an interval until interrupted; cached volume is reused while fresh."""
    cfg = _setup(config_path)
    interval = interval or cfg.system.loop_interval_seconds
    logger.info(f"ethflow watch starting (whale={whale}, interval={interval}s)")

    async def _loop():
        svc = build_dashboard(cfg)
        try:
            while True:
                try:
                    _print_snapshot(await svc.refresh(whale_mode=whale))
                    await asyncio.sleep(interval)
                except Exception as e:
                    logger.opt(exception=True).error(f"Refresh error: {e}")
                    await asyncio.sleep(interval * 2)
        finally:
            await svc.aclose()

    try:
        asyncio.run(_loop())
    except KeyboardInterrupt:
        logger.warning("Shutdown requested.")

if __name__ == '__main__':
    cli()
