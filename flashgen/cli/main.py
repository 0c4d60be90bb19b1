"""
flashgen CLI - price, quote and execute flash-token purchases from a terminal.
"""
import asyncio
import os
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm
from rich.table import Table
from loguru import logger
from dotenv import load_dotenv

from ..data.config import Settings, load_settings
from ..data.models import ExecutionResult, LegStatus, QuoteFailure, TokenDetails
from ..data.onchain.signer import SignerProvider, WalletSigner, env_signer_provider
from ..data.onchain.web3_client import FailoverRpc
from ..data.pipelines.price_oracle import CachedPriceOracle, PriceOracle
from ..data.registry import DataRegistry
from ..execution.engine import ExecutionEngine
from ..execution.manual_orders import ManualOrderService
from ..execution.quote_builder import QuoteBuilder
from ..storage.ledger import LedgerStore, create_ledger

console = Console()


def setup_logging(level: str = "INFO", log_dir: Path = Path("logs")):
    logger.remove()
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>",
        level=level.upper(),
        colorize=True
    )
    log_dir.mkdir(exist_ok=True)
    logger.add(
        log_dir / "flashgen_{time:YYYY-MM-DD}.log",
        rotation="1 day",
        retention="30 days",
        format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}",
        level="DEBUG"
    )
    logger.info("Logging system configured")


class FlashGenApp:
    """Wires settings, data sources, RPC and ledger for one CLI invocation."""

    def __init__(self, config_path: Optional[str] = None):
        self.settings: Settings = load_settings(config_path)
        setup_logging(self.settings.log_level)
        self.registry = DataRegistry(self.settings)
        self.price_oracle = CachedPriceOracle(
            PriceOracle(self.registry.price_sources),
            ttl_seconds=self.settings.price_cache_ttl_seconds,
        )
        self.rpc = FailoverRpc.from_urls(self.settings.rpc_urls, chain_id=self.settings.chain_id)
        self.ledger: Optional[LedgerStore] = self.setup_ledger()

    def setup_ledger(self) -> Optional[LedgerStore]:
        try:
            return create_ledger(self.settings.database_url)
        except Exception as e:
            logger.warning(f"Ledger unavailable, orders will not be persisted: {e}")
            return None

    def signer_provider(self) -> SignerProvider:
        private_key = os.getenv("PRIVATE_KEY")
        if not private_key:
            raise click.ClickException("PRIVATE_KEY is not set")
        return env_signer_provider(private_key)

    def signer(self, user_id: str) -> WalletSigner:
        return self.signer_provider()(user_id)

    def quote_builder(self) -> QuoteBuilder:
        return QuoteBuilder(self.settings, self.price_oracle, self.registry.oneinch, self.rpc)

    def engine(self) -> ExecutionEngine:
        return ExecutionEngine(self.settings, self.rpc, ledger=self.ledger)

    def manual_orders(self) -> ManualOrderService:
        return ManualOrderService(self.settings, self.rpc, self.price_oracle, ledger=self.ledger)


async def resolve_token(rpc, address: str, symbol: str, name: str, decimals: Optional[int] = None) -> TokenDetails:
    if decimals is None:
        decimals = await rpc.get_token_decimals(address)
        logger.debug(f"{symbol} decimals read from {address}: {decimals}")
    return TokenDetails(name=name, symbol=symbol, decimals=decimals, contract_address=address)


def render_quote(quote, token: TokenDetails, native_symbol: str):
    table = Table(title=f"💱 Quote: ${quote.usd_amount_to_spend:,.2f} of {token.symbol}")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="white")
    table.add_row(f"{native_symbol} price", f"${quote.native_price_usd:,.2f}")
    table.add_row("Estimated tokens", f"{quote.estimated_tokens_received:,.6f} {token.symbol}")
    table.add_row(f"{native_symbol} required", f"{quote.estimated_bnb_required:.8f}")
    table.add_row("Estimated USD cost", f"${quote.estimated_usd_cost:,.2f}")
    table.add_row("Treasury flat fee", f"${quote.treasury_flat_fee_usd:,.2f}")
    table.add_row("Operator fee", f"${quote.dev_fee_usd:,.2f}")
    table.add_row("Token fee", f"{quote.treasury_token_fee_percent}%")
    table.add_row(f"Wallet {native_symbol}", f"{quote.user_native_balance:.8f}")
    afford = "[green]YES[/green]" if quote.can_afford else "[red]NO[/red]"
    table.add_row("Can afford", afford)
    table.add_row("Expires", quote.expires_at.strftime("%H:%M:%S UTC"))
    console.print(table)


def render_result(result: ExecutionResult):
    if not result.success:
        console.print(f"[red]❌ {result.message} ({result.error})[/red]")
        return
    console.print(f"\n[bold green]🎉 {result.message}[/bold green]")
    console.print(f"Transaction: {result.tx_hash}")
    if result.order_id is not None:
        console.print(f"Order: #{result.order_id}")
    if not result.legs:
        return
    table = Table(title="Fee legs")
    table.add_column("Leg", style="cyan")
    table.add_column("Status")
    table.add_column("Amount", style="dim")
    table.add_column("Tx / error", style="dim")
    colors = {LegStatus.SUCCESS: "green", LegStatus.SKIPPED: "yellow"}
    for leg in result.legs:
        color = colors.get(leg.status, "red")
        table.add_row(leg.leg, f"[{color}]{leg.status.value.upper()}[/{color}]",
                      leg.amount or "-", leg.tx_hash or leg.error or "-")
    console.print(table)


@click.group()
@click.option('--config', '-c', help='Path to configuration file')
@click.option('--debug', is_flag=True, help='Enable debug logging')
@click.pass_context
def cli(ctx, config, debug):
    """flashgen - flash-token quotes and generation on BNB Smart Chain"""
    load_dotenv()
    ctx.ensure_object(dict)
    ctx.obj['config'] = config
    if debug:
        os.environ['DEBUG'] = 'true'


@cli.command()
@click.pass_context
def price(ctx):
    """Show the current native coin USD price"""
    async def run_price():
        app = FlashGenApp(ctx.obj['config'])
        quote = await app.price_oracle.get_quote()
        if quote is None:
            console.print(f"[red]Couldn't fetch {app.settings.native_symbol} price from any source[/red]")
            return
        console.print(f"[bold]{app.settings.native_symbol}[/bold] ${quote.price_usd:,.2f} [dim]({quote.source})[/dim]")

    asyncio.run(run_price())


@cli.command()
@click.argument('token_address')
@click.argument('usd', type=float)
@click.option('--symbol', default='TOKEN', help='Token symbol for display')
@click.option('--decimals', type=int, default=None, help='Token decimals (read from the contract when omitted)')
@click.option('--wallet', help='Wallet to quote for (defaults to the PRIVATE_KEY wallet)')
@click.option('--user-id', default='cli', help='User id recorded in logs and ledger')
@click.pass_context
def quote(ctx, token_address, usd, symbol, decimals, wallet, user_id):
    """Build a quote for spending USD on a token"""
    async def run_quote():
        app = FlashGenApp(ctx.obj['config'])
        token = await resolve_token(app.rpc, token_address, symbol, symbol, decimals)
        address = wallet or app.signer(user_id).address
        result = await app.quote_builder().build_quote(user_id, address, token, usd)
        if isinstance(result, QuoteFailure):
            console.print(f"[red]Quote failed: {result.message} ({result.error})[/red]")
            return
        render_quote(result, token, app.settings.native_symbol)

    asyncio.run(run_quote())


@cli.command()
@click.argument('token_address')
@click.argument('usd', type=float)
@click.option('--recipient', help='Address that receives the tokens (defaults to the signing wallet)')
@click.option('--symbol', default='TOKEN', help='Token symbol')
@click.option('--name', default='', help='Token name')
@click.option('--decimals', type=int, default=None, help='Token decimals (read from the contract when omitted)')
@click.option('--user-id', default='cli', help='User id recorded in the ledger')
@click.option('--email', default='', help='User email recorded in the ledger')
@click.option('--yes', '-y', is_flag=True, help='Skip the confirmation prompt')
@click.pass_context
def generate(ctx, token_address, usd, recipient, symbol, name, decimals, user_id, email, yes):
    """Quote, confirm and execute a flash generation"""
    async def run_generate():
        app = FlashGenApp(ctx.obj['config'])
        signer = app.signer(user_id)
        token = await resolve_token(app.rpc, token_address, symbol, name or symbol, decimals)
        result = await app.quote_builder().build_quote(user_id, signer.address, token, usd,
                                                       recipient=recipient)
        if isinstance(result, QuoteFailure):
            console.print(f"[red]Quote failed: {result.message} ({result.error})[/red]")
            return
        render_quote(result, token, app.settings.native_symbol)
        if not result.can_afford:
            console.print("[red]Insufficient balance for this quote[/red]")
            return
        if not yes and not Confirm.ask(f"Execute swap for {result.recipient_address}?", default=False):
            console.print("[yellow]Cancelled[/yellow]")
            return
        console.print(Panel.fit("🔥 EXECUTING ON-CHAIN SWAP", style="bold red"))
        outcome = await app.engine().execute(user_id, email, signer.address, signer, token, result,
                                             result.recipient_address)
        render_result(outcome)

    try:
        asyncio.run(run_generate())
    except KeyboardInterrupt:
        console.print("\n[yellow]Generation cancelled by user[/yellow]")


@cli.command('manual-order')
@click.argument('usd', type=float)
@click.option('--recipient', required=True, help='Address the administrator will send tokens to')
@click.option('--symbol', required=True, help='Token symbol')
@click.option('--name', default='', help='Token name')
@click.option('--token-id', default='', help='Catalog id of the token')
@click.option('--user-id', default='cli', help='User id recorded in the ledger')
@click.option('--email', default='', help='User email recorded in the ledger')
@click.confirmation_option(prompt='Pay the treasury now for a manually fulfilled order?')
@click.pass_context
def manual_order(ctx, usd, recipient, symbol, name, token_id, user_id, email):
    """Pay the treasury for an order fulfilled later by an administrator"""
    async def run_manual():
        app = FlashGenApp(ctx.obj['config'])
        signer = app.signer(user_id)
        token = TokenDetails(name=name or symbol, symbol=symbol, id=token_id)
        result = await app.manual_orders().submit_manual_order(
            user_id, signer.address, signer, usd, recipient, token, user_email=email,
        )
        render_result(result)

    asyncio.run(run_manual())


@cli.command()
@click.option('--user-id', default='cli', help='User whose orders to list')
@click.option('--limit', type=int, default=20, help='Maximum rows')
@click.pass_context
def orders(ctx, user_id, limit):
    """Show order history from the ledger"""
    app = FlashGenApp(ctx.obj['config'])
    if app.ledger is None:
        console.print("[red]Ledger unavailable[/red]")
        return
    rows = app.ledger.orders_for_user(user_id)[:limit]
    if not rows:
        console.print(f"[yellow]No orders for {user_id}[/yellow]")
        return
    table = Table(title=f"📒 Orders for {user_id}")
    for column in ("id", "type", "status", "tokenSymbol", "usdAmountToSpend", "tokenAmount", "paymentHash"):
        table.add_column(column, style="cyan" if column == "id" else "white")
    for row in rows:
        table.add_row(*(str(row.get(c, "")) for c in ("id", "type", "status", "tokenSymbol",
                                                     "usdAmountToSpend", "tokenAmount", "paymentHash")))
    console.print(table)


def main():
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        sys.exit(0)
    except Exception as e:
        logger.error(f"Unexpected error: {e}")
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
