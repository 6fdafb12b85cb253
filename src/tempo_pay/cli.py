"""
tempo-pay CLI: stablecoin payments on Tempo.

Commands:
    tempo-pay wallet create|import|show|export|clear
                                                Manage the active account
    tempo-pay network                           Node connectivity
    tempo-pay balances                          Show token balances
    tempo-pay fee-token show|set                Fee token preference
    tempo-pay tokens list|add|remove            Custom token list
    tempo-pay send                              Send one transfer
    tempo-pay batch                             Send several transfers atomically
    tempo-pay history                           Recent transactions
    tempo-pay track                             Settle pending transactions
    tempo-pay sponsor on|off                    Toggle fee sponsorship
"""

from __future__ import annotations

import logging
import sys
from collections import Counter
from typing import Optional

import click
from click.core import ParameterSource

from .balances import BalanceAggregator
from .batch import BatchQueue
from .config import EngineConfig
from .errors import TempoError
from .fees import FeeTokenResolver
from .ledger import TransactionLedger, TransactionStatus
from .payment import PaymentExecutor
from .rpc import JsonRpcClient, LedgerClient
from .session import WalletSession
from .signer import EthAccountSigner
from .sponsorship import HttpSponsorClient, SponsorClient
from .storage import FileKeyValueStore
from .tokens import TokenDescriptor, add_custom_token, remove_custom_token, validate_token
from .tracker import StatusTracker
from .transfer import TransferRequest
from .wallet import WalletIdentity


# ── Wiring ────────────────────────────────────────────────────────

def _config() -> EngineConfig:
    return EngineConfig.from_env()


def _client(config: EngineConfig) -> JsonRpcClient:
    return JsonRpcClient(config)


def _session(config: EngineConfig) -> WalletSession:
    session = WalletSession.load(FileKeyValueStore(config.state_dir), config=config)
    WalletIdentity(EthAccountSigner()).restore(session)
    return session


def _connected_session(config: EngineConfig) -> WalletSession:
    session = _session(config)
    if not session.is_connected:
        click.echo("❌ No wallet. Run `tempo-pay wallet create` or `tempo-pay wallet import`.", err=True)
        sys.exit(1)
    return session


def _resolve_token(session: WalletSession, value: str) -> TokenDescriptor:
    wanted = value.strip().lower()
    for token in session.token_set():
        if token.address.lower() == wanted or token.symbol.lower() == wanted:
            return token
    click.echo(f"❌ Unknown token: {value}", err=True)
    sys.exit(1)


def _parse_transfer(session: WalletSession, value: str) -> TransferRequest:
    parts = value.split(":", 3)
    if len(parts) < 3:
        raise click.BadParameter(f"expected TOKEN:TO:AMOUNT[:MEMO], got {value!r}")
    token = _resolve_token(session, parts[0])
    memo = parts[3] if len(parts) == 4 else None
    return TransferRequest(token=token.address, to=parts[1], amount=parts[2], memo=memo)


def _fail(action: str, exc: Exception):
    click.echo(f"❌ {action}: {exc}", err=True)
    sys.exit(1)


# ── CLI ───────────────────────────────────────────────────────────

@click.group()
@click.version_option(version="0.1.0")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def main(verbose: bool):
    """tempo-pay: stablecoin payments on Tempo."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(asctime)s %(name)s %(levelname)s %(message)s")


@main.group("wallet")
def wallet_group():
    """Active account management."""
    pass


@wallet_group.command("create")
def wallet_create():
    """Create a new account."""
    config = _config()
    session = _session(config)
    if session.is_connected:
        click.echo(f"❌ A wallet is already active: {session.account.address}. Clear it first.", err=True)
        sys.exit(1)
    account = WalletIdentity(EthAccountSigner()).create(session)
    click.echo(f"✅ Wallet created: {account.address}")
    click.echo(f"   Fund it at {config.network.faucet_url}")


@wallet_group.command("import")
@click.option("--secret", prompt=True, hide_input=True, help="Account private key (hex, 0x optional)")
@click.option(
    "--unsafe-allow-key-arg",
    is_flag=True,
    default=False,
    help="Allow passing --secret via argv (unsafe; can leak in shell/process history).",
)
def wallet_import(secret: str, unsafe_allow_key_arg: bool):
    """Import an existing account from its private key."""
    ctx = click.get_current_context(silent=True)
    key_from_argv = (
        ctx is not None
        and ctx.get_parameter_source("secret") == ParameterSource.COMMANDLINE
    )
    if key_from_argv and not unsafe_allow_key_arg:
        click.echo(
            "❌ Refusing --secret from argv. Re-run with prompt input or pass "
            "--unsafe-allow-key-arg to acknowledge the risk.",
            err=True,
        )
        sys.exit(1)

    session = _session(_config())
    try:
        account = WalletIdentity(EthAccountSigner()).import_(session, secret)
    except TempoError as e:
        _fail("Import failed", e)
    click.echo(f"✅ Wallet imported: {account.address}")


@wallet_group.command("show")
def wallet_show():
    """Show the active account."""
    config = _config()
    session = _connected_session(config)
    fee = session.find_token(session.fee_token)
    click.echo(f"Address:    {session.account.address}")
    click.echo(f"Fee token:  {fee.symbol if fee else session.fee_token}")
    click.echo(f"Sponsored:  {'yes' if session.is_sponsored else 'no'}")
    click.echo(f"Explorer:   {config.network.address_url(session.account.address)}")


@wallet_group.command("export")
@click.confirmation_option(
    prompt="This prints your private key in plain text. Anyone who sees it controls the wallet. Continue?"
)
def wallet_export():
    """Print the active account's private key."""
    session = _connected_session(_config())
    click.echo("⚠️  Keep this key secret. Never share it or paste it into a website.", err=True)
    click.echo(session.account.secret.reveal())


@wallet_group.command("clear")
@click.confirmation_option(prompt="This deletes the stored key and history. Continue?")
def wallet_clear():
    """Log out and wipe all local wallet state."""
    session = _session(_config())
    WalletIdentity(EthAccountSigner()).clear(session)
    click.echo("✅ Wallet cleared")


@main.command()
def network():
    """Show whether the Tempo node is reachable."""
    config = _config()
    with _client(config) as client:
        info = client.network_info()
    if not info.connected:
        click.echo(f"❌ Disconnected from {config.network.rpc_url}", err=True)
        sys.exit(1)
    click.echo(f"✅ Connected to {config.network.name}")
    click.echo(f"   Chain id:  {info.chain_id}")
    click.echo(f"   Block:     {info.block_number}")
    click.echo(f"   RPC:       {config.network.rpc_url}")


@main.command()
def balances():
    """Show balances for default and custom tokens."""
    config = _config()
    session = _connected_session(config)
    with _client(config) as client:
        found = BalanceAggregator(client).fetch_all(session)
    for balance in found:
        click.echo(f"  {balance.symbol:<10} {balance.display_amount:>12}   {balance.address}")


@main.group("fee-token")
def fee_token_group():
    """Fee token preference."""
    pass


@fee_token_group.command("show")
def fee_token_show():
    """Show the fee token recorded on chain."""
    config = _config()
    session = _connected_session(config)
    with _client(config) as client:
        address = FeeTokenResolver(client, EthAccountSigner()).resolve(session)
    token = session.find_token(address)
    click.echo(f"Fee token: {token.symbol if token else 'unknown'} ({address})")


@fee_token_group.command("set")
@click.argument("token")
@click.option("--timeout", type=float, default=None, help="Submission timeout in seconds")
def fee_token_set(token: str, timeout: Optional[float]):
    """Pay fees in TOKEN (symbol or address)."""
    config = _config()
    session = _connected_session(config)
    descriptor = _resolve_token(session, token)
    with _client(config) as client:
        resolver = FeeTokenResolver(client, EthAccountSigner())
        try:
            receipt = resolver.set_preference(session, descriptor.address, timeout=timeout)
        except TempoError as e:
            _fail("Fee token update failed", e)
    click.echo(f"✅ Fee token set to {descriptor.symbol}")
    click.echo(f"   Tx: {receipt.tx_hash}")


@main.group("tokens")
def tokens_group():
    """Token list management."""
    pass


@tokens_group.command("list")
def tokens_list():
    """List default and custom tokens."""
    session = _connected_session(_config())
    for token in session.token_set():
        tag = "default" if token.is_default else "custom"
        click.echo(f"  {token.symbol:<10} {token.decimals:>3}  {token.address}  ({tag})")


@tokens_group.command("add")
@click.argument("address")
def tokens_add(address: str):
    """Add a custom TIP-20 token after reading its metadata."""
    config = _config()
    session = _connected_session(config)
    with _client(config) as client:
        token = validate_token(client, address)
    if token is None:
        click.echo(f"❌ Not a readable TIP-20 token: {address}", err=True)
        sys.exit(1)
    if not add_custom_token(session, token):
        click.echo(f"Token already listed: {token.symbol}")
        return
    click.echo(f"✅ Added {token.symbol} ({token.name}, {token.decimals} decimals)")


@tokens_group.command("remove")
@click.argument("address")
def tokens_remove(address: str):
    """Remove a custom token."""
    session = _connected_session(_config())
    if not remove_custom_token(session, address):
        click.echo(f"❌ No custom token at {address}", err=True)
        sys.exit(1)
    click.echo(f"✅ Removed {address}")


def _executor(config: EngineConfig, client: LedgerClient, sponsor: SponsorClient, wait: bool) -> PaymentExecutor:
    ledger = TransactionLedger()
    tracker = StatusTracker(client, ledger, max_workers=config.tracker_workers) if wait else None
    return PaymentExecutor(client, EthAccountSigner(), ledger=ledger, tracker=tracker, sponsor=sponsor)


def _report(config: EngineConfig, result, wait: bool):
    click.echo(f"✅ Submitted: {result.tx_hash}")
    if result.sponsored:
        click.echo("   Fees sponsored")
    click.echo(f"   Explorer: {config.network.tx_url(result.tx_hash)}")
    if wait and result.tracking is not None:
        status = result.tracking.result()
        if status is TransactionStatus.PENDING:
            click.echo("   Still pending; run `tempo-pay track` later")
        else:
            click.echo(f"   Status: {status.value}")


@main.command()
@click.option("--token", default="pathUSD", show_default=True, help="Token symbol or address")
@click.option("--to", "recipient", required=True, help="Recipient address")
@click.option("--amount", required=True, help="Amount in token units, e.g. 12.50")
@click.option("--memo", default=None, help="Reference memo (over 31 bytes is stored as a hash)")
@click.option("--timeout", type=float, default=None, help="Submission timeout in seconds")
@click.option("--wait/--no-wait", default=True, help="Wait for confirmation")
def send(token: str, recipient: str, amount: str, memo: Optional[str], timeout: Optional[float], wait: bool):
    """Send a single transfer."""
    config = _config()
    session = _connected_session(config)
    descriptor = _resolve_token(session, token)
    request = TransferRequest(token=descriptor.address, to=recipient, amount=amount, memo=memo)
    with _client(config) as client, HttpSponsorClient(config) as sponsor:
        executor = _executor(config, client, sponsor, wait)
        try:
            result = executor.send(session, request, timeout=timeout)
            _report(config, result, wait)
        except TempoError as e:
            _fail("Transfer failed", e)
        finally:
            executor.close()


@main.command()
@click.option(
    "--transfer",
    "transfers",
    multiple=True,
    required=True,
    help="TOKEN:TO:AMOUNT[:MEMO], repeat for each transfer (executed in order)",
)
@click.option("--timeout", type=float, default=None, help="Submission timeout in seconds")
@click.option("--wait/--no-wait", default=True, help="Wait for confirmation")
def batch(transfers: tuple[str, ...], timeout: Optional[float], wait: bool):
    """Send several transfers as one all-or-nothing batch."""
    config = _config()
    session = _connected_session(config)
    queue = BatchQueue()
    for entry in transfers:
        queue.append(_parse_transfer(session, entry))
    with _client(config) as client, HttpSponsorClient(config) as sponsor:
        executor = _executor(config, client, sponsor, wait)
        try:
            result = executor.send_batch(session, queue, timeout=timeout)
            click.echo(f"   {len(result.records)} transfers in one batch")
            _report(config, result, wait)
        except TempoError as e:
            _fail("Batch failed", e)
        finally:
            executor.close()


@main.command()
@click.option("--limit", type=int, default=20, help="Number of transactions")
def history(limit: int):
    """Show recent transactions, newest first."""
    session = _connected_session(_config())
    records = TransactionLedger().history(session)[:limit]
    if not records:
        click.echo("No transactions yet.")
        return
    icons = {
        TransactionStatus.PENDING: "⏳",
        TransactionStatus.CONFIRMED: "✅",
        TransactionStatus.FAILED: "❌",
    }
    for record in records:
        memo = f" [{record.memo}]" if record.memo else ""
        click.echo(
            f"  {icons[record.status]} {record.amount} {record.token_symbol} → {record.to}{memo}  {record.hash}"
        )


@main.command()
@click.option("--timeout", type=float, default=None, help="Seconds to wait for each receipt")
def track(timeout: Optional[float]):
    """Wait for pending transactions and record how they ended."""
    config = _config()
    session = _connected_session(config)
    with _client(config) as client:
        tracker = StatusTracker(client, TransactionLedger(), max_workers=config.tracker_workers)
        try:
            statuses = [f.result() for f in tracker.resume(session, timeout=timeout)]
        finally:
            tracker.shutdown()
    if not statuses:
        click.echo("No pending transactions.")
        return
    counts = Counter(statuses)
    click.echo(
        f"✅ {counts[TransactionStatus.CONFIRMED]} confirmed, "
        f"{counts[TransactionStatus.FAILED]} failed, "
        f"{counts[TransactionStatus.PENDING]} still pending"
    )


@main.command()
@click.argument("state", type=click.Choice(["on", "off"]))
def sponsor(state: str):
    """Turn fee sponsorship on or off."""
    session = _connected_session(_config())
    enable = state == "on"
    session.set_sponsored(enable)
    click.echo(f"✅ Sponsorship {'enabled' if enable else 'disabled'}")


if __name__ == "__main__":
    main()
