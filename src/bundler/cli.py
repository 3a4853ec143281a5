"""
Command-line interface for the sponsored bundle submitter.

Provides commands for submitting the configured action plan and for
inspecting it.
"""

import argparse
import asyncio
import logging
import signal
import sys
from typing import List, Optional, Tuple

import structlog

from bundler import __version__
from bundler.config import BundlerConfig, NodeProvider, PlanType, set_config
from bundler.core.bundle import gas_price_to_gwei
from bundler.core.bundler import BundleOutcome, Bundler, OutcomeStatus, PreparedBundle
from bundler.errors import ConfigurationError
from bundler.node.http_adapter import HttpChainAdapter
from bundler.node.interface import ChainInterface, NodeConnectionError
from bundler.node.websocket_adapter import WebSocketChainAdapter
from bundler.plans.base import create_plan
from bundler.relay.flashbots import FlashbotsRelay
from bundler.tx.builder import FUNDING_TRANSFER_GAS_LIMIT
from bundler.tx.signer import TransactionSigner

logger = structlog.get_logger(__name__)


def setup_logging(level: str = "INFO", json_format: bool = False) -> None:
    """Configure structured logging."""
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if json_format
            else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level.upper()),
        stream=sys.stdout,
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="sponsored-bundler",
        description="Submit sponsored transaction bundles to a private relay",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Run command
    run_parser = subparsers.add_parser("run", help="Build and submit the bundle")
    run_parser.add_argument(
        "--dry-run",
        action="store_true",
        default=None,
        help="Estimate, assemble and simulate only; never broadcast",
    )
    run_parser.add_argument(
        "--max-attempts",
        type=int,
        help="Give up after this many blocks (default: unbounded)",
    )
    _add_common_arguments(run_parser)

    # Describe command
    describe_parser = subparsers.add_parser("describe", help="Show the action plan")
    _add_common_arguments(describe_parser)

    return parser


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--plan",
        choices=[p.value for p in PlanType],
        help="Action plan (default: from PLAN or transfer_erc20)",
    )
    parser.add_argument(
        "--provider",
        choices=[p.value for p in NodeProvider],
        help="Chain transport (default: from NODE_PROVIDER or http)",
    )
    parser.add_argument(
        "--rpc-url",
        help="HTTP JSON-RPC endpoint (default: from ETHEREUM_RPC_URL)",
    )
    parser.add_argument(
        "--relay-url",
        help="Relay endpoint (default: from RELAY_URL)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        default=None,
        help="Output logs in JSON format",
    )


def build_config(args: argparse.Namespace) -> BundlerConfig:
    """Build configuration from the environment, overridden by CLI flags."""
    overrides = {
        "dry_run": getattr(args, "dry_run", None),
        "max_submission_attempts": getattr(args, "max_attempts", None),
        "plan": args.plan,
        "node_provider": args.provider,
        "ethereum_rpc_url": args.rpc_url,
        "relay_url": args.relay_url,
        "log_level": args.log_level,
        "log_json": args.log_json,
    }
    return BundlerConfig(**{k: v for k, v in overrides.items() if v is not None})


def load_signers(config: BundlerConfig) -> Tuple[TransactionSigner, TransactionSigner, TransactionSigner]:
    """
    Load executor, sponsor and relay identities.

    Raises:
        ConfigurationError: If an identity is missing or not a valid key
    """
    config.require_identities()

    signers = []
    for role, key in (
        ("executor", config.private_key_executor),
        ("sponsor", config.private_key_sponsor),
        ("relay", config.flashbots_relay_signing_key),
    ):
        try:
            signers.append(TransactionSigner.from_key(key, role=role))
        except ValueError as e:
            raise ConfigurationError(f"Invalid {role} private key: {e}") from e

    return signers[0], signers[1], signers[2]


def create_chain(config: BundlerConfig) -> ChainInterface:
    """Create the chain adapter for the configured transport."""
    if config.node_provider == NodeProvider.WEBSOCKET:
        return WebSocketChainAdapter(config)
    return HttpChainAdapter(config)


def format_summary(
    prepared: PreparedBundle,
    executor_address: str,
    sponsor_address: str,
) -> List[str]:
    """Render the cost breakdown of a prepared bundle."""
    bundle = prepared.bundle
    lines = ["--------------------------------"]
    for index, entry in enumerate(bundle.entries):
        lines.append(
            f"TX #{index}: {entry.signer.address} => {entry.operation.to} : {entry.operation.data}"
        )
    lines.append("--------------------------------")
    for index, tx in enumerate(prepared.signed_bundle.transactions):
        lines.append(f"TX #{index}: {tx.tx_hash} (nonce {tx.nonce})")
    lines.append("--------------------------------")

    gas_price = prepared.gas_price
    lines.extend([
        prepared.description,
        f"Executor Account: {executor_address}",
        f"Sponsor Account: {sponsor_address}",
        f"Simulated Gas Price: {gas_price_to_gwei(prepared.simulation.effective_gas_price)} gwei",
        f"Gas Price: {gas_price_to_gwei(gas_price)} gwei",
        f"Gas Used By Executor: {prepared.total_gas_units}",
        f"Gas Value Used By Executor: {prepared.funding_value}",
        f"Gas Value Total: {prepared.funding_value + FUNDING_TRANSFER_GAS_LIMIT * gas_price}",
    ])
    return lines


async def run_bundler(config: BundlerConfig) -> BundleOutcome:
    """Build and submit the configured bundle."""
    executor, sponsor, relay_signer = load_signers(config)
    chain = create_chain(config)
    plan = create_plan(chain, executor.address, config)

    await chain.connect()
    relay = FlashbotsRelay(chain, relay_signer, config)

    bundler = Bundler(
        plan=plan,
        chain=chain,
        relay=relay,
        executor=executor,
        sponsor=sponsor,
        config=config,
    )

    def print_summary(prepared: PreparedBundle) -> None:
        print("\n".join(format_summary(prepared, executor.address, sponsor.address)))

    bundler.on_prepared(print_summary)

    if config.dry_run:
        print("** DRY RUN **")

    loop = asyncio.get_running_loop()
    task = asyncio.current_task()

    def signal_handler():
        print("\nShutting down...")
        task.cancel()

    try:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, signal_handler)
    except NotImplementedError:
        pass  # Signals not available on Windows

    try:
        outcome = await bundler.execute()
    finally:
        await relay.close()
        await chain.disconnect()

    if outcome.status == OutcomeStatus.DRY_RUN:
        print("** DRY RUN ENDED **")
    elif outcome.status == OutcomeStatus.INCLUDED:
        print(f"Congrats, included in {outcome.target_block}")
    elif outcome.status == OutcomeStatus.NONCE_INVALID:
        print("Nonce too high, bailing")

    return outcome


async def describe_plan(config: BundlerConfig) -> None:
    """Print the configured plan and its operations."""
    executor, _, _ = load_signers(config)
    chain = create_chain(config)
    plan = create_plan(chain, executor.address, config)

    await chain.connect()
    try:
        print(await plan.describe())
        print()
        for index, operation in enumerate(await plan.build_operations()):
            print(f"  #{index}: {operation.to} value={operation.value} data={operation.data}")
    finally:
        await chain.disconnect()


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        config = build_config(args)
        set_config(config)
        setup_logging(config.log_level, config.log_json)
        config.require_identities()

        if args.command == "run":
            outcome = asyncio.run(run_bundler(config))
            sys.exit(outcome.exit_code)
        elif args.command == "describe":
            asyncio.run(describe_plan(config))
    except ConfigurationError as e:
        logger.error("configuration_error", error=str(e))
        print(str(e), file=sys.stderr)
        sys.exit(1)
    except NodeConnectionError as e:
        logger.error("node_connection_failed", error=str(e))
        sys.exit(1)
    except asyncio.CancelledError:
        sys.exit(1)


if __name__ == "__main__":
    main()
