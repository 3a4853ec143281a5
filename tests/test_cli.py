"""
Test suite for the command-line interface.
"""

import pytest
from eth_abi import encode
from eth_utils import encode_hex

from bundler.cli import build_config, create_parser, format_summary, load_signers, main
from bundler.config import NodeProvider, PlanType
from bundler.core.bundle import GWEI, BundleResolution
from bundler.core.bundler import Bundler
from bundler.errors import ConfigurationError

from conftest import EXECUTOR_KEY, RECIPIENT, RELAY_KEY, SPONSOR_KEY, TOKEN


class TestArguments:
    """Tests for argument parsing and config overrides."""

    def test_flags_override_environment(self, clean_env):
        clean_env.setenv("RELAY_URL", "https://relay.from-env")
        args = create_parser().parse_args([
            "run", "--dry-run", "--max-attempts", "5",
            "--plan", "unstake_and_transfer_erc20", "--provider", "websocket",
        ])

        config = build_config(args)

        assert config.dry_run is True
        assert config.max_submission_attempts == 5
        assert config.plan == PlanType.UNSTAKE_AND_TRANSFER_ERC20
        assert config.node_provider == NodeProvider.WEBSOCKET
        assert config.relay_url == "https://relay.from-env"

    def test_unset_flags_keep_environment(self, clean_env):
        clean_env.setenv("DRY_RUN", "true")
        args = create_parser().parse_args(["run"])

        config = build_config(args)

        assert config.dry_run is True

    def test_missing_identities_exit_nonzero(self, clean_env, capsys):
        """Test that a run without keys fails before doing any work."""
        with pytest.raises(SystemExit) as exc_info:
            main(["run"])

        assert exc_info.value.code == 1
        assert "Must provide PRIVATE_KEY_EXECUTOR" in capsys.readouterr().err

    def test_no_command(self, clean_env):
        with pytest.raises(SystemExit) as exc_info:
            main([])

        assert exc_info.value.code == 1


class TestSigners:
    """Tests for loading identities."""

    def test_load_signers(self, test_config, executor, sponsor, relay_signer):
        loaded = load_signers(test_config)

        assert [s.address for s in loaded] == [
            executor.address, sponsor.address, relay_signer.address,
        ]

    def test_invalid_key(self, test_config):
        config = test_config.model_copy(update={"private_key_sponsor": "0x1234"})

        with pytest.raises(ConfigurationError, match="sponsor"):
            load_signers(config)


class TestSummary:
    """Tests for the prepared bundle summary."""

    @pytest.mark.asyncio
    async def test_summary_lines(
        self, mock_chain, mock_relay, executor, sponsor, test_config, three_step_plan
    ):
        """Test the cost breakdown for a three-step plan at 80 gwei."""
        bundler = Bundler(three_step_plan, mock_chain, mock_relay, executor, sponsor, test_config)
        prepared = await bundler.prepare()

        lines = format_summary(prepared, executor.address, sponsor.address)

        assert f"TX #0: {sponsor.address} => {executor.address} : 0x" in lines
        assert "unstake, claim and transfer" in lines
        assert f"Executor Account: {executor.address}" in lines
        assert f"Sponsor Account: {sponsor.address}" in lines
        assert "Simulated Gas Price: 80.0 gwei" in lines
        assert "Gas Price: 80.0 gwei" in lines
        assert "Gas Used By Executor: 230000" in lines
        assert f"Gas Value Used By Executor: {230_000 * 80 * GWEI}" in lines
        assert f"Gas Value Total: {251_000 * 80 * GWEI}" in lines


class TestRunCommand:
    """Tests for the `run` command end to end against in-memory services."""

    @pytest.fixture
    def run_env(self, clean_env, mock_chain, mock_relay):
        """Configure identities and route the CLI to the mock chain and relay."""
        clean_env.setenv("PRIVATE_KEY_EXECUTOR", EXECUTOR_KEY)
        clean_env.setenv("PRIVATE_KEY_SPONSOR", SPONSOR_KEY)
        clean_env.setenv("FLASHBOTS_RELAY_SIGNING_KEY", RELAY_KEY)
        clean_env.setenv("RECIPIENT", RECIPIENT)
        clean_env.setenv("TOKEN_ADDRESS", TOKEN)
        clean_env.setenv("POLL_INTERVAL_SECONDS", "0.01")

        mock_chain.call_results[TOKEN.lower()] = encode_hex(encode(["uint256"], [1_000]))
        clean_env.setattr("bundler.cli.create_chain", lambda config: mock_chain)
        clean_env.setattr(
            "bundler.cli.FlashbotsRelay",
            lambda chain, auth_signer, config: mock_relay,
        )
        return clean_env

    def test_dry_run_prints_summary(self, run_env, mock_chain, mock_relay, capsys):
        """Test that a dry run prints the cost breakdown and exits 0."""
        with pytest.raises(SystemExit) as exc_info:
            main(["run", "--dry-run"])

        assert exc_info.value.code == 0
        out = capsys.readouterr().out
        assert "** DRY RUN **" in out
        assert "** DRY RUN ENDED **" in out
        assert "Transfer ERC20 balance 1000 @ " in out
        assert "Gas Used By Executor: 100000" in out
        assert "Gas Price: 80.0 gwei" in out
        assert mock_relay.sent == []
        assert mock_relay.closed is True
        assert mock_chain.disconnect_calls == 1

    def test_included_run_exits_zero(self, run_env, mock_chain, mock_relay, capsys):
        mock_chain.new_blocks = [101]
        mock_relay.resolutions = [BundleResolution.INCLUDED]

        with pytest.raises(SystemExit) as exc_info:
            main(["run"])

        assert exc_info.value.code == 0
        assert "Congrats, included in 103" in capsys.readouterr().out
        assert mock_relay.targets == [103]
        assert mock_relay.closed is True

    def test_stale_nonce_exits_nonzero(self, run_env, mock_chain, mock_relay, capsys):
        mock_chain.new_blocks = [101]
        mock_relay.resolutions = [BundleResolution.ACCOUNT_NONCE_TOO_HIGH]

        with pytest.raises(SystemExit) as exc_info:
            main(["run"])

        assert exc_info.value.code == 1
        assert "Nonce too high, bailing" in capsys.readouterr().out
        assert mock_chain.disconnect_calls == 1

    def test_token_without_code_exits_nonzero(self, run_env, mock_chain, mock_relay):
        """Test that an unreadable balance ends the run with a fatal outcome."""
        mock_chain.call_results[TOKEN.lower()] = "0x"

        with pytest.raises(SystemExit) as exc_info:
            main(["run"])

        assert exc_info.value.code == 1
        assert mock_relay.simulate_calls == []
