"""
Simulator - proves a signed bundle does not revert before broadcast.
"""

import structlog

from bundler.core.bundle import SignedBundle, gas_price_to_gwei
from bundler.errors import RelayTransportError, SimulationRevertError
from bundler.relay.interface import RelayInterface, SimulationResult

logger = structlog.get_logger(__name__)


class Simulator:
    """Runs relay simulations and rejects bundles that would fail."""

    def __init__(self, relay: RelayInterface):
        self.relay = relay

    async def check(self, signed_bundle: SignedBundle) -> SimulationResult:
        """
        Simulate the bundle against the latest block.

        Args:
            signed_bundle: Bundle to check

        Returns:
            Simulation result; `effective_gas_price` is informational only

        Raises:
            SimulationRevertError: If the simulation errors or any transaction reverts
        """
        try:
            result = await self.relay.simulate(signed_bundle, "latest")
        except RelayTransportError as e:
            raise SimulationRevertError(f"Simulation request failed: {e}") from e

        if result.error:
            raise SimulationRevertError(f"Simulation error: {result.error}")

        index = result.first_failure
        if index is not None:
            failed = result.results[index]
            reason = failed.error or failed.revert
            logger.error(
                "bundle_simulation_reverted",
                tx_index=index,
                tx_hash=failed.tx_hash,
                reason=reason,
            )
            raise SimulationRevertError(
                f"Transaction {index} ({failed.tx_hash}) reverted in simulation: {reason}",
                tx_index=index,
            )

        logger.info(
            "bundle_simulation_passed",
            bundle_hash=result.bundle_hash,
            total_gas_used=result.total_gas_used,
            effective_gas_price_gwei=gas_price_to_gwei(result.effective_gas_price),
        )
        return result
