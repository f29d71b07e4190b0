"""Pre-flight checks and on-chain dry run of a chosen route.

Order of checks:
1. Input balance (fatal, never simulated past)
2. Allowance to the executing contract (warning only)
3. Dry run with the variant matching the swap shape
4. Transient revert retries with fixed backoff
5. One retry through the fee-on-transfer variant
"""

import asyncio
import logging
from collections.abc import Iterable
from typing import Optional

from routeguard.errors import ErrorKind
from routeguard.models import Route, SimulationResult, TransactionRequest
from routeguard.onchain.base import CallOutcome, ChainReader, SimulationProvider
from routeguard.onchain.calls import build_swap_call, select_call_variant, swap_deadline
from routeguard.utils.deadline import Sleep

logger = logging.getLogger(__name__)

TRANSIENT_REVERT = "TRANSFER_FROM_FAILED"

# Revert reasons that mean the signer cannot execute at all
BALANCE_REVERTS = ("insufficient balance", "exceeds balance", "insufficient funds")
ALLOWANCE_REVERTS = ("insufficient allowance", "exceeds allowance")


def classify_revert(reason: str) -> tuple[str, bool]:
    """Map a revert reason to (error_kind, fatal)."""
    lowered = reason.lower()
    if any(marker in lowered for marker in BALANCE_REVERTS):
        return ErrorKind.INSUFFICIENT_BALANCE.value, True
    if any(marker in lowered for marker in ALLOWANCE_REVERTS):
        return ErrorKind.INSUFFICIENT_ALLOWANCE.value, True
    return ErrorKind.SIMULATION_FAILED.value, False


class SimulationValidator:
    """Validates that a route can execute for a given signer."""

    def __init__(
        self,
        reader: ChainReader,
        simulator: SimulationProvider,
        sleep: Sleep = asyncio.sleep,
        transient_signature: str = TRANSIENT_REVERT,
        retries: int = 3,
        backoff_seconds: float = 2.0,
        deadline_minutes: int = 20,
        timeout: float = 4.0,
        fee_on_transfer_tokens: Iterable[tuple[int, str]] = (),
        untaxed_tokens: Iterable[tuple[int, str]] = (),
    ):
        """Initialize the validator.

        Args:
            reader: Balance and allowance source
            simulator: Dry-run executor
            sleep: Awaitable used between transient retries
            transient_signature: Revert text that marks an unindexed approval
            retries: Retries after a transient revert
            backoff_seconds: Fixed delay before each transient retry
            deadline_minutes: Swap deadline encoded into router calls
            timeout: Per-call budget for reads and dry runs
            fee_on_transfer_tokens: (chain_id, address) keys known to tax transfers
            untaxed_tokens: (chain_id, address) keys never recorded as taxing
                (catalog intermediaries such as wrapped native and stablecoins)
        """
        self.reader = reader
        self.simulator = simulator
        self.sleep = sleep
        self.transient_signature = transient_signature
        self.retries = retries
        self.backoff_seconds = backoff_seconds
        self.deadline_minutes = deadline_minutes
        self.timeout = timeout
        self.fee_on_transfer_tokens: set[tuple[int, str]] = {
            (chain_id, address.lower()) for chain_id, address in fee_on_transfer_tokens
        }
        self.untaxed_tokens = frozenset(
            (chain_id, address.lower()) for chain_id, address in untaxed_tokens
        )

    async def simulate(self, route: Route, signer_address: str) -> SimulationResult:
        """
        Validate `route` for `signer_address`.

        Cross-chain routes are validated on their source chain only; the
        bridge transfer itself cannot be dry-run here.

        Returns:
            SimulationResult; `ok` is never True when the balance check failed
        """
        warnings: list[str] = []
        executable = route
        if route.plan is not None:
            warnings.append("Bridge transfer is not simulated")
            if route.plan.source_leg is None:
                return await self._preflight_only(route, signer_address, warnings)
            executable = route.plan.source_leg

        failure = await self._check_balance(executable, signer_address)
        if failure is not None:
            return failure

        if not executable.is_executable:
            message = f"Route from {executable.source_label} has no router or transaction to simulate"
            logger.warning(message)
            warnings.append("Route was not simulated. Submitting may revert.")
            return SimulationResult(
                ok=False,
                error_kind=ErrorKind.SIMULATION_FAILED.value,
                error_message=message,
                fatal=False,
                warnings=tuple(warnings),
                attempts=0,
            )

        variant = select_call_variant(executable)
        if self._is_fee_on_transfer(executable):
            variant = variant.fee_on_transfer_variant

        call = build_swap_call(
            executable, variant, signer_address, swap_deadline(self.deadline_minutes)
        )

        allowance_warning = await self._check_allowance(executable, signer_address, call.to)
        if allowance_warning:
            warnings.append(allowance_warning)

        outcome, attempts = await self._run_with_retries(executable, call, signer_address)
        if outcome.success:
            if attempts > 1:
                warnings.append(f"Simulation succeeded after {attempts - 1} retry(ies)")
            return SimulationResult(
                ok=True,
                selected_call_variant=variant,
                warnings=tuple(warnings),
                attempts=attempts,
            )

        reason = outcome.revert_reason or "execution reverted"
        error_kind, fatal = classify_revert(reason)

        # Standard variant failed: try the fee-on-transfer-safe function once
        fot_variant = variant.fee_on_transfer_variant
        if fot_variant != variant and not fatal:
            fot_call = build_swap_call(
                executable, fot_variant, signer_address, swap_deadline(self.deadline_minutes)
            )
            fot_outcome = await self._simulate_once(executable, fot_call, signer_address)
            attempts += 1
            if fot_outcome.success:
                logger.info(f"Fee-on-transfer token detected on {executable.input_token} -> {executable.output_token}")
                warnings.append("Fee-on-transfer token detected; using the fee-on-transfer router function")
                self._remember_fee_on_transfer(executable)
                return SimulationResult(
                    ok=True,
                    selected_call_variant=fot_variant,
                    warnings=tuple(warnings),
                    attempts=attempts,
                )

        if fatal:
            logger.warning(f"Simulation blocked: {reason}")
        else:
            logger.warning(f"Simulation failed after {attempts} attempt(s), proceedable with risk: {reason}")
            warnings.append(f"Simulation failed: {reason}. Submitting may revert.")
        return SimulationResult(
            ok=False,
            selected_call_variant=variant,
            error_kind=error_kind,
            error_message=reason,
            fatal=fatal,
            warnings=tuple(warnings),
            attempts=attempts,
        )

    async def _preflight_only(
        self,
        route: Route,
        signer_address: str,
        warnings: list[str],
    ) -> SimulationResult:
        """Balance check for a route whose first step is the bridge itself."""
        failure = await self._check_balance(route, signer_address)
        if failure is not None:
            return failure
        return SimulationResult(ok=True, warnings=tuple(warnings), attempts=0)

    async def _check_balance(self, route: Route, signer_address: str) -> Optional[SimulationResult]:
        token = route.input_token
        try:
            if token.is_native:
                balance = await asyncio.wait_for(
                    self.reader.get_native_balance(token.chain_id, signer_address), timeout=self.timeout
                )
            else:
                balance = await asyncio.wait_for(
                    self.reader.get_token_balance(token.chain_id, token.address, signer_address),
                    timeout=self.timeout,
                )
        except asyncio.TimeoutError:
            logger.warning(f"Balance check for {token} timed out, simulation will decide")
            return None
        except Exception as e:
            logger.warning(f"Balance check for {token} failed: {e}")
            return None

        if balance < route.amount_in:
            message = (
                f"Insufficient {token} balance: have {token.from_units(balance)}, "
                f"need {token.from_units(route.amount_in)}"
            )
            logger.info(message)
            return SimulationResult(
                ok=False,
                error_kind=ErrorKind.INSUFFICIENT_BALANCE.value,
                error_message=message,
                fatal=True,
                attempts=0,
            )
        return None

    async def _check_allowance(self, route: Route, signer_address: str, spender: str) -> Optional[str]:
        token = route.input_token
        if token.is_native:
            return None
        try:
            allowance = await asyncio.wait_for(
                self.reader.get_allowance(token.chain_id, token.address, signer_address, spender),
                timeout=self.timeout,
            )
        except Exception as e:
            logger.warning(f"Allowance check for {token} failed: {type(e).__name__}: {e}")
            return f"Could not verify {token} allowance"

        if allowance < route.amount_in:
            # A just-submitted approval may not be indexed yet
            return (
                f"Allowance for {token} is below the input amount; "
                f"approve {spender} before submitting"
            )
        return None

    async def _run_with_retries(
        self,
        route: Route,
        call: TransactionRequest,
        signer_address: str,
    ) -> tuple[CallOutcome, int]:
        outcome = await self._simulate_once(route, call, signer_address)
        attempts = 1
        retries_left = self.retries
        while not outcome.success and self._is_transient(outcome) and retries_left > 0:
            logger.info(
                f"Transient revert ({self.transient_signature}), "
                f"retry {attempts}/{self.retries} in {self.backoff_seconds}s"
            )
            await self.sleep(self.backoff_seconds)
            outcome = await self._simulate_once(route, call, signer_address)
            attempts += 1
            retries_left -= 1
        return outcome, attempts

    async def _simulate_once(
        self,
        route: Route,
        call: TransactionRequest,
        signer_address: str,
    ) -> CallOutcome:
        chain_id = route.input_token.chain_id
        try:
            return await asyncio.wait_for(
                self.simulator.simulate_call(chain_id, call.to, call.data, signer_address, call.value),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            return CallOutcome(success=False, revert_reason="simulation timed out")
        except Exception as e:
            logger.warning(f"Simulation call failed: {type(e).__name__}: {e}")
            return CallOutcome(success=False, revert_reason=f"simulation unavailable: {e}")

    def _is_transient(self, outcome: CallOutcome) -> bool:
        return self.transient_signature in (outcome.revert_reason or "")

    def _is_fee_on_transfer(self, route: Route) -> bool:
        return any(token.key in self.fee_on_transfer_tokens for token in route.path)

    def _remember_fee_on_transfer(self, route: Route) -> None:
        # Native endpoints trade as the wrapped token
        for token in (route.input_token, route.output_token):
            if not token.is_native and token.key not in self.untaxed_tokens:
                logger.info(f"Recording {token} as fee-on-transfer")
                self.fee_on_transfer_tokens.add(token.key)
