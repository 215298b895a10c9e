"""OptimisticOracleCoordinator: State machine for optimistic oracle requests.

Each market has at most one :class:`OracleRequest`, keyed by
``(market_id, identifier, resolution_time)``::

    (none)    -- request_market_resolution -->  REQUESTED
    REQUESTED -- propose_market_outcome    -->  PROPOSED
    PROPOSED  -- dispute_market_outcome    -->  DISPUTED   (before expiration)
    PROPOSED  -- settle_market             -->  SETTLED    (after expiration)
    DISPUTED  -- (dispute window elapsed)  -->  ESCALATED  (applied at read time)
    ESCALATED -- settle_market(arbitration_price) --> SETTLED

Every transition is mirrored by one ledger call. The ledger call runs without
any lock held, and the new state is committed only after a successful receipt.
While a call is in flight, other transitions on the same market wait for it to
finish and then re-check the state they act on.
"""

from __future__ import annotations

import asyncio
import dataclasses
import json
import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, TypedDict

from web3 import Web3

from .errors import (
    ExternalServiceError,
    ExternalServiceTimeoutError,
    InvalidRequestError,
    InvalidStateError,
    RequestNotFoundError,
)
from .ledger import LedgerClient, LedgerError, LedgerReceipt
from .ledger.uma import DEFAULT_ORACLE_ADDRESS

logger = logging.getLogger(__name__)

# USDC (PoS) on Polygon
DEFAULT_CURRENCY = "0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174"
DEFAULT_REWARD = 10_000_000
DEFAULT_BOND = 10_000_000
DEFAULT_LIVENESS_SECONDS = 2 * 3600
DISPUTE_WINDOW_SECONDS = 48 * 3600

YES_PRICE = 10**18
NO_PRICE = 0

OUTCOME_PRICES = {"YES": YES_PRICE, "NO": NO_PRICE}

FEATURES = [
    "Decentralized dispute resolution",
    "Economic guarantees via bonding",
    "Flexible question formats",
    "Escalation to DVM if disputed",
]


class RequestState(str, Enum):
    REQUESTED = "REQUESTED"
    PROPOSED = "PROPOSED"
    DISPUTED = "DISPUTED"
    ESCALATED = "ESCALATED"
    SETTLED = "SETTLED"


class OracleInfo(TypedDict):
    """Static description of the optimistic oracle deployment."""

    oracle_address: str
    network: str
    version: str
    features: list[str]


@dataclass(frozen=True)
class OracleRequest:
    """Snapshot of an optimistic oracle request.

    Snapshots are immutable; every transition produces a new one.

    :ivar market_id: Market being resolved.
    :ivar question: Question text the identifier is derived from.
    :ivar identifier: 0x-prefixed keccak256 of the question.
    :ivar ancillary_data: Encoded question metadata sent with the request.
    :ivar currency: Bond and reward currency address.
    :ivar reward: Reward in currency base units.
    :ivar resolution_time: Request timestamp.
    :ivar state: Current request state.
    :ivar transactions: Ledger transaction handles, in transition order.
    """

    market_id: str
    question: str
    identifier: str
    ancillary_data: bytes
    currency: str
    reward: int
    resolution_time: int
    state: RequestState
    requested_at: int
    dispute_window_seconds: int = DISPUTE_WINDOW_SECONDS
    proposer_bond: int | None = None
    proposed_outcome: str | None = None
    proposed_price: int | None = None
    evidence: str | None = None
    proposed_at: int | None = None
    expiration_time: int | None = None
    disputer_bond: int | None = None
    dispute_reason: str | None = None
    disputed_at: int | None = None
    escalated_at: int | None = None
    resolved_price: int | None = None
    settled_at: int | None = None
    transactions: tuple[str, ...] = ()

    @property
    def key(self) -> tuple[str, str, int]:
        return (self.market_id, self.identifier, self.resolution_time)

    @property
    def identifier_bytes(self) -> bytes:
        return bytes.fromhex(self.identifier[2:])

    @property
    def dispute_deadline(self) -> int | None:
        """Time at which a dispute escalates to external arbitration."""
        if self.disputed_at is None:
            return None
        return self.disputed_at + self.dispute_window_seconds

    @property
    def final_outcome(self) -> str | None:
        """YES/NO for canonical settled prices, INVALID otherwise."""
        if self.resolved_price is None:
            return None
        if self.resolved_price == YES_PRICE:
            return "YES"
        if self.resolved_price == NO_PRICE:
            return "NO"
        return "INVALID"


def question_identifier(question: str) -> str:
    """Derive the deterministic request identifier for a question."""
    return Web3.to_hex(Web3.keccak(text=question))


def encode_ancillary_data(market_id: str, question: str) -> bytes:
    payload = {"marketId": market_id, "question": question, "type": "prediction-market"}
    return json.dumps(payload, separators=(",", ":")).encode("utf-8")


def normalize_market_id(market_id: str) -> str:
    return str(market_id).strip()


def normalize_identifier(identifier: str) -> str:
    value = str(identifier).strip().lower()
    if not value.startswith("0x"):
        value = "0x" + value
    return value


class OptimisticOracleCoordinator:
    """Owns optimistic oracle requests and drives their transitions.

    :ivar ledger: Ledger client executing request/propose/dispute/settle.
    :ivar clock: Callable returning the current Unix time.
    :ivar timeout: Timeout for each ledger call in seconds.
    """

    DEFAULT_TIMEOUT = 180.0

    def __init__(
        self,
        ledger: LedgerClient,
        clock: Callable[[], float] = time.time,
        timeout: float = DEFAULT_TIMEOUT,
        oracle_address: str = DEFAULT_ORACLE_ADDRESS,
        currency: str = DEFAULT_CURRENCY,
        reward: int = DEFAULT_REWARD,
        bond: int = DEFAULT_BOND,
        liveness_seconds: int = DEFAULT_LIVENESS_SECONDS,
        dispute_window_seconds: int = DISPUTE_WINDOW_SECONDS,
        network: str = "Polygon",
    ) -> None:
        """Initialize the coordinator.

        :param ledger: Ledger client.
        :param clock: Current time source (default: time.time).
        :param timeout: Ledger call timeout in seconds.
        :param oracle_address: Oracle contract address reported by get_optimistic_oracle_info.
        :param currency: Bond and reward currency address.
        :param reward: Reward per request in currency base units.
        :param bond: Proposer and disputer bond in currency base units.
        :param liveness_seconds: Challenge window after a proposal.
        :param dispute_window_seconds: Time after a dispute before escalation.
        :param network: Network name reported by get_optimistic_oracle_info.
        """
        if reward < 0 or bond < 0:
            raise ValueError("reward and bond must be non-negative")
        if liveness_seconds <= 0 or dispute_window_seconds <= 0:
            raise ValueError("liveness and dispute window must be positive")

        self.ledger = ledger
        self.clock = clock
        self.timeout = timeout
        self.oracle_address = oracle_address
        self.currency = currency
        self.reward = reward
        self.bond = bond
        self.liveness_seconds = liveness_seconds
        self.dispute_window_seconds = dispute_window_seconds
        self.network = network

        self._lock = threading.Lock()
        self._requests: dict[tuple[str, str, int], OracleRequest] = {}
        self._by_market: dict[str, tuple[str, str, int]] = {}
        # market_id -> event set when its in-flight transition finishes
        self._in_flight: dict[str, asyncio.Event] = {}

    # -- internal helpers -------------------------------------------------

    def _now(self) -> int:
        return int(self.clock())

    def _refresh(self, request: OracleRequest, now: int) -> OracleRequest:
        """Apply time-driven escalation. Caller must hold the lock."""
        deadline = request.dispute_deadline
        if request.state is RequestState.DISPUTED and deadline is not None and now >= deadline:
            request = dataclasses.replace(
                request, state=RequestState.ESCALATED, escalated_at=deadline
            )
            self._requests[request.key] = request
            logger.info(f"Market {request.market_id}: dispute window elapsed, escalated")
        return request

    async def _claim(
        self,
        market_id: str,
        action: str,
        check: Callable[[OracleRequest, int], None],
    ) -> tuple[OracleRequest, int]:
        """Validate a transition and mark the market as in flight.

        If another transition on the market is in flight, waits for it to
        finish and validates against the state it left behind.

        :returns: Current request snapshot and the time the check ran at.
        :raises InvalidStateError: If the market is unknown or the check fails.
        """
        while True:
            with self._lock:
                busy = self._in_flight.get(market_id)
                if busy is None:
                    key = self._by_market.get(market_id)
                    if key is None:
                        logger.warning(f"Market {market_id}: {action} rejected, no oracle request")
                        raise InvalidStateError(
                            f"No oracle request exists for market {market_id}",
                            {"marketId": market_id},
                        )
                    now = self._now()
                    request = self._refresh(self._requests[key], now)
                    try:
                        check(request, now)
                    except InvalidStateError as e:
                        logger.warning(f"Market {market_id}: {action} rejected: {e.message}")
                        raise
                    self._in_flight[market_id] = asyncio.Event()
                    return request, now
            logger.debug(f"Market {market_id}: {action} waiting for in-flight transition")
            await busy.wait()

    def _release(self, market_id: str) -> None:
        with self._lock:
            done = self._in_flight.pop(market_id, None)
        if done is not None:
            done.set()

    def _commit(self, request: OracleRequest) -> None:
        with self._lock:
            self._requests[request.key] = request
            self._by_market[request.market_id] = request.key

    async def _submit(self, action: str, market_id: str, call: Awaitable[LedgerReceipt]) -> LedgerReceipt:
        """Await a ledger call with the coordinator timeout.

        :raises ExternalServiceTimeoutError: If the call exceeds the timeout.
        :raises ExternalServiceError: If the call fails or the transaction reverts.
        """
        details = {"marketId": market_id, "action": action}
        try:
            receipt = await asyncio.wait_for(call, timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Market {market_id}: ledger {action} timed out after {self.timeout}s")
            raise ExternalServiceTimeoutError(
                f"Ledger {action} timed out after {self.timeout}s", details
            ) from None
        except LedgerError as e:
            logger.warning(f"Market {market_id}: ledger {action} failed: {e}")
            raise ExternalServiceError(f"Ledger {action} failed: {e}", details) from e

        if not receipt.success:
            logger.warning(f"Market {market_id}: ledger {action} tx {receipt.tx_hash} reverted")
            raise ExternalServiceError(
                f"Ledger {action} transaction {receipt.tx_hash} failed",
                {**details, "txHash": receipt.tx_hash},
            )
        return receipt

    # -- transitions --------------------------------------------------------

    async def request_market_resolution(
        self, market_id: str, question: str, resolution_time: int
    ) -> OracleRequest:
        """Open an optimistic oracle request for a market.

        Re-requesting the same market, question and time returns the existing
        request without a second ledger call.

        :param market_id: Market identifier.
        :param question: Question text; its keccak256 hash is the identifier.
        :param resolution_time: Positive Unix timestamp of the request.
        :returns: Request snapshot in REQUESTED state (or its current state if it exists).
        :raises InvalidRequestError: On empty market id/question or a bad timestamp.
        :raises InvalidStateError: If the market already has a different request.
        :raises ExternalServiceError: If the ledger call fails or times out.
        """
        if not isinstance(market_id, str) or not market_id.strip():
            raise InvalidRequestError("marketId is required", {"field": "marketId"})
        if not isinstance(question, str) or not question.strip():
            raise InvalidRequestError("question is required", {"field": "question"})
        if isinstance(resolution_time, bool) or not isinstance(resolution_time, int) or resolution_time <= 0:
            raise InvalidRequestError(
                "resolutionTime must be a positive integer Unix timestamp",
                {"field": "resolutionTime", "value": resolution_time},
            )

        market_id = normalize_market_id(market_id)
        identifier = question_identifier(question)
        key = (market_id, identifier, resolution_time)

        while True:
            with self._lock:
                busy = self._in_flight.get(market_id)
                if busy is None:
                    existing_key = self._by_market.get(market_id)
                    if existing_key == key:
                        logger.info(f"Market {market_id}: request already exists, returning it")
                        return self._refresh(self._requests[key], self._now())
                    if existing_key is not None:
                        raise InvalidStateError(
                            f"Market {market_id} already has an oracle request",
                            {
                                "marketId": market_id,
                                "identifier": existing_key[1],
                                "timestamp": existing_key[2],
                            },
                        )
                    self._in_flight[market_id] = asyncio.Event()
                    break
            logger.debug(f"Market {market_id}: request waiting for in-flight transition")
            await busy.wait()

        try:
            ancillary_data = encode_ancillary_data(market_id, question)
            receipt = await self._submit(
                "request",
                market_id,
                self.ledger.request_price(
                    bytes.fromhex(identifier[2:]),
                    resolution_time,
                    ancillary_data,
                    self.currency,
                    self.reward,
                ),
            )
            request = OracleRequest(
                market_id=market_id,
                question=question,
                identifier=identifier,
                ancillary_data=ancillary_data,
                currency=self.currency,
                reward=self.reward,
                resolution_time=resolution_time,
                state=RequestState.REQUESTED,
                requested_at=self._now(),
                dispute_window_seconds=self.dispute_window_seconds,
                transactions=(receipt.tx_hash,),
            )
            self._commit(request)
        finally:
            self._release(market_id)

        logger.info(f"Market {market_id}: oracle request {identifier} opened (tx {receipt.tx_hash})")
        return request

    async def propose_market_outcome(
        self, market_id: str, outcome: str, evidence: str | None = None
    ) -> OracleRequest:
        """Propose YES or NO for a requested market.

        :param market_id: Market identifier.
        :param outcome: "yes" or "no" (case-insensitive).
        :param evidence: Optional supporting evidence.
        :returns: Request snapshot in PROPOSED state.
        :raises InvalidRequestError: If the outcome is not yes/no.
        :raises InvalidStateError: If the request is missing or not REQUESTED.
        :raises ExternalServiceError: If the ledger call fails or times out.
        """
        market_id = normalize_market_id(market_id)
        label = str(outcome).strip().upper() if outcome is not None else ""
        if label not in OUTCOME_PRICES:
            raise InvalidRequestError(
                f"Invalid outcome {outcome!r}, expected 'yes' or 'no'", {"outcome": outcome}
            )
        proposed_price = OUTCOME_PRICES[label]

        def check(request: OracleRequest, now: int) -> None:
            if request.state is not RequestState.REQUESTED:
                raise InvalidStateError(
                    f"Cannot propose for a request in {request.state.value} state",
                    {"marketId": market_id, "state": request.state.value},
                )

        request, now = await self._claim(market_id, "propose", check)
        try:
            receipt = await self._submit(
                "propose",
                market_id,
                self.ledger.propose_price(
                    request.identifier_bytes,
                    request.resolution_time,
                    request.ancillary_data,
                    proposed_price,
                ),
            )
            request = dataclasses.replace(
                request,
                state=RequestState.PROPOSED,
                proposer_bond=self.bond,
                proposed_outcome=label,
                proposed_price=proposed_price,
                evidence=evidence,
                proposed_at=now,
                expiration_time=now + self.liveness_seconds,
                transactions=request.transactions + (receipt.tx_hash,),
            )
            self._commit(request)
        finally:
            self._release(market_id)

        logger.info(
            f"Market {market_id}: proposed {label}, challenge window ends at {request.expiration_time}"
        )
        return request

    async def dispute_market_outcome(self, market_id: str, reason: str) -> OracleRequest:
        """Dispute the current proposal before its challenge window ends.

        :param market_id: Market identifier.
        :param reason: Dispute reason.
        :returns: Request snapshot in DISPUTED state with ``dispute_deadline`` set.
        :raises InvalidRequestError: If no reason is given.
        :raises InvalidStateError: If the request is missing, not PROPOSED or past expiration.
        :raises ExternalServiceError: If the ledger call fails or times out.
        """
        market_id = normalize_market_id(market_id)
        if not isinstance(reason, str) or not reason.strip():
            raise InvalidRequestError("reason is required", {"field": "reason"})

        def check(request: OracleRequest, now: int) -> None:
            if request.state is not RequestState.PROPOSED:
                raise InvalidStateError(
                    f"Cannot dispute a request in {request.state.value} state",
                    {"marketId": market_id, "state": request.state.value},
                )
            if request.expiration_time is not None and now >= request.expiration_time:
                raise InvalidStateError(
                    "Challenge window has closed",
                    {"marketId": market_id, "expirationTime": request.expiration_time},
                )

        request, now = await self._claim(market_id, "dispute", check)
        try:
            receipt = await self._submit(
                "dispute",
                market_id,
                self.ledger.dispute_price(
                    request.identifier_bytes, request.resolution_time, request.ancillary_data
                ),
            )
            request = dataclasses.replace(
                request,
                state=RequestState.DISPUTED,
                disputer_bond=self.bond,
                dispute_reason=reason,
                disputed_at=now,
                transactions=request.transactions + (receipt.tx_hash,),
            )
            self._commit(request)
        finally:
            self._release(market_id)

        logger.info(f"Market {market_id}: disputed, escalates at {request.dispute_deadline}")
        return request

    async def settle_market(self, market_id: str, arbitration_price: int | None = None) -> OracleRequest:
        """Settle a request and fix its resolved price.

        An undisputed proposal settles to the proposed price once the challenge
        window has elapsed. An escalated dispute settles to ``arbitration_price``
        delivered by the external arbitration mechanism.

        :param market_id: Market identifier.
        :param arbitration_price: Arbitration result, required for ESCALATED requests.
        :returns: Request snapshot in SETTLED state.
        :raises InvalidRequestError: If ``arbitration_price`` is malformed or not applicable.
        :raises InvalidStateError: If the request cannot be settled yet or is already settled.
        :raises ExternalServiceError: If the ledger call fails or times out.
        """
        market_id = normalize_market_id(market_id)
        if arbitration_price is not None and (
            isinstance(arbitration_price, bool)
            or not isinstance(arbitration_price, int)
            or arbitration_price < 0
        ):
            raise InvalidRequestError(
                "arbitrationPrice must be a non-negative integer",
                {"field": "arbitrationPrice", "value": arbitration_price},
            )

        def check(request: OracleRequest, now: int) -> None:
            details: dict[str, Any] = {"marketId": market_id, "state": request.state.value}
            if request.state is RequestState.PROPOSED:
                if arbitration_price is not None:
                    raise InvalidStateError(
                        "Arbitration price only applies to escalated requests", details
                    )
                if request.expiration_time is not None and now < request.expiration_time:
                    raise InvalidStateError(
                        "Challenge window has not elapsed",
                        {**details, "expirationTime": request.expiration_time},
                    )
            elif request.state is RequestState.ESCALATED:
                if arbitration_price is None:
                    raise InvalidStateError("Escalated request needs an arbitration price", details)
            elif request.state is RequestState.DISPUTED:
                raise InvalidStateError(
                    "Disputed request has not escalated yet",
                    {**details, "disputeDeadline": request.dispute_deadline},
                )
            else:
                raise InvalidStateError(
                    f"Cannot settle a request in {request.state.value} state", details
                )

        request, now = await self._claim(market_id, "settle", check)
        resolved_price = (
            request.proposed_price if request.state is RequestState.PROPOSED else arbitration_price
        )
        try:
            receipt = await self._submit(
                "settle",
                market_id,
                self.ledger.settle(
                    request.identifier_bytes, request.resolution_time, request.ancillary_data
                ),
            )
            request = dataclasses.replace(
                request,
                state=RequestState.SETTLED,
                resolved_price=resolved_price,
                settled_at=now,
                transactions=request.transactions + (receipt.tx_hash,),
            )
            self._commit(request)
        finally:
            self._release(market_id)

        logger.info(f"Market {market_id}: settled {request.final_outcome} ({resolved_price})")
        return request

    # -- reads --------------------------------------------------------------

    def get_market_request(self, market_id: str, identifier: str, timestamp: int) -> OracleRequest:
        """Look up a request by its full key.

        :param market_id: Market identifier.
        :param identifier: Question identifier, with or without 0x, any case.
        :param timestamp: Request resolution time.
        :returns: Consistent request snapshot.
        :raises RequestNotFoundError: If no request matches the key.
        """
        key = (normalize_market_id(market_id), normalize_identifier(identifier), timestamp)
        with self._lock:
            request = self._requests.get(key)
            if request is None:
                raise RequestNotFoundError(
                    f"No oracle request for market {key[0]}",
                    {"marketId": key[0], "identifier": key[1], "timestamp": timestamp},
                )
            return self._refresh(request, self._now())

    def get_request(self, market_id: str) -> OracleRequest:
        """Look up the request of a market by market id alone.

        :raises RequestNotFoundError: If the market has no request.
        """
        market_id = normalize_market_id(market_id)
        with self._lock:
            key = self._by_market.get(market_id)
            if key is None:
                raise RequestNotFoundError(
                    f"No oracle request for market {market_id}", {"marketId": market_id}
                )
            return self._refresh(self._requests[key], self._now())

    def get_optimistic_oracle_info(self) -> OracleInfo:
        return OracleInfo(
            oracle_address=self.oracle_address,
            network=self.network,
            version="OptimisticOracle V2",
            features=list(FEATURES),
        )
