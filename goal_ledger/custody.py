"""
custody.py - In-Memory Funds Channel

CustodyBook is the default FundsTransfer implementation. It is a small
double-entry wallet book: every transfer is a Move from one wallet to
another, so the total held across all wallets (including the issuer) is
always zero.

Key responsibilities:
    - Takes custody of deposits (payer -> CUSTODY_WALLET)
    - Releases withdrawals (CUSTODY_WALLET -> payee)
    - Lets a payee refuse funds, or run a callback on receipt
    - Records every applied move in move_log
"""

from __future__ import annotations
from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Set
import threading

from .core import (
    CUSTODY_WALLET, ISSUER_WALLET, ZERO,
    BalanceMap, GoalLedgerError,
    to_amount,
)


# ============================================================================
# EXCEPTIONS
# ============================================================================

class CustodyError(GoalLedgerError):
    """Base exception for funds channel failures."""
    pass


class InsufficientFunds(CustodyError):
    """Raised when a move would take a wallet below zero."""
    pass


class WalletNotRegistered(CustodyError):
    """Raised when a move references a wallet the book does not know."""
    pass


class TransferRefused(CustodyError):
    """Raised when the receiving wallet refuses incoming funds."""
    pass


# ============================================================================
# MOVE
# ============================================================================

@dataclass(frozen=True, slots=True)
class Move:
    """
    A single transfer of value between two wallets.

    Attributes:
        quantity: The amount transferred (positive).
        source: Wallet debited.
        dest: Wallet credited.
        goal_id: Goal the transfer was made for (None for funding).
        memo: Short description ("collect", "release", "fund").
    """
    quantity: Decimal
    source: str
    dest: str
    goal_id: Optional[int] = None
    memo: str = ""

    def __post_init__(self):
        if not self.source or not self.source.strip():
            raise ValueError("Move source cannot be empty")
        if not self.dest or not self.dest.strip():
            raise ValueError("Move dest cannot be empty")
        if not isinstance(self.quantity, Decimal):
            raise ValueError(f"Move quantity must be Decimal, got {type(self.quantity)}")
        if self.quantity <= ZERO:
            raise ValueError(f"Move quantity must be positive, got {self.quantity}")
        if self.source == self.dest:
            raise ValueError("Source and dest must be different")

    def __repr__(self) -> str:
        return f"Move({self.quantity}: {self.source}→{self.dest})"


# Receive hook type: (goal_id, amount) -> None
ReceiveHook = Callable[[int, Decimal], None]


# ============================================================================
# CUSTODY BOOK
# ============================================================================

class CustodyBook:
    """
    Wallet book backing deposits and withdrawals.

    Wallets are registered implicitly on first funding, or explicitly with
    register_wallet(). The issuer and custody wallets always exist. Only the
    issuer may hold a negative balance.

    Thread Safety:
        Each move is applied under one book-wide lock, so concurrent collects
        and releases for different goals never lose an update. Receive hooks
        run outside the lock.

    Example:
        book = CustodyBook()
        book.fund("alice", Decimal("10"))
        book.collect(0, "alice", Decimal("4"))    # alice -> custody
        book.release(0, "bob", Decimal("4"))      # custody -> bob
    """

    def __init__(self, auto_register: bool = True):
        """
        Args:
            auto_register: Register unknown wallets on first credit (default: True).
                           When False, crediting an unknown wallet raises
                           WalletNotRegistered.
        """
        self.balances: Dict[str, Decimal] = defaultdict(lambda: ZERO)
        self.registered_wallets: Set[str] = {ISSUER_WALLET, CUSTODY_WALLET}
        self.move_log: List[Move] = []
        self.auto_register = auto_register
        self._refusing: Set[str] = set()
        self._receive_hooks: Dict[str, ReceiveHook] = {}
        # Credits whose receive hook is still running; not spendable until it returns.
        self._in_flight: Dict[str, Decimal] = defaultdict(lambda: ZERO)
        self._lock = threading.RLock()

    # ========================================================================
    # WALLETS
    # ========================================================================

    def register_wallet(self, wallet_id: str) -> str:
        """
        Register a wallet.

        Raises:
            ValueError: If wallet is already registered
        """
        if wallet_id in self.registered_wallets:
            raise ValueError(f"Wallet {wallet_id} already registered")
        self.registered_wallets.add(wallet_id)
        return wallet_id

    def is_registered(self, wallet_id: str) -> bool:
        return wallet_id in self.registered_wallets

    def get_balance(self, wallet_id: str) -> Decimal:
        """Balance of a wallet (Decimal("0") for unknown wallets)."""
        return self.balances.get(wallet_id, ZERO)

    def get_balances(self) -> BalanceMap:
        return {w: b for w, b in self.balances.items() if b != ZERO}

    @property
    def custody_balance(self) -> Decimal:
        """Total value currently held on behalf of goals."""
        return self.get_balance(CUSTODY_WALLET)

    def fund(self, wallet_id: str, amount: Any) -> Decimal:
        """
        Issue value into a wallet from the issuer.

        Returns:
            The wallet's new balance
        """
        self._apply(Move(to_amount(amount), ISSUER_WALLET, wallet_id, memo="fund"))
        return self.get_balance(wallet_id)

    def refuse(self, wallet_id: str, refusing: bool = True) -> None:
        """Make a wallet refuse (or accept again) incoming releases."""
        if refusing:
            self._refusing.add(wallet_id)
        else:
            self._refusing.discard(wallet_id)

    def on_receive(self, wallet_id: str, hook: Optional[ReceiveHook]) -> None:
        """
        Install a callback run after a release credits wallet_id.

        The hook runs with the funds already credited but not yet spendable,
        so anything it pays out comes from the wallet's other funds. If it
        raises, the credit is undone and the exception propagates to the
        releasing caller.
        Pass None to remove the hook.
        """
        if hook is None:
            self._receive_hooks.pop(wallet_id, None)
        else:
            self._receive_hooks[wallet_id] = hook

    # ========================================================================
    # FundsTransfer PROTOCOL
    # ========================================================================

    def collect(self, goal_id: int, payer: str, amount: Decimal) -> None:
        """
        Move amount from payer into custody.

        Raises:
            WalletNotRegistered: If payer is unknown
            InsufficientFunds: If payer holds less than amount
        """
        self._apply(Move(amount, payer, CUSTODY_WALLET, goal_id, "collect"))

    def release(self, goal_id: int, payee: str, amount: Decimal) -> None:
        """
        Move amount from custody to payee, then run payee's receive hook.

        Raises:
            TransferRefused: If payee refuses funds
            InsufficientFunds: If custody holds less than amount
            Exception: Anything raised by the receive hook (credit undone)
        """
        if payee in self._refusing:
            raise TransferRefused(f"Wallet {payee} refused {amount}")
        move = Move(amount, CUSTODY_WALLET, payee, goal_id, "release")
        with self._lock:
            self._apply(move)
            hook = self._receive_hooks.get(payee)
            if hook is None:
                return
            self._in_flight[payee] += amount
        try:
            hook(goal_id, amount)
        except BaseException:
            with self._lock:
                self._settle(payee, amount)
                self._reverse(move)
            raise
        self._settle(payee, amount)

    # ========================================================================
    # CONSERVATION
    # ========================================================================

    def total_supply(self) -> Decimal:
        """Sum of all wallet balances. Always zero: the issuer holds the negative side."""
        return sum((self.balances[w] for w in sorted(self.balances)), ZERO)

    def verify_conservation(self, expected_custody: Optional[Decimal] = None) -> Dict[str, Any]:
        """
        Check double-entry conservation and, optionally, the custody balance.

        Returns:
            Dict with keys:
            - 'valid': bool - True if all checks hold
            - 'total_supply': Decimal - sum of all balances
            - 'custody': Decimal - current custody balance
            - 'discrepancies': List[str] - description of each failed check
        """
        discrepancies = []
        total = self.total_supply()
        if total != ZERO:
            discrepancies.append(f"total supply is {total}, expected 0")
        custody = self.custody_balance
        if expected_custody is not None and custody != expected_custody:
            discrepancies.append(f"custody holds {custody}, expected {expected_custody}")
        for wallet, balance in self.balances.items():
            if wallet != ISSUER_WALLET and balance < ZERO:
                discrepancies.append(f"{wallet} is negative: {balance}")
        return {
            'valid': not discrepancies,
            'total_supply': total,
            'custody': custody,
            'discrepancies': discrepancies,
        }

    # ========================================================================
    # INTERNALS
    # ========================================================================

    def _apply(self, move: Move) -> None:
        """Validate and apply a move. Nothing changes if validation fails."""
        with self._lock:
            self._apply_locked(move)

    def _apply_locked(self, move: Move) -> None:
        if move.source not in self.registered_wallets:
            raise WalletNotRegistered(f"Wallet {move.source} not registered")
        if move.dest not in self.registered_wallets:
            if not self.auto_register:
                raise WalletNotRegistered(f"Wallet {move.dest} not registered")
            self.registered_wallets.add(move.dest)
        if move.source != ISSUER_WALLET:
            available = self.balances[move.source] - self._in_flight.get(move.source, ZERO)
            if available < move.quantity:
                raise InsufficientFunds(
                    f"{move.source}: {available} < {move.quantity}"
                )
        self.balances[move.source] -= move.quantity
        self.balances[move.dest] += move.quantity
        self.move_log.append(move)

    def _settle(self, wallet_id: str, amount: Decimal) -> None:
        with self._lock:
            self._in_flight[wallet_id] -= amount
            if self._in_flight[wallet_id] == ZERO:
                del self._in_flight[wallet_id]

    def _reverse(self, move: Move) -> None:
        """Take back an applied move. The destination must still hold the quantity."""
        with self._lock:
            held = self.balances[move.dest]
            if move.dest != ISSUER_WALLET and held < move.quantity:
                raise InsufficientFunds(
                    f"Cannot reverse {move!r}: {move.dest} holds {held}"
                )
            self.balances[move.source] += move.quantity
            self.balances[move.dest] -= move.quantity
            for i in range(len(self.move_log) - 1, -1, -1):
                if self.move_log[i] is move:
                    del self.move_log[i]
                    break
