"""
Typed results for ledger operations.

OK carries a BalanceUpdateResult. ALREADY_APPLIED and NOT_FOUND are no-ops that
left the ledger untouched; callers branch on the status, never on messages.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import List, Optional


class OutcomeStatus(str, Enum):
    OK = 'OK'
    ALREADY_APPLIED = 'ALREADY_APPLIED'
    NOT_FOUND = 'NOT_FOUND'


@dataclass(frozen=True)
class BalanceUpdateResult:
    budget_id: int
    previous_balance: Decimal
    new_balance: Decimal
    transaction_id: int

    def as_dict(self):
        return {
            'budgetId': self.budget_id,
            'previousBalance': float(self.previous_balance),
            'newBalance': float(self.new_balance),
            'transactionId': self.transaction_id,
        }


@dataclass(frozen=True)
class LedgerOutcome:
    status: OutcomeStatus
    result: Optional[BalanceUpdateResult] = None
    reason: str = ''

    @classmethod
    def ok(cls, result):
        return cls(OutcomeStatus.OK, result=result)

    @classmethod
    def already_applied(cls, reason):
        return cls(OutcomeStatus.ALREADY_APPLIED, reason=reason)

    @classmethod
    def not_found(cls, reason):
        return cls(OutcomeStatus.NOT_FOUND, reason=reason)

    @property
    def applied(self):
        return self.status is OutcomeStatus.OK

    def __bool__(self):
        return self.applied


@dataclass(frozen=True)
class ChainBreak:
    """
    kind='link': transaction_id's balance_before differs from the previous row's balance_after.
    kind='arithmetic': balance_after != balance_before +/- amount for transaction_id.
    """
    kind: str
    transaction_id: int
    previous_transaction_id: Optional[int]
    expected: Decimal
    found: Decimal


@dataclass
class ChainReport:
    budget_id: Optional[int]
    transaction_count: int = 0
    current_balance: Decimal = Decimal('0.00')
    last_balance_after: Optional[Decimal] = None
    breaks: List[ChainBreak] = field(default_factory=list)

    @property
    def balance_matches(self):
        if self.last_balance_after is None:
            return self.current_balance == Decimal('0.00')
        return self.last_balance_after == self.current_balance

    @property
    def is_valid(self):
        return not self.breaks and self.balance_matches
