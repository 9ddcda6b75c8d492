"""
Token ledger service.

A database-backed ERC20-style token used as the payment token and as the
interest-bearing token of the simulated lending pool. Every write goes
through the caller's session, so it commits or rolls back together with
the game bookkeeping.
"""
from sqlalchemy.orm import Session

from core.host import MAX_AMOUNT
from models import TokenAllowance, TokenBalance


class LedgerToken:
    """One asset's balances and allowances."""

    def __init__(self, db: Session, address: str):
        self.db = db
        self.address = address

    def _balance_row(self, holder: str) -> TokenBalance:
        row = self.db.get(TokenBalance, (self.address, holder))
        if row is None:
            row = TokenBalance(asset=self.address, holder=holder, amount=0)
            self.db.add(row)
            self.db.flush()
        return row

    def _allowance_row(self, owner: str, spender: str) -> TokenAllowance:
        row = self.db.get(TokenAllowance, (self.address, owner, spender))
        if row is None:
            row = TokenAllowance(asset=self.address, owner=owner, spender=spender, amount=0)
            self.db.add(row)
            self.db.flush()
        return row

    def balance_of(self, holder: str) -> int:
        row = self.db.get(TokenBalance, (self.address, holder))
        return row.amount if row else 0

    def allowance(self, owner: str, spender: str) -> int:
        row = self.db.get(TokenAllowance, (self.address, owner, spender))
        return row.amount if row else 0

    def approve(self, owner: str, spender: str, amount: int) -> bool:
        if amount < 0:
            return False
        self._allowance_row(owner, spender).amount = amount
        self.db.flush()
        return True

    def transfer(self, sender: str, to: str, amount: int) -> bool:
        if amount < 0 or self.balance_of(sender) < amount:
            return False
        self._move(sender, to, amount)
        return True

    def transfer_from(self, spender: str, owner: str, to: str, amount: int) -> bool:
        """Move `amount` from `owner` to `to`, spending `spender`'s allowance.

        An allowance of MAX_AMOUNT is treated as unlimited and never decreases.
        """
        if amount < 0 or self.balance_of(owner) < amount:
            return False

        current = self.allowance(owner, spender)
        if current < amount:
            return False
        if current != MAX_AMOUNT:
            self._allowance_row(owner, spender).amount = current - amount

        self._move(owner, to, amount)
        return True

    def mint(self, to: str, amount: int) -> None:
        if amount < 0:
            raise ValueError("Cannot mint a negative amount")
        row = self._balance_row(to)
        row.amount = row.amount + amount
        self.db.flush()

    def burn(self, holder: str, amount: int) -> bool:
        if amount < 0 or self.balance_of(holder) < amount:
            return False
        row = self._balance_row(holder)
        row.amount = row.amount - amount
        self.db.flush()
        return True

    def _move(self, sender: str, to: str, amount: int) -> None:
        source = self._balance_row(sender)
        target = self._balance_row(to)
        source.amount = source.amount - amount
        target.amount = target.amount + amount
        self.db.flush()
