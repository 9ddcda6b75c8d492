"""
Host environment：engine 依賴的外部協作者

engine 不直接認識任何 token 或借貸池的實作，只透過這裡的 Protocol 呼叫。
Python 沒有隱含的 msg.sender，所以呼叫者身分一律明確傳入。
"""
import time
from dataclasses import dataclass, field
from typing import Callable, Protocol, Tuple

from sqlalchemy.orm import Session

# 借貸池 withdraw 的「全部提領」哨兵值
MAX_AMOUNT = 2 ** 256 - 1

DEFAULT_REFERRAL_CODE = 155


class PaymentToken(Protocol):
    address: str

    def balance_of(self, holder: str) -> int: ...

    def allowance(self, owner: str, spender: str) -> int: ...

    def approve(self, owner: str, spender: str, amount: int) -> bool: ...

    def transfer(self, sender: str, to: str, amount: int) -> bool: ...

    def transfer_from(self, spender: str, owner: str, to: str, amount: int) -> bool: ...


class LendingPool(Protocol):
    address: str

    def deposit(
        self, asset: str, amount: int, on_behalf_of: str, referral_code: int, *, sender: str
    ) -> None: ...

    def withdraw(self, asset: str, amount: int, to: str, *, sender: str) -> int: ...


class ReserveDataProvider(Protocol):
    address: str

    def get_reserve_tokens_addresses(self, asset: str) -> Tuple[str, str, str]: ...


def wall_clock() -> int:
    return int(time.time())


@dataclass
class GameHost:
    """engine 執行時可用的外部協作者與時鐘"""

    token_at: Callable[[str], PaymentToken]
    lending_pool: LendingPool
    data_provider: ReserveDataProvider
    clock: Callable[[], int] = field(default=wall_clock)
    referral_code: int = DEFAULT_REFERRAL_CODE


def build_simulated_host(db: Session, settings, clock: Callable[[], int] = wall_clock) -> GameHost:
    """
    建立使用模擬協作者的 GameHost

    token 帳本與借貸池都寫進同一個 session，
    所以 @transactional 回滾時外部轉帳也一起回滾。
    """
    from services.lending_pool import SimulatedDataProvider, SimulatedLendingPool
    from services.token_ledger import LedgerToken

    reserves = {settings.token_address: settings.a_token_address}
    return GameHost(
        token_at=lambda address: LedgerToken(db, address),
        lending_pool=SimulatedLendingPool(db, settings.lending_pool_address, reserves),
        data_provider=SimulatedDataProvider(reserves),
        clock=clock,
        referral_code=settings.referral_code,
    )
