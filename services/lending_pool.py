"""
模擬的外部生息協定（Aave 風格的借貸池）

- deposit：從 sender 拉走底層資產，1:1 鑄造生息 token 給受益人
- withdraw：燒掉 sender 的生息 token，付出同額底層資產；MAX_AMOUNT 代表全部
- accrue_yield：模擬利息，同時增加生息 token 與池子的底層資產

真實部署時換成對應協定的 client，engine 不需要修改
"""
from typing import Dict, Tuple
import logging

from sqlalchemy.orm import Session

from core.exceptions import ExternalCallFailed
from core.host import MAX_AMOUNT
from services.token_ledger import LedgerToken

logger = logging.getLogger(__name__)


class SimulatedLendingPool:

    def __init__(self, db: Session, address: str, reserves: Dict[str, str]):
        self.db = db
        self.address = address
        self.reserves = dict(reserves)

    def _a_token(self, asset: str) -> LedgerToken:
        if asset not in self.reserves:
            raise ExternalCallFailed("lendingPool.reserve", f"unknown asset {asset}")
        return LedgerToken(self.db, self.reserves[asset])

    def deposit(self, asset: str, amount: int, on_behalf_of: str, referral_code: int, *, sender: str) -> None:
        """
        存入底層資產

        參數：
            asset: 底層資產地址
            amount: 金額
            on_behalf_of: 生息 token 的受益人
            referral_code: 推薦碼（只記錄在 log）
            sender: 呼叫者，必須事先 approve 借貸池

        異常：
            ExternalCallFailed: 金額不合法或 transferFrom 失敗
        """
        a_token = self._a_token(asset)
        if amount <= 0:
            raise ExternalCallFailed("lendingPool.deposit", "amount must be positive")

        underlying = LedgerToken(self.db, asset)
        if not underlying.transfer_from(self.address, sender, self.address, amount):
            raise ExternalCallFailed("lendingPool.deposit", "transferFrom failed")

        a_token.mint(on_behalf_of, amount)
        logger.info(
            f"Lending pool received {amount} {asset} from {sender} "
            f"on behalf of {on_behalf_of} (referral {referral_code})"
        )

    def withdraw(self, asset: str, amount: int, to: str, *, sender: str) -> int:
        """
        提領底層資產

        參數：
            asset: 底層資產地址
            amount: 金額，MAX_AMOUNT 代表 sender 的全部餘額
            to: 收款人
            sender: 生息 token 的持有者

        返回：
            實際提領的金額

        異常：
            ExternalCallFailed: 餘額不足或池子流動性不足
        """
        a_token = self._a_token(asset)
        balance = a_token.balance_of(sender)
        if amount == MAX_AMOUNT:
            amount = balance

        if amount > balance:
            raise ExternalCallFailed(
                "lendingPool.withdraw",
                f"amount {amount} exceeds balance {balance} of {sender}"
            )

        a_token.burn(sender, amount)
        if not LedgerToken(self.db, asset).transfer(self.address, to, amount):
            raise ExternalCallFailed("lendingPool.withdraw", "insufficient liquidity")

        logger.info(f"Lending pool paid {amount} {asset} from {sender} to {to}")
        return amount

    def accrue_yield(self, holder: str, amount: int, asset: str = None) -> None:
        """模擬利息：holder 的生息 token 與池子的底層資產同時增加"""
        if asset is None:
            asset = next(iter(self.reserves))
        self._a_token(asset).mint(holder, amount)
        LedgerToken(self.db, asset).mint(self.address, amount)
        logger.info(f"Accrued {amount} {asset} yield to {holder}")


class SimulatedDataProvider:
    """解析資產對應的生息 token 地址"""

    address = "aave-protocol-data-provider"

    def __init__(self, reserves: Dict[str, str]):
        self.reserves = dict(reserves)

    def get_reserve_tokens_addresses(self, asset: str) -> Tuple[str, str, str]:
        if asset not in self.reserves:
            raise ExternalCallFailed("dataProvider.getReserveTokensAddresses", f"unknown asset {asset}")
        a_token = self.reserves[asset]
        return a_token, f"stableDebt{asset}", f"variableDebt{asset}"
