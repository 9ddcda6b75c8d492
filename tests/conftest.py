import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import models  # noqa: F401
from database import Base, Settings, create_db_engine
from core.exceptions import SavingsGameException
from core.game_manager import GameManager
from core.host import GameHost, MAX_AMOUNT, build_simulated_host
from services.token_ledger import LedgerToken

SEGMENT_LENGTH = 100
SEGMENT_PAYMENT = 10
START_TIME = 1_700_000_000


class FakeClock:
    """可手動推進的時鐘（秒）"""

    def __init__(self, now=START_TIME):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds

    def advance_segments(self, count=1):
        self.now += count * SEGMENT_LENGTH


class HostileToken:
    """
    包住真正的 token，在第一次 transfer / transfer_from 時先回呼 engine

    回呼拋出的遊戲異常會被收集起來，外層操作照常繼續。
    fail_transfers=True 時 transfer / transfer_from 一律回傳 False
    """

    def __init__(self, inner, on_call=None, fail_transfers=False):
        self.inner = inner
        self.address = inner.address
        self.on_call = on_call
        self.fail_transfers = fail_transfers
        self.reentry_errors = []
        self.reentry_results = []

    def __getattr__(self, name):
        return getattr(self.inner, name)

    def _reenter(self):
        if self.on_call is None:
            return
        callback, self.on_call = self.on_call, None
        try:
            self.reentry_results.append(callback())
        except SavingsGameException as e:
            self.reentry_errors.append(e)

    def transfer(self, sender, to, amount):
        self._reenter()
        if self.fail_transfers:
            return False
        return self.inner.transfer(sender, to, amount)

    def transfer_from(self, spender, owner, to, amount):
        self._reenter()
        if self.fail_transfers:
            return False
        return self.inner.transfer_from(spender, owner, to, amount)


class HostilePool:
    """包住借貸池，在第一次 deposit / withdraw 時先回呼 engine"""

    def __init__(self, inner, on_call=None):
        self.inner = inner
        self.address = inner.address
        self.on_call = on_call
        self.reentry_errors = []

    def __getattr__(self, name):
        return getattr(self.inner, name)

    def _reenter(self):
        if self.on_call is None:
            return
        callback, self.on_call = self.on_call, None
        try:
            callback()
        except SavingsGameException as e:
            self.reentry_errors.append(e)

    def deposit(self, asset, amount, on_behalf_of, referral_code, *, sender):
        self._reenter()
        return self.inner.deposit(asset, amount, on_behalf_of, referral_code, sender=sender)

    def withdraw(self, asset, amount, to, *, sender):
        self._reenter()
        return self.inner.withdraw(asset, amount, to, sender=sender)


@pytest.fixture
def engine():
    engine = create_db_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    yield session
    session.close()


@pytest.fixture
def settings():
    return Settings(database_url="sqlite://")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def host(db, settings, clock):
    return build_simulated_host(db, settings, clock=clock)


@pytest.fixture
def token(db, settings):
    return LedgerToken(db, settings.token_address)


@pytest.fixture
def a_token(db, settings):
    return LedgerToken(db, settings.a_token_address)


@pytest.fixture
def make_game(db, host, settings):
    def _make_game(segment_count=6, segment_payment=SEGMENT_PAYMENT, early_withdrawal_fee=10, owner="owner"):
        return GameManager.create_game(
            db,
            host,
            owner=owner,
            token_address=settings.token_address,
            segment_count=segment_count,
            segment_length=SEGMENT_LENGTH,
            segment_payment=segment_payment,
            early_withdrawal_fee=early_withdrawal_fee,
        )
    return _make_game


@pytest.fixture
def fund(db, token):
    """鑄造足夠付完整場遊戲的 token，並給遊戲無上限授權"""
    def _fund(game, *participants, allowance=MAX_AMOUNT):
        for participant in participants:
            token.mint(participant, game.segment_payment * (game.last_segment + 1))
            token.approve(participant, game.address, allowance)
        db.commit()
    return _fund


@pytest.fixture
def hostile_host(db, host, settings):
    """用 HostileToken / HostilePool 取代 host 的協作者"""
    def _hostile_host(token=None, pool=None):
        real_token_at = host.token_at

        def token_at(address):
            if token is not None and address == settings.token_address:
                return token
            return real_token_at(address)

        return GameHost(
            token_at=token_at,
            lending_pool=pool if pool is not None else host.lending_pool,
            data_provider=host.data_provider,
            clock=host.clock,
            referral_code=host.referral_code,
        )
    return _hostile_host
