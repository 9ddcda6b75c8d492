"""
自定義異常類別

集中管理所有業務邏輯異常，方便 API 層統一處理

分類：
- 前置條件違反（segment 視窗不對、已退出、已加入、授權不足…）
- 外部協作者失敗（token 轉帳回傳 False、借貸池失敗）
- 重複執行保護（已贖回、已提領），不可重試
"""


class SavingsGameException(Exception):
    """所有遊戲異常的基類"""
    pass


# ============ Game 相關異常 ============

class GameNotFound(SavingsGameException):
    """遊戲不存在"""
    def __init__(self, game_id):
        self.game_id = game_id
        super().__init__(f"Game {game_id} not found")


class InvalidGameConfig(SavingsGameException):
    """建立遊戲時的參數不合法"""
    pass


class GamePaused(SavingsGameException):
    """遊戲已暫停"""
    def __init__(self, game_id):
        self.game_id = game_id
        super().__init__(f"Game {game_id} is paused")


class NotGameOwner(SavingsGameException):
    """呼叫者不是遊戲擁有者"""
    def __init__(self, caller):
        self.caller = caller
        super().__init__(f"{caller} is not the game owner")


class GameNotCompleted(SavingsGameException):
    """遊戲尚未結束"""
    pass


class GameAlreadyCompleted(SavingsGameException):
    """遊戲已經結束"""
    pass


# ============ 狀態轉換異常 ============

class InvalidStateTransition(SavingsGameException):
    """非法的狀態轉換"""
    pass


# ============ Player 相關異常 ============

class PlayerNotFound(SavingsGameException):
    """玩家不存在"""
    def __init__(self, address):
        self.address = address
        super().__init__(f"Player {address} not found")


class JoinWindowClosed(SavingsGameException):
    """只能在 segment 0 加入"""
    def __init__(self, segment):
        self.segment = segment
        super().__init__(f"Game has already started (current segment {segment})")


class PlayerAlreadyJoined(SavingsGameException):
    """不能重複加入同一場遊戲"""
    def __init__(self, address):
        self.address = address
        super().__init__(f"Player {address} cannot join the game more than once")


class PlayerAlreadyWithdrawn(SavingsGameException):
    """玩家已經提領過了"""
    def __init__(self, address):
        self.address = address
        super().__init__(f"Player {address} has already withdrawn")


# ============ Deposit 相關異常 ============

class DepositWindowClosed(SavingsGameException):
    """只能在 segment 1 到倒數第二個 segment 之間存款"""
    def __init__(self, segment):
        self.segment = segment
        super().__init__(
            f"Deposit available only between segment 1 and the penultimate segment "
            f"(current segment {segment})"
        )


class SegmentAlreadyPaid(SavingsGameException):
    """玩家已經付過這個 segment"""
    def __init__(self, address, segment):
        self.address = address
        self.segment = segment
        super().__init__(f"Player {address} already paid segment {segment}")


class PreviousSegmentNotPaid(SavingsGameException):
    """玩家漏付上一個 segment，永久出局"""
    def __init__(self, address, segment):
        self.address = address
        self.segment = segment
        super().__init__(
            f"Player {address} didn't pay segment {segment - 1} - game over!"
        )


class InsufficientAllowance(SavingsGameException):
    """玩家授權給遊戲的額度不足"""
    def __init__(self, address, allowance, required):
        self.address = address
        self.allowance = allowance
        self.required = required
        super().__init__(
            f"Player {address} allowance {allowance} is below the segment payment {required}"
        )


class NothingToDeposit(SavingsGameException):
    """上一個 segment 沒有可存進外部協定的金額"""
    pass


# ============ 贖回 / 外部呼叫異常 ============

class AlreadyRedeemed(SavingsGameException):
    """已經從外部協定贖回過了"""
    def __init__(self, game_id):
        self.game_id = game_id
        super().__init__(f"Game {game_id} has already been redeemed")


class ExternalCallFailed(SavingsGameException):
    """外部協作者（token 或借貸池）呼叫失敗"""
    def __init__(self, operation, detail=""):
        self.operation = operation
        self.detail = detail
        message = f"External call {operation} failed"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
