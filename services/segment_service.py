"""
Segment 服務：從時間推算目前的 segment 與遊戲階段

遊戲時間軸（last_segment = N）：
- Segment 0: 加入遊戲（同時付第一期）
- Segment 1 ~ N-1: 每期存款；在 N-1 付款的玩家成為 winner
- Segment N: 最後一期的本金還在生息，可以 sweep 但不能存款
- Segment > N: 遊戲結束，可以贖回與提領
"""
from typing import Callable

from models import Game


def get_current_segment(first_segment_start: int, segment_length: int, now: int) -> int:
    """
    計算目前的 segment（從 0 開始，整數除法向下取整）

    範例：
        get_current_segment(1000, 60, 1000) -> 0
        get_current_segment(1000, 60, 1059) -> 0
        get_current_segment(1000, 60, 1060) -> 1
    """
    return (now - first_segment_start) // segment_length


def is_game_completed(current_segment: int, last_segment: int) -> bool:
    """遊戲在 last_segment 過完之後才算結束"""
    return current_segment > last_segment


def is_deposit_segment(current_segment: int, last_segment: int) -> bool:
    """
    檢查是否可以存款

    存款視窗是 segment 1 到 last_segment - 1（不含 segment 0，它由加入遊戲時付款）
    """
    return 0 < current_segment < last_segment


def is_winning_segment(segment: int, last_segment: int) -> bool:
    """付完這一期的玩家就完成了所有必要的付款"""
    return segment == last_segment - 1


class GameClock:
    """把一場 Game 的參數和時鐘綁在一起"""

    def __init__(self, game: Game, clock: Callable[[], int]):
        self.game = game
        self.clock = clock

    def current_segment(self) -> int:
        return get_current_segment(
            self.game.first_segment_start,
            self.game.segment_length,
            self.clock()
        )

    def is_completed(self) -> bool:
        return is_game_completed(self.current_segment(), self.game.last_segment)
