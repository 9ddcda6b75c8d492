"""
計分服務：提領金額與利息分配

純計算邏輯，全部是整數運算。整除的餘數留在池子裡，不分配給任何人。
"""


def calculate_early_withdrawal_amount(amount_paid: int, fee_percent: int) -> int:
    """
    計算提前退出可拿回的金額

    手續費先從本金扣掉，扣下來的部分留在池子裡給 winner：
        withdraw_amount = amount_paid - floor(amount_paid * fee / 100)

    範例：
        calculate_early_withdrawal_amount(10, 10) -> 9
        calculate_early_withdrawal_amount(15, 10) -> 14   # fee = floor(1.5) = 1
    """
    return amount_paid - amount_paid * fee_percent // 100


def calculate_interest_share(total_interest: int, winner_count: int) -> int:
    """
    每位 winner 分到的利息

    沒有 winner 時回傳 0（整筆利息在贖回時已轉給 owner）
    """
    if winner_count <= 0:
        return 0
    return total_interest // winner_count


def calculate_payout(amount_paid: int, is_winner: bool, total_interest: int, winner_count: int) -> int:
    """
    計算遊戲結束後的提領金額

    參數：
        amount_paid: 玩家付過的本金
        is_winner: 玩家是否付完所有必要的 segment
        total_interest: 贖回時算出的總利息
        winner_count: winner 人數

    返回：
        本金，winner 另加 floor(total_interest / winner_count)
    """
    payout = amount_paid
    if is_winner and winner_count > 0:
        payout += calculate_interest_share(total_interest, winner_count)
    return payout


def calculate_game_interest(total_balance: int, total_principal: int) -> int:
    """
    利息 = 贖回後的總餘額 - 追蹤中的本金

    餘額低於本金（協定虧損）時利息為 0，不會是負數
    """
    return max(total_balance - total_principal, 0)
