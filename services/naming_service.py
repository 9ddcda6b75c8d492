"""
命名服務：生成遊戲的合約地址

純計算邏輯，不涉及狀態轉換
"""
import secrets


def generate_game_address() -> str:
    """
    生成隨機的合約風格地址（0x + 40 個十六進位字元）

    範例：0x3f5ce5fbfe3e9af3971dd833d26ba9b5c936f0be

    注意：
    - 不檢查唯一性（由呼叫者負責）
    - 16^40 種可能，碰撞機率極低
    """
    return "0x" + secrets.token_hex(20)
