"""
服務層

這個 package 包含純計算邏輯與外部協作者的模擬實作，不負責狀態轉換：
- SegmentService：segment 時間計算（GameClock）
- PayoutService：提領金額與利息分配
- EventService / HistoryService：事件記錄與玩家付款歷史
- NamingService：合約地址生成
- TokenLedger / LendingPool：模擬的 token 與外部生息協定
"""
