"""
核心業務邏輯層

這個 package 包含所有核心業務邏輯，包括：
- GameManager：管理 Game 的建立、暫停與查詢
- PlayerLedger：加入遊戲、每個 segment 的存款
- SegmentPool：把 segment 收到的本金存進外部協定
- RedemptionEngine：遊戲結束後一次性贖回並計算利息
- PayoutCalculator：提領與提前退出
- Locks：並發控制工具
- Host：外部協作者的介面
"""
