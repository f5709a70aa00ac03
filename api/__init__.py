"""
API 層

- games：建立 / 開始遊戲、查詢狀態與陣營
- players：加入遊戲
- websocket：遊戲內動作的收發與廣播
"""
