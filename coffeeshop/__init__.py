"""
Coffee shop マイクロサービス群

- order        — 注文ワークフロー (注文作成・状態遷移・決済結果の反映)
- payment      — 決済シミュレーター (非同期決済・返金)
- notification — 通知シンク (通知の保存と既読管理)
"""
