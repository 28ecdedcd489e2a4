"""各サービス共通の基盤コード (エラー・ログ・DB・イベントストア)"""
