"""ログ設定 — 各サービスの起動時に一度だけ呼ぶ。"""

import logging

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    # httpx はリクエストごとに INFO を出すので抑える
    logging.getLogger("httpx").setLevel(logging.WARNING)
