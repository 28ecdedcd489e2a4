"""
共通エラー定義と FastAPI 例外ハンドラ

サービス間で同じエラー分類を使い、HTTP ステータスへの対応付けを
1か所にまとめる。
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    """全サービス共通の基底例外"""

    pass


class ValidationError(ServiceError):
    """入力不正・存在しない/販売停止中の商品など"""

    pass


class InvalidStateError(ValidationError):
    """現在の状態では許可されない状態遷移"""

    def __init__(self, entity: str, current: str, action: str):
        self.entity = entity
        self.current = current
        self.action = action
        super().__init__(f"Cannot {action} {entity} in status '{current}'")


class NotFoundError(ServiceError):
    """指定 ID のレコードが存在しない"""

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


class ConflictError(ServiceError):
    """同じ集約への同時書き込み (楽観的ロック違反)"""

    def __init__(self, aggregate_id: str, version: int):
        self.aggregate_id = aggregate_id
        self.version = version
        super().__init__(
            f"Concurrent modification of {aggregate_id} (version {version})"
        )


class DownstreamUnavailable(ServiceError):
    """外部サービスへの呼び出しが失敗した"""

    def __init__(self, service: str, reason: str):
        self.service = service
        self.reason = reason
        super().__init__(f"{service} unavailable: {reason}")


ERROR_STATUS_CODES: dict[type[ServiceError], int] = {
    ValidationError: 400,
    InvalidStateError: 400,
    NotFoundError: 404,
    ConflictError: 409,
    DownstreamUnavailable: 502,
}


def status_code_for(exc: ServiceError) -> int:
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS_CODES:
            return ERROR_STATUS_CODES[cls]
    return 500


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    return JSONResponse(
        status_code=status_code_for(exc),
        content={"detail": str(exc), "error_type": type(exc).__name__},
    )


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    # 入力不正はすべて 400 に揃える
    return JSONResponse(
        status_code=400,
        content={"detail": exc.errors(), "error_type": "ValidationError"},
    )


async def storage_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("Storage failure on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal storage error", "error_type": "InternalError"},
    )


def install_error_handlers(app: FastAPI) -> None:
    """アプリケーションに共通の例外ハンドラを登録する。"""
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(SQLAlchemyError, storage_error_handler)
