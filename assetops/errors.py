"""异常与错误分类。

条目级失败（单条记录 / 单个分组 / 单个对象）在 runner 内被捕获，
按 ErrorKind 归类后写入 RunReport，不中断整个运行；
只有 SetupError（存储无法连接或配置缺失）会直接中止。
"""

from enum import Enum

from botocore.exceptions import BotoCoreError, ClientError
from sqlalchemy.exc import SQLAlchemyError


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    STORE_IO = "store_io"
    INVALID_RECORD = "invalid_record"
    UNEXPECTED = "unexpected"


class AssetOpsError(Exception):
    """引擎异常基类"""

    kind = ErrorKind.UNEXPECTED

    def __init__(self, message: str, error_type: str = "assetops_error"):
        self.message = message
        self.error_type = error_type
        super().__init__(self.message)


class NotFoundError(AssetOpsError):
    """引用的记录不存在"""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, message: str):
        super().__init__(message, error_type="not_found")


class StoreIOError(AssetOpsError):
    """对象存储 / 记录库调用失败（网络、超时、权限）"""

    kind = ErrorKind.STORE_IO

    def __init__(self, message: str):
        super().__init__(message, error_type="store_io")


class InvalidRecordError(AssetOpsError):
    """记录内容无法解析（例如旧画廊条目缺少 url）"""

    kind = ErrorKind.INVALID_RECORD

    def __init__(self, message: str):
        super().__init__(message, error_type="invalid_record")


class SetupError(AssetOpsError):
    """致命的初始化失败，整个运行中止"""

    def __init__(self, message: str):
        super().__init__(message, error_type="setup_error")


def classify_exception(exc: BaseException) -> ErrorKind:
    """把任意异常映射为 ErrorKind。"""
    if isinstance(exc, AssetOpsError):
        return exc.kind
    if isinstance(exc, (ClientError, BotoCoreError, SQLAlchemyError, ConnectionError, TimeoutError)):
        return ErrorKind.STORE_IO
    return ErrorKind.UNEXPECTED
