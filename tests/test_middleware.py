"""中间件测试"""

import pytest
from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient

from assetops.errors import (
    ErrorKind,
    InvalidRecordError,
    NotFoundError,
    SetupError,
    StoreIOError,
    classify_exception,
)
from assetops.middleware import LoggingMiddleware, setup_middleware


class TestErrorHandlingMiddleware:
    """错误处理中间件测试"""

    @pytest.fixture
    def app(self):
        """创建测试应用"""
        app = FastAPI()

        @app.get("/test")
        def test_endpoint():
            return {"message": "success"}

        @app.get("/error")
        def error_endpoint():
            raise HTTPException(status_code=400, detail="Test error")

        @app.get("/unhandled")
        def unhandled_error():
            raise ValueError("Unhandled error")

        return app

    @pytest.fixture
    def client(self, app):
        """创建测试客户端"""
        setup_middleware(app)
        return TestClient(app)

    def test_normal_request(self, client):
        """测试正常请求"""
        response = client.get("/test")
        assert response.status_code == 200
        assert response.json() == {"message": "success"}

    def test_http_exception(self, client):
        """测试HTTP异常处理"""
        response = client.get("/error")
        assert response.status_code == 400
        data = response.json()
        assert data == {"success": False, "error": "Test error", "type": "http_exception"}

    def test_unknown_route(self, client):
        """未知路由同样返回统一结构"""
        response = client.get("/nope")
        assert response.status_code == 404
        assert response.json()["type"] == "http_exception"

    def test_unhandled_exception(self, client):
        """测试未处理异常"""
        response = client.get("/unhandled")
        assert response.status_code == 500
        data = response.json()
        assert data["error"] == "内部服务器错误"
        assert data["type"] == "internal_error"


class TestLoggingMiddleware:
    """日志中间件测试"""

    def test_process_time_header(self):
        app = FastAPI()

        @app.get("/ping")
        def ping():
            return {"ok": True}

        app.add_middleware(LoggingMiddleware)
        response = TestClient(app).get("/ping")

        assert response.status_code == 200
        assert float(response.headers["X-Process-Time"]) >= 0


class TestAssetOpsErrorHandler:
    """引擎异常 → HTTP 状态码"""

    @pytest.fixture
    def client(self):
        app = FastAPI()
        setup_middleware(app)

        @app.get("/raise/{name}")
        def raise_error(name: str):
            raise {
                "missing": NotFoundError("风格 x 不存在"),
                "io": StoreIOError("R2 超时"),
                "bad": InvalidRecordError("画廊条目缺少 url"),
                "setup": SetupError("R2 凭证未配置"),
            }[name]

        return TestClient(app)

    @pytest.mark.parametrize("name,status,error_type", [
        ("missing", 404, "not_found"),
        ("io", 502, "store_io"),
        ("bad", 422, "invalid_record"),
        ("setup", 503, "setup_error"),
    ])
    def test_status_mapping(self, client, name, status, error_type):
        response = client.get(f"/raise/{name}")
        assert response.status_code == status
        data = response.json()
        assert data["success"] is False
        assert data["type"] == error_type


class TestErrorKinds:
    """异常分类测试"""

    def test_engine_errors(self):
        assert classify_exception(NotFoundError("x")) == ErrorKind.NOT_FOUND
        assert classify_exception(StoreIOError("x")) == ErrorKind.STORE_IO
        assert classify_exception(InvalidRecordError("x")) == ErrorKind.INVALID_RECORD
        assert classify_exception(SetupError("x")) == ErrorKind.UNEXPECTED

    def test_third_party_errors(self):
        from botocore.exceptions import ClientError
        from sqlalchemy.exc import OperationalError

        boto = ClientError({"Error": {"Code": "NoSuchKey", "Message": "missing"}}, "CopyObject")
        assert classify_exception(boto) == ErrorKind.STORE_IO
        assert classify_exception(OperationalError("select 1", {}, Exception("locked"))) == ErrorKind.STORE_IO
        assert classify_exception(TimeoutError()) == ErrorKind.STORE_IO
        assert classify_exception(KeyError("url")) == ErrorKind.UNEXPECTED

    def test_error_attributes(self):
        exc = NotFoundError("风格 x 不存在")
        assert exc.error_type == "not_found"
        assert str(exc) == "风格 x 不存在"
