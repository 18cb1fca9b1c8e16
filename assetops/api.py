"""
管理接口（FastAPI）

- POST /api/admin/recover-images     {"style_id"?: str, "dry_run": true}
- POST /api/admin/reorganize-images  {"execute": false, "cleanup": false}
- POST /api/admin/migrate            {"dry_run": true, "limit"?: int, "style_ids"?: [str]}
- GET  /api/admin/verify
返回 RunReport.to_dict()。存储通过 create_app 注入；未注入时按配置懒加载。

启动：uvicorn assetops.api:app
"""

from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import Depends, FastAPI, Request
from pydantic import BaseModel, Field

from .cli import Stores
from .middleware import setup_middleware
from .migration import MigrationRunner
from .recovery import recover_orphaned_images
from .reorganize import ReorganizationRunner
from .verify import verify_migration

logger = logging.getLogger(__name__)


class RecoverRequest(BaseModel):
    style_id: Optional[str] = Field(default=None, min_length=1)
    dry_run: bool = True


class ReorganizeRequest(BaseModel):
    execute: bool = False
    cleanup: bool = False


class MigrateRequest(BaseModel):
    dry_run: bool = True
    limit: Optional[int] = None
    style_ids: Optional[List[str]] = Field(default=None, min_length=1, description="处理全部风格时省略该字段")


def get_stores(request: Request) -> Stores:
    return request.app.state.stores


def create_app(record_store=None, blob_store=None) -> FastAPI:
    app = FastAPI(title="Studio Asset Ops")
    app.state.stores = Stores(record_store, blob_store)
    setup_middleware(app)

    @app.post("/api/admin/recover-images")
    def recover_images(body: RecoverRequest, stores: Stores = Depends(get_stores)):
        logger.info(f"[API] 找回请求: style_id={body.style_id or 'all'}, dry_run={body.dry_run}")
        report = recover_orphaned_images(stores.records, stores.blobs, body.style_id, body.dry_run)
        return report.to_dict()

    @app.post("/api/admin/reorganize-images")
    def reorganize_images(body: ReorganizeRequest, stores: Stores = Depends(get_stores)):
        logger.info(f"[API] 整理请求: execute={body.execute}, cleanup={body.cleanup}")
        runner = ReorganizationRunner(stores.records, stores.blobs, dry_run=not body.execute,
                                      cleanup=body.cleanup)
        return runner.run().to_dict()

    @app.post("/api/admin/migrate")
    def migrate(body: MigrateRequest, stores: Stores = Depends(get_stores)):
        logger.info(f"[API] 迁移请求: dry_run={body.dry_run}, limit={body.limit}")
        runner = MigrationRunner(stores.records, dry_run=body.dry_run, public_base=stores.public_base)
        return runner.run(ids=body.style_ids, limit=body.limit).to_dict()

    @app.get("/api/admin/verify")
    def verify(stores: Stores = Depends(get_stores)):
        return verify_migration(stores.records)

    return app


app = create_app()
