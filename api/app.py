"""
api/app.py — FastAPI 앱 인스턴스 + 응시 서비스 조립
"""

import logging
import os
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import ACTIVE_ATTEMPT_POLICY, CATALOG_PATH, DATABASE_URL
from api.routes import router
from attempt_engine.services.attempt_service import AttemptService
from attempt_engine.services.catalog import InMemoryCatalog
from attempt_engine.storage.attempt_store import AttemptStore, make_engine

logger = logging.getLogger(__name__)


def build_service() -> AttemptService:
    """환경 설정(config.py)으로 카탈로그 + DB 저장소를 묶는다."""
    if os.path.exists(CATALOG_PATH):
        catalog = InMemoryCatalog.from_json_file(CATALOG_PATH)
    else:
        logger.warning(f"카탈로그 파일이 없습니다: {CATALOG_PATH} (빈 카탈로그로 시작)")
        catalog = InMemoryCatalog()

    store = AttemptStore(make_engine(DATABASE_URL))
    store.create_schema()
    return AttemptService(catalog, store, active_policy=ACTIVE_ATTEMPT_POLICY)


def create_app(service: Optional[AttemptService] = None) -> FastAPI:
    app = FastAPI(title="CBT Attempt Engine", docs_url=None, redoc_url=None)

    # CORS (모바일 브라우저 등 다양한 출처 허용)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.attempts = service or build_service()
    app.include_router(router)
    return app
