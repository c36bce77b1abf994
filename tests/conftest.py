"""测试夹具：为 pytest 提供数据库、内容存储与客户端的共享配置。"""

import itertools
import os
import shutil
import tempfile
from typing import Generator

# 在导入应用之前把数据库、内容存储与日志指向临时目录
_TMP_ROOT = tempfile.mkdtemp(prefix="asset_library_tests_")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_ROOT, 'bootstrap.db')}"
os.environ["CONTENT_BACKEND"] = "LOCAL"
os.environ["CONTENT_LOCAL_ROOT"] = os.path.join(_TMP_ROOT, "content")
os.environ["SCAN_ROOT"] = os.path.join(_TMP_ROOT, "scan")
os.environ["LOG_DIR"] = os.path.join(_TMP_ROOT, "log")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from app.main import app
from app.packages.library.core.config import get_settings
from app.packages.library.db import session as db_session
from app.packages.library.db.init_db import init_db
from app.packages.library.models.asset_node import AssetNode
from app.packages.library.models.base import Base
from app.packages.library.services.library_service import LibraryService, library_service
from app.packages.library.services.storage_backends import LocalContentStore
from app.packages.library.tree.engine import MutationEngine

TEST_DB_PATH = os.path.join(_TMP_ROOT, "test.db")
TEST_DATABASE_URL = f"sqlite:///{TEST_DB_PATH}"


@pytest.fixture(scope="session", autouse=True)
def setup_test_database() -> Generator[None, None, None]:
    """创建隔离的 SQLite 测试数据库，并在会话结束后清理。"""
    engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    db_session.engine = engine
    db_session.SessionLocal = TestingSessionLocal

    Base.metadata.create_all(bind=engine)
    init_db()
    yield

    engine.dispose()
    shutil.rmtree(_TMP_ROOT, ignore_errors=True)


@pytest.fixture()
def db_session_fixture() -> Generator[Session, None, None]:
    """提供给测试用例使用的数据库会话。"""
    session = db_session.SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(db_session_fixture):
    """构建 FastAPI TestClient：每个用例从空目录树开始；服务通过替换后的 SessionLocal 读写测试库。"""
    db_session_fixture.query(AssetNode).delete()
    db_session_fixture.commit()
    library_service.reload()

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def id_factory():
    """确定性的节点 id：n1、n2、n3……"""
    counter = itertools.count(1)
    return lambda: f"n{next(counter)}"


@pytest.fixture()
def engine(id_factory) -> MutationEngine:
    return MutationEngine(id_factory=id_factory)


@pytest.fixture()
def session_factory(tmp_path):
    """每个用例独立的 SQLite 数据库。"""
    sql_engine = create_engine(
        f"sqlite:///{tmp_path / 'library.db'}", connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(bind=sql_engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=sql_engine)
    yield factory
    sql_engine.dispose()


@pytest.fixture()
def content_store(tmp_path) -> LocalContentStore:
    return LocalContentStore(tmp_path / "content")


@pytest.fixture()
def service(session_factory, content_store, engine) -> LibraryService:
    svc = LibraryService(
        session_factory=session_factory,
        content_store=content_store,
        engine=engine,
        settings=get_settings(),
    )
    svc.load()
    return svc
