# tests/conftest.py
import pytest

from taskmarket.database.database import create_db_engine, create_session_factory
from taskmarket.database.db_init import initialize_db
from taskmarket.database import models

# ===================================================================
#  인메모리 SQLite를 사용하는 공용 Fixture
# ===================================================================

@pytest.fixture
def engine():
    """테스트마다 새 인메모리 DB를 만들고 기본 역할/권한을 삽입합니다."""
    engine = create_db_engine("sqlite://")
    yield engine
    engine.dispose()

@pytest.fixture
def session_factory(engine):
    factory = create_session_factory(engine)
    initialize_db(engine, factory)
    return factory

@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()

@pytest.fixture
def make_user(db_session):
    """사용자를 생성하여 DB에 저장하는 헬퍼를 반환합니다."""
    def _make_user(username, mode="taskDoer", role_keys=()):
        user = models.User(
            username=username,
            email=f"{username}@example.com",
            password_hash="x",
            mode=mode,
            status="active",
        )
        db_session.add(user)
        db_session.flush()
        for role_key in role_keys:
            role = db_session.query(models.Role).filter(models.Role.key == role_key).one()
            db_session.add(models.UserRole(user_id=user.id, role_id=role.id))
        db_session.commit()
        return user
    return _make_user
