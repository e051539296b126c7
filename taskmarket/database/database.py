from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

# 모든 모델 클래스가 상속받을 Base 클래스
# 이 클래스를 상속받아 모델을 정의하면, SQLAlchemy가 테이블을 인식합니다.
Base = declarative_base()


def create_db_engine(database_url: str):
    """
    설정된 DB URL로 SQLAlchemy 엔진을 생성합니다.
    엔진은 프로세스 시작 시 한 번 만들어 필요한 곳에 주입합니다.
    """
    connect_args = {}
    if database_url.startswith("sqlite"):
        # 만료 처리 스레드와 요청 처리 스레드가 같은 SQLite 파일을 사용합니다.
        connect_args["check_same_thread"] = False
    return create_engine(database_url, connect_args=connect_args)


def create_session_factory(engine):
    # autocommit=False, autoflush=False로 설정하여, 명시적으로 commit을 호출해야 DB에 반영됩니다.
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)
