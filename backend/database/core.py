from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base, Session

from skuMatchModel.pathsAndImports import BM_DATABASE_URL

# sqlite fallback keeps the app importable without a Postgres DSN
DATABASE_URL = BM_DATABASE_URL or "sqlite:///./sku_catalog.db"

engine = create_engine(DATABASE_URL, pool_pre_ping=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_session() -> Session:
    return SessionLocal()
