from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

import os
from config import config

# Prioritize DATABASE_URL from env, otherwise fallback to local SQLite
if config.DATABASE_URL:
    SQLALCHEMY_DATABASE_URL = config.DATABASE_URL
    connect_args = {}
else:
    BASE_DIR = os.path.dirname(os.path.abspath(__file__))
    SQLALCHEMY_DATABASE_URL = f"sqlite:///{os.path.join(BASE_DIR, 'drive_clone.db')}"
    connect_args = {"check_same_thread": False}

engine = create_engine(
    SQLALCHEMY_DATABASE_URL, connect_args=connect_args
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()
