import os

from sqlalchemy import (
    Column, DateTime, ForeignKey, Integer, String, UniqueConstraint, create_engine, func,
)
from sqlalchemy.engine import make_url
from sqlalchemy.orm import declarative_base, relationship, sessionmaker

Base = declarative_base()


class UserRow(Base):
    __tablename__ = "users"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String, unique=True, index=True, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)


class LinkRow(Base):
    __tablename__ = "links"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String, unique=True, index=True, nullable=False)
    long_url = Column(String, nullable=False)
    owner_id = Column(String, ForeignKey("users.id"), index=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    visits = relationship(
        "VisitRow", cascade="all, delete-orphan", order_by="VisitRow.seq", lazy="selectin"
    )


class VisitRow(Base):
    __tablename__ = "visits"
    __table_args__ = (UniqueConstraint("link_id", "visitor_id", name="uq_visit_link_visitor"),)

    seq = Column(Integer, primary_key=True, autoincrement=True)
    link_id = Column(String, ForeignKey("links.id"), index=True, nullable=False)
    visitor_id = Column(String, nullable=False)
    count = Column(Integer, nullable=False, default=0)


def make_engine(database_url: str):
    url = make_url(database_url)
    connect_args = {}
    if url.get_backend_name() == "sqlite":
        connect_args["check_same_thread"] = False
        # Каталог под файл базы создаем заранее
        if url.database and url.database != ":memory:":
            data_dir = os.path.dirname(url.database)
            if data_dir and not os.path.exists(data_dir):
                os.makedirs(data_dir)
    return create_engine(database_url, connect_args=connect_args)


def make_session_factory(engine):
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)
