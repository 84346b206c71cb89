"""Declarative base shared by chat_messages and chat_embeddings."""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass
