# collagify/models.py
from sqlalchemy import Column, Integer, BigInteger, DateTime, Text
from .database import Base

class Channel(Base):
    __tablename__ = "channels"
    chat_id = Column(BigInteger, primary_key=True, autoincrement=False)
    registered_at = Column(DateTime, nullable=False)

class Link(Base):
    __tablename__ = "links"
    id = Column(Integer, primary_key=True, autoincrement=True)
    chat_id = Column(BigInteger, index=True, nullable=False)
    submitted_at = Column(DateTime, nullable=False)
    url = Column(Text, nullable=False)
    message_id = Column(BigInteger, nullable=False)
