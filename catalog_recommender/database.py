from sqlalchemy import create_engine, Column, Integer, String, DateTime, ForeignKey, Table, Text, Enum
from sqlalchemy.orm import declarative_base, sessionmaker, relationship, Session
from datetime import datetime
from typing import Generator
import enum
import os
from dotenv import load_dotenv

load_dotenv()

# Database URL configuration
SQLALCHEMY_DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./recommendation.db")

# check_same_thread only applies to SQLite; background backfills run in worker threads
connect_args = {"check_same_thread": False} if SQLALCHEMY_DATABASE_URL.startswith("sqlite") else {}

# Create SQLAlchemy engine
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args=connect_args)

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for models
Base = declarative_base()


class ReviewStatus(str, enum.Enum):
    PERFECT = "PERFECT"
    GOOD = "GOOD"
    NORMAL = "NORMAL"
    BAD = "BAD"


# Association table for many-to-many relationship between items and categories
item_categories = Table(
    'item_categories',
    Base.metadata,
    Column('item_id', Integer, ForeignKey('items.id'), primary_key=True),
    Column('category_id', Integer, ForeignKey('categories.id'), primary_key=True)
)


class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    # JSON array of floats, NULL until the embedding API has answered
    embedding_vector = Column(Text, nullable=True)

    # Relationships
    items = relationship("Item", secondary=item_categories, back_populates="categories")


class Item(Base):
    __tablename__ = "items"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, index=True, nullable=False)
    description = Column(Text)
    # JSON array of floats, mean of the category embeddings
    average_embedding_vector = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    categories = relationship("Category", secondary=item_categories, back_populates="items",
                              order_by="Category.id")
    reviews = relationship("ItemReview", back_populates="item")


class Member(Base):
    __tablename__ = "members"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=False)

    # Relationships
    reviews = relationship("ItemReview", back_populates="member")
    preferred_categories = relationship("MemberCategory", back_populates="member")


class ItemReview(Base):
    __tablename__ = "item_reviews"

    id = Column(Integer, primary_key=True, index=True)
    review_status = Column(Enum(ReviewStatus, name="review_status"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Foreign keys
    member_id = Column(Integer, ForeignKey("members.id"), nullable=False, index=True)
    item_id = Column(Integer, ForeignKey("items.id"), nullable=False)

    # Relationships
    member = relationship("Member", back_populates="reviews")
    item = relationship("Item", back_populates="reviews")


class MemberCategory(Base):
    __tablename__ = "member_categories"

    id = Column(Integer, primary_key=True, index=True)

    # Foreign keys
    member_id = Column(Integer, ForeignKey("members.id"), nullable=False, index=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False)

    # Relationships
    member = relationship("Member", back_populates="preferred_categories")
    category = relationship("Category")


# Dependency to get DB session
def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
