#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
SQL storage for users, discovery configurations and discovered leads.

Implements both collaborator contracts used by the pipeline: the
configuration provider read by the scheduler and the lead sink written by
the aggregator.
"""

import uuid
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.engine import make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from lead_discovery.models.configuration import Configuration
from lead_discovery.models.lead import Lead
from lead_discovery.utils.logger import get_logger

# Configure logger
logger = get_logger(__name__)

# Create base class for ORM models
Base = declarative_base()


class UserModel(Base):
    """SQLAlchemy ORM model for users."""

    __tablename__ = "users"

    id = Column(String(64), primary_key=True)
    email = Column(String(255), unique=True)
    name = Column(String(255))
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)


class ConfigurationModel(Base):
    """SQLAlchemy ORM model for discovery configurations."""

    __tablename__ = "discovery_configurations"

    id = Column(String(64), primary_key=True)
    user_id = Column(String(64), ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    keywords = Column(JSON, nullable=False, default=list)
    sources = Column(JSON, nullable=False, default=list)
    frequency = Column(String(20), nullable=False, default="daily")
    max_results = Column(Integer, nullable=False, default=50)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    last_run = Column(DateTime)
    next_run = Column(DateTime)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)

    def to_configuration(self) -> Configuration:
        return Configuration(
            id=self.id,
            user_id=self.user_id,
            name=self.name,
            keywords=list(self.keywords or []),
            sources=list(self.sources or []),
            frequency=self.frequency,
            max_results=self.max_results,
            is_active=self.is_active,
            last_run=self.last_run,
            next_run=self.next_run,
        )


class DiscoveredLeadModel(Base):
    """SQLAlchemy ORM model for discovered leads."""

    __tablename__ = "discovered_leads"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(64), ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(1024), nullable=False)
    url = Column(String(2048), nullable=False)
    source = Column(String(255), index=True)
    snippet = Column(Text)
    description = Column(Text)

    # Extracted fields
    company = Column(String(255))
    location = Column(String(255))
    project_type = Column(String(100))
    budget = Column(String(50))
    budget_range = Column(String(50))
    timeline = Column(String(50))
    room_count = Column(String(20))
    square_footage = Column(String(50))
    contact = Column(JSON)

    # Scoring
    confidence = Column(Integer, nullable=False, default=0, index=True)
    verified_source = Column(Boolean, nullable=False, default=False)
    relevance = Column(Integer, default=0)
    issues = Column(JSON)

    published_date = Column(DateTime)
    extracted_at = Column(DateTime, nullable=False, default=datetime.now)
    created_at = Column(DateTime, nullable=False, default=datetime.now)

    __table_args__ = (
        UniqueConstraint("user_id", "url", name="uq_discovered_leads_user_url"),
    )

    @classmethod
    def from_lead(cls, user_id: str, lead: Lead) -> "DiscoveredLeadModel":
        fields = lead.fields
        return cls(
            user_id=user_id,
            title=lead.title,
            url=lead.url,
            source=lead.source,
            snippet=lead.snippet,
            description=lead.description,
            company=fields.company,
            location=fields.location,
            project_type=fields.project_type,
            budget=fields.budget,
            budget_range=fields.budget_range,
            timeline=fields.timeline,
            room_count=fields.room_count,
            square_footage=fields.square_footage,
            contact=fields.contact.to_dict(),
            confidence=lead.confidence,
            verified_source=lead.verified_source,
            relevance=lead.relevance,
            issues=list(lead.issues),
            published_date=lead.published_date,
            extracted_at=lead.extracted_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert ORM model to dictionary."""
        result = {c.name: getattr(self, c.name) for c in self.__table__.columns}

        # Convert dates to ISO format
        for date_field in ["published_date", "extracted_at", "created_at"]:
            if result[date_field]:
                result[date_field] = result[date_field].isoformat()

        return result


class SqlLeadStore:
    """
    Storage manager backed by SQLAlchemy.

    Args:
        db_url: SQLAlchemy database URL; ``sqlite://`` gives a shared
            in-memory database
    """

    def __init__(self, db_url: str):
        url = make_url(db_url)
        engine_args: Dict[str, Any] = {}

        if url.get_backend_name() == "sqlite":
            engine_args["connect_args"] = {"check_same_thread": False}
            if url.database in (None, "", ":memory:"):
                engine_args["poolclass"] = StaticPool
            else:
                # Ensure data directory exists
                Path(url.database).parent.mkdir(parents=True, exist_ok=True)

        self.engine = create_engine(db_url, **engine_args)
        self.SessionFactory = sessionmaker(bind=self.engine, expire_on_commit=False)

        # Initialize tables if they don't exist
        Base.metadata.create_all(self.engine)

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """
        Provide a transactional scope around a series of operations.

        Yields:
            Session: SQLAlchemy session
        """
        session = self.SessionFactory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Database error: {str(e)}")
            raise
        except Exception as e:
            session.rollback()
            logger.error(f"Unexpected error: {str(e)}")
            raise
        finally:
            session.close()

    # Users

    def add_user(self, user_id: str, email: Optional[str] = None, name: Optional[str] = None,
                 is_active: bool = True) -> None:
        with self.session_scope() as session:
            user = session.get(UserModel, user_id) or UserModel(id=user_id)
            user.email = email
            user.name = name
            user.is_active = is_active
            session.add(user)

    def set_user_active(self, user_id: str, is_active: bool) -> bool:
        with self.session_scope() as session:
            user = session.get(UserModel, user_id)
            if user is None:
                return False
            user.is_active = is_active
            return True

    def is_user_active(self, user_id: str) -> bool:
        with self.session_scope() as session:
            user = session.get(UserModel, str(user_id))
            return bool(user and user.is_active)

    # Configurations

    def save_configuration(self, config: Configuration) -> Configuration:
        """Insert or update a configuration."""
        data = config.to_dict()
        with self.session_scope() as session:
            model = session.get(ConfigurationModel, config.id) or ConfigurationModel(id=config.id)
            model.user_id = config.user_id
            model.name = config.name
            model.keywords = data["keywords"]
            model.sources = data["sources"]
            model.frequency = data["frequency"]
            model.max_results = config.max_results
            model.is_active = config.is_active
            model.last_run = config.last_run
            model.next_run = config.next_run
            session.add(model)
        return config

    def get_configuration(self, config_id: str) -> Optional[Configuration]:
        with self.session_scope() as session:
            model = session.get(ConfigurationModel, str(config_id))
            return model.to_configuration() if model else None

    def list_configurations(self, user_id: Optional[str] = None) -> List[Configuration]:
        with self.session_scope() as session:
            query = session.query(ConfigurationModel)
            if user_id is not None:
                query = query.filter(ConfigurationModel.user_id == str(user_id))
            return [m.to_configuration() for m in query.order_by(ConfigurationModel.created_at)]

    def list_active_configurations(self) -> List[Configuration]:
        with self.session_scope() as session:
            models = (
                session.query(ConfigurationModel)
                .join(UserModel, UserModel.id == ConfigurationModel.user_id)
                .filter(ConfigurationModel.is_active.is_(True), UserModel.is_active.is_(True))
                .order_by(ConfigurationModel.created_at)
                .all()
            )
            return [m.to_configuration() for m in models]

    def update_run_times(self, config_id: str, last_run: Optional[datetime], next_run: Optional[datetime]) -> None:
        with self.session_scope() as session:
            model = session.get(ConfigurationModel, str(config_id))
            if model is None:
                logger.warning(f"Cannot update run times for unknown configuration {config_id}")
                return
            model.last_run = last_run
            model.next_run = next_run

    # Leads

    def save_leads(self, user_id: str, leads: List[Lead]) -> int:
        """
        Save leads for a user, skipping URLs the user already has.

        Each lead is inserted in its own savepoint, so a URL committed by
        another writer after the existence check is skipped rather than
        failing the batch.

        Args:
            user_id: Owner of the leads
            leads: Verified leads

        Returns:
            int: Number of leads inserted
        """
        if not leads:
            return 0

        with self.session_scope() as session:
            urls = {lead.url for lead in leads}
            existing = {
                row.url for row in session.query(DiscoveredLeadModel.url).filter(
                    DiscoveredLeadModel.user_id == str(user_id),
                    DiscoveredLeadModel.url.in_(urls),
                )
            }

            saved = 0
            for lead in leads:
                if lead.url in existing:
                    continue
                existing.add(lead.url)
                try:
                    with session.begin_nested():
                        session.add(DiscoveredLeadModel.from_lead(str(user_id), lead))
                except IntegrityError:
                    logger.debug(f"Lead {lead.url} was saved concurrently for user {user_id}, skipping")
                    continue
                saved += 1

        logger.info(f"Saved {saved} of {len(leads)} leads for user {user_id}")
        return saved

    def get_leads(self, user_id: str, limit: int = 100, offset: int = 0) -> List[Dict[str, Any]]:
        with self.session_scope() as session:
            models = (
                session.query(DiscoveredLeadModel)
                .filter(DiscoveredLeadModel.user_id == str(user_id))
                .order_by(DiscoveredLeadModel.created_at.desc())
                .offset(offset)
                .limit(limit)
                .all()
            )
            return [m.to_dict() for m in models]

    def count_leads(self, user_id: str) -> int:
        with self.session_scope() as session:
            return session.query(DiscoveredLeadModel).filter(
                DiscoveredLeadModel.user_id == str(user_id)
            ).count()
