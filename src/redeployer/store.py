"""Service definition storage (SQLAlchemy async)."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Protocol

from sqlalchemy import String, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
import structlog

from redeployer.errors import NotFoundError, StoreError
from redeployer.models import ServiceDefinition, ServiceFields

logger = structlog.get_logger()


class Base(DeclarativeBase):
    """Base class for all models."""


class ServiceRecord(Base):
    """A managed service row."""

    __tablename__ = "service"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String, unique=True)
    compose_name: Mapped[str]
    repo_url: Mapped[str]
    access_url: Mapped[str] = mapped_column(default="")
    active: Mapped[bool] = mapped_column(default=False)
    credential_file: Mapped[str | None] = mapped_column(default=None)
    use_credential_file: Mapped[bool] = mapped_column(default=False)

    def __repr__(self) -> str:
        return f"<ServiceRecord(id={self.id}, name={self.name}, active={self.active})>"


class ServiceStore(Protocol):
    """CRUD contract for service definitions. Every failure is a StoreError."""

    async def list_services(self) -> list[ServiceDefinition]: ...

    async def get_service(self, service_id: int) -> ServiceDefinition: ...

    async def create_service(self, fields: ServiceFields) -> ServiceDefinition: ...

    async def update_service(self, service_id: int, fields: ServiceFields) -> ServiceDefinition: ...


class SqlServiceStore:
    """ServiceStore backed by an async SQLAlchemy engine."""

    def __init__(self, database_url: str):
        self.engine = create_async_engine(database_url, echo=False)
        self.session_maker = async_sessionmaker(self.engine, expire_on_commit=False)

    async def init_schema(self) -> None:
        """Create missing tables."""
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as e:
            raise StoreError(f"Unable to initialize database: {e}") from e
        logger.info("database_schema_ready")

    async def dispose(self) -> None:
        await self.engine.dispose()

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self.session_maker() as session:
                yield session
        except IntegrityError as e:
            logger.warning("database_integrity_error", error=str(e.orig))
            raise StoreError(f"Constraint violated: {e.orig}") from e
        except SQLAlchemyError as e:
            logger.error("database_error", error=str(e), error_type=type(e).__name__)
            raise StoreError(f"Unable to use database: {e}") from e

    async def list_services(self) -> list[ServiceDefinition]:
        async with self._session() as session:
            result = await session.execute(select(ServiceRecord).order_by(ServiceRecord.id))
            return [ServiceDefinition.model_validate(row) for row in result.scalars().all()]

    async def get_service(self, service_id: int) -> ServiceDefinition:
        async with self._session() as session:
            record = await session.get(ServiceRecord, service_id)
            if record is None:
                raise NotFoundError(service_id)
            return ServiceDefinition.model_validate(record)

    async def create_service(self, fields: ServiceFields) -> ServiceDefinition:
        async with self._session() as session:
            record = ServiceRecord(**fields.model_dump())
            session.add(record)
            await session.commit()
            await session.refresh(record)
            logger.info("service_created", service_id=record.id, service_name=record.name)
            return ServiceDefinition.model_validate(record)

    async def update_service(self, service_id: int, fields: ServiceFields) -> ServiceDefinition:
        async with self._session() as session:
            record = await session.get(ServiceRecord, service_id)
            if record is None:
                raise NotFoundError(service_id)

            for key, value in fields.model_dump().items():
                setattr(record, key, value)

            await session.commit()
            await session.refresh(record)
            logger.info("service_updated", service_id=record.id, service_name=record.name)
            return ServiceDefinition.model_validate(record)
