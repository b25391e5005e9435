"""
Base repository class providing common database operations.

Model-specific repositories inherit from `BaseRepository` to reuse the generic
create/read logic and add their own queries. Repositories never commit: the
caller owns the transaction (one per team during provisioning, one per request
in the API).
"""
from convention_messenger.exceptions.base import (
    RepositoryError,
    DuplicateError,
    NotFoundError,
    InvalidFieldError
)

from convention_messenger.exceptions.mapper import db_error_handler
from convention_messenger.validators.exception_validators import (
    find_unknown_model_kwargs,
    get_required_columns,
    find_unique_conflicts,
)

import time
from typing import TypeVar, Generic, Type, Any
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
import logging

from convention_messenger.database.base import Base

ModelType = TypeVar("ModelType", bound=Base)

logger = logging.getLogger(__name__)


class BaseRepository(Generic[ModelType]):
    """
    Generic base repository.

    Type Parameters:
        ModelType: The SQLAlchemy model class this repository manages.
    """

    def __init__(self, model: Type[ModelType], db: AsyncSession):
        self.model = model
        self.db = db

    # =================================================================================================================
    # Create
    # =================================================================================================================

    async def create(self, **kwargs) -> ModelType:
        """
        Create an entity with validation + DB write.

        The INSERT runs inside a SAVEPOINT: when a unique constraint rejects it
        (another writer created the same row first) only the savepoint is rolled
        back, DuplicateError is raised, and the caller's transaction stays usable
        for a re-read.

        Logging:
        - DEBUG: start event with model name and provided keys (not values).
        - INFO: expected input errors (invalid fields, missing required, duplicate).
        - INFO: success event with created id and duration_ms.
        """
        model_name = self.model.__name__
        logger.debug(
            "repo.create.start",
            extra={"model": model_name, "operation": "create", "provided_keys": sorted(kwargs.keys())},
        )

        unknown = find_unknown_model_kwargs(self.model, kwargs)
        if unknown:
            logger.info(
                "repo.create.invalid_fields",
                extra={"model": model_name, "operation": "create", "invalid_fields": sorted(unknown)},
            )
            raise InvalidFieldError(f"Unknown field(s) for {model_name}: {', '.join(unknown)}", fields=unknown)

        required_cols = get_required_columns(self.model)
        missing = [c for c in required_cols if kwargs.get(c) is None]
        if missing:
            logger.info(
                "repo.create.missing_required",
                extra={"model": model_name, "operation": "create", "missing_fields": sorted(missing)},
            )
            raise RepositoryError(f"Missing required field(s): {', '.join(missing)} for {model_name}", fields=missing)

        async with db_error_handler(model_name):
            conflicts = await find_unique_conflicts(self.db, self.model, kwargs)
        if conflicts:
            logger.info(
                "repo.create.duplicate_precheck",
                extra={"model": model_name, "operation": "create", "conflict_fields": sorted(conflicts)},
            )
            raise DuplicateError(
                f"{model_name} already exists for field(s): {', '.join(sorted(conflicts))}",
                fields=sorted(conflicts),
            )

        start = time.perf_counter()
        async with db_error_handler(model_name, self.model.__table__):
            async with self.db.begin_nested():
                entity = self.model(**kwargs)
                self.db.add(entity)
                await self.db.flush()

        logger.info(
            "repo.create.success",
            extra={
                "model": model_name,
                "operation": "create",
                "id": getattr(entity, "id", None),
                "duration_ms": int((time.perf_counter() - start) * 1000),
            },
        )
        return entity

    # =================================================================================================================
    # Read
    # =================================================================================================================

    async def get_by_id(self, entity_id: UUID) -> ModelType | None:
        async with db_error_handler(self.model.__name__):
            result = await self.db.execute(select(self.model).where(self.model.id == entity_id))
            entity = result.scalar_one_or_none()
        logger.debug("repo.get_by_id", extra={"model": self.model.__name__, "id": entity_id, "found": entity is not None})
        return entity

    async def get_by_id_or_raise(self, entity_id: UUID) -> ModelType:
        """
        Get an entity by its ID or raise NotFoundError (fail fast in services).
        """
        entity = await self.get_by_id(entity_id)
        if entity is None:
            raise NotFoundError(f"{self.model.__name__} with ID {entity_id} not found")
        return entity

    async def find_by_field(self, field: str, value: Any) -> ModelType | None:
        """
        Find a single entity by any mapped field.

        Raises:
            InvalidFieldError: If the field does not exist on the model.
        """
        if find_unknown_model_kwargs(self.model, {field: value}):
            raise InvalidFieldError(f"{self.model.__name__} has no field '{field}'", fields=[field])

        async with db_error_handler(self.model.__name__):
            result = await self.db.execute(
                select(self.model).where(getattr(self.model, field) == value).limit(1)
            )
            return result.scalars().first()

    async def exists(self, entity_id: UUID) -> bool:
        async with db_error_handler(self.model.__name__):
            result = await self.db.execute(select(self.model.id).where(self.model.id == entity_id))
            return result.scalar() is not None

    async def count(self, **filters: Any) -> int:
        """
        Count entities matching equality filters, e.g. `count(type=ConversationType.TEAM_GROUP)`.
        """
        unknown = find_unknown_model_kwargs(self.model, filters)
        if unknown:
            raise InvalidFieldError(f"Unknown field(s) for {self.model.__name__}: {', '.join(unknown)}", fields=unknown)

        query = select(func.count(self.model.id))
        for field, value in filters.items():
            query = query.where(getattr(self.model, field) == value)

        async with db_error_handler(self.model.__name__):
            result = await self.db.execute(query)
            return int(result.scalar_one())
