"""Entity-name based data access over a SQLAlchemy session."""
from __future__ import annotations

from typing import Any, Mapping, Protocol, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models import (
    Base,
    Phlag,
    PhlagApiKey,
    PhlagApiKeyEnvironment,
    PhlagEnvironment,
    PhlagEnvironmentValue,
    PhlagWebhook,
)

ENTITY_MODELS: dict[str, type[Base]] = {
    "Phlag": Phlag,
    "PhlagApiKey": PhlagApiKey,
    "PhlagApiKeyEnvironment": PhlagApiKeyEnvironment,
    "PhlagEnvironment": PhlagEnvironment,
    "PhlagEnvironmentValue": PhlagEnvironmentValue,
    "PhlagWebhook": PhlagWebhook,
}


class UnknownEntityError(LookupError):
    """Raised when an entity name has no mapped model."""


class DuplicateEntityError(ValueError):
    """Raised when a save violates a uniqueness constraint."""


class DataAccess(Protocol):
    """Collaborator the evaluation and dispatch code reads entities through."""

    def find(
        self,
        entity_name: str,
        criteria: Mapping[str, Any] | None = None,
        order_by: Sequence[str] | None = None,
    ) -> dict[int, Any]:
        ...

    def get(self, entity_name: str, entity_id: int) -> Any | None:
        ...

    def save(self, entity_name: str, entity: Any) -> Any:
        ...

    def delete(self, entity_name: str, entity: Any) -> None:
        ...


class Repository:
    """Handles database operations for every Phlag entity by name."""

    def __init__(self, session: Session) -> None:
        """Initialize repository with a SQLAlchemy session.

        Args:
            session: Active database session for executing queries
        """
        self._session = session

    def _model(self, entity_name: str) -> type[Base]:
        try:
            return ENTITY_MODELS[entity_name]
        except KeyError:
            raise UnknownEntityError(f"Unknown entity: {entity_name}") from None

    def find(
        self,
        entity_name: str,
        criteria: Mapping[str, Any] | None = None,
        order_by: Sequence[str] | None = None,
    ) -> dict[int, Any]:
        """Fetch every entity matching the equality criteria.

        Args:
            entity_name: Mapped entity name, e.g. "PhlagWebhook"
            criteria: Column name to required value
            order_by: Column names to sort by (ascending); defaults to the id

        Returns:
            Mapping of entity id to entity, in query order
        """
        model = self._model(entity_name)
        query = self._session.query(model).filter_by(**dict(criteria or {}))
        columns = [getattr(model, column) for column in (order_by or ["id"])]
        return {entity.id: entity for entity in query.order_by(*columns).all()}

    def get(self, entity_name: str, entity_id: int) -> Any | None:
        """Fetch a single entity by id, None when it does not exist."""
        return self._session.get(self._model(entity_name), entity_id)

    def save(self, entity_name: str, entity: Any) -> Any:
        """Insert or update an entity and return it refreshed.

        Raises:
            DuplicateEntityError: If a unique constraint rejects the row
        """
        model = self._model(entity_name)
        if not isinstance(entity, model):
            raise TypeError(f"{entity_name} expects {model.__name__}, got {type(entity).__name__}")

        self._session.add(entity)
        try:
            self._session.commit()
        except IntegrityError as e:
            self._session.rollback()
            raise DuplicateEntityError(f"{entity_name} violates a uniqueness constraint") from e
        self._session.refresh(entity)
        return entity

    def delete(self, entity_name: str, entity: Any) -> None:
        """Remove an entity."""
        self._model(entity_name)
        self._session.delete(entity)
        self._session.commit()
