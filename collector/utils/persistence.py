"""Natural-key upserts on top of the ORM session."""

from __future__ import annotations

from typing import Any, Mapping, TypeVar

from sqlalchemy.orm import Session

ModelT = TypeVar("ModelT")


def upsert_row(
    session: Session,
    model: type[ModelT],
    *,
    keys: Mapping[str, Any],
    values: Mapping[str, Any],
) -> tuple[ModelT, bool]:
    """Insert or update the row of ``model`` identified by ``keys``.

    Returns the instance and whether it was created. New rows are flushed so
    their primary key is available to the caller.
    """
    existing = session.query(model).filter_by(**keys).one_or_none()
    if existing is None:
        instance = model(**keys, **values)
        session.add(instance)
        session.flush()
        return instance, True

    for key, value in values.items():
        setattr(existing, key, value)
    return existing, False


__all__ = ["upsert_row"]
