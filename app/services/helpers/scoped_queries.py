"""
Ownership-scoped query helpers.

Every get-by-id on user data goes through these helpers instead of
``db.session.get(Model, pk)``. A plain ``.get()`` ignores ownership, so a
caller could read another user's project by guessing ids.

Usage:
    # Scope by owning user (Project, Resource)
    project = get_scoped(Project, project_id, user_id=user_id)

    # Scope by parent project (Task, Sprint, ChangeRequest, governance items)
    change = get_scoped(ChangeRequest, change_id, project_id=project.id)

    # When None is an acceptable outcome
    sprint = get_scoped_or_none(Sprint, sprint_id, project_id=project.id)

Each keyword argument maps directly to a column name on the model. A scope
keyword naming a column the model lacks raises ValueError immediately.
"""

import logging

from sqlalchemy import select

from app.core.exceptions import NotFoundError
from app.models import db

logger = logging.getLogger(__name__)


def _coerce_pk(pk):
    try:
        return int(pk)
    except (TypeError, ValueError):
        return None


def get_scoped(
    model,
    pk,
    *,
    user_id: int | None = None,
    project_id: int | None = None,
):
    """Fetch a single entity by PK with a mandatory ownership filter.

    Access to another user's record is indistinguishable from a missing
    record: both raise NotFoundError → HTTP 404.

    Args:
        model: SQLAlchemy model class with an ``id`` PK column.
        pk: Primary key value (ints and numeric strings accepted).
        user_id: Scope by the ``user_id`` column.
        project_id: Scope by the ``project_id`` column.

    Raises:
        ValueError: no scope given, or a scope column missing on the model.
        NotFoundError: entity missing or outside the scope.
    """
    scopes = {"user_id": user_id, "project_id": project_id}
    scopes = {k: v for k, v in scopes.items() if v is not None}

    if not scopes:
        raise ValueError(
            f"{model.__name__} id={pk} requires a user_id or project_id scope. "
            "Unscoped lookups are forbidden."
        )
    for field in scopes:
        if not hasattr(model, field):
            raise ValueError(f"{model.__name__} has no scope column '{field}'")

    key = _coerce_pk(pk)
    if key is None:
        raise NotFoundError(resource=model.__name__, resource_id=pk)

    stmt = select(model).where(model.id == key)
    for field, value in scopes.items():
        stmt = stmt.where(getattr(model, field) == value)

    result = db.session.execute(stmt).scalar_one_or_none()
    if result is None:
        logger.debug("get_scoped: %s id=%s not found in scope %s", model.__name__, pk, scopes)
        raise NotFoundError(resource=model.__name__, resource_id=pk)
    return result


def get_scoped_or_none(model, pk, *, user_id: int | None = None, project_id: int | None = None):
    """Same as get_scoped but returns None instead of raising NotFoundError."""
    try:
        return get_scoped(model, pk, user_id=user_id, project_id=project_id)
    except NotFoundError:
        return None
