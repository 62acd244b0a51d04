"""
Ownership Middleware — authentication and project-ownership decorators.

``@login_required`` rejects requests without a valid bearer token (401) and
exposes the user as ``g.current_user``.

``@require_project_owner`` is the single place that answers "does this
project belong to the caller?". It resolves the project id from a route
parameter (or from a JSON body key for the AI endpoints), scopes the lookup
to ``g.jwt_user_id`` and injects the ``Project`` as the ``project`` keyword
argument. A project owned by someone else is reported as 404, never 403.

Usage:
    @bp.route("/projects/<int:project_id>/tasks")
    @require_project_owner()
    def list_tasks(project_id, project):
        ...

    @ai_bp.route("/optimize-workload", methods=["POST"])
    @require_project_owner(body_key="projectId")
    def optimize_workload(project):
        ...
"""

import functools
import logging

from flask import g

from app.models.project import Project
from app.services.helpers.scoped_queries import get_scoped_or_none
from app.services.user_service import get_user_by_id
from app.utils.errors import E, api_error
from app.utils.helpers import json_body

logger = logging.getLogger(__name__)


def _authenticate():
    """Return the current User or None; caches on ``g.current_user``."""
    user = getattr(g, "current_user", None)
    if user is not None:
        return user
    user_id = getattr(g, "jwt_user_id", None)
    if user_id is None:
        return None
    user = get_user_by_id(user_id)
    g.current_user = user
    return user


def login_required(f):
    """Decorator: require a valid bearer token for an existing user."""
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        if _authenticate() is None:
            return api_error(E.UNAUTHORIZED, "Unauthorized")
        return f(*args, **kwargs)
    return decorated


def require_project_owner(param_name: str = "project_id", *, body_key: str | None = None):
    """
    Decorator: require the authenticated user to own the referenced project.

    Args:
        param_name: Route parameter holding the project id.
        body_key: When set, read the project id from this JSON body key instead.
    """
    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            user = _authenticate()
            if user is None:
                return api_error(E.UNAUTHORIZED, "Unauthorized")

            if body_key:
                project_id = json_body().get(body_key)
                if not project_id:
                    return api_error(E.VALIDATION_REQUIRED, f"{body_key} is required")
            else:
                project_id = kwargs.get(param_name)

            project = get_scoped_or_none(Project, project_id, user_id=user.id)
            if project is None:
                logger.info("User %s: project %s not found or not owned", user.id, project_id)
                return api_error(E.NOT_FOUND, "Project not found")

            kwargs["project"] = project
            return f(*args, **kwargs)
        return decorated
    return decorator
