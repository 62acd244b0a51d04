"""
Project Planner
Blueprint helpers: the shared error handlers.
"""

import logging

from flask import request
from werkzeug.exceptions import HTTPException

from app.core.exceptions import (
    AIServiceError,
    ConflictError,
    FileParseError,
    NotFoundError,
    UpstreamContractError,
    ValidationError,
)
from app.models import db
from app.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def register_error_handlers(bp):
    """Map the service exception hierarchy to JSON envelopes for one blueprint."""

    @bp.errorhandler(NotFoundError)
    def _handle_not_found(error: NotFoundError):
        db.session.rollback()
        logger.info("Not found: %s", error)
        return api_error(E.NOT_FOUND, error.public_message)

    @bp.errorhandler(ValidationError)
    def _handle_validation(error: ValidationError):
        db.session.rollback()
        return api_error(E.VALIDATION_INVALID, str(error), details=error.details or None)

    @bp.errorhandler(ConflictError)
    def _handle_conflict(error: ConflictError):
        db.session.rollback()
        return api_error(E.CONFLICT_DUPLICATE, str(error))

    @bp.errorhandler(UpstreamContractError)
    def _handle_contract(error: UpstreamContractError):
        db.session.rollback()
        logger.warning("Upstream contract violation (%s): %s", error.purpose, error.errors)
        return api_error(
            E.UPSTREAM_CONTRACT,
            "AI returned a response in an unexpected format",
            details={"purpose": error.purpose, "errors": error.errors},
        )

    @bp.errorhandler(AIServiceError)
    def _handle_ai_failure(error: AIServiceError):
        db.session.rollback()
        logger.error("AI service failure: %s", error)
        return api_error(E.AI_FAILURE, str(error) or "AI request failed")

    @bp.errorhandler(FileParseError)
    def _handle_file_parse(error: FileParseError):
        code = E.FILE_REJECTED if error.status < 500 else E.FILE_PARSE
        return api_error(code, str(error), status=error.status)

    @bp.errorhandler(Exception)
    def _handle_unexpected(error: Exception):
        if isinstance(error, HTTPException):
            return error
        db.session.rollback()
        logger.exception("Unexpected error in %s endpoint=%s", bp.name, request.endpoint)
        return api_error(E.INTERNAL, "Internal server error")
