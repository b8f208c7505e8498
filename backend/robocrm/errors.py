# Overview: Maps service-layer exceptions to JSON error responses.

from flask import current_app, jsonify

from .money import MoneyError
from .validation import ConflictError, ValidationError
from .services.auth_service import PasswordValidationError, UserError
from .services.campaign_service import CampaignNotFoundError, MailingNotImplementedError
from .services.catalog_service import CatalogNotFoundError
from .services.client_service import ClientNotFoundError, DictionaryNotFoundError
from .services.reseller_service import ResellerNotFoundError
from .services.contract_service import ContractError, ContractNotFoundError
from .services.document_service import DocumentError, DocumentNotFoundError
from .services.forecast_service import ForecastNotFoundError
from .services.functions_client import FunctionInvocationError
from .services.numbering_service import NumberingError
from .services.offer_service import OfferError, OfferNotFoundError
from .services.pricing_service import PricingError
from .services.settings_service import SettingsNotFoundError, SettingsValidationError
from .services.storage_service import StorageError


NOT_FOUND_ERRORS = (
    CampaignNotFoundError,
    CatalogNotFoundError,
    ClientNotFoundError,
    ContractNotFoundError,
    DictionaryNotFoundError,
    DocumentNotFoundError,
    ForecastNotFoundError,
    OfferNotFoundError,
    ResellerNotFoundError,
    SettingsNotFoundError,
)

BAD_REQUEST_ERRORS = (
    ValidationError,
    MoneyError,
    PricingError,
    NumberingError,
    PasswordValidationError,
    UserError,
    SettingsValidationError,
    OfferError,
    ContractError,
    DocumentError,
)

UPSTREAM_ERRORS = (FunctionInvocationError, StorageError)


def error_response(exc: Exception, action: str):
    """
    (body, status) for an exception raised while performing `action`.
    Unexpected exceptions are logged with traceback and reported as 500.
    """
    if isinstance(exc, NOT_FOUND_ERRORS):
        return jsonify({"error": str(exc)}), 404
    if isinstance(exc, ConflictError):
        return jsonify({"error": str(exc)}), 409
    if isinstance(exc, UPSTREAM_ERRORS):
        current_app.logger.warning("%s failed upstream: %s", action, exc)
        return jsonify({"error": f"{action} failed", "message": str(exc), "details": exc.details}), 502
    if isinstance(exc, MailingNotImplementedError):
        return jsonify({"error": str(exc)}), 501
    if isinstance(exc, BAD_REQUEST_ERRORS):
        body = {"error": str(exc)}
        details = getattr(exc, "details", None)
        if details:
            body["details"] = details
        return jsonify(body), 400
    current_app.logger.exception("%s failed", action)
    return jsonify({"error": f"{action} failed", "message": str(exc)}), 500
