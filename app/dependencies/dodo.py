import logging

from fastapi import Request

from app.core.errors import ProviderUnavailable
from app.services.dodo_client import DodoClient

logger = logging.getLogger(__name__)


def get_dodo_client(request: Request) -> DodoClient:
    """The shared Dodo client built at startup; 503 when it could not be configured."""
    client = getattr(request.app.state, "dodo_client", None)
    if client is None:
        logger.error("[Dodo] Client not configured")
        raise ProviderUnavailable()
    return client
