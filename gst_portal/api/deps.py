from fastapi import Request

from gst_portal.core.config import Settings
from gst_portal.core.reconciliation import ReconciliationService


def get_service(request: Request) -> ReconciliationService:
    return request.app.state.service


def get_settings(request: Request) -> Settings:
    return request.app.state.settings
