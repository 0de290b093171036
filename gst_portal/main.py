from fastapi import FastAPI
from typing import Optional
import logging

from gst_portal.core.config import Settings
from gst_portal.core.extraction import ExtractionClient
from gst_portal.core.government import GovernmentDataSource, SyntheticGovernmentDataSource
from gst_portal.core.middleware import TenantMiddleware
from gst_portal.core.reconciliation import ReconciliationService
from gst_portal.db.repository import InMemoryInvoiceRepository, InvoiceRepository


def configure_logging(level: str):
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(
    settings: Optional[Settings] = None,
    repository: Optional[InvoiceRepository] = None,
    extractor: Optional[ExtractionClient] = None,
    government: Optional[GovernmentDataSource] = None,
) -> FastAPI:
    settings = settings or Settings()
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(title=settings.PROJECT_NAME)
    app.state.settings = settings
    app.state.service = ReconciliationService(
        repository=repository or InMemoryInvoiceRepository(),
        extractor=extractor or ExtractionClient(settings),
        government=government or SyntheticGovernmentDataSource(),
        settings=settings,
    )

    app.add_middleware(TenantMiddleware)

    from gst_portal.api import health, invoices, filing, reports
    app.include_router(health.router)
    app.include_router(invoices.router)
    app.include_router(filing.router)
    app.include_router(reports.router)

    return app


# uvicorn gst_portal.main:create_app --factory
if __name__ == "__main__":
    import uvicorn
    uvicorn.run("gst_portal.main:create_app", factory=True, host="0.0.0.0", port=8000)
