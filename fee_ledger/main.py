import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fee_ledger.api.v1.academic_years.router import router as academic_years_router
from fee_ledger.api.v1.dashboard.router import router as dashboard_router
from fee_ledger.api.v1.dues.router import router as dues_router
from fee_ledger.api.v1.fee_structures.router import router as fee_structures_router
from fee_ledger.api.v1.imports.router import router as imports_router
from fee_ledger.api.v1.payments.router import router as payments_router
from fee_ledger.api.v1.students.router import router as students_router
from fee_ledger.api.v1.transport_fees.router import router as transport_fees_router
from fee_ledger.core.config import settings
from fee_ledger.core.exceptions import ServiceError


def create_app() -> FastAPI:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title="Fee Ledger")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Service errors that escape a router keep their status code and retry hint
    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    # Routers
    app.include_router(academic_years_router)
    app.include_router(students_router)
    app.include_router(fee_structures_router)
    app.include_router(dues_router)
    app.include_router(payments_router)
    app.include_router(transport_fees_router)
    app.include_router(imports_router)
    app.include_router(dashboard_router)

    return app


app = create_app()
