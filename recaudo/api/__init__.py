"""
Recaudo Seguro API Application Factory
"""

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..config import get_config
from ..errors import (
    ConcurrencyError, ConfigurationError, IneligibleError, NotFoundError, RecaudoError,
    ValidationError
)
from ..logging_config import get_logger, setup_logging
from .clients import router as clients_router
from .credits import router as credits_router
from .providers import router as providers_router
from .routes import router as routes_router


# First match along the exception's MRO wins
ERROR_STATUS = {
    NotFoundError: 404,
    ValidationError: 400,
    IneligibleError: 409,
    ConcurrencyError: 409,
    ConfigurationError: 422,
}

logger = get_logger("recaudo.api")


def status_for(error: RecaudoError) -> int:
    for cls in type(error).__mro__:
        if cls in ERROR_STATUS:
            return ERROR_STATUS[cls]
    return 500


async def recaudo_error_handler(request: Request, exc: RecaudoError) -> JSONResponse:
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error(f"Unhandled engine error on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=status_code, content={"error": exc.code, "detail": exc.message})


def create_app() -> FastAPI:
    """Create and configure the FastAPI application"""
    config = get_config()
    setup_logging(level=config.log_level, log_format=config.log_format, log_file=config.log_file)

    app = FastAPI(
        title="Recaudo Seguro API",
        description="Microcredit collection routes and credit lifecycle",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RecaudoError, recaudo_error_handler)

    app.include_router(credits_router, prefix="/credits", tags=["Credits"])
    app.include_router(routes_router, prefix="/routes", tags=["Routes"])
    app.include_router(providers_router, prefix="/providers", tags=["Providers"])
    app.include_router(clients_router, prefix="/clients", tags=["Clients"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "recaudo_api",
            "version": "1.0.0"
        }

    @app.get("/")
    async def get_api_info():
        """Get API information"""
        return {
            "name": "Recaudo Seguro API",
            "version": "1.0.0",
            "description": "Microcredit collection routes and credit lifecycle",
            "endpoints": {
                "docs": "/docs",
                "health": "/health",
                "credits": "/credits",
                "routes": "/routes",
                "providers": "/providers",
                "clients": "/clients",
            }
        }

    return app


def run_server(host: str = "0.0.0.0", port: int = 8090, debug: bool = False):
    """Run the FastAPI server"""
    uvicorn.run(
        "recaudo.api:app",
        host=host,
        port=port,
        reload=debug,
        log_level="info"
    )


app = create_app()
