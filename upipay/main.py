import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from upipay.config import Settings, load_settings
from upipay.database import make_session_factory
from upipay.errors import ConfigurationError, PaymentServiceError
from upipay.payments import PaymentFlow
from upipay.razorpay_service import RazorpayGateway
from upipay.routes import router
from upipay.upi import QrRenderer
from upipay.webhook_store import WebhookStore

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, gateway: Optional[RazorpayGateway] = None) -> FastAPI:
    """Build the service. Raises ConfigurationError before anything is served."""
    settings = settings or load_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    gateway = gateway or RazorpayGateway.from_settings(settings)
    webhook_store = WebhookStore(make_session_factory(settings.database_url)) if settings.webhook_dedup else None
    if not settings.razorpay_webhook_secret:
        logger.warning("RAZORPAY_WEBHOOK_SECRET is not set; /webhook will reject deliveries")

    app = FastAPI(title="UPI Payment Service")
    app.state.settings = settings
    app.state.flow = PaymentFlow(settings, gateway, QrRenderer.from_settings(settings), webhook_store)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(PaymentServiceError)
    async def payment_error_handler(request: Request, exc: PaymentServiceError):
        if exc.http_status >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.http_status, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"error": "Invalid request body"})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"{request.method} {request.url.path} crashed: {exc}")
        return JSONResponse(status_code=500, content={"error": "Internal Server Error"})

    app.include_router(router)

    if settings.qr_strategy == "file":
        settings.qr_dir.mkdir(parents=True, exist_ok=True)
        app.mount("/qrcodes", StaticFiles(directory=settings.qr_dir), name="qrcodes")

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


def run():
    import uvicorn

    try:
        settings = load_settings()
        app = create_app(settings)
    except ConfigurationError as exc:
        logger.critical(f"Refusing to start: {exc.message}")
        raise SystemExit(1)
    uvicorn.run(app, host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    run()
