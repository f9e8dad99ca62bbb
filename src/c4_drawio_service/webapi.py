from importlib import resources

from fastapi import FastAPI, Request, status
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from .conversion import (
    ConversionOptions,
    ConversionService,
    ConverterGateway,
    EmptyInputError,
    InputTooLargeError,
    InvalidOptionError,
)
from .conversion.adapters import C4DrawioConverter
from .logging_utils import configure_logging, create_logger
from .settings import Settings

logger = create_logger("webapi")

# Every route answers every method; OPTIONS never reaches them (see CORSHeadersMiddleware)
ANY_METHOD = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE"]

DRAWIO_HEADERS = {
    "Content-Type": "application/xml",
    "Content-Disposition": 'attachment; filename="diagram.drawio"',
}


def load_index_html() -> str:
    return resources.files("c4_drawio_service").joinpath("static/index.html").read_text(encoding="utf-8")


class CORSHeadersMiddleware(BaseHTTPMiddleware):
    """Answer preflight requests for any path and stamp CORS headers on every response."""

    def __init__(self, app, headers: dict[str, str]) -> None:
        super().__init__(app)
        self._headers = headers

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.method == "OPTIONS":
            return Response(status_code=status.HTTP_200_OK, headers=self._headers)
        response = await call_next(request)
        response.headers.update(self._headers)
        return response


def _declared_length(request: Request) -> int:
    try:
        return int(request.headers.get("content-length", "0"))
    except ValueError:
        return 0


def create_app(settings: Settings | None = None, converter: ConverterGateway | None = None) -> FastAPI:
    """Build the service app.

    Settings are read from the environment when not given; the converter
    defaults to the built-in C4-PlantUML engine.
    """
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level, settings.log_format)
    service = ConversionService(converter or C4DrawioConverter(), max_input_size=settings.max_input_size)
    index_html = load_index_html()
    cors_headers = settings.cors_headers()

    app = FastAPI(
        title="C4-PlantUML to draw.io Converter",
        version=settings.version,
        description="Converts C4-PlantUML diagrams to editable draw.io XML.",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    # exact-match routing: "/health/" is a 404, not a redirect
    app.router.redirect_slashes = False
    app.add_middleware(CORSHeadersMiddleware, headers=cors_headers)
    app.state.settings = settings
    app.state.service = service

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException) -> PlainTextResponse:
        message = "Not Found" if exc.status_code == status.HTTP_404_NOT_FOUND else str(exc.detail)
        return PlainTextResponse(message, status_code=exc.status_code, headers=cors_headers)

    @app.exception_handler(Exception)
    async def _unexpected_error(request: Request, exc: Exception) -> PlainTextResponse:
        # Registered on the outermost middleware, so CORS headers are added here
        logger.exception("unhandled_error", path=request.url.path)
        return PlainTextResponse(
            "Internal server error",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            headers=cors_headers,
        )

    @app.api_route("/", methods=ANY_METHOD, response_class=HTMLResponse)
    async def index() -> HTMLResponse:
        return HTMLResponse(index_html, media_type="text/html; charset=utf-8")

    @app.api_route("/health", methods=ANY_METHOD)
    async def health() -> JSONResponse:
        """Basic health check endpoint."""
        return JSONResponse({"status": "ok", "version": settings.version})

    @app.api_route("/convert", methods=ANY_METHOD)
    async def convert(request: Request) -> Response:
        """Convert a C4-PlantUML request body into a draw.io document.

        Layout is controlled with the query parameters `direction`
        (TB, BT, LR, RL), `nodesep`, `ranksep`, `marginx` and `marginy`.
        """
        if request.method != "POST":
            return PlainTextResponse("Method not allowed. Use POST.", status_code=status.HTTP_405_METHOD_NOT_ALLOWED)

        try:
            service.check_declared_size(_declared_length(request))
        except InputTooLargeError as e:
            logger.info("convert_rejected", reason="declared_size", max_size=e.max_size)
            return PlainTextResponse(str(e), status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE)

        try:
            source = await service.read_source(request.stream())
            service.check_source(source)
            options = ConversionOptions.from_query(request.query_params)
            drawio_xml = await service.convert(source, options)
        except InputTooLargeError as e:
            logger.info("convert_rejected", reason="body_size", max_size=e.max_size)
            return PlainTextResponse(str(e), status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE)
        except (EmptyInputError, InvalidOptionError) as e:
            logger.info("convert_rejected", reason=type(e).__name__, message=str(e))
            return PlainTextResponse(str(e), status_code=status.HTTP_400_BAD_REQUEST)
        except Exception as e:
            message = str(e) or "Unknown error"
            logger.warning("conversion_failed", error=message, error_type=type(e).__name__)
            return PlainTextResponse(
                f"Conversion error: {message}",
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )

        logger.info(
            "conversion_succeeded",
            input_chars=len(source),
            output_chars=len(drawio_xml),
            **options.as_dict(),
        )
        return Response(content=drawio_xml, headers=DRAWIO_HEADERS)

    return app


app = create_app()


def run() -> None:
    """Run the service with uvicorn.

    Binds to HOST:PORT (default 0.0.0.0:8080). Set RELOAD=true for auto-reload in development.
    """
    import uvicorn

    settings = Settings.from_env()
    logger.info("service_starting", version=settings.version, host=settings.host, port=settings.port)
    uvicorn.run("c4_drawio_service.webapi:app", host=settings.host, port=settings.port, reload=settings.reload)


if __name__ == "__main__":
    run()
