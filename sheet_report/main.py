import logging
from contextlib import asynccontextmanager
from typing import Any

import httpx
from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from sheet_report.api_clients.sheets_client import SheetsClient
from sheet_report.config import Settings
from sheet_report.orchestrator.report_orchestrator import SheetsGateway, run_report

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------

class AnalyzeResponse(BaseModel):
    message: str
    output: list[list[Any]]


class ErrorResponse(BaseModel):
    error: str


# ---------------------------------------------------------------------------
# Dependencies (process-wide, built once at startup)
# ---------------------------------------------------------------------------

def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_sheets(request: Request) -> SheetsGateway:
    return request.app.state.sheets


def get_http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.http_client


def create_app(
    settings: Settings | None = None,
    sheets: SheetsGateway | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> FastAPI:
    """
    Build the app.  Anything not passed in is constructed in the lifespan
    hook from the environment and torn down on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned_client: httpx.AsyncClient | None = None
        if app.state.settings is None:
            app.state.settings = Settings.from_env()
        if app.state.http_client is None:
            owned_client = httpx.AsyncClient()
            app.state.http_client = owned_client
        if app.state.sheets is None:
            app.state.sheets = SheetsClient.from_service_account_file(
                app.state.settings.credentials_path, app.state.http_client
            )
        logger.info("[App] Ready: spreadsheet=%s input=%s output=%s",
                    app.state.settings.spreadsheet_id,
                    app.state.settings.input_range,
                    app.state.settings.output_anchor)
        try:
            yield
        finally:
            if owned_client is not None:
                await owned_client.aclose()

    app = FastAPI(title="Sheet Report", lifespan=lifespan)
    app.state.settings = settings
    app.state.sheets = sheets
    app.state.http_client = http_client

    @app.get("/health")
    def healthcheck():
        return {"status": "ok"}

    @app.get(
        "/analyze",
        response_model=AnalyzeResponse,
        responses={500: {"model": ErrorResponse}},
    )
    async def analyze(
        settings: Settings = Depends(get_settings),
        sheets: SheetsGateway = Depends(get_sheets),
        client: httpx.AsyncClient = Depends(get_http_client),
    ):
        """
        Read stocks from the input range, price and analyze each one, and
        write the report to the output range.
        """
        try:
            result = await run_report(sheets, client, settings)
        except Exception as exc:
            logger.exception("Stock report failed")
            return JSONResponse(status_code=500, content={"error": str(exc)})
        return AnalyzeResponse(message="Output report updated!", output=result.values)

    return app
