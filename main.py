import asyncio
import contextlib
from typing import List, Optional

from fastapi import Body, FastAPI, HTTPException, Query
from fastapi.responses import HTMLResponse, JSONResponse, Response
from pydantic import ValidationError

from admob_client import AdMobClient, setup_logging
from config import DashboardConfig
from credentials import GcloudCredentialProvider, get_credential_provider
from error_handling import CredentialError, ExportError, FetchFailure
from export_report import export_records_csv, export_summary_workbook
from html_dashboard import render_dashboard_page
from mock_data import MockAdMobClient
from models import AuthResponse, AuthStatus
from pipeline import DashboardSession
from validators import AuthCodeInput, ReportRequestParams, ViewQueryParams, resolve_date_range
from view_state import ViewState, derive_view, matches_filters, sort_records


def _validation_detail(exc: ValidationError) -> str:
    return "; ".join(error["msg"] for error in exc.errors())


def view_state_from_query(params: ViewQueryParams, default_page_size: int = 10) -> ViewState:
    return ViewState(
        sort_key=params.sort,
        sort_direction=params.direction,
        page=params.page,
        page_size=params.page_size or default_page_size,
        country_filter=params.country.strip(),
        app_filter=params.app.strip(),
        date_filter=params.date.strip(),
        hidden_columns=frozenset(params.hidden),
    )


def create_app(
    config: Optional[DashboardConfig] = None,
    client=None,
    credential_provider=None
) -> FastAPI:
    config = config or DashboardConfig.from_env()
    if client is None:
        if config.use_mock_data:
            client = MockAdMobClient()
        else:
            credential_provider = credential_provider or get_credential_provider(config)
            client = AdMobClient(config, credential_provider)
    if credential_provider is None:
        credential_provider = getattr(client, "credentials", None)

    @contextlib.asynccontextmanager
    async def lifespan(_app: FastAPI):
        setup_logging(config.log_file)
        yield

    app = FastAPI(
        title="AdMob Dashboard",
        description="Sortable, filterable AdMob network report with revenue chart",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.config = config
    app.state.client = client
    app.state.credentials = credential_provider
    app.state.session = DashboardSession(client, locale=config.locale)

    def _request_state(start, end, sort, direction, page, page_size, country, app_filter, date, hidden):
        try:
            date_range = resolve_date_range(start, end, config.default_range_days)
            params = ViewQueryParams.model_validate(
                {
                    "sort": sort,
                    "direction": direction,
                    "page": page,
                    "page_size": page_size,
                    "country": country,
                    "app": app_filter,
                    "date": date,
                    "hidden": hidden,
                },
                context={"default_page_size": config.default_page_size},
            )
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=_validation_detail(exc)) from exc
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return date_range, view_state_from_query(params, config.default_page_size)

    def app_state_session() -> DashboardSession:
        return app.state.session

    @app.get("/", response_class=HTMLResponse)
    async def dashboard(
        start: Optional[str] = None,
        end: Optional[str] = None,
        sort: str = "revenue",
        direction: str = "descending",
        page: int = 1,
        page_size: Optional[int] = None,
        country: str = "",
        app_filter: str = Query("", alias="app"),
        date: str = "",
        hidden: List[str] = Query(default=[]),
        refresh: bool = False
    ):
        date_range, state = _request_state(start, end, sort, direction, page, page_size, country, app_filter, date, hidden)
        result = await app_state_session().ensure_loaded(date_range.start_date, date_range.end_date, refresh=refresh)
        view = derive_view(result.records, state) if result.error is None else None
        return HTMLResponse(render_dashboard_page(result, view))

    @app.get("/api/admob/accounts")
    def get_accounts():
        try:
            return app.state.client.list_accounts()
        except FetchFailure as exc:
            return JSONResponse(status_code=500, content={"error": str(exc)})

    @app.post("/api/admob/reports")
    async def generate_report(body: ReportRequestParams = Body(...)):
        try:
            return await asyncio.to_thread(app_state_session().fetch_raw, body.start_date, body.end_date)
        except FetchFailure as exc:
            return JSONResponse(status_code=500, content={"error": str(exc)})

    @app.get("/api/admob/view")
    async def get_view(
        start: Optional[str] = None,
        end: Optional[str] = None,
        sort: str = "revenue",
        direction: str = "descending",
        page: int = 1,
        page_size: Optional[int] = None,
        country: str = "",
        app_filter: str = Query("", alias="app"),
        date: str = "",
        hidden: List[str] = Query(default=[]),
        refresh: bool = False
    ):
        date_range, state = _request_state(start, end, sort, direction, page, page_size, country, app_filter, date, hidden)
        result = await app_state_session().ensure_loaded(date_range.start_date, date_range.end_date, refresh=refresh)
        if result.error is not None:
            return JSONResponse(status_code=500, content={"error": result.error})
        view = derive_view(result.records, state)
        return {
            "startDate": result.start_date.isoformat(),
            "endDate": result.end_date.isoformat(),
            "empty": result.is_empty,
            "skippedItems": result.skipped_items,
            "view": view.model_dump(mode="json"),
            "aggregates": result.aggregates.model_dump(mode="json"),
            "daily": [point.model_dump(mode="json") for point in result.daily],
        }

    @app.get("/api/admob/export")
    async def export(
        export_format: str = Query("csv", alias="format"),
        start: Optional[str] = None,
        end: Optional[str] = None,
        sort: str = "revenue",
        direction: str = "descending",
        country: str = "",
        app_filter: str = Query("", alias="app"),
        date: str = ""
    ):
        if export_format not in ("csv", "xlsx"):
            raise HTTPException(status_code=400, detail="format must be 'csv' or 'xlsx'")
        date_range, state = _request_state(start, end, sort, direction, 1, None, country, app_filter, date, [])
        result = await app_state_session().ensure_loaded(date_range.start_date, date_range.end_date)
        if result.error is not None:
            return JSONResponse(status_code=500, content={"error": result.error})

        rows = sort_records(
            [record for record in result.records if matches_filters(record, state)],
            state.sort_key,
            state.sort_direction,
        )
        stem = f"admob_report_{result.start_date:%Y%m%d}_{result.end_date:%Y%m%d}"
        try:
            if export_format == "csv":
                content = export_records_csv(rows).encode("utf-8")
                media_type = "text/csv"
            else:
                content = export_summary_workbook(rows, result.aggregates)
                media_type = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
        except ExportError as exc:
            return JSONResponse(status_code=500, content={"error": str(exc)})
        return Response(
            content=content,
            media_type=media_type,
            headers={"Content-Disposition": f'attachment; filename="{stem}.{export_format}"'},
        )

    @app.post("/api/admob/auth", response_model=AuthResponse)
    def authenticate(body: Optional[AuthCodeInput] = Body(default=None)):
        code = body.code if body is not None else None
        provider = app.state.credentials
        if not isinstance(provider, GcloudCredentialProvider):
            return JSONResponse(
                status_code=400,
                content={"status": "error", "message": "Interactive login requires the gcloud credential flow"},
            )
        try:
            if not code:
                auth_url = provider.start_login()
                return AuthResponse(
                    status="need_code",
                    message="Please visit the URL and enter the code",
                    auth_url=auth_url,
                )
            details = provider.complete_login(code)
        except CredentialError as exc:
            return JSONResponse(status_code=500, content={"status": "error", "message": str(exc)})
        return AuthResponse(status="success", message="Authentication successful", details=details)

    @app.get("/api/admob/auth/status", response_model=AuthStatus)
    def auth_status():
        provider = app.state.credentials
        if provider is None:
            return AuthStatus(is_authenticated=True, account=None)
        try:
            status = provider.auth_status()
        except CredentialError as exc:
            return AuthStatus(is_authenticated=False, error=str(exc))
        return AuthStatus(
            is_authenticated=bool(status.get("is_authenticated")),
            account=status.get("account"),
            error=status.get("error"),
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
