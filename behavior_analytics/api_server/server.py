"""
FastAPI server: HTTP wrapper over the analytics engine.

Mutations (register, record transfer) require the operator principal in the
X-Caller header; reads are open. Engine errors map to HTTP statuses via their
http_status attribute. Config via env (see behavior_analytics.config).
"""

from __future__ import annotations

from typing import Any

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from behavior_analytics import __version__
from behavior_analytics.analytics_logging import get_logger
from behavior_analytics.core.exceptions import AnalyticsError
from behavior_analytics.engine import BehaviorAnalyticsEngine

logger = get_logger(__name__)


# -----------------------------------------------------------------------------
# Request / response models
# -----------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """POST /accounts body."""

    account: str = Field(..., min_length=1, max_length=128, description="Account principal")


class RegisterResponse(BaseModel):
    account: str
    registered: bool = True


class TransferRequest(BaseModel):
    """POST /accounts/{account}/transfers body."""

    recipient: str = Field(..., min_length=1, max_length=128)
    amount: int = Field(..., ge=0, description="Token amount; zero is rejected by the engine")
    transfer_type: str = Field(..., min_length=1, max_length=32, description="Short category, e.g. 'transfer'")
    now: int | None = Field(None, ge=0, description="Block height override; defaults to the engine clock")


class TransferResponse(BaseModel):
    transfer_id: int


class ProfileResponse(BaseModel):
    account: str
    total_transfers: int
    total_volume: int
    first_activity: int
    last_activity: int
    average_hold_time: int
    risk_score: int
    loyalty_score: int
    is_flagged: bool


class FlagsResponse(BaseModel):
    rapid_trading: bool
    large_volume: bool
    suspicious_pattern: bool
    whale_activity: bool
    dormant_reactivation: bool


class TransferRecordResponse(BaseModel):
    account: str
    transfer_id: int
    amount: int
    timestamp: int
    recipient: str
    transfer_type: str


class DailyActivityResponse(BaseModel):
    account: str
    day: int
    transfer_count: int
    total_volume: int
    unique_recipients: int


class GlobalAnalyticsResponse(BaseModel):
    total_accounts: int
    total_flagged_accounts: int
    average_risk_score: int
    next_transfer_id: int


# -----------------------------------------------------------------------------
# App factory
# -----------------------------------------------------------------------------


def get_engine(request: Request) -> BehaviorAnalyticsEngine:
    """Dependency: the app-scoped engine."""
    return request.app.state.engine


def _principal(value: str) -> str:
    """Account principals are matched with surrounding whitespace removed."""
    return value.strip()


def _not_found(what: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"{what} not found")


def create_app(engine: BehaviorAnalyticsEngine | None = None) -> FastAPI:
    """
    Build the ASGI app around an engine. Without one, the engine is built from
    env settings (store URL, operator, block time, tunables).
    """
    app = FastAPI(
        title="Behavior Analytics API",
        description="Per-account transfer analytics: profiles, behavior flags, risk and loyalty scores.",
        version=__version__,
    )
    app.state.engine = engine if engine is not None else BehaviorAnalyticsEngine.from_settings()
    logger.info("api_app_created", store=type(app.state.engine.db.backend).__name__)

    @app.exception_handler(AnalyticsError)
    def analytics_error_handler(request: Request, exc: AnalyticsError) -> JSONResponse:
        """Consistent JSON error body for engine errors."""
        return JSONResponse(status_code=exc.http_status, content=exc.to_dict())

    @app.exception_handler(HTTPException)
    def http_exception_handler(request: Any, exc: HTTPException) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

    @app.get("/health")
    def health() -> dict[str, str]:
        """Liveness check: API is up."""
        return {"status": "ok"}

    @app.post("/accounts", response_model=RegisterResponse, status_code=201)
    def register_account(
        body: RegisterRequest,
        x_caller: str = Header("", alias="X-Caller"),
        engine: BehaviorAnalyticsEngine = Depends(get_engine),
    ) -> RegisterResponse:
        account = _principal(body.account)
        engine.register(x_caller, account)
        return RegisterResponse(account=account)

    @app.post("/accounts/{account}/transfers", response_model=TransferResponse, status_code=201)
    def record_transfer(
        account: str,
        body: TransferRequest,
        x_caller: str = Header("", alias="X-Caller"),
        engine: BehaviorAnalyticsEngine = Depends(get_engine),
    ) -> TransferResponse:
        try:
            transfer_id = engine.record_transfer(
                x_caller,
                _principal(account),
                body.recipient,
                body.amount,
                body.transfer_type,
                now=body.now,
            )
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        return TransferResponse(transfer_id=transfer_id)

    @app.get("/accounts/{account}", response_model=ProfileResponse)
    def get_profile(account: str, engine: BehaviorAnalyticsEngine = Depends(get_engine)) -> ProfileResponse:
        profile = engine.get_profile(_principal(account))
        if profile is None:
            raise _not_found("account")
        return ProfileResponse(**profile.to_dict())

    @app.get("/accounts/{account}/flags", response_model=FlagsResponse)
    def get_flags(account: str, engine: BehaviorAnalyticsEngine = Depends(get_engine)) -> FlagsResponse:
        flags = engine.get_flags(_principal(account))
        if flags is None:
            raise _not_found("flags")
        return FlagsResponse(**flags.to_dict())

    @app.get("/accounts/{account}/transfers/{transfer_id}", response_model=TransferRecordResponse)
    def get_transfer(
        account: str,
        transfer_id: int,
        engine: BehaviorAnalyticsEngine = Depends(get_engine),
    ) -> TransferRecordResponse:
        record = engine.get_transfer(_principal(account), transfer_id)
        if record is None:
            raise _not_found("transfer")
        return TransferRecordResponse(**record.to_dict())

    @app.get("/accounts/{account}/daily/{day}", response_model=DailyActivityResponse)
    def get_daily_activity(
        account: str,
        day: int,
        engine: BehaviorAnalyticsEngine = Depends(get_engine),
    ) -> DailyActivityResponse:
        aggregate = engine.get_daily_activity(_principal(account), day)
        if aggregate is None:
            raise _not_found("daily activity")
        return DailyActivityResponse(**aggregate.to_dict())

    @app.get("/analytics", response_model=GlobalAnalyticsResponse)
    def get_global_analytics(engine: BehaviorAnalyticsEngine = Depends(get_engine)) -> GlobalAnalyticsResponse:
        return GlobalAnalyticsResponse(**engine.get_global_analytics().to_dict())

    return app
