"""
CryptoVault - FastAPI Application

HTTP surface над FundingLedger и ConfidentialOrderBook.
Идентичность вызывающего — заголовок X-Principal.
"""

import dataclasses
import logging
import os
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, List, Literal, Optional

from fastapi import Depends, FastAPI, Header, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.api.schemas import (
    AddLiquidityRequest,
    BalanceResponse,
    ContributionRequest,
    DefaultFeeRateRequest,
    ErrorResponse,
    FeeCollectorRequest,
    HealthResponse,
    MintRequest,
    MutationResponse,
    OrderCreateRequest,
    PairCreateRequest,
    PairPriceRequest,
    PlatformFeeRequest,
    ProjectCreateRequest,
    ProjectResponse,
    ProjectStatusResponse,
    RemoveLiquidityRequest,
    SwapRequest,
    UserOrdersResponse,
)
from src.core.atomic import LedgerReceipt
from src.core.clock import Clock, SystemClock
from src.core.domain.ciphertext import EncryptedInput
from src.core.domain.trading import Order, TradingPair
from src.core.encryption import EncryptionProvider, MockEncryptionProvider
from src.core.errors import (
    AlreadyExists,
    InvalidAmount,
    InvalidInput,
    LedgerError,
    NotFound,
    TransferFailed,
    Unauthorized,
)
from src.core.transfers import AssetLedger
from src.dex.order_book import ConfidentialOrderBook
from src.vault.funding_ledger import FundingLedger


API_VERSION = "0.1.0"

logger = logging.getLogger("cryptovault.api")


# ============================================
# SETTINGS / STATE
# ============================================


@dataclass(frozen=True)
class ApiSettings:
    """Настройки HTTP surface (env: CRYPTOVAULT_OWNER, CRYPTOVAULT_CORS_ORIGINS)."""

    owner: str = "owner"
    cors_origins: List[str] = field(default_factory=lambda: ["*"])

    @classmethod
    def from_env(cls) -> "ApiSettings":
        origins = os.environ.get("CRYPTOVAULT_CORS_ORIGINS", "*")
        return cls(
            owner=os.environ.get("CRYPTOVAULT_OWNER", "owner"),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
        )


class AppState:
    """Ledgers, разделяющие один AssetLedger и один clock."""

    def __init__(
        self,
        owner: str,
        clock: Optional[Clock] = None,
        assets: Optional[AssetLedger] = None,
        encryption: Optional[EncryptionProvider] = None,
    ):
        self.owner = owner
        self.clock = clock or SystemClock()
        self.assets = assets or AssetLedger()
        self.encryption = encryption or MockEncryptionProvider()
        self.vault = FundingLedger(owner=owner, assets=self.assets, clock=self.clock)
        self.dex = ConfidentialOrderBook(owner=owner, assets=self.assets, clock=self.clock)


# ============================================
# ERROR MAPPING
# ============================================


_STATUS_BY_ERROR = (
    (InvalidInput, 422),
    (NotFound, 404),
    (Unauthorized, 403),
    (TransferFailed, 402),
    (AlreadyExists, 409),
)


def status_for(error: LedgerError) -> int:
    for error_type, code in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return code
    # NotActive, NotWithdrawable, slippage / liquidity / shares
    return 409


def _jsonable(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    return value


def to_response(receipt: LedgerReceipt) -> MutationResponse:
    return MutationResponse(
        operation=receipt.operation,
        value=_jsonable(receipt.value),
        events=[e.to_record() for e in receipt.events],
    )


# ============================================
# DEPENDENCIES
# ============================================


def get_state(request: Request) -> AppState:
    return request.app.state.ledgers


def get_principal(x_principal: str = Header(..., min_length=1)) -> str:
    return x_principal


# ============================================
# FASTAPI APPLICATION
# ============================================


def create_app(state: Optional[AppState] = None, settings: Optional[ApiSettings] = None) -> FastAPI:
    """Сборка приложения; state по умолчанию — новые пустые ledgers."""
    settings = settings or ApiSettings.from_env()
    state = state or AppState(owner=settings.owner)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"CryptoVault API starting (owner={state.owner})")
        yield
        logger.info("CryptoVault API shutting down")

    app = FastAPI(
        title="CryptoVault",
        description="Confidential crowdfunding vault and private order book",
        version=API_VERSION,
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
    )
    app.state.ledgers = state
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(LedgerError)
    async def ledger_error_handler(request: Request, exc: LedgerError):
        code = status_for(exc)
        logger.warning(f"{request.method} {request.url.path} rejected ({code}): {exc}")
        return JSONResponse(
            status_code=code,
            content=ErrorResponse(error=exc.kind, detail=exc.reason).model_dump(),
        )

    # ----------------------------------------
    # Health / assets
    # ----------------------------------------

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    def health_check(st: AppState = Depends(get_state)):
        return HealthResponse(
            status="healthy",
            version=API_VERSION,
            project_count=st.vault.project_counter,
            pair_count=len(st.dex.get_all_pairs()),
            order_count=st.dex.order_counter,
            vault_events=len(st.vault.events),
            dex_events=len(st.dex.events),
        )

    @app.post(
        "/api/v1/assets/mint",
        response_model=BalanceResponse,
        status_code=status.HTTP_201_CREATED,
        tags=["Assets"],
    )
    def mint(
        request: MintRequest,
        st: AppState = Depends(get_state),
        principal: str = Depends(get_principal),
    ):
        """Demo faucet (только owner)."""
        if principal != st.owner:
            raise Unauthorized("Only owner can call this function")
        st.assets.mint(request.asset, request.account, request.amount)
        return BalanceResponse(
            asset=request.asset,
            account=request.account,
            balance=st.assets.balance_of(request.asset, request.account),
        )

    @app.get(
        "/api/v1/assets/{asset}/balances/{account}",
        response_model=BalanceResponse,
        tags=["Assets"],
    )
    def get_balance(asset: str, account: str, st: AppState = Depends(get_state)):
        return BalanceResponse(asset=asset, account=account, balance=st.assets.balance_of(asset, account))

    # ----------------------------------------
    # Vault
    # ----------------------------------------

    def _project_response(st: AppState, project_id: int) -> ProjectResponse:
        project = st.vault.get_project(project_id)
        project_status = project.status(st.clock.now())
        return ProjectResponse(project=project, status=project_status, status_name=project_status.name)

    @app.post(
        "/api/v1/projects",
        response_model=MutationResponse,
        status_code=status.HTTP_201_CREATED,
        tags=["Projects"],
    )
    def create_project(
        request: ProjectCreateRequest,
        st: AppState = Depends(get_state),
        principal: str = Depends(get_principal),
    ):
        receipt = st.vault.create_project(
            principal,
            title=request.title,
            description=request.description,
            category=request.category,
            funding_goal=request.funding_goal,
            duration_days=request.duration_days,
        )
        return to_response(receipt)

    @app.get("/api/v1/projects", response_model=List[ProjectResponse], tags=["Projects"])
    def list_projects(
        active_only: bool = False,
        creator: Optional[str] = None,
        st: AppState = Depends(get_state),
    ):
        if creator is not None:
            ids = st.vault.get_creator_projects(creator)
        else:
            ids = range(1, st.vault.project_counter + 1)
        if active_only:
            active = set(st.vault.get_active_projects())
            ids = [pid for pid in ids if pid in active]
        return [_project_response(st, pid) for pid in ids]

    @app.get("/api/v1/projects/{project_id}", response_model=ProjectResponse, tags=["Projects"])
    def get_project(project_id: int, st: AppState = Depends(get_state)):
        return _project_response(st, project_id)

    @app.get(
        "/api/v1/projects/{project_id}/status",
        response_model=ProjectStatusResponse,
        tags=["Projects"],
    )
    def get_project_status(project_id: int, st: AppState = Depends(get_state)):
        project_status = st.vault.get_project_status(project_id)
        return ProjectStatusResponse(
            project_id=project_id,
            status=project_status,
            status_name=project_status.name,
        )

    @app.post(
        "/api/v1/projects/{project_id}/contributions",
        response_model=MutationResponse,
        tags=["Projects"],
    )
    def contribute(
        project_id: int,
        request: ContributionRequest,
        st: AppState = Depends(get_state),
        principal: str = Depends(get_principal),
    ):
        encrypted = request.encrypted_amount
        if encrypted is None:
            # NotFound и InvalidAmount раньше отказа шифрования, как в ledger
            st.vault.get_project(project_id)
            if request.value <= 0:
                raise InvalidAmount("Contribution must be greater than 0")
            encrypted = _encrypt(st, request.value, principal)
        receipt = st.vault.contribute_privately(principal, project_id, encrypted, request.value)
        return to_response(receipt)

    @app.post(
        "/api/v1/projects/{project_id}/withdraw",
        response_model=MutationResponse,
        tags=["Projects"],
    )
    def withdraw(
        project_id: int,
        st: AppState = Depends(get_state),
        principal: str = Depends(get_principal),
    ):
        return to_response(st.vault.withdraw_funds(principal, project_id))

    @app.post(
        "/api/v1/projects/{project_id}/pause",
        response_model=MutationResponse,
        tags=["Projects"],
    )
    def pause(
        project_id: int,
        st: AppState = Depends(get_state),
        principal: str = Depends(get_principal),
    ):
        return to_response(st.vault.emergency_pause(principal, project_id))

    @app.put("/api/v1/vault/platform-fee", response_model=MutationResponse, tags=["Projects"])
    def update_platform_fee(
        request: PlatformFeeRequest,
        st: AppState = Depends(get_state),
        principal: str = Depends(get_principal),
    ):
        return to_response(st.vault.update_platform_fee(principal, request.fee_bps))

    @app.put("/api/v1/vault/fee-collector", response_model=MutationResponse, tags=["Projects"])
    def update_fee_collector(
        request: FeeCollectorRequest,
        st: AppState = Depends(get_state),
        principal: str = Depends(get_principal),
    ):
        return to_response(st.vault.update_fee_collector(principal, request.fee_collector))

    # ----------------------------------------
    # DEX: pairs
    # ----------------------------------------

    @app.post(
        "/api/v1/pairs",
        response_model=MutationResponse,
        status_code=status.HTTP_201_CREATED,
        tags=["Pairs"],
    )
    def create_pair(
        request: PairCreateRequest,
        st: AppState = Depends(get_state),
        principal: str = Depends(get_principal),
    ):
        receipt = st.dex.create_trading_pair(
            principal,
            request.token_a,
            request.token_b,
            request.fee_rate_bps,
        )
        return to_response(receipt)

    @app.get("/api/v1/pairs", response_model=List[TradingPair], tags=["Pairs"])
    def list_pairs(st: AppState = Depends(get_state)):
        return st.dex.get_all_pairs()

    @app.get("/api/v1/pairs/{pair_id}", response_model=TradingPair, tags=["Pairs"])
    def get_pair(pair_id: str, st: AppState = Depends(get_state)):
        return st.dex.get_trading_pair(pair_id)

    @app.put("/api/v1/pairs/{pair_id}/price", response_model=MutationResponse, tags=["Pairs"])
    def update_pair_price(
        pair_id: str,
        request: PairPriceRequest,
        st: AppState = Depends(get_state),
        principal: str = Depends(get_principal),
    ):
        return to_response(st.dex.update_pair_price(principal, pair_id, request.price))

    @app.post("/api/v1/pairs/{pair_id}/toggle", response_model=MutationResponse, tags=["Pairs"])
    def toggle_pair(
        pair_id: str,
        st: AppState = Depends(get_state),
        principal: str = Depends(get_principal),
    ):
        return to_response(st.dex.toggle_pair_status(principal, pair_id))

    @app.put("/api/v1/dex/default-fee-rate", response_model=MutationResponse, tags=["Pairs"])
    def update_default_fee_rate(
        request: DefaultFeeRateRequest,
        st: AppState = Depends(get_state),
        principal: str = Depends(get_principal),
    ):
        return to_response(st.dex.update_default_fee_rate(principal, request.fee_rate_bps))

    # ----------------------------------------
    # DEX: orders
    # ----------------------------------------

    @app.post(
        "/api/v1/orders",
        response_model=MutationResponse,
        status_code=status.HTTP_201_CREATED,
        tags=["Orders"],
    )
    def create_order(
        request: OrderCreateRequest,
        st: AppState = Depends(get_state),
        principal: str = Depends(get_principal),
    ):
        receipt = st.dex.create_private_order(
            principal,
            request.token_in,
            request.token_out,
            request.encrypted_amount_in,
            request.encrypted_amount_out,
            request.order_type,
        )
        return to_response(receipt)

    @app.get("/api/v1/orders/{order_id}", response_model=Order, tags=["Orders"])
    def get_order(order_id: int, st: AppState = Depends(get_state)):
        return st.dex.get_order(order_id)

    @app.post("/api/v1/orders/{order_id}/execute", response_model=MutationResponse, tags=["Orders"])
    def execute_order(
        order_id: int,
        st: AppState = Depends(get_state),
        principal: str = Depends(get_principal),
    ):
        return to_response(st.dex.execute_order(principal, order_id))

    @app.get("/api/v1/traders/{trader}/orders", response_model=UserOrdersResponse, tags=["Orders"])
    def get_user_orders(trader: str, st: AppState = Depends(get_state)):
        return UserOrdersResponse(trader=trader, order_ids=st.dex.get_user_orders(trader))

    # ----------------------------------------
    # DEX: swaps / liquidity
    # ----------------------------------------

    @app.post("/api/v1/swaps", response_model=MutationResponse, tags=["Swaps"])
    def swap(
        request: SwapRequest,
        st: AppState = Depends(get_state),
        principal: str = Depends(get_principal),
    ):
        receipt = st.dex.swap_tokens(
            principal,
            request.token_in,
            request.token_out,
            request.amount_in,
            request.min_amount_out,
        )
        return to_response(receipt)

    @app.post("/api/v1/liquidity", response_model=MutationResponse, tags=["Liquidity"])
    def add_liquidity(
        request: AddLiquidityRequest,
        st: AppState = Depends(get_state),
        principal: str = Depends(get_principal),
    ):
        receipt = st.dex.add_liquidity(
            principal,
            request.token_a,
            request.token_b,
            request.amount_a,
            request.amount_b,
            request.encrypted_amount_a or _encrypt(st, request.amount_a, principal),
            request.encrypted_amount_b or _encrypt(st, request.amount_b, principal),
        )
        return to_response(receipt)

    @app.post("/api/v1/liquidity/remove", response_model=MutationResponse, tags=["Liquidity"])
    def remove_liquidity(
        request: RemoveLiquidityRequest,
        st: AppState = Depends(get_state),
        principal: str = Depends(get_principal),
    ):
        receipt = st.dex.remove_liquidity(principal, request.token_a, request.token_b, request.shares)
        return to_response(receipt)

    # ----------------------------------------
    # Events
    # ----------------------------------------

    @app.get("/api/v1/events", tags=["Events"])
    def list_events(
        ledger: Literal["vault", "dex"] = "vault",
        since: int = 0,
        st: AppState = Depends(get_state),
    ):
        log = st.vault.events if ledger == "vault" else st.dex.events
        return [e.to_record() for e in log.since(max(since, 0))]

    return app


def _encrypt(st: AppState, amount: int, principal: str) -> EncryptedInput:
    """Серверное шифрование plaintext суммы (fallback фронтенда)."""
    try:
        return st.encryption.encrypt(amount, principal)
    except ValueError as e:
        raise InvalidInput(f"{e}; supply the encrypted amount explicitly") from e
