"""
FastAPI REST API Module

Exposes the AccountService over HTTP. Rejections map to 400 (409 when the
account already exists), failed operations to 500 and missing accounts on
reads to 404.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional
import sys
import threading

from fastapi import Depends, FastAPI, HTTPException, status
from pydantic import BaseModel, Field
import uvicorn

from .accounts import AccountError, AccountExistsError, RejectedError
from .config import get_config
from .logging_config import get_logger, setup_logging
from .service import AccountService
from .storage import StoreError, create_store


logger = get_logger("account_ledger.api")


class CreateAccountRequest(BaseModel):
    holder_name: str = Field(..., description="Unique account holder name")
    initial_balance: int = Field(0, description="Opening balance")


class AmountRequest(BaseModel):
    amount: int = Field(..., description="Amount in whole currency units")


_service: Optional[AccountService] = None
_service_lock = threading.Lock()


def get_account_service() -> AccountService:
    """Return the process-wide service, opening the store on first use"""
    global _service
    with _service_lock:
        if _service is None:
            _service = AccountService.from_config(get_config())
        return _service


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    global _service
    with _service_lock:
        if _service is not None:
            _service.close()
            _service = None


app = FastAPI(
    title="Account Ledger API",
    description="Transactional account ledger",
    version="1.0.0",
    lifespan=lifespan
)


def _raise_http(error: Exception):
    if isinstance(error, AccountExistsError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(error))
    if isinstance(error, RejectedError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))
    logger.error("Request failed: %s", error)
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(error))


@app.get("/health")
def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}


@app.post("/accounts", status_code=status.HTTP_201_CREATED)
def create_account(
    request: CreateAccountRequest,
    service: AccountService = Depends(get_account_service)
):
    """Create a new account"""
    try:
        account = service.create_account(request.holder_name, request.initial_balance)
    except (RejectedError, AccountError) as e:
        _raise_http(e)
    return account.to_dict()


@app.get("/accounts")
def list_accounts(
    holder: Optional[str] = None,
    service: AccountService = Depends(get_account_service)
):
    """List all accounts, or the accounts of one holder"""
    try:
        if holder is None:
            accounts = service.list_accounts()
        else:
            accounts = service.list_accounts_for_holder(holder)
    except AccountError as e:
        _raise_http(e)
    return {"accounts": [account.to_dict() for account in accounts]}


@app.get("/accounts/{holder_name}")
def get_account(
    holder_name: str,
    service: AccountService = Depends(get_account_service)
):
    """Get account details"""
    try:
        account = service.get_account(holder_name)
    except AccountError as e:
        _raise_http(e)
    if account is None:
        raise HTTPException(status_code=404, detail="Account not found")
    return account.to_dict()


@app.post("/accounts/{holder_name}/deposit")
def deposit(
    holder_name: str,
    request: AmountRequest,
    service: AccountService = Depends(get_account_service)
):
    """Deposit into an account"""
    try:
        account = service.deposit(holder_name, request.amount)
    except (RejectedError, AccountError) as e:
        _raise_http(e)
    return account.to_dict()


@app.post("/accounts/{holder_name}/withdraw")
def withdraw(
    holder_name: str,
    request: AmountRequest,
    service: AccountService = Depends(get_account_service)
):
    """Withdraw from an account"""
    try:
        account = service.withdraw(holder_name, request.amount)
    except (RejectedError, AccountError) as e:
        _raise_http(e)
    return account.to_dict()


@app.delete("/accounts/{holder_name}", status_code=status.HTTP_204_NO_CONTENT)
def delete_account(
    holder_name: str,
    service: AccountService = Depends(get_account_service)
):
    """Delete an account; deleting a missing account succeeds"""
    try:
        service.delete_account(holder_name)
    except (RejectedError, AccountError) as e:
        _raise_http(e)


def run_server(host: Optional[str] = None, port: Optional[int] = None, debug: bool = False):
    """
    Run the FastAPI server

    The store is opened once before serving so an unreachable database
    fails here rather than on the first request.

    Raises:
        StoreError: If the configured datasource cannot be opened
    """
    config = get_config()
    setup_logging(config.log_level, config.log_format, log_file=config.log_file)
    create_store(config.database_url, auto_create_schema=config.auto_create_schema).close()

    host = host or config.api_host
    port = port or config.api_port
    logger.info("Serving account ledger on %s:%s", host, port)
    uvicorn.run(
        "account_ledger.api:app",
        host=host,
        port=port,
        reload=debug,
        log_level=config.log_level.lower()
    )


def main() -> None:
    """Entry point for the ``account-ledger-api`` console script"""
    try:
        run_server()
    except StoreError as e:
        print(e, file=sys.stderr)
        sys.exit(1)
