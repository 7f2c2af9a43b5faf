import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import Settings, get_settings, setup_logging
from data_access import DataAccess, NotFoundError
from database import Database
from schemas import (
    Account,
    Customer,
    CustomerTransactions,
    TopCustomer,
    TransactionAmount,
)

logger = logging.getLogger(__name__)


def get_data_access(request: Request) -> DataAccess:
    return request.app.state.data_access


def internal_error(e: Exception) -> HTTPException:
    logger.exception("Request failed")
    return HTTPException(status_code=500, detail=str(e))


def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings.log_level)
    database = database or Database(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        database.connect()
        yield
        database.close()

    app = FastAPI(title="Bank Analytics API", lifespan=lifespan)
    app.state.settings = settings
    app.state.database = database
    app.state.data_access = DataAccess(database)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        detail = exc.detail
        # raised by the router itself when no route matches
        if exc.status_code == 404 and detail == "Not Found":
            logger.info("Invalid path requested: %s", request.url.path)
            detail = "Invalid path requested"
        return JSONResponse(status_code=exc.status_code, content={"error": detail})

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content={"error": "Invalid request", "details": jsonable_encoder(exc.errors())},
        )

    register_routes(app)
    return app


def register_routes(app: FastAPI) -> None:

    @app.get("/")
    def read_root():
        return {"message": "API Listening"}

    @app.get("/test")
    def test_database(request: Request):
        database: Database = request.app.state.database
        settings: Settings = request.app.state.settings
        response = {
            "backend": "✅ Running",
            "database": "❌ Not Available",
            "database_url": "✅ Set" if settings.database_url else "❌ Not Set",
            "database_name": settings.database_name,
            "connection_status": "Not Connected",
            "collections": [],
        }
        try:
            collections = database.collection_names()
            response["collections"] = collections[:10]
            response["database"] = "✅ Connected & Working"
            response["connection_status"] = "Connected"
        except Exception as e:
            response["database"] = f"❌ Error: {str(e)[:50]}"
        return response

    # Accounts
    @app.get("/accounts")
    def list_accounts(dal: DataAccess = Depends(get_data_access)):
        try:
            return dal.list_accounts()
        except Exception as e:
            raise internal_error(e)

    @app.get("/accounts/{account_id}")
    def get_account(account_id: int, dal: DataAccess = Depends(get_data_access)):
        try:
            return dal.get_account(account_id)
        except Exception as e:
            raise internal_error(e)

    @app.post("/accounts")
    def create_account(payload: Account, dal: DataAccess = Depends(get_data_access)):
        try:
            return dal.create_account(payload)
        except Exception as e:
            raise internal_error(e)

    @app.put("/accounts/{account_id}")
    def update_account(account_id: int, payload: Account, dal: DataAccess = Depends(get_data_access)):
        try:
            account = dal.replace_account_fields(account_id, payload)
        except Exception as e:
            raise internal_error(e)
        if account is None:
            raise HTTPException(status_code=404, detail="Account not found")
        return account

    @app.delete("/accounts/{id}")
    def delete_account(id: str, dal: DataAccess = Depends(get_data_access)):
        try:
            dal.delete_account(id)
            return {"message": "Account deleted"}
        except Exception as e:
            raise internal_error(e)

    @app.get("/all-products")
    def all_products(dal: DataAccess = Depends(get_data_access)):
        try:
            return dal.get_all_products()
        except Exception as e:
            raise internal_error(e)

    # Customers
    @app.get("/customers")
    def list_customers(name: Optional[str] = None, dal: DataAccess = Depends(get_data_access)):
        try:
            if name:
                return dal.find_customers_by_name(name)
            return dal.list_customers()
        except Exception as e:
            raise internal_error(e)

    @app.get("/customers/{email}")
    def get_customer_by_email(email: str, dal: DataAccess = Depends(get_data_access)):
        try:
            return dal.get_customer_by_email(email)
        except Exception as e:
            raise internal_error(e)

    @app.post("/customers")
    def create_customer(payload: Customer, dal: DataAccess = Depends(get_data_access)):
        try:
            return dal.create_customer(payload)
        except Exception as e:
            raise internal_error(e)

    @app.put("/customers/{id}")
    def update_customer(id: str, payload: Customer, dal: DataAccess = Depends(get_data_access)):
        try:
            customer = dal.update_customer(id, payload)
        except Exception as e:
            raise internal_error(e)
        if customer is None:
            raise HTTPException(status_code=404, detail="Customer not found")
        return customer

    @app.delete("/customers/{id}")
    def delete_customer(id: str, dal: DataAccess = Depends(get_data_access)):
        try:
            deleted = dal.delete_customer(id)
        except Exception as e:
            raise internal_error(e)
        if not deleted:
            raise HTTPException(status_code=404, detail="Customer not found")
        return {"message": "Customer deleted"}

    @app.get("/customers/{id}/accounts")
    def customer_accounts(id: str, dal: DataAccess = Depends(get_data_access)):
        try:
            return dal.get_customer_accounts(id)
        except NotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except Exception as e:
            raise internal_error(e)

    @app.get("/customers/{id}/transactions", response_model=CustomerTransactions)
    def customer_transactions(id: str, dal: DataAccess = Depends(get_data_access)):
        try:
            return CustomerTransactions.model_validate(dal.get_customer_transactions(id))
        except NotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except Exception as e:
            raise internal_error(e)

    # Transactions
    @app.get("/transactions")
    def list_transactions(dal: DataAccess = Depends(get_data_access)):
        try:
            return dal.list_transaction_buckets()
        except Exception as e:
            raise internal_error(e)

    @app.get("/transactions/{id}")
    def get_transaction(id: str, dal: DataAccess = Depends(get_data_access)):
        try:
            return dal.get_transaction_bucket(id)
        except Exception as e:
            raise internal_error(e)

    # Reports
    @app.get("/customers-with-most-transactions", response_model=List[TopCustomer])
    def customers_with_most_transactions(dal: DataAccess = Depends(get_data_access)):
        try:
            return [TopCustomer.model_validate(row) for row in dal.get_customers_with_most_transactions()]
        except Exception as e:
            raise internal_error(e)

    @app.get("/all-transaction-amounts", response_model=List[TransactionAmount])
    def all_transaction_amounts(
        startDate: Optional[datetime] = Query(None),
        endDate: Optional[datetime] = Query(None),
        dal: DataAccess = Depends(get_data_access),
    ):
        try:
            return dal.get_all_transaction_amounts(startDate, endDate)
        except Exception as e:
            raise internal_error(e)


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=app.state.settings.port)
