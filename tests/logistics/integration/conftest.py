import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from logistics.api import parcel_router, register_error_handlers, settlement_router, user_router


@pytest.fixture()
def client():
    app = FastAPI()
    app.include_router(parcel_router)
    app.include_router(user_router)
    app.include_router(settlement_router)
    register_error_handlers(app)
    return TestClient(app)
