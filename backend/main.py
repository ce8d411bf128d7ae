import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from .database.core import engine, Base
from .entities.productized_service import ProductizedService
from .api import register_routes

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(message)s",
)

app = FastAPI(
    root_path="/api"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_routes(app)


@app.on_event("startup")
def on_startup():
    Base.metadata.create_all(bind=engine)


@app.get("/app")
def read_main(request: Request):
    return {"message": "SKU matcher up", "root_path": request.scope.get("root_path")}
