from fastapi import FastAPI
from backend.catalog.controller import router as catalog_router
from backend.detection.controller import router as detection_router

def register_routes(app: FastAPI):
    app.include_router(catalog_router)
    app.include_router(detection_router)
