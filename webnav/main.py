import logging

from fastapi import FastAPI

from webnav.config import get_settings
from webnav.routers.navigators import router as navigators_router

app = FastAPI(title="webnav", version="0.1.0")


@app.on_event("startup")
def on_startup() -> None:
    logging.basicConfig(level=get_settings().log_level)


app.include_router(navigators_router, prefix="/api")
