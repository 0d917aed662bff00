from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from launchpad.api.routers.launch import router as launch_router
from launchpad.shared.config import get_settings

logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s %(message)s")
logging.getLogger("launchpad").setLevel(get_settings().log_level.upper())

app = FastAPI(title="Launchpad API")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(launch_router)
