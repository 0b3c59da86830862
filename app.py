#!/usr/bin/env python3

"""
History Reconciler Web Application
Stores pasted brokerage order history and reconciles it against the
transaction feed.

Usage:
    python app.py
"""

import logging
import os

from dotenv import load_dotenv

load_dotenv()

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from src.dependencies import LOG_DIR, LOG_LEVEL, PORT
from src.routers import health, robinhood

# Configure logging (engine modules log through stdlib logging)
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger.add(
    os.path.join(LOG_DIR, "reconciler_{time}.log"),
    rotation="1 day",
    retention="7 days",
    level=LOG_LEVEL,
)

app = FastAPI(
    title="History Reconciler",
    description="Brokerage history parsing and transaction reconciliation",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(robinhood.router)


if __name__ == "__main__":
    logger.info(f"Starting History Reconciler on port {PORT}")
    uvicorn.run("app:app", host="0.0.0.0", port=PORT)
