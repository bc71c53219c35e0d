"""
homestash server entrypoint.

Run with `python server.py` or `uvicorn app.main:app`.
"""

import uvicorn

import core.config as config
from app.main import app


if __name__ == "__main__":
    config.logger.info("homestash starting...")
    uvicorn.run(app, host=config.SERVER_HOST, port=config.SERVER_PORT)
