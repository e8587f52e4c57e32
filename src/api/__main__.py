"""
Запуск API: python -m src.api

Env: CRYPTOVAULT_OWNER, CRYPTOVAULT_CORS_ORIGINS, CRYPTOVAULT_HOST, CRYPTOVAULT_PORT
"""

import logging
import os

import uvicorn

from src.api.app import create_app


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s'
    )
    uvicorn.run(
        create_app(),
        host=os.environ.get("CRYPTOVAULT_HOST", "0.0.0.0"),
        port=int(os.environ.get("CRYPTOVAULT_PORT", "8000")),
        log_level="info",
    )


if __name__ == "__main__":
    main()
