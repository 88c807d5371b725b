from __future__ import annotations

import os

import uvicorn

from tradescribe.utils.config import get_settings
from tradescribe.utils.logger import get_logger, setup_logging


def main() -> None:
    setup_logging()
    settings = get_settings()
    get_logger(__name__).info(
        "journal_starting",
        seed_file=settings.seed_file,
        ai_enabled=settings.ai_enabled,
    )

    port = int(os.environ.get("PORT", 5000))
    host = "0.0.0.0"

    uvicorn.run(
        "tradescribe.api.webapp:app",
        host=host,
        port=port,
        reload=False,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
