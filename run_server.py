import os

import uvicorn

from utils.logging_utils import setup_logging, get_tagged_logger

logger = get_tagged_logger(__name__, tag="server")


if __name__ == "__main__":
    setup_logging(level=os.getenv("LOG_LEVEL", "INFO"), job_name="tradewatch")
    logger.info("Starting tradewatch server")

    uvicorn.run(
        "tradewatch.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", 8000)),
        reload=False,
        log_config=None,  # keep the handlers installed by setup_logging
    )
