import logging
import os

import uvicorn

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def main() -> None:
    port = int(os.getenv("PORT", "3000"))
    logger.info("Starting call-transcriber on port %s", port)
    uvicorn.run("call_transcriber.app:app", host="0.0.0.0", port=port, reload=False)


if __name__ == "__main__":
    main()
