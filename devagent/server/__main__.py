import logging
import os

import uvicorn

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s"
)


def main():
    uvicorn.run(
        "devagent.server.app:app",
        host=os.getenv("DEVAGENT_HOST", "127.0.0.1"),
        port=int(os.getenv("DEVAGENT_PORT", "8000")),
    )


if __name__ == "__main__":
    main()
