import logging

import uvicorn

from sheet_report.config import Settings
from sheet_report.main import create_app

logger = logging.getLogger("sheet_report")


def main() -> None:
    settings = Settings.from_env()
    logging.getLogger().setLevel(settings.log_level)
    app = create_app(settings)
    logger.info("Server running on http://%s:%d", settings.host, settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
