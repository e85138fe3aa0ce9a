import logging
from typing import List

import notifiers.logging

from prbuilder import config

LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s - %(message)s"


def configure_logging(level=None) -> None:
    logging.basicConfig(format=LOG_FORMAT, level=logging.INFO)
    level = config.OVERRIDE_LOGGING if level is None else level
    logging.getLogger().setLevel(level)
    logging.getLogger("prbuilder").setLevel(level)


def get_log_handlers(logger: logging.Logger) -> List[logging.Handler]:
    """Attach a Telegram notification handler for warnings and above.

    Nothing is attached unless ``TELEGRAM_TOKEN`` is configured, so failed
    status publications and dropped builds only reach the regular log.
    """
    if config.TELEGRAM_TOKEN is None:
        return []
    handler = notifiers.logging.NotificationHandler(
        "telegram",
        defaults={
            "token": config.TELEGRAM_TOKEN,
            "chat_id": config.TELEGRAM_CHAT_ID,
        },
    )
    handler.setLevel(logging.WARNING)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    return [handler]
