import logging, sys
from typing import Optional

from site_extractor.config import settings

_HANDLER_NAME = "site_extractor.stdout"

def configure_logging(level: Optional[str] = None):
    root = logging.getLogger()
    root.setLevel((level or settings.LOG_LEVEL).upper())
    if any(h.get_name() == _HANDLER_NAME for h in root.handlers):
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(_HANDLER_NAME)
    formatter = logging.Formatter(
        "%(asctime)s %(levelname)s %(name)s - %(message)s"
    )
    handler.setFormatter(formatter)
    root.addHandler(handler)
    # request-level chatter from the HTTP client drowns out pipeline stages
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
