"""Logging setup shared by the API process and scripts."""
import logging

LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s - %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once; repeated calls only adjust the level."""
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    root.setLevel(level.upper())
    # httpx logs every request at INFO; webhook delivery already reports outcomes
    logging.getLogger("httpx").setLevel(logging.WARNING)
