import logging

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Install a single stream handler on the root logger."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    # websockets logs every frame at DEBUG
    logging.getLogger("websockets").setLevel(max(logging.INFO, logging.getLogger().level))
