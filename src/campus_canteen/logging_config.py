import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """
    Installs one stream handler on the root logger.
    Repeated calls only adjust the level.
    """
    root = logging.getLogger()
    root.setLevel(level.upper())
    if any(getattr(h, "_canteen", False) for h in root.handlers):
        return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._canteen = True
    root.addHandler(handler)
