# logging_setup.py
import logging
import os
from logging.handlers import RotatingFileHandler

LOGGER_NAME = "trashbot-hub"

def setup_logging() -> logging.Logger:
    """
    Logger racine du hub : 'trashbot-hub', avec un enfant par zone
      - trashbot-hub.state     mutations du document (init/reset)
      - trashbot-hub.hub       entrées/sorties du registre d'observateurs
      - trashbot-hub.observer  sessions WS (échecs d'envoi, fin de session)
      - trashbot-hub.vision / .arm / .ingest   rapports producteurs
    Sorties : console + fichier rotatif $LOG_DIR/hub.log (LOG_DIR="" → console seule).
    Les loggers uvicorn partagent les mêmes handlers. Idempotent.
    """
    logger = logging.getLogger(LOGGER_NAME)
    if logger.handlers:
        return logger

    level = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)
    logger.setLevel(level)
    fmt = logging.Formatter("%(asctime)s %(levelname)s %(name)s [%(threadName)s] %(message)s")

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    log_dir = os.getenv("LOG_DIR", os.path.expanduser("~/trashbot-hub/logs"))
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        handlers.append(RotatingFileHandler(
            os.path.join(log_dir, "hub.log"),
            maxBytes=int(os.getenv("LOG_MAX_BYTES", "2000000")),
            backupCount=3,
        ))
    for h in handlers:
        h.setFormatter(fmt)
        logger.addHandler(h)

    # uvicorn.access doublonne le middleware d'accès : WARNING minimum
    for name, lvl in (("uvicorn", level), ("uvicorn.error", level), ("uvicorn.access", logging.WARNING)):
        l = logging.getLogger(name)
        l.handlers = logger.handlers
        l.setLevel(lvl)
        l.propagate = False

    return logger
