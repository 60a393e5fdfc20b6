import logging
import os
from logging.handlers import RotatingFileHandler

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'


def configure_logging(config):
    """Attach a console or rotating file handler to the package logger.

    `config` is any mapping with the LOG_* and INSTANCE keys (a Flask config
    object works). Calling it twice replaces the previous handler.
    """
    logger = logging.getLogger('cognicity_server')
    logger.setLevel(str(config.get('LOG_LEVEL', 'INFO')).upper())

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    log_directory = config.get('LOG_DIRECTORY')
    if log_directory:
        os.makedirs(log_directory, exist_ok=True)
        handler = RotatingFileHandler(
            os.path.join(log_directory, f"{config.get('INSTANCE', 'cognicity-server')}.log"),
            maxBytes=config.get('LOG_MAX_FILE_SIZE', 0),
            backupCount=config.get('LOG_MAX_FILES', 0),
        )
    else:
        handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)

    # Werkzeug prints its own access lines, ours are enough
    logging.getLogger('werkzeug').setLevel(logging.ERROR)
    return logger
