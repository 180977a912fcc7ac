"""
Server entry point: uvicorn with console and dated log file output.
"""
import os
from datetime import datetime

import uvicorn

from ptstudio import config

LOG_LEVEL = "DEBUG" if config.DEBUG else "INFO"


def build_log_config(log_path: str) -> dict:
    """Uvicorn log config: console plus a dated log file, app loggers included"""
    file_handler = {
        "class": "logging.FileHandler",
        "formatter": "file_format",
        "filename": log_path,
        "encoding": "utf-8",
    }
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "()": "uvicorn.logging.DefaultFormatter",
                "fmt": "%(asctime)s - %(levelprefix)s %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
                "use_colors": False,
            },
            "access": {
                "()": "uvicorn.logging.AccessFormatter",
                "fmt": '%(asctime)s - %(levelprefix)s %(client_addr)s - "%(request_line)s" %(status_code)s',
                "datefmt": "%Y-%m-%d %H:%M:%S",
                "use_colors": False,
            },
            "file_format": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stdout",
            },
            "access": {
                "class": "logging.StreamHandler",
                "formatter": "access",
                "stream": "ext://sys.stdout",
            },
            "file": file_handler,
            "access_file": dict(file_handler),
        },
        "loggers": {
            "uvicorn": {"handlers": ["default", "file"], "level": LOG_LEVEL, "propagate": False},
            "uvicorn.error": {"handlers": ["default", "file"], "level": LOG_LEVEL, "propagate": False},
            "uvicorn.access": {"handlers": ["access", "access_file"], "level": LOG_LEVEL, "propagate": False},
            "ptstudio": {"handlers": ["default", "file"], "level": LOG_LEVEL, "propagate": False},
        },
    }


if __name__ == "__main__":
    logs_dir = config.LOG_DIR
    if not os.path.isabs(logs_dir):
        logs_dir = os.path.join(os.path.dirname(os.path.abspath(__file__)), logs_dir)
    os.makedirs(logs_dir, exist_ok=True)

    log_datetime = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
    log_path = os.path.join(logs_dir, f"ptstudio_log_{log_datetime}.log")

    print(f"{config.APP_NAME} starting on {config.HOST}:{config.PORT} (log: {log_path})")

    uvicorn.run(
        "ptstudio.main:app",
        host=config.HOST,
        port=config.PORT,
        workers=1,
        log_config=build_log_config(log_path),
        access_log=True,
    )
