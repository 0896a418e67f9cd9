import copy
import logging.config
import os

import uvicorn
from uvicorn.config import LOGGING_CONFIG

custom_logging = copy.deepcopy(LOGGING_CONFIG)
log_format = "%(asctime)s | %(levelprefix)s %(name)s | %(message)s"
custom_logging["formatters"]["default"]["fmt"] = log_format
custom_logging["formatters"]["access"]["fmt"] = (
    "%(asctime)s | %(levelprefix)s %(client_addr)s - \"%(request_line)s\" %(status_code)s"
)
custom_logging["formatters"]["default"]["datefmt"] = "%Y-%m-%d %H:%M:%S"
custom_logging["formatters"]["access"]["datefmt"] = "%Y-%m-%d %H:%M:%S"
# Route application loggers (risk, execution, exchanges) through uvicorn's handler.
custom_logging["loggers"][""] = {"handlers": ["default"], "level": os.environ.get("LOG_LEVEL", "INFO")}

if __name__ == "__main__":
    logging.config.dictConfig(custom_logging)
    uvicorn.run(
        "services.webapp.main:app",
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", "8080")),
        log_config=None,
    )
