import logging
import logging.config
import os

import yaml

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger("jsreconcile")


def setup_logging(default_path="logging.yaml", default_level=logging.INFO, env_key="JSRECONCILE_LOG_CFG"):
    """
    Configure logging from a YAML file with a ``logging`` section.
    Falls back to basicConfig when the file or the section is missing.
    """
    path = os.getenv(env_key, None) or default_path
    if not os.path.exists(path):
        logging.basicConfig(level=default_level, format=DEFAULT_FORMAT)
        logger.debug("logging config %s not found, using defaults", path)
        return

    with open(path, "rt") as f:
        config = yaml.safe_load(f.read()) or {}
    if "logging" in config:
        logging.config.dictConfig(config["logging"])
    else:
        logging.basicConfig(level=default_level, format=DEFAULT_FORMAT)
