import importlib
import logging
import pkgutil

logger = logging.getLogger(__name__)

# Import every module in this package so their @register_tool decorators run.
for _, name, _ in pkgutil.iter_modules(__path__):
    importlib.import_module(f".{name}", __package__)
    logger.debug("Loaded tools from: %s.py", name)
