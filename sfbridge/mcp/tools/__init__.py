import importlib
import logging
import pkgutil

logger = logging.getLogger(__name__)

# Import every module in this package so their @register_tool decorators run.
logger.info("Discovering MCP tool modules")
for _, name, _ in pkgutil.iter_modules(__path__):
    if name.startswith("_"):
        continue
    importlib.import_module(f".{name}", __package__)
    logger.info("  -> loaded tools from %s.py", name)
