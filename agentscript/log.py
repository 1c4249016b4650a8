import sys

from loguru import logger

_FORMAT = "<green>{time:HH:mm:ss.SSS}</green> <level>{level: <7}</level> {message}"


def configure_logging(verbose: bool = False) -> None:
    """Enable agentscript's loguru output on stderr. Library code stays silent until this is called."""
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "WARNING", format=_FORMAT)
    logger.enable("agentscript")
