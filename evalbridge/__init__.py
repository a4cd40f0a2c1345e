"""evalbridge - asynchronous evaluation bridge between an editor and a Julia REPL."""

from loguru import logger

__version__ = "0.1.0"
__logo__ = "λ"

# Library code stays quiet unless the host application opts in.
logger.disable("evalbridge")
