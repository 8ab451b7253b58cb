from uniqueport._version import __version__
from uniqueport.sdk.log import setup_logger

setup_logger()

__all__ = ["__version__"]
