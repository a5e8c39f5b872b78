from .core import PaperSaver

__version__ = "0.1.0"
