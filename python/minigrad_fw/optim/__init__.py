# minigrad_fw/optim/__init__.py
from .base import Optimizer
from .sgd import SGD
from .adam import Adam

__all__ = ["Optimizer", "SGD", "Adam"]
