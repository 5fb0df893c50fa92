# models/__init__.py
from .base import Base  # re-export
from .documento import Documento
