"""SQLAlchemy declarative base and model imports for Alembic."""
from twilsta.db.session import Base  # noqa: F401
from twilsta.models import *  # noqa: F401,F403
from twilsta.models import __all__ as _models

__all__ = ["Base", *_models]
