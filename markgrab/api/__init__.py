"""HTTP tool server package.

Public re-export so callers can write::

    from markgrab.api import app

    uvicorn markgrab.api:app --reload
"""

from markgrab.api.app import app

__all__ = ["app"]
