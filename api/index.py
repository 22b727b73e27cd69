# Vercel serves the Flask WSGI app from this module
from app import app

__all__ = ["app"]
