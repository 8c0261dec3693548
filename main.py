"""
Nature Navigator Booking Backend
================================
ASGI entry point for the booking API.

    uvicorn main:app --reload

or ``python main.py`` to serve on ``API_HOST``:``API_PORT``.
"""

import uvicorn

from navigator.api.app import create_app
from navigator.config import settings

app = create_app()

if __name__ == "__main__":
    uvicorn.run("main:app", host=settings.api_host, port=settings.api_port, reload=True)
