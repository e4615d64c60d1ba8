# backend/wsgi.py
from cutquote import create_app

app = create_app()
