# backend/wsgi.py
from eis_portal import create_app

app = create_app()
