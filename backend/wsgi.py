# backend/wsgi.py
from robocrm import create_app

app = create_app()
