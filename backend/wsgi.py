# backend/wsgi.py
from businesshub import create_app

app = create_app()
