# backend/wsgi.py
from motopos import create_app

app = create_app()
