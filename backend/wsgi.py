# backend/wsgi.py
from eventfin import create_app

app = create_app()
