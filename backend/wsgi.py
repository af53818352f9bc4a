# backend/wsgi.py
from prodday import create_app

app = create_app()
