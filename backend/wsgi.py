# backend/wsgi.py
# FLASK_APP entrypoint: python -m flask run --port 5001
from app import create_app

app = create_app()
