# app.py
# -*- coding: utf-8 -*-
# WSGI entry point: gunicorn app:app / flask --app app run
from madrasa_app import create_app

app = create_app()

if __name__ == "__main__":
    app.run(host="0.0.0.0", port=5000)
