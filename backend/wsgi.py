# backend/wsgi.py
# FLASK_APP entry point: `python -m flask --app wsgi <group> <command>` from the backend directory.
from zimmet import create_app

app = create_app()

if __name__ == "__main__":
    app.run(threaded=True)
