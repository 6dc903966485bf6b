# backend/wsgi.py
from partspos import create_app

app = create_app()

if __name__ == "__main__":
    app.run(debug=True)
