# init_db.py
import logging

from app import app, init_db

if __name__ == "__main__":
    logging.basicConfig(level=app.config['LOG_LEVEL'])
    init_db()
    print("Database initialized, tables and default prompts are ready!")
