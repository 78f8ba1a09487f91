"""
Database initialization script.
"""
from rideshare.core.config import settings
from rideshare.db.session import create_db_engine, init_db

if __name__ == "__main__":
    print(f"Initializing database at {settings.DATABASE_URL}...")
    init_db(create_db_engine(settings))
    print("Database initialized successfully!")
