import asyncio
import os
from services.db import engine, Base, DATABASE_URL
from models import user, photo, gallery  # important: force-load all models

async def init_models():
    """Create all gallery subsystem tables."""
    print(f"Initializing database with URL: {DATABASE_URL}")
    print(f"Environment: {os.getenv('ENVIRONMENT', 'development')}")

    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
            print("Database tables created successfully")

            table_names = list(Base.metadata.tables.keys())
            print(f"Created tables: {table_names}")

    except Exception as e:
        print(f"Error initializing database: {e}")
        raise

if __name__ == "__main__":
    asyncio.run(init_models())
