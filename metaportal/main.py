"""Main entry point for MetaPortal."""

import uvicorn
import logging
import os

from dotenv import load_dotenv

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


def main():
    """Main function to run the application."""
    load_dotenv()
    # The default catalogue is in-memory, so start with the demo data in it
    os.environ.setdefault("METAPORTAL_SEED_DEMO", "true")

    port = int(os.getenv("PORT", 8000))
    host = os.getenv("HOST", "127.0.0.1")

    print(f"""
    MetaPortal - Database Metadata Portal

    Starting server at: http://{host}:{port}

    Environment Variables:
    - DATABASE_URL (optional, defaults to in-memory SQLite)
    - METAPORTAL_STATE_FILE (optional, defaults to {os.getenv("METAPORTAL_STATE_FILE", ".metaportal_state.json")})
    - METAPORTAL_SIMULATED_DELAY (optional, seconds taken by project setup)
    """)

    uvicorn.run(
        "metaportal.api.main:app",
        host=host,
        port=port,
    )


if __name__ == "__main__":
    main()
