import os

from edu_hub.app import create_app
from edu_hub.app.services.db_service import init_db


app = create_app()
init_db(app.config["DB_PATH"])


if __name__ == "__main__":
    from waitress import serve

    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "8000"))
    serve(app, host=host, port=port)
