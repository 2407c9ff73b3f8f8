import logging
import os

from dotenv import load_dotenv
from fastapi import FastAPI

from app.routes import browse

# Load .env early so os.getenv sees values, using absolute project path and overriding
_PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
load_dotenv(dotenv_path=os.path.join(_PROJECT_ROOT, ".env"), override=True)

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))

app = FastAPI(title="filebrowse API")


@app.get("/api/v1/health")
def health():
    return {"status": "ok"}


app.include_router(browse.router, prefix="/browse", tags=["browse"])
