import logging

from dotenv import load_dotenv
from fastapi import FastAPI

load_dotenv()

from sidekick.routes.chat import router as chat_router  # noqa: E402
from sidekick.routes.health import router as health_router  # noqa: E402

logger = logging.getLogger("sidekick")
logging.basicConfig(level=logging.INFO)

app = FastAPI(title="Schedule Sidekick")

# Routes
app.include_router(chat_router, prefix="/chat", tags=["chat"])
app.include_router(health_router, tags=["health"])


@app.get("/")
def health():
    return {"status": "ok"}
