import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI

from carecoord import config
from carecoord.medications.router import recipient_router as recipient_medications_router
from carecoord.medications.router import router as medications_router
from carecoord.notifications.outbox import outbox
from carecoord.shifts.router import recipient_router as recipient_shifts_router
from carecoord.shifts.router import router as shifts_router

logging.basicConfig(level=config.LOG_LEVEL)


@asynccontextmanager
async def lifespan(app: FastAPI):
    outbox.start()
    yield
    await outbox.stop()


app = FastAPI(title="Care Coordination Service", lifespan=lifespan)

app.include_router(recipient_shifts_router)
app.include_router(shifts_router)
app.include_router(recipient_medications_router)
app.include_router(medications_router)


@app.get("/health")
def health():
    return {"status": "ok"}
