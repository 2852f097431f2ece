import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from osviz.api.routes_sim import router as sim_router
from osviz.api.ws import router as ws_router

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

app = FastAPI(title="OS Concepts Visualizer API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(sim_router)
app.include_router(ws_router)


@app.get("/")
def root():
    return {"ok": True, "hint": "Use /health, /docs, /process/state, /sync/state or /deadlock/state"}
