from fastapi import FastAPI, HTTPException, Response
from fastapi.responses import JSONResponse
from pathlib import Path
from pydantic import BaseModel
from typing import Dict, Optional
import json
import os

app = FastAPI(title="Mock Accrual Server", version="1.0.0")
# Support both local development and Docker
DATA_DIR = Path("/accrual_stub") if os.path.exists("/accrual_stub") else Path(__file__).resolve().parent / "stub"

STATUSES = {"REGISTERED", "INVALID", "PROCESSING", "PROCESSED"}

# Verdicts seeded at runtime win over fixture files
seeded: Dict[str, dict] = {}


class Verdict(BaseModel):
    status: str
    accrual: Optional[float] = None


@app.get("/health")
def health(): return {"status": "ok"}

@app.get("/api/orders/{number}")
def get_order(number: str):
    if number in seeded:
        return JSONResponse(content=seeded[number])
    file = DATA_DIR / f"order_{number}.json"
    if not file.exists():
        return Response(status_code=204)
    return JSONResponse(content=json.loads(file.read_text()))

@app.put("/mock/orders/{number}")
def seed_order(number: str, verdict: Verdict):
    if verdict.status not in STATUSES:
        raise HTTPException(status_code=422, detail=f"unknown status {verdict.status}")
    body = {"order": number, "status": verdict.status}
    if verdict.status == "PROCESSED" and verdict.accrual is not None:
        body["accrual"] = verdict.accrual
    seeded[number] = body
    return body

@app.delete("/mock/orders")
def reset():
    seeded.clear()
    return {"status": "ok"}
