import os
import logging

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from dotenv import load_dotenv

from classes.entities import RevisionRequest
from classes.errors import RefineError
from classes.refine_reconciler import RefineReconciler
from classes.settings import RefineSettings

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "DEBUG").upper(),
    format="%(asctime)s | %(levelname)s | %(name)s\n%(message)s\n",
)
logger = logging.getLogger("idea_refine")

app = FastAPI(title="Idea Refine Service")

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Allow all origins for dev
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_settings() -> RefineSettings:
    return RefineSettings.from_env()


def get_reconciler(settings: RefineSettings = Depends(get_settings)) -> RefineReconciler:
    # one reconciler (and one LLM client) per request
    return RefineReconciler(settings)


@app.exception_handler(RefineError)
async def handle_refine_error(request: Request, exc: RefineError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning(f"{request.url.path} failed with {exc.status_code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if any(err.get("type") == "json_invalid" for err in errors):
        message = "Invalid JSON body"
    else:
        parts = []
        for err in errors:
            loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
            parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
        message = "; ".join(parts) or "Invalid request body"
    return JSONResponse(status_code=400, content={"ok": False, "error": message})


@app.post("/api/refine")
def refine(payload: RevisionRequest, reconciler: RefineReconciler = Depends(get_reconciler)) -> JSONResponse:
    outcome = reconciler.refine(payload)
    return JSONResponse(content=outcome.to_payload())


@app.get("/api/health")
def health(settings: RefineSettings = Depends(get_settings)):
    return {"ok": True, "model": settings.model}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
