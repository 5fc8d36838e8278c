from typing import Any, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from backend import Backend, UnknownSessionError
from eumlog.settings import SessionConfig, logger

app = FastAPI()

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Allow all origins for dev
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_backend: Optional[Backend] = None


def get_backend() -> Backend:
    global _backend
    if _backend is None:
        _backend = Backend(SessionConfig.from_env())
    return _backend


def set_backend(backend: Optional[Backend]) -> None:
    global _backend
    _backend = backend


class Event(BaseModel):
    type: str
    payload: Optional[Any] = None
    timestamp: Optional[str] = None


@app.post("/events")
def send_event(event: Event):
    try:
        response = get_backend()._process_request_data(event.model_dump())
    except UnknownSessionError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (ValueError, KeyError, TypeError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"event {event.type} failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    if response.get("status") == "error":
        raise HTTPException(status_code=400, detail=response.get("message"))
    return response


@app.get("/health")
def health():
    backend = get_backend()
    return {"status": "ok", "sessions": len(backend.sessions)}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
