import uuid
import time
import json
import logging
from datetime import datetime, timezone

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dmvprep.core.config import settings
from dmvprep.core.redis_client import get_redis
from dmvprep.routers import health, history, sessions
from dmvprep.services.gemini import GeminiQuizClient
from dmvprep.services.history import HistoryStore
from dmvprep.services.key_bridge import KeySelector
from dmvprep.services.quiz_session import QuizGenerator, SessionRegistry


def create_app(
    *,
    generator: QuizGenerator | None = None,
    history_store: HistoryStore | None = None,
    key_selector: KeySelector | None = None,
) -> FastAPI:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    app = FastAPI(title="DMV Prep Quiz API", version="1.0.0")

    logger = logging.getLogger("dmvprep")

    try:
        logging.getLogger("httpx").setLevel(logging.WARNING)
    except Exception:
        pass

    allow_origins = [o.strip() for o in str(settings.cors_allow_origins or "").split(",") if o.strip()]
    if "*" in allow_origins:
        raise RuntimeError("CORS_ALLOW_ORIGINS must not include '*' when allow_credentials=true")

    is_prod = (settings.app_env or "").strip().lower() in {"prod", "production"}

    history_store = history_store or HistoryStore(get_redis())
    app.state.history = history_store
    app.state.sessions = SessionRegistry(
        generator=generator or GeminiQuizClient(),
        history=history_store,
        key_selector=key_selector,
    )

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        t0 = time.perf_counter()
        rid = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = rid
        status_code: int | None = None
        try:
            if request.method in {"POST", "PUT", "PATCH", "DELETE"}:
                origin = (request.headers.get("origin") or "").strip()
                if origin and origin not in allow_origins:
                    return JSONResponse(
                        status_code=403,
                        content={
                            "ok": False,
                            "error_code": "forbidden",
                            "error_message": "invalid origin",
                            "request_id": rid,
                        },
                    )
            response = await call_next(request)
            status_code = int(getattr(response, "status_code", 0) or 0)
        except Exception:
            status_code = 500
            raise
        finally:
            try:
                dur_ms = int((time.perf_counter() - t0) * 1000)
                path = getattr(getattr(request, "url", None), "path", "")
                if not path.startswith("/health"):
                    logger.info(
                        json.dumps(
                            {
                                "ts": datetime.now(timezone.utc).isoformat(),
                                "rid": rid,
                                "method": request.method,
                                "path": path,
                                "status": status_code,
                                "duration_ms": dur_ms,
                            },
                            ensure_ascii=False,
                        )
                    )
            except Exception:
                pass
        response.headers["X-Request-ID"] = rid

        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        if is_prod:
            response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
        return response

    def _request_id(request: Request) -> str | None:
        rid = getattr(getattr(request, "state", None), "request_id", None)
        rid = str(rid or "").strip()
        return rid or None

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        rid = _request_id(request)
        detail = exc.detail
        if isinstance(detail, dict):
            error_code = str(detail.get("error_code") or "http_error")
            error_message = str(detail.get("error_message") or detail.get("detail") or "request failed")
        else:
            status = int(exc.status_code)
            error_code = "not_found" if status == 404 else "conflict" if status == 409 else "http_error"
            error_message = str(detail or "request failed")

        payload = {
            "ok": False,
            "error_code": error_code,
            "error_message": error_message,
            "request_id": rid,
        }
        return JSONResponse(status_code=int(exc.status_code), content=payload, headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        rid = _request_id(request)
        logger.exception("unhandled exception", extra={"rid": rid})
        return JSONResponse(
            status_code=500,
            content={
                "ok": False,
                "error_code": "internal_error",
                "error_message": "internal server error",
                "request_id": rid,
            },
        )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(history.router)
    app.include_router(sessions.router)

    return app


app = create_app()


def run() -> None:
    uvicorn.run("dmvprep.main:app", host=settings.host, port=int(settings.port))


if __name__ == "__main__":
    run()
