from contextlib import asynccontextmanager

from dotenv import load_dotenv
load_dotenv()

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from .config import load_settings
from .schemas import TitleRating
from .service import RatingService

settings = load_settings()
limiter = Limiter(key_func=get_remote_address)


@asynccontextmanager
async def lifespan(app: FastAPI):
    service = RatingService(settings)
    await service.start()
    app.state.rating_service = service
    yield
    await service.close()


app = FastAPI(lifespan=lifespan)
app.state.limiter = limiter


def get_rating_service(request: Request) -> RatingService:
    return request.app.state.rating_service


# Rate limit error handler
@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(status_code=429, content={"detail": "Too many requests. Please try again later."})


# Security headers middleware
@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    return response


# CORS, so the catalog page script can call us from the streaming site's origin
if settings.cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=False,
        allow_methods=["GET"],
        allow_headers=["Content-Type"],
    )


@app.get("/api/ratings", response_model=TitleRating)
@limiter.limit(settings.ratings_rate_limit)
async def get_ratings(
    request: Request,
    title: str = Query(..., min_length=1, max_length=500),
    service: RatingService = Depends(get_rating_service),
):
    try:
        return await service.rate_title(title)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))


@app.get("/api/blocklist")
async def get_blocklist(service: RatingService = Depends(get_rating_service)):
    return {"titles": service.blocklist.titles}


@app.get("/api/health")
async def health(service: RatingService = Depends(get_rating_service)):
    return {
        "status": "ok",
        "cached_titles": len(service.cache),
        "in_flight": service.coordinator.in_flight,
        "queued": service.dispatcher.pending if service.dispatcher else 0,
    }
