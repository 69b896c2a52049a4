import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.database import create_db_and_tables
from app.routers.activities import router as activities_router
from app.routers.emissions import router as emissions_router
from app.settings import settings

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting up and creating database tables...")
    create_db_and_tables()
    yield
    logger.info("Shutting down...")


app = FastAPI(
    title="Carbon Footprint API",
    description="Records personal activities and estimates their CO2e emissions.",
    lifespan=lifespan,
)

# CORS Middleware Configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(activities_router, prefix="/api")
app.include_router(emissions_router, prefix="/api")


@app.get("/")
def read_root():
    return {"status": "OK", "message": "Carbon Footprint API is running"}
