# archive_partitions/main.py

from fastapi import FastAPI
from dotenv import load_dotenv

# ---------------------------------------------
# LOAD ENVIRONMENT VARIABLES
# ---------------------------------------------
load_dotenv()

from archive_partitions.config import settings
from archive_partitions.middleware import maintenance_request_middleware
from archive_partitions.routers import maintenance

# ---------------------------------------------
# APP INIT
# ---------------------------------------------
app = FastAPI(
    title="Archive Partition Service",
    version=settings.APP_VERSION,
)

app.middleware("http")(maintenance_request_middleware)

# ---------------------------------------------
# ROUTERS
# ---------------------------------------------

# Maintenance
app.include_router(maintenance.router, prefix="/v1/maintenance", tags=["Maintenance"])


# ---------------------------------------------
# ROOT ENDPOINTS
# ---------------------------------------------
@app.get("/")
def root():
    return {"message": "Archive partition service is running"}


@app.get("/health")
def health():
    return {"status": "ok"}
