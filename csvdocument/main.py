import logging.config
from typing import Optional

from fastapi import FastAPI, UploadFile, File, HTTPException, Query
from .dialect import Dialect
from .errors import CsvError
from .models import NormalizeResponse, HealthResponse
from .normalize import normalize_csv_bytes
from .rules import DEFAULT_ENCLOSURE, DEFAULT_ESCAPE

DEFAULT_LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {
            "format": "%(levelname)s %(asctime)s %(name)s: %(message)s"
        }
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "default"
        }
    },
    "loggers": {
        "csvdocument": {
            "handlers": ["console"],
            "level": "INFO"
        }
    },
}

logging.config.dictConfig(DEFAULT_LOGGING)

app = FastAPI(
    title="csvdocument",
    description="Dialect-aware CSV normalization with BOM and encoding handling",
    version="0.1.0",
)

@app.get("/health", response_model=HealthResponse)
def health():
    return {"ok": True}

@app.post("/normalize", response_model=NormalizeResponse)
async def normalize_csv(
    file: UploadFile = File(...),
    delimiter: Optional[str] = Query(default=None, description="Detected when omitted"),
    enclosure: str = Query(default=DEFAULT_ENCLOSURE),
    escape: str = Query(default=DEFAULT_ESCAPE),
    source_encoding: str = Query(default="auto"),
):
    if not file.filename.lower().endswith(".csv"):
        raise HTTPException(status_code=422, detail="Only CSV files are supported")

    raw = await file.read()
    try:
        dialect = None
        if delimiter is not None:
            dialect = Dialect.create(delimiter=delimiter, enclosure=enclosure, escape=escape)
        return normalize_csv_bytes(raw, dialect=dialect, source_encoding=source_encoding)
    except CsvError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
