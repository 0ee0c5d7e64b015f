# owntracks_recorder/models.py
from pydantic import BaseModel
from typing import Any, Dict, List


class LocationsResponse(BaseModel):
    data: List[Dict[str, Any]]


class ListResults(BaseModel):
    results: List[str]


class VersionResponse(BaseModel):
    version: str


class ErrorResponse(BaseModel):
    error: str


class PingResponse(BaseModel):
    status: str
    storage: str
