"""
Data models for the Bus Tracker service
"""

from pydantic import BaseModel, Field
from typing import Any, Optional, Dict, List

class Bus(BaseModel):
    """A tracked vehicle"""
    bus_id: str
    name: str
    active: bool = True
    created_at: str
    updated_at: str

class LocationRecord(BaseModel):
    """One immutable GPS observation"""
    id: str
    bus_id: str
    latitude: float
    longitude: float
    recorded_at: str

class BusCreate(BaseModel):
    """Bus registration request"""
    bus_id: str
    name: str

class BusCreated(BaseModel):
    bus_id: str
    name: str

class BusDeactivated(BaseModel):
    bus_id: str
    active: bool

class LocationCreate(BaseModel):
    """Position report posted by a device"""
    bus_id: str
    # raw values; LocationIngestionService does the coercion
    latitude: Any
    longitude: Any
    recorded_at: Optional[str] = None

class LocationCreated(BaseModel):
    location_id: str
    location: LocationRecord

class LatestLocation(BaseModel):
    """Latest position of a bus; location is None when it has never reported"""
    bus_id: str
    location: Optional[LocationRecord] = None
    message: Optional[str] = None

class BusLocations(BaseModel):
    """A bus joined with its location history"""
    bus: Bus
    locations: List[LocationRecord] = Field(default_factory=list)

class HealthStatus(BaseModel):
    """Service health status"""
    status: str  # healthy, unhealthy
    timestamp: str
    components: Dict[str, str]
