from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List

class LoginRequest(BaseModel):
    phone: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)

class SessionUser(BaseModel):
    id: Optional[int] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[str] = None
    buildingId: Optional[int] = None
    apartmentId: Optional[int] = None

    model_config = ConfigDict(extra="allow")

class LoginResponse(BaseModel):
    status: str = "success"
    user: SessionUser

class CreatePassRequest(BaseModel):
    # blank means "Visitor"
    visitor_name: Optional[str] = None

class PassView(BaseModel):
    """What a resident's screen shows for one pass, derived at read time"""
    id: str
    code: str
    visitor_name: str
    status: str
    created_at: Optional[str] = None
    expires_at: Optional[str] = None
    created_at_local: str
    expires_at_local: str
    remaining_seconds: int
    display: str
    tier: str
    state: str
    qr_data_url: Optional[str] = None
    qr_payload: Optional[str] = None

class PassListResponse(BaseModel):
    passes: List[PassView]
    generated_at: str

class CancelResponse(BaseModel):
    ok: bool = True
    id: str
    server_confirmed: bool
    message: str

class RefreshResponse(BaseModel):
    synced: int
    dropped: int

class VerifyRequest(BaseModel):
    code: str

class VerificationResult(BaseModel):
    valid: bool
    message: str
    code: Optional[str] = None
    visitor_name: Optional[str] = None
    resident_name: Optional[str] = None
    unit_number: Optional[str] = None
    expires_at: Optional[str] = None
    time_remaining_minutes: int = 0
    time_remaining_source: str = "client"  # "server" when the backend reported it

class CountdownTick(BaseModel):
    id: str
    code: str
    remaining_seconds: int
    display: str
    tier: str
    state: str
