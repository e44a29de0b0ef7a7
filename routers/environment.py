from fastapi import APIRouter, Depends
from config import ProxySettings, get_settings

router = APIRouter(prefix="/env", tags=["environment"])

@router.get("")
async def get_environment_status(settings: ProxySettings = Depends(get_settings)):
    """Report which configuration options are set, never their values."""
    return {"message": "Environment variable status", "status": settings.describe()}
