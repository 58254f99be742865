from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
import logging

from visitorpass.api.deps import get_pass_service, http_error
from visitorpass.core.config import settings
from visitorpass.core.exceptions import VisitorPassError
from visitorpass.schemas import VerificationResult, VerifyRequest
from visitorpass.services.pass_service import PassService
from visitorpass.utils.image import validate_image

router = APIRouter()
logger = logging.getLogger(__name__)

@router.post("/verify/code", response_model=VerificationResult)
async def verify_code(body: VerifyRequest, service: PassService = Depends(get_pass_service)):
    """
    Check a typed pass code at the gate. The backend decides validity;
    its timeRemaining wins over anything computed here.
    """
    try:
        return await service.verify_code(body.code)
    except VisitorPassError as e:
        raise http_error(e)

@router.post("/verify/scan", response_model=VerificationResult)
async def verify_scan(photo: UploadFile = File(...), service: PassService = Depends(get_pass_service)):
    """
    Read the QR code in an uploaded photo or screenshot and verify its pass code.
    """
    content = await photo.read()

    is_valid, error = validate_image(content, settings.MAX_UPLOAD_SIZE_MB)
    if not is_valid:
        raise HTTPException(status_code=400, detail=error)

    try:
        return await service.verify_scan(content)
    except VisitorPassError as e:
        logger.info(f"QR scan rejected: {e}")
        raise http_error(e)
