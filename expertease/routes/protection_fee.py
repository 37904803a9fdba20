# expertease/routes/protection_fee.py
from fastapi import APIRouter, Depends

from ..models.protection_fee import (
    CalculateProtectionFeeRequest,
    DetailedProtectionFeeResponse,
    ProtectionFeeConfigurationOut
)
from ..services import get_protection_fee_service
from ..services.protection_fee import ProtectionFeeService, summarize
from ..utils.auth import require_admin

protection_fee_router = APIRouter(prefix="/protection-fee", tags=["Protection Fee"])


@protection_fee_router.get("/configuration", response_model=ProtectionFeeConfigurationOut)
async def get_configuration(
    fee_service: ProtectionFeeService = Depends(get_protection_fee_service)
):
    return fee_service.describe()


@protection_fee_router.post("/calculate", response_model=DetailedProtectionFeeResponse)
async def calculate_fee(
    request: CalculateProtectionFeeRequest,
    fee_service: ProtectionFeeService = Depends(get_protection_fee_service)
):
    calculation = fee_service.calculate(request.service_amount)
    return DetailedProtectionFeeResponse(
        service_amount=calculation.base_amount,
        protection_fee=calculation.final_fee,
        total_amount=calculation.base_amount + calculation.final_fee,
        breakdown=calculation,
        configuration=fee_service.describe(),
        summary=summarize(calculation)
    )


@protection_fee_router.get("/validate")
async def validate_configuration(
    user=Depends(require_admin),
    fee_service: ProtectionFeeService = Depends(get_protection_fee_service)
):
    return {"valid": fee_service.validate_configuration()}


__all__ = ["protection_fee_router"]
