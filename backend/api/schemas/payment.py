"""결제 게이트웨이/webhook 응답 스키마"""
from typing import Optional, List
from pydantic import BaseModel


class ResponseBase(BaseModel):
    success: bool = True
    message: Optional[str] = None


class GatewayInfo(BaseModel):
    type: str
    name: str
    is_default: bool
    environment: str


class GatewayListResponse(ResponseBase):
    gateways: List[GatewayInfo]


class WebhookResponse(ResponseBase):
    """게이트웨이에 돌려주는 webhook 수신 결과"""
    event: Optional[str] = None
    duplicate: bool = False
