"""
API 스키마 re-export

사용법:
  from api.schemas import GatewayListResponse, WebhookResponse
"""
from api.schemas.payment import ResponseBase, GatewayInfo, GatewayListResponse, WebhookResponse
