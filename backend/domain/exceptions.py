"""도메인 예외"""


class DomainError(Exception):
    """도메인 레이어 기본 예외"""
    pass


class GatewayNotConfiguredError(DomainError):
    def __init__(self, kind: str):
        self.kind = kind
        super().__init__(f"{kind} 게이트웨이가 설정되지 않았습니다.")


class NoDefaultGatewayError(GatewayNotConfiguredError):
    def __init__(self):
        DomainError.__init__(self, "기본 결제 게이트웨이가 설정되지 않았습니다.")
        self.kind = None


class UnsupportedGatewayError(DomainError):
    def __init__(self, kind: str):
        self.kind = kind
        super().__init__(f"지원하지 않는 결제 게이트웨이입니다: {kind}")


class DecryptionError(DomainError):
    def __init__(self, reason: str = ""):
        message = "게이트웨이 비밀키 복호화에 실패했습니다."
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class SignatureInvalidError(DomainError):
    def __init__(self, kind: str):
        self.kind = kind
        super().__init__(f"유효하지 않은 webhook 서명입니다: {kind}")


class GatewayError(DomainError):
    """게이트웨이가 요청을 처리했지만 실패를 보고한 경우"""

    def __init__(self, kind: str, operation: str, message: str, response=None):
        self.kind = kind
        self.operation = operation
        self.response = response
        super().__init__(f"[{kind}] {operation} 실패: {message}")


class ProviderTransportError(DomainError):
    """게이트웨이 호출 자체가 실패한 경우 (네트워크, HTTP 오류, 타임아웃)"""

    def __init__(self, kind: str, operation: str, message: str,
                 status_code: int = None, retryable: bool = False):
        self.kind = kind
        self.operation = operation
        self.status_code = status_code
        self.retryable = retryable
        super().__init__(f"[{kind}] {operation} 통신 실패: {message}")


class RecordNotFoundError(DomainError):
    def __init__(self, entity: str, reference: str):
        self.entity = entity
        self.reference = reference
        super().__init__(f"{entity}을(를) 찾을 수 없습니다: {reference}")


class InvalidTransitionError(DomainError):
    def __init__(self, entity: str, current: str, target: str):
        self.entity = entity
        self.current = current
        self.target = target
        super().__init__(f"{entity} 상태를 {current}에서 {target}(으)로 변경할 수 없습니다.")


class PlanNotFoundError(DomainError):
    def __init__(self, plan_id):
        super().__init__(f"구독 플랜을 찾을 수 없습니다: {plan_id}")
