"""관리자 CLI 도구

사용법:
  [로컬]
    uv run python tools/admin.py gateways                    활성 게이트웨이 목록
    uv run python tools/admin.py gateway-add paystack "Paystack NG" --public-key pk_test_x --secret-key sk_test_x --default
    uv run python tools/admin.py due                         24시간 내 갱신 대상 구독
    uv run python tools/admin.py renew-due                   갱신 대상 일괄 갱신 (실패 시 past_due)
    uv run python tools/admin.py expire                      기간 지난 구독 만료 처리

  [K8s 운영환경]
    MSYS_NO_PATHCONV=1 kubectl -n app exec deploy/payment-service -- python /srv/backend/tools/admin.py gateways
    MSYS_NO_PATHCONV=1 kubectl -n app exec deploy/payment-service -- python /srv/backend/tools/admin.py renew-due
"""
import argparse
import asyncio
import os
import sys
from pathlib import Path

# DB 상대 경로가 올바르게 해석되도록 backend 디렉터리로 이동
BACKEND_DIR = Path(__file__).resolve().parent.parent
os.chdir(BACKEND_DIR)
sys.path.insert(0, str(BACKEND_DIR))

from application.use_cases.subscription_lifecycle import SubscriptionLifecycle
from domain.entities.gateway_config import GatewayConfigEntity
from domain.enums import GatewayEnvironment
from infrastructure.payment.credential_store import CredentialStore
from infrastructure.payment.orchestrator import PaymentOrchestrator
from infrastructure.payment.registry import resolve_kind
from infrastructure.persistence.database import get_db_session, init_db
from infrastructure.persistence.repositories import SqlPlanRepository, SqlSubscriptionRepository


# ==================== 유틸 ====================

def fmt_date(dt) -> str:
    if not dt:
        return "-"
    return dt.strftime("%Y-%m-%d %H:%M")


def print_table(headers: list, rows: list, col_widths: list = None):
    """간단한 테이블 출력"""
    if not col_widths:
        col_widths = [max(len(str(h)), max((len(str(r[i])) for r in rows), default=0)) + 2
                      for i, h in enumerate(headers)]

    header_line = "".join(str(h).ljust(w) for h, w in zip(headers, col_widths))
    print(header_line)
    print("-" * len(header_line))
    for row in rows:
        print("".join(str(c).ljust(w) for c, w in zip(row, col_widths)))


# ==================== 명령어 ====================

async def cmd_gateways():
    """활성 게이트웨이 목록"""
    await init_db()
    configs = await CredentialStore(cache_ttl=0).list_active()
    if not configs:
        print("활성 게이트웨이가 없습니다.")
        return
    rows = [(c.id, c.kind.value, c.name, c.environment.value, "Y" if c.is_default else "",
             fmt_date(c.updated_at)) for c in configs]
    print_table(["ID", "종류", "이름", "환경", "기본", "수정일"], rows)


async def cmd_gateway_add(kind: str, name: str, public_key: str, secret_key: str,
                          webhook_secret: str = None, merchant_id: str = None,
                          live: bool = False, default: bool = False):
    """게이트웨이 설정 추가 (비밀키는 암호화해서 저장)"""
    await init_db()
    config = GatewayConfigEntity(
        kind=resolve_kind(kind),
        name=name,
        public_key=public_key,
        secret_key=secret_key,
        webhook_secret=webhook_secret,
        merchant_id=merchant_id,
        environment=GatewayEnvironment.LIVE if live else GatewayEnvironment.TEST,
        is_default=default,
    )
    saved = await CredentialStore(cache_ttl=0).save_config(config)
    print(f"게이트웨이 저장 완료: id={saved.id} {saved.kind.value} ({saved.environment.value})"
          f"{' [기본]' if saved.is_default else ''}")


async def cmd_due():
    """24시간 내 갱신 대상 구독"""
    await init_db()
    async with get_db_session() as s:
        lifecycle = SubscriptionLifecycle(SqlPlanRepository(s), SqlSubscriptionRepository(s), payments=None)
        due = await lifecycle.find_due_for_renewal()
    if not due:
        print("갱신 대상 구독이 없습니다.")
        return
    rows = [(d.id, d.user_id, d.plan_id, d.payment_gateway.value, fmt_date(d.next_billing_date)) for d in due]
    print_table(["ID", "사용자", "플랜", "게이트웨이", "다음 청구일"], rows)


async def cmd_renew_due():
    """갱신 대상 일괄 갱신"""
    await init_db()
    payments = PaymentOrchestrator()
    try:
        async with get_db_session() as s:
            lifecycle = SubscriptionLifecycle(SqlPlanRepository(s), SqlSubscriptionRepository(s), payments)
            result = await lifecycle.renew_due()
    finally:
        await payments.aclose()
    print(f"갱신 성공: {len(result.renewed)}건 {result.renewed}")
    print(f"갱신 실패(past_due): {len(result.failed)}건 {result.failed}")
    print(f"갱신 보류(통신 장애, 다음 주기 재시도): {len(result.deferred)}건 {result.deferred}")


async def cmd_expire():
    """기간 지난 구독 만료 처리"""
    await init_db()
    async with get_db_session() as s:
        lifecycle = SubscriptionLifecycle(SqlPlanRepository(s), SqlSubscriptionRepository(s), payments=None)
        expired = await lifecycle.expire_lapsed()
    print(f"만료 처리: {len(expired)}건")
    for sub in expired:
        print(f"  subscription={sub.id} user={sub.user_id} end={fmt_date(sub.end_date)}")


def main():
    parser = argparse.ArgumentParser(
        description="결제 오케스트레이션 서비스 관리 CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
명령어:
  gateways                           활성 게이트웨이 목록
  gateway-add <kind> <name>          게이트웨이 설정 추가 (--public-key, --secret-key 필수)
  due                                24시간 내 갱신 대상 구독
  renew-due                          갱신 대상 일괄 갱신
  expire                             기간 지난 구독 만료 처리
"""
    )
    parser.add_argument("command", help="명령어")
    parser.add_argument("args", nargs="*", help="추가 인자")
    parser.add_argument("--public-key", help="공개 키 (gateway-add)")
    parser.add_argument("--secret-key", help="비밀 키 (gateway-add)")
    parser.add_argument("--webhook-secret", help="webhook 서명 키 (gateway-add)")
    parser.add_argument("--merchant-id", help="가맹점 ID (gateway-add)")
    parser.add_argument("--live", action="store_true", help="운영 환경 (기본: test)")
    parser.add_argument("--default", action="store_true", help="기본 게이트웨이로 지정")

    args = parser.parse_args()
    cmd = args.command

    if cmd == "gateways":
        asyncio.run(cmd_gateways())

    elif cmd == "gateway-add":
        if len(args.args) < 2:
            parser.error("종류와 이름을 지정해주세요: admin.py gateway-add <flutterwave|paystack|squad> <name>")
        if not args.public_key or not args.secret_key:
            parser.error("--public-key, --secret-key를 지정해주세요.")
        asyncio.run(cmd_gateway_add(args.args[0], args.args[1], args.public_key, args.secret_key,
                                    args.webhook_secret, args.merchant_id, args.live, args.default))

    elif cmd == "due":
        asyncio.run(cmd_due())

    elif cmd == "renew-due":
        asyncio.run(cmd_renew_due())

    elif cmd == "expire":
        asyncio.run(cmd_expire())

    else:
        parser.error(f"알 수 없는 명령: {cmd}")


if __name__ == "__main__":
    main()
