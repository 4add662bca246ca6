"""
구독 수명주기 테스트
"""
import json
from datetime import datetime, timedelta
from decimal import Decimal

import httpx
import pytest
import pytest_asyncio

from application.use_cases.subscription_lifecycle import (
    SubscriptionLifecycle, SubscribeInput, VerifySubscriptionPaymentInput, RenewInput, CancelInput,
)
from domain.entities.subscription import SubscriptionEntity
from domain.enums import GatewayKind, BillingCycle, SubscriptionStatus
from infrastructure.persistence.models import SubscriptionPlan
from infrastructure.persistence.repositories import SqlPlanRepository, SqlSubscriptionRepository

NOW = datetime(2024, 1, 31, 10, 0, 0)


def _initialize_ok(request: httpx.Request) -> httpx.Response:
    body = json.loads(request.content)
    return httpx.Response(200, json={"status": True, "data": {
        "authorization_url": f"https://checkout.paystack.com/{body['reference']}",
        "access_code": "ac_1", "reference": body["reference"]}})


@pytest_asyncio.fixture
async def plans(session):
    rows = {
        "trial": SubscriptionPlan(name="Starter", price=Decimal("25.00"), currency="NGN",
                                  billing_cycle=BillingCycle.MONTHLY, trial_period=14),
        "monthly": SubscriptionPlan(name="Pro", price=Decimal("50.00"), currency="NGN",
                                    billing_cycle=BillingCycle.MONTHLY, trial_period=0),
        "yearly": SubscriptionPlan(name="Pro Yearly", price=Decimal("480.00"), currency="NGN",
                                   billing_cycle=BillingCycle.YEARLY, trial_period=0),
        "retired": SubscriptionPlan(name="Legacy", price=Decimal("10.00"), is_active=False),
    }
    session.add_all(rows.values())
    await session.flush()
    repo = SqlPlanRepository(session)
    return {key: await repo.get_by_id(row.id) for key, row in rows.items()}


@pytest_asyncio.fixture
async def lifecycle(session, orchestrator, add_gateway, provider) -> SubscriptionLifecycle:
    await add_gateway(GatewayKind.PAYSTACK, is_default=True)
    provider.on("POST", "/transaction/initialize", handler=_initialize_ok)
    return SubscriptionLifecycle(SqlPlanRepository(session), SqlSubscriptionRepository(session), orchestrator)


async def _save(session, subscription: SubscriptionEntity) -> SubscriptionEntity:
    return await SqlSubscriptionRepository(session).save(subscription)


class TestSubscribe:

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_trial_plan_starts_in_trial(self, lifecycle, plans, provider) -> None:
        output = await lifecycle.subscribe(SubscribeInput(user_id=7, email="ada@example.com",
                                                          plan_id=plans["trial"].id), now=NOW)
        assert output.success is True
        sub = output.subscription
        assert sub.status == SubscriptionStatus.TRIAL
        assert sub.start_date == NOW
        assert sub.end_date == datetime(2024, 2, 29, 10, 0, 0)
        assert sub.next_billing_date == sub.end_date
        assert sub.trial_end_date == NOW + timedelta(days=14)
        assert sub.payment_gateway == GatewayKind.PAYSTACK
        assert output.transaction_reference.startswith("SUB_7_")
        assert sub.transaction_reference == output.transaction_reference
        assert output.payment_link.endswith(output.transaction_reference)

        body = provider.last_json()
        assert body["amount"] == 2500
        assert body["email"] == "ada@example.com"
        assert body["metadata"]["type"] == "subscription"
        assert body["callback_url"].endswith("/dashboard/subscription/callback")

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_plan_without_trial_starts_active(self, lifecycle, plans) -> None:
        output = await lifecycle.subscribe(SubscribeInput(user_id=7, email="ada@example.com",
                                                          plan_id=plans["yearly"].id), now=NOW)
        assert output.subscription.status == SubscriptionStatus.ACTIVE
        assert output.subscription.trial_end_date is None
        assert output.subscription.end_date == datetime(2025, 1, 31, 10, 0, 0)

    @pytest.mark.integration
    @pytest.mark.asyncio
    @pytest.mark.parametrize("plan_key", ["retired", None])
    async def test_missing_or_inactive_plan(self, lifecycle, plans, provider, session, plan_key) -> None:
        plan_id = plans[plan_key].id if plan_key else 9999
        output = await lifecycle.subscribe(SubscribeInput(user_id=7, email="a@b.c", plan_id=plan_id))
        assert output.success is False
        assert provider.requests == []
        assert await SqlSubscriptionRepository(session).get_by_user(7) is None

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_existing_live_subscription_is_rejected(self, lifecycle, plans, provider) -> None:
        first = await lifecycle.subscribe(SubscribeInput(user_id=7, email="a@b.c", plan_id=plans["trial"].id))
        second = await lifecycle.subscribe(SubscribeInput(user_id=7, email="a@b.c", plan_id=plans["monthly"].id))
        assert first.success is True
        assert second.success is False
        assert second.subscription.id == first.subscription.id
        assert len(provider.requests) == 1

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_provider_failure_creates_nothing(self, lifecycle, plans, provider, session) -> None:
        provider.on("POST", "/transaction/initialize", status_code=400,
                    json={"status": False, "message": "Invalid amount"})
        output = await lifecycle.subscribe(SubscribeInput(user_id=7, email="a@b.c", plan_id=plans["trial"].id))
        assert output.success is False
        assert "Invalid amount" in output.message
        assert await SqlSubscriptionRepository(session).get_by_user(7) is None

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_resubscribe_reuses_row(self, lifecycle, plans) -> None:
        first = await lifecycle.subscribe(SubscribeInput(user_id=7, email="a@b.c", plan_id=plans["trial"].id),
                                          now=NOW)
        await lifecycle.cancel(CancelInput(user_id=7, cancelled_by=7, reason="too expensive"))

        again = await lifecycle.subscribe(SubscribeInput(user_id=7, email="a@b.c",
                                                         plan_id=plans["monthly"].id), now=NOW)
        assert again.success is True
        assert again.subscription.id == first.subscription.id
        assert again.subscription.status == SubscriptionStatus.ACTIVE
        assert again.subscription.cancelled_at is None
        assert again.subscription.auto_renew is True
        assert len(await lifecycle.history(7)) == 1


class TestVerifyPayment:

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_promotes_trial_without_changing_dates(self, lifecycle, plans, provider) -> None:
        created = await lifecycle.subscribe(SubscribeInput(user_id=7, email="a@b.c",
                                                           plan_id=plans["trial"].id), now=NOW)
        reference = created.transaction_reference
        provider.on("GET", f"/transaction/verify/{reference}", json={"status": True, "data": {
            "id": 4099, "status": "success", "amount": 2500, "reference": reference}})

        output = await lifecycle.verify_payment(VerifySubscriptionPaymentInput(user_id=7,
                                                                               transaction_reference=reference))
        assert output.success is True
        assert output.subscription.status == SubscriptionStatus.ACTIVE
        assert output.subscription.metadata["transactionId"] == "4099"
        assert output.subscription.end_date == created.subscription.end_date
        assert output.subscription.start_date == NOW

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_reference_scoped_to_user(self, lifecycle, plans, provider) -> None:
        created = await lifecycle.subscribe(SubscribeInput(user_id=7, email="a@b.c", plan_id=plans["trial"].id))
        reference = created.transaction_reference
        provider.on("GET", f"/transaction/verify/{reference}", json={"status": True, "data": {
            "id": 1, "status": "success", "amount": 2500, "reference": reference}})

        output = await lifecycle.verify_payment(VerifySubscriptionPaymentInput(user_id=8,
                                                                               transaction_reference=reference))
        assert output.success is False

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_unsuccessful_payment(self, lifecycle, plans, provider) -> None:
        created = await lifecycle.subscribe(SubscribeInput(user_id=7, email="a@b.c", plan_id=plans["trial"].id))
        reference = created.transaction_reference
        provider.on("GET", f"/transaction/verify/{reference}", json={"status": True, "data": {
            "id": 1, "status": "abandoned", "amount": 2500, "reference": reference}})

        output = await lifecycle.verify_payment(VerifySubscriptionPaymentInput(user_id=7,
                                                                               transaction_reference=reference))
        assert output.success is False
        assert (await lifecycle.get_current(7)).status == SubscriptionStatus.TRIAL

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_verifies_with_subscription_gateway(self, lifecycle, plans, provider, add_gateway) -> None:
        created = await lifecycle.subscribe(SubscribeInput(user_id=7, email="a@b.c", plan_id=plans["trial"].id))
        reference = created.transaction_reference
        # 구독 이후 기본 게이트웨이가 Flutterwave로 바뀜
        await add_gateway(GatewayKind.FLUTTERWAVE, is_default=True)
        provider.on("GET", f"/transaction/verify/{reference}", json={"status": True, "data": {
            "id": 4100, "status": "success", "amount": 2500, "reference": reference}})

        output = await lifecycle.verify_payment(VerifySubscriptionPaymentInput(user_id=7,
                                                                               transaction_reference=reference))
        assert output.success is True
        assert output.subscription.status == SubscriptionStatus.ACTIVE
        assert provider.requests[-1].url.host == "api.paystack.co"
        assert provider.requests[-1].url.path == f"/transaction/verify/{reference}"


class TestRenewal:

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_renew_expired_subscription(self, lifecycle, plans, session) -> None:
        sub = SubscriptionEntity.start(7, plans["monthly"], GatewayKind.PAYSTACK, "SUB_7_1", now=NOW)
        sub.metadata["email"] = "a@b.c"
        sub.expire()
        sub = await _save(session, sub)

        renewed_at = datetime(2024, 3, 10, 9, 0, 0)
        output = await lifecycle.renew(RenewInput(user_id=7), now=renewed_at)
        assert output.success is True
        assert output.subscription.status == SubscriptionStatus.ACTIVE
        assert output.subscription.end_date == datetime(2024, 4, 10, 9, 0, 0)
        assert output.subscription.next_billing_date == output.subscription.end_date
        assert output.transaction_reference.startswith(f"RENEW_{sub.id}_")

        found = await SqlSubscriptionRepository(session).get_by_transaction_reference(output.transaction_reference)
        assert found.id == sub.id

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_renew_active_monthly_subscription(self, lifecycle, plans, session, provider) -> None:
        sub = SubscriptionEntity.start(7, plans["monthly"], GatewayKind.PAYSTACK, "SUB_7_1", now=NOW)
        sub.metadata["email"] = "a@b.c"
        sub = await _save(session, sub)

        renewed_at = datetime(2024, 2, 28, 8, 30, 0)
        output = await lifecycle.renew(RenewInput(user_id=7), now=renewed_at)
        assert output.success is True
        assert output.subscription.id == sub.id
        assert output.subscription.status == SubscriptionStatus.ACTIVE
        assert output.subscription.start_date == renewed_at
        assert output.subscription.end_date == datetime(2024, 3, 28, 8, 30, 0)
        assert output.subscription.next_billing_date == output.subscription.end_date
        assert output.subscription.transaction_reference == output.transaction_reference
        assert provider.last_json()["amount"] == 5000
        assert provider.last_json()["email"] == "a@b.c"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_renew_with_plan_override(self, lifecycle, plans, session, provider) -> None:
        sub = SubscriptionEntity.start(7, plans["monthly"], GatewayKind.PAYSTACK, "SUB_7_1", now=NOW)
        await _save(session, sub)

        output = await lifecycle.renew(RenewInput(user_id=7, email="a@b.c", plan_id=plans["yearly"].id), now=NOW)
        assert output.subscription.plan_id == plans["yearly"].id
        assert output.subscription.end_date == datetime(2025, 1, 31, 10, 0, 0)
        assert provider.last_json()["amount"] == 48000
        assert provider.last_json()["metadata"]["type"] == "renewal"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_cancelled_subscription_cannot_renew(self, lifecycle, plans, session, provider) -> None:
        sub = SubscriptionEntity.start(7, plans["monthly"], GatewayKind.PAYSTACK, "SUB_7_1", now=NOW)
        sub.cancel(7)
        await _save(session, sub)

        output = await lifecycle.renew(RenewInput(user_id=7, email="a@b.c"))
        assert output.success is False
        assert provider.requests == []

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_find_due_for_renewal_window(self, lifecycle, plans, session) -> None:
        due = SubscriptionEntity.start(1, plans["monthly"], GatewayKind.PAYSTACK, "SUB_1_1", now=NOW)
        due.next_billing_date = NOW + timedelta(hours=12)
        later = SubscriptionEntity.start(2, plans["monthly"], GatewayKind.PAYSTACK, "SUB_2_1", now=NOW)
        later.next_billing_date = NOW + timedelta(hours=36)
        past = SubscriptionEntity.start(3, plans["monthly"], GatewayKind.PAYSTACK, "SUB_3_1", now=NOW)
        past.next_billing_date = NOW - timedelta(hours=1)
        manual = SubscriptionEntity.start(4, plans["monthly"], GatewayKind.PAYSTACK, "SUB_4_1", now=NOW)
        manual.next_billing_date = NOW + timedelta(hours=1)
        manual.auto_renew = False
        trial = SubscriptionEntity.start(5, plans["trial"], GatewayKind.PAYSTACK, "SUB_5_1", now=NOW)
        trial.next_billing_date = NOW + timedelta(hours=1)
        for sub in (due, later, past, manual, trial):
            await _save(session, sub)

        found = await lifecycle.find_due_for_renewal(NOW)
        assert [s.user_id for s in found] == [1]

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_find_due_for_renewal_inclusive_bounds(self, lifecycle, plans, session) -> None:
        at_start = SubscriptionEntity.start(1, plans["monthly"], GatewayKind.PAYSTACK, "SUB_1_1", now=NOW)
        at_start.next_billing_date = NOW
        at_end = SubscriptionEntity.start(2, plans["monthly"], GatewayKind.PAYSTACK, "SUB_2_1", now=NOW)
        at_end.next_billing_date = NOW + timedelta(hours=24)
        beyond = SubscriptionEntity.start(3, plans["monthly"], GatewayKind.PAYSTACK, "SUB_3_1", now=NOW)
        beyond.next_billing_date = NOW + timedelta(hours=24, seconds=1)
        for sub in (at_start, at_end, beyond):
            await _save(session, sub)

        found = await lifecycle.find_due_for_renewal(NOW)
        assert [s.user_id for s in found] == [1, 2]

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_renew_due_marks_failures_past_due(self, lifecycle, plans, session, provider) -> None:
        ok = SubscriptionEntity.start(1, plans["monthly"], GatewayKind.PAYSTACK, "SUB_1_1", now=NOW)
        ok.metadata["email"] = "one@example.com"
        ok.next_billing_date = NOW + timedelta(hours=2)
        no_email = SubscriptionEntity.start(2, plans["monthly"], GatewayKind.PAYSTACK, "SUB_2_1", now=NOW)
        no_email.next_billing_date = NOW + timedelta(hours=3)
        ok = await _save(session, ok)
        no_email = await _save(session, no_email)

        result = await lifecycle.renew_due(NOW)
        assert result.renewed == [ok.id]
        assert result.failed == [no_email.id]

        repo = SqlSubscriptionRepository(session)
        assert (await repo.get_by_user(2)).status == SubscriptionStatus.PAST_DUE
        assert (await repo.get_by_user(1)).status == SubscriptionStatus.ACTIVE

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_renew_due_provider_outage(self, lifecycle, plans, session, provider) -> None:
        provider.on("POST", "/transaction/initialize", status_code=503, json={"message": "unavailable"})
        sub = SubscriptionEntity.start(1, plans["monthly"], GatewayKind.PAYSTACK, "SUB_1_1", now=NOW)
        sub.metadata["email"] = "one@example.com"
        sub.next_billing_date = NOW + timedelta(hours=2)
        sub = await _save(session, sub)

        result = await lifecycle.renew_due(NOW)
        assert result.deferred == [sub.id]
        assert result.failed == []
        assert result.renewed == []
        assert (await SqlSubscriptionRepository(session).get_by_user(1)).status == SubscriptionStatus.ACTIVE

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_renew_due_non_retryable_error(self, lifecycle, plans, session, provider) -> None:
        provider.on("POST", "/transaction/initialize",
                    handler=lambda request: httpx.Response(400, text="bad request"))
        sub = SubscriptionEntity.start(1, plans["monthly"], GatewayKind.PAYSTACK, "SUB_1_1", now=NOW)
        sub.metadata["email"] = "one@example.com"
        sub.next_billing_date = NOW + timedelta(hours=2)
        sub = await _save(session, sub)

        result = await lifecycle.renew_due(NOW)
        assert result.failed == [sub.id]
        assert result.deferred == []
        assert (await SqlSubscriptionRepository(session).get_by_user(1)).status == SubscriptionStatus.PAST_DUE

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_expire_lapsed(self, lifecycle, plans, session) -> None:
        long_ago = NOW - timedelta(days=60)
        past_due = SubscriptionEntity.start(1, plans["monthly"], GatewayKind.PAYSTACK, "SUB_1_1", now=long_ago)
        past_due.mark_past_due()
        auto = SubscriptionEntity.start(2, plans["monthly"], GatewayKind.PAYSTACK, "SUB_2_1", now=long_ago)
        manual = SubscriptionEntity.start(3, plans["monthly"], GatewayKind.PAYSTACK, "SUB_3_1", now=long_ago)
        manual.auto_renew = False
        current = SubscriptionEntity.start(4, plans["monthly"], GatewayKind.PAYSTACK, "SUB_4_1", now=NOW)
        current.auto_renew = False
        for sub in (past_due, auto, manual, current):
            await _save(session, sub)

        expired = await lifecycle.expire_lapsed(NOW)
        assert sorted(s.user_id for s in expired) == [1, 3]
        assert all(s.status == SubscriptionStatus.EXPIRED for s in expired)


class TestCancel:

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_cancel_live_subscription(self, lifecycle, plans) -> None:
        await lifecycle.subscribe(SubscribeInput(user_id=7, email="a@b.c", plan_id=plans["monthly"].id))

        output = await lifecycle.cancel(CancelInput(user_id=7, cancelled_by=1, reason="requested"), now=NOW)
        assert output.success is True
        assert output.subscription.status == SubscriptionStatus.CANCELLED
        assert output.subscription.cancelled_at == NOW
        assert output.subscription.cancelled_by == 1
        assert output.subscription.cancellation_reason == "requested"
        assert output.subscription.auto_renew is False
        assert await lifecycle.get_current(7) is None

        again = await lifecycle.cancel(CancelInput(user_id=7))
        assert again.success is False
