"""
Tests for payment intents, webhook recording and refunds.

The Stripe gateway is replaced with a mock; only the service logic around
it is exercised here.
"""
from unittest import mock

import pytest

from clinics.models import Clinic, PlatformSetting
from common.exceptions import PaymentProcessingError
from notifications.models import Notification
from payments import services
from payments.models import Payment, PaymentRequest
from payments.payment_requests import create_payment_request
from plans.models import PaymentActivity, PaymentSchedule, Plan
from plans.services import record_manual_payment


@pytest.fixture
def gateway():
    gw = mock.MagicMock()
    gw.create_payment_intent.return_value = {"id": "pi_123", "client_secret": "pi_123_secret"}
    gw.retrieve_charge_fee.return_value = 165
    gw.create_refund.return_value = {"id": "re_123", "balance_transaction": "txn_123"}
    gw.retrieve_refund_fee.return_value = 0
    with mock.patch("payments.services.get_gateway", return_value=gw):
        yield gw


def first_installment(plan):
    return PaymentSchedule.objects.select_related("payment_request").get(plan=plan, payment_number=1)


def intent_for(installment, **overrides):
    pr = installment.payment_request
    intent = {
        "id": "pi_123",
        "amount": installment.amount,
        "amount_received": installment.amount,
        "application_fee_amount": 300,
        "latest_charge": "ch_123",
        "metadata": {
            "clinic_id": str(installment.clinic_id),
            "request_id": str(pr.pk),
            "schedule_id": str(installment.pk),
            "plan_id": str(installment.plan_id),
            "payment_reference": "CLN-TEST42",
            "patient_name": pr.patient_name,
            "patient_email": pr.patient_email,
        },
    }
    intent.update(overrides)
    return intent


# -- payment intents --------------------------------------------------------

@pytest.mark.django_db
def test_intent_for_link_uses_link_amount_and_platform_fee(gateway, single_link):
    result = services.create_intent_for_token(link_token=single_link.token, patient_email="walkin@example.com")

    assert result["amount"] == 7500
    assert result["platform_fee"] == 225
    assert result["client_secret"] == "pi_123_secret"
    kwargs = gateway.create_payment_intent.call_args.kwargs
    assert kwargs["destination_account"] == "acct_test123"
    assert kwargs["application_fee"] == 225
    assert kwargs["metadata"]["payment_link_id"] == single_link.pk
    assert kwargs["metadata"]["request_id"] == ""


@pytest.mark.django_db
def test_intent_for_request_uses_configured_fee(gateway, clinic, patient):
    PlatformSetting.set_value(PlatformSetting.PLATFORM_FEE_PERCENT, "2.5")
    pr = create_payment_request(clinic, patient, custom_amount=10000)

    result = services.create_intent_for_token(request_token=pr.token)

    assert result["amount"] == 10000
    assert result["platform_fee"] == 250
    metadata = gateway.create_payment_intent.call_args.kwargs["metadata"]
    assert metadata["request_id"] == pr.pk
    assert metadata["custom_amount"] == 10000
    assert metadata["patient_email"] == "jane@example.com"


@pytest.mark.django_db
def test_intent_rejects_a_different_amount(gateway, single_link):
    with pytest.raises(services.PaymentError, match="does not match"):
        services.create_intent_for_token(link_token=single_link.token, amount=100)
    gateway.create_payment_intent.assert_not_called()


@pytest.mark.django_db
def test_intent_refused_when_clinic_not_connected(gateway, clinic, single_link):
    Clinic.objects.filter(pk=clinic.pk).update(stripe_status=Clinic.STRIPE_PENDING)
    with pytest.raises(services.PaymentError, match="not available"):
        services.create_intent_for_token(link_token=single_link.token)


@pytest.mark.django_db
def test_intent_refused_for_plan_links_and_paid_requests(gateway, plan_link, plan):
    with pytest.raises(services.PaymentError):
        services.create_intent_for_token(link_token=plan_link.token)

    inst = first_installment(plan)
    record_manual_payment(inst)
    with pytest.raises(services.PaymentError, match="paid"):
        services.create_intent_for_token(request_token=inst.payment_request.token)


@pytest.mark.django_db
def test_unknown_token_is_an_error():
    with pytest.raises(services.PaymentError):
        services.resolve_payment_target(request_token="not-a-uuid")


# -- webhook recording ------------------------------------------------------

@pytest.mark.django_db
def test_successful_instalment_payment(gateway, plan):
    inst = first_installment(plan)
    before = Notification.objects.count()

    payment = services.record_successful_payment(intent_for(inst))

    assert payment.amount_paid == 10000
    assert payment.platform_fee == 300
    assert payment.stripe_fee == 165
    assert payment.net_amount == 9535
    assert payment.payment_ref == "CLN-TEST42"
    assert payment.payment_schedule_id == inst.pk
    inst.refresh_from_db()
    assert inst.status == "paid"
    inst.payment_request.refresh_from_db()
    assert inst.payment_request.status == PaymentRequest.STATUS_PAID
    assert inst.payment_request.payment_id == payment.pk
    plan.refresh_from_db()
    assert plan.status == Plan.STATUS_ACTIVE
    assert plan.paid_installments == 1
    assert plan.progress == 33
    assert PaymentActivity.objects.filter(plan=plan, action_type="installment_payment_received").exists()
    # clinic "payment received" plus the patient's receipt
    assert Notification.objects.count() == before + 2
    gateway.retrieve_charge_fee.assert_called_once_with("ch_123")


@pytest.mark.django_db
def test_successful_payment_is_recorded_once(gateway, plan):
    inst = first_installment(plan)
    first = services.record_successful_payment(intent_for(inst))
    second = services.record_successful_payment(intent_for(inst))

    assert first.pk == second.pk
    assert Payment.objects.filter(stripe_payment_id="pi_123").count() == 1
    assert PaymentActivity.objects.filter(action_type="installment_payment_received").count() == 1


@pytest.mark.django_db
def test_link_payment_creates_patient_and_activity(gateway, clinic, single_link):
    intent = {
        "id": "pi_link",
        "amount": 7500,
        "application_fee_amount": 225,
        "metadata": {
            "clinic_id": str(clinic.pk),
            "payment_link_id": str(single_link.pk),
            "request_id": "",
            "schedule_id": "",
            "patient_name": "Sam Walkin",
            "patient_email": "Sam@Example.com",
        },
    }

    payment = services.record_successful_payment(intent)

    assert payment.patient.email == "sam@example.com"
    assert payment.payment_link == single_link
    # no charge id on the intent, so no Stripe fee lookup
    assert payment.stripe_fee == 0
    assert payment.net_amount == 7275
    activity = PaymentActivity.objects.get(action_type="payment_received")
    assert activity.details["payment_id"] == payment.pk


@pytest.mark.django_db
def test_payment_without_known_clinic_is_ignored(gateway):
    assert services.record_successful_payment({"id": "pi_x", "amount": 100, "metadata": {}}) is None
    assert not Payment.objects.exists()


@pytest.mark.django_db
def test_failed_payment_marks_request_failed_only(gateway, plan):
    inst = first_installment(plan)
    intent = intent_for(inst, last_payment_error={"message": "Your card was declined."})

    pr = services.handle_payment_failed(intent)

    assert pr.status == PaymentRequest.STATUS_FAILED
    inst.refresh_from_db()
    assert inst.status == "sent"
    activity = PaymentActivity.objects.get(action_type="payment_failed")
    assert activity.details["failure_message"] == "Your card was declined."
    assert Notification.objects.filter(type=Notification.TYPE_PAYMENT_FAILED).count() == 1
    # the patient can still pay the failed request
    assert pr.is_payable


@pytest.mark.django_db
def test_account_updated_connects_clinic(clinic):
    Clinic.objects.filter(pk=clinic.pk).update(stripe_status=Clinic.STRIPE_PENDING)
    services.handle_account_updated({"id": "acct_test123", "charges_enabled": True})
    clinic.refresh_from_db()
    assert clinic.stripe_status == Clinic.STRIPE_CONNECTED


# -- refunds ----------------------------------------------------------------

@pytest.mark.django_db
def test_partial_then_full_refund(gateway, plan, user):
    inst = first_installment(plan)
    payment = services.record_successful_payment(intent_for(inst))

    payment = services.refund_payment(payment, amount=2500, user=user)
    assert payment.status == Payment.STATUS_PARTIALLY_REFUNDED
    assert payment.refund_amount == 2500
    gateway.create_refund.assert_called_with(
        payment_intent_id="pi_123", amount=2500, idempotency_key=f"refund-{payment.pk}-2500"
    )
    inst.refresh_from_db()
    assert inst.status == "partially_refunded"

    payment = services.refund_payment(payment, full_refund=True, user=user)
    assert payment.status == Payment.STATUS_REFUNDED
    assert payment.refund_amount == 10000
    gateway.create_refund.assert_called_with(
        payment_intent_id="pi_123", amount=7500, idempotency_key=f"refund-{payment.pk}-10000"
    )
    inst.refresh_from_db()
    assert inst.status == "refunded"

    refunds = PaymentActivity.objects.filter(action_type="payment_refunded").order_by("id")
    assert [a.details["refund_amount"] for a in refunds] == [2500, 7500]
    assert Notification.objects.filter(type=Notification.TYPE_PAYMENT_REFUND).count() == 2


@pytest.mark.django_db
def test_refund_cannot_exceed_what_is_left(gateway, plan):
    payment = services.record_successful_payment(intent_for(first_installment(plan)))
    services.refund_payment(payment, amount=6000)

    with pytest.raises(services.PaymentError, match="exceeds"):
        services.refund_payment(payment, amount=5000)
    payment.refresh_from_db()
    assert payment.refund_amount == 6000

    services.refund_payment(payment, full_refund=True)
    with pytest.raises(services.PaymentError, match="already been fully refunded"):
        services.refund_payment(payment, full_refund=True)


@pytest.mark.django_db
def test_manual_payment_refund_skips_stripe(gateway, plan):
    payment = record_manual_payment(first_installment(plan))

    payment = services.refund_payment(payment, full_refund=True)

    assert payment.status == Payment.STATUS_REFUNDED
    gateway.create_refund.assert_not_called()


@pytest.mark.django_db
def test_refund_bookkeeping_failure_never_reaches_stripe(gateway, plan):
    payment = services.record_successful_payment(intent_for(first_installment(plan)))

    with mock.patch("payments.services.notify_payment_refund", side_effect=RuntimeError("queue down")):
        with pytest.raises(RuntimeError):
            services.refund_payment(payment, amount=2500)

    gateway.create_refund.assert_not_called()
    payment.refresh_from_db()
    assert payment.refund_amount == 0
    assert payment.status == Payment.STATUS_PAID


@pytest.mark.django_db
def test_stripe_refund_failure_rolls_back(gateway, plan):
    payment = services.record_successful_payment(intent_for(first_installment(plan)))
    gateway.create_refund.side_effect = PaymentProcessingError("Stripe refund failed: card_declined")

    with pytest.raises(PaymentProcessingError):
        services.refund_payment(payment, amount=2500)

    payment.refresh_from_db()
    assert payment.refund_amount == 0
    assert not PaymentActivity.objects.filter(action_type="payment_refunded").exists()
    assert not Notification.objects.filter(type=Notification.TYPE_PAYMENT_REFUND).exists()

    # a retry of the same refund reuses the same idempotency key
    gateway.create_refund.side_effect = None
    services.refund_payment(payment, amount=2500)
    keys = [c.kwargs["idempotency_key"] for c in gateway.create_refund.call_args_list]
    assert keys == [f"refund-{payment.pk}-2500"] * 2
