from typing import Any, Optional

from fastapi import APIRouter, Depends, Header, Request
from pydantic import BaseModel

from upipay.entities import PaymentLookup, SignatureClaim, VerificationRequest
from upipay.errors import InvalidInput
from upipay.payments import PaymentFlow

router = APIRouter()


def get_flow(request: Request) -> PaymentFlow:
    return request.app.state.flow


class AmountRequest(BaseModel):
    # validated by the flow so every creation endpoint reports the same errors
    amount: Any = None


class UpiPaymentRequest(AmountRequest):
    transactionId: Optional[str] = None
    customerName: Optional[str] = None


class PaymentLinkRequest(AmountRequest):
    customerName: Optional[str] = None
    customerEmail: Optional[str] = None
    customerContact: Optional[str] = None

    def customer(self) -> dict:
        return {"name": self.customerName, "email": self.customerEmail, "contact": self.customerContact}


class VerifyPaymentRequest(BaseModel):
    """Accepts every body shape clients send and narrows it to one claim.

    {razorpay_order_id, razorpay_payment_id, razorpay_signature} and
    {orderId, paymentId, signature} are signature claims; a bare
    {payment_id} is a status lookup.
    """

    razorpay_order_id: Optional[str] = None
    razorpay_payment_id: Optional[str] = None
    razorpay_signature: Optional[str] = None
    orderId: Optional[str] = None
    paymentId: Optional[str] = None
    signature: Optional[str] = None
    payment_id: Optional[str] = None

    def to_claim(self) -> VerificationRequest:
        order_id = self.razorpay_order_id or self.orderId
        payment_id = self.razorpay_payment_id or self.paymentId
        signature = self.razorpay_signature or self.signature

        if order_id or payment_id or signature:
            if not (order_id and payment_id and signature):
                raise InvalidInput("Missing payment details")
            return SignatureClaim(order_id=order_id, payment_id=payment_id, signature=signature)
        if self.payment_id:
            return PaymentLookup(payment_id=self.payment_id)
        raise InvalidInput("Missing payment details")


@router.post("/create-order")
async def create_order(request: AmountRequest, flow: PaymentFlow = Depends(get_flow)):
    return await flow.create_order(request.amount)


@router.post("/create-upi-payment")
async def create_upi_payment(request: UpiPaymentRequest, flow: PaymentFlow = Depends(get_flow)):
    return await flow.create_upi_payment(request.amount, request.transactionId, request.customerName)


@router.post("/create-payment-link")
async def create_payment_link(request: PaymentLinkRequest, flow: PaymentFlow = Depends(get_flow)):
    return await flow.create_payment_link(request.amount, request.customer())


@router.post("/create-qr")
async def create_qr(request: AmountRequest, flow: PaymentFlow = Depends(get_flow)):
    return await flow.create_qr(request.amount)


@router.post("/verify-payment")
async def verify_payment(request: VerifyPaymentRequest, flow: PaymentFlow = Depends(get_flow)):
    result = await flow.verify_payment(request.to_claim())
    return result.to_response()


@router.post("/webhook")
async def razorpay_webhook(
    request: Request,
    x_razorpay_signature: Optional[str] = Header(None),
    x_razorpay_event_id: Optional[str] = Header(None),
    flow: PaymentFlow = Depends(get_flow),
):
    # hash the bytes as received, never request.json()
    payload = await request.body()
    return await flow.handle_webhook(payload, x_razorpay_signature, x_razorpay_event_id)


@router.get("/order-status/{order_id}")
async def order_status(order_id: str, flow: PaymentFlow = Depends(get_flow)):
    return await flow.order_status(order_id)


@router.get("/payment-status")
async def payment_status(payment_id: Optional[str] = None, flow: PaymentFlow = Depends(get_flow)):
    return await flow.payment_status(payment_id)
