"""
Receipt rendering for classified gateway callbacks.

Receipts are built from a `CallbackResult` only; nothing here touches the
fingerprint or the POS credentials. Card numbers are always masked.
"""

from datetime import datetime
from decimal import Decimal
from html import escape
from types import MappingProxyType
from typing import Any, Optional

from vinti4net.core.monitoring import mask_pan
from vinti4net.schemas.responses import CallbackResult, CallbackStatus
from vinti4net.services.currency import CurrencyCodec

ENTITY_NAMES = MappingProxyType({
    "10001": "ELECTRA",
    "10002": "ÁGUAS DE CABO VERDE",
    "10021": "CVMÓVEL",
    "10022": "UNITEL T+",
})

ENTITY_CONTACTS = MappingProxyType({
    "10001": "Contact: 262 30 60",
    "10002": "Contact: 800 20 20",
    "10021": "Contact: 111",
    "10022": "Contact: 101",
})

TRANSACTION_TYPES = MappingProxyType({
    "8": "Purchase",
    "P": "Service Payment",
    "M": "Recharge",
    "10": "Refund",
})

STATUS_TEXT = MappingProxyType({
    CallbackStatus.SUCCESS: "TRANSACTION APPROVED",
    CallbackStatus.CANCELLED: "TRANSACTION CANCELLED",
    CallbackStatus.INVALID_FINGERPRINT: "SECURITY ERROR",
    CallbackStatus.ERROR: "TRANSACTION DECLINED",
})

_RECEIPT_STYLES = """
.vinti4-receipt { font-family: Arial, sans-serif; max-width: 400px; margin: 20px auto;
  border: 2px solid #333; border-radius: 8px; padding: 20px; background: white; }
.vinti4-receipt.unavailable { border-color: #f5c6cb; background: #f8d7da; color: #721c24; }
.receipt-header { text-align: center; border-bottom: 2px solid #333; padding-bottom: 15px; margin-bottom: 20px; }
.row { display: flex; justify-content: space-between; margin-bottom: 8px; }
.label { font-weight: bold; color: #666; }
.amount-section { text-align: center; margin: 25px 0; padding: 15px; background: #f8f9fa; }
.amount { font-size: 24px; font-weight: bold; }
.status.success { color: #155724; }
.status.error { color: #721c24; }
"""


def entity_name(code: Any) -> str:
    return ENTITY_NAMES.get(str(code or ""), "Entity")


def format_amount(amount: Optional[Decimal], currency: Any) -> str:
    """`1500.5, 132 -> '1 500,50 CVE'`"""
    if amount is None:
        return "N/A"
    formatted = f"{amount:,.2f}".replace(",", " ").replace(".", ",")
    return f"{formatted} {CurrencyCodec.to_symbol(currency) or 'CVE'}"


def format_timestamp(value: Any) -> str:
    if not value:
        return "N/A"
    try:
        return datetime.fromisoformat(str(value).strip()).strftime("%d/%m/%Y %H:%M:%S")
    except ValueError:
        return "N/A"


def format_phone(value: Any) -> str:
    """Seven-digit Cabo Verde numbers become `+238 XXX XX XX`."""
    if not value:
        return "N/A"
    digits = "".join(ch for ch in str(value) if ch.isdigit())
    if len(digits) == 7:
        return f"+238 {digits[:3]} {digits[3:5]} {digits[5:]}"
    return str(value)


def _field(result: CallbackResult, key: str) -> str:
    value = result.data.get(key)
    return "N/A" if value is None or value == "" else str(value)


def render_receipt_text(result: CallbackResult, company_name: Optional[str] = None) -> str:
    """Plain-text summary suitable for e-mail or storage."""
    data = result.data
    lines = [
        "==== TRANSACTION RECEIPT ====",
        f"Company: {company_name or 'Merchant'}",
        f"Date/Time: {data.get('merchantRespTimeStamp') or datetime.now().strftime('%d/%m/%Y %H:%M:%S')}",
        f"Status: {'APPROVED' if result.success else 'NOT COMPLETED'}",
        f"Message: {result.message}",
        "",
        f"Transaction ID: {_field(result, 'merchantRespTid')}",
        f"Reference: {_field(result, 'merchantRespMerchantRef')}",
        f"Transaction Type: {TRANSACTION_TYPES.get(str(data.get('messageType', '')), 'N/A')}",
    ]

    if result.amount is not None:
        lines.append(f"Amount: {format_amount(result.amount, result.currency)}")

    if data.get("merchantRespPan"):
        lines.append(f"Card: {mask_pan(data['merchantRespPan'])}")
        lines.append(f"Authorization: {_field(result, 'merchantRespMessageID')}")

    if data.get("merchantRespEntityCode"):
        lines.append(f"Entity: {entity_name(data['merchantRespEntityCode'])}")
        lines.append(f"Service Reference: {_field(result, 'merchantRespReferenceNumber')}")

    if result.dcc is not None and result.dcc.enabled:
        lines += [
            "",
            "=== DCC (Foreign Currency) ===",
            f"Original amount: {result.dcc.amount or 'N/A'} {result.dcc.currency or 'N/A'}",
            f"Exchange rate: {result.dcc.rate or 'N/A'}",
            f"DCC markup: {result.dcc.markup or 'N/A'}%",
        ]

    if not result.success:
        lines += [
            "",
            "=== ERROR DETAILS ===",
            result.detail or "",
            result.additional_error_message,
        ]

    lines += ["", "============================="]
    return "\n".join(lines) + "\n"


def _row(label: str, value: Any) -> str:
    return (
        f'<div class="row"><span class="label">{escape(label)}:</span>'
        f'<span class="value">{escape(str(value))}</span></div>'
    )


def _receipt(title: str, merchant: str, rows, amount: str, description: str, result: CallbackResult, note: str = "") -> str:
    status_class = "success" if result.success else "error"
    footer_note = f'<div class="note">{escape(note)}</div>' if note else ""
    return (
        f'<div class="vinti4-receipt">'
        f'<div class="receipt-header"><h2>{escape(title)}</h2><div class="merchant">{escape(merchant)}</div></div>'
        f'<div class="receipt-body">{"".join(rows)}'
        f'<div class="amount-section"><div class="amount">{escape(amount)}</div>'
        f'<div class="description">{escape(description)}</div></div>'
        f'{_dcc_section(result)}</div>'
        f'<div class="receipt-footer"><div class="status {status_class}">{escape(STATUS_TEXT[result.status])}</div>'
        f'{footer_note}</div>'
        f'</div><style>{_RECEIPT_STYLES}</style>'
    )


def _dcc_section(result: CallbackResult) -> str:
    dcc = result.dcc
    if dcc is None or not dcc.enabled:
        return ""
    return (
        '<div class="dcc-info"><div class="dcc-notice">Payment in foreign currency</div>'
        + _row("Exchange rate", f"1 {dcc.currency or 'N/A'} = {dcc.rate or 'N/A'} CVE")
        + _row("Original amount", f"{dcc.amount or 'N/A'} {dcc.currency or ''}".strip())
        + _row("DCC markup", f"{dcc.markup or 'N/A'}%")
        + "</div>"
    )


def render_unavailable_receipt(message: str, detail: str = "") -> str:
    return (
        '<div class="vinti4-receipt unavailable">'
        "<div class=\"receipt-header\"><h2>RECEIPT UNAVAILABLE</h2></div>"
        f'<div class="receipt-body"><p>{escape(message)}</p><p>{escape(detail)}</p></div>'
        '<div class="receipt-footer"><div class="status error">TRANSACTION NOT COMPLETED</div></div>'
        f"</div><style>{_RECEIPT_STYLES}</style>"
    )


def render_receipt_html(result: CallbackResult, company_name: Optional[str] = None) -> str:
    """HTML receipt for successful callbacks; a notice for anything else."""
    if not result.success:
        return render_unavailable_receipt(
            "Transaction was not completed successfully.", result.additional_error_message
        )

    data = result.data
    message_type = str(data.get("messageType", ""))
    amount = format_amount(result.amount, result.currency)
    timestamp = format_timestamp(data.get("merchantRespTimeStamp"))
    entity = str(data.get("merchantRespEntityCode") or data.get("entityCode") or "")
    reference = data.get("merchantRespReferenceNumber") or data.get("referenceNumber") or "N/A"

    if message_type == "8":
        rows = [
            _row("Reference", _field(result, "merchantRespMerchantRef")),
            _row("Date/Time", timestamp),
            _row("Transaction ID", _field(result, "merchantRespTid")),
            _row("Card", mask_pan(data.get("merchantRespPan"))),
            _row("Authorization", _field(result, "merchantRespMessageID")),
        ]
        return _receipt("PAYMENT RECEIPT", company_name or "Merchant", rows, amount, "Purchase", result)

    if message_type == "P":
        rows = [
            _row("Entity", f"{entity} ({entity_name(entity)})"),
            _row("Reference", reference),
            _row("Date", timestamp),
            _row("Transaction", _field(result, "merchantRespTid")),
        ]
        merchant = ENTITY_NAMES.get(entity) or company_name or "Service Entity"
        return _receipt(
            "PAYMENT RECEIPT", merchant, rows, amount, "Service payment", result,
            note=ENTITY_CONTACTS.get(entity, ""),
        )

    if message_type == "M":
        rows = [
            _row("Number", format_phone(reference)),
            _row("Date/Time", timestamp),
            _row("Transaction", _field(result, "merchantRespTid")),
            _row("Code", _field(result, "merchantRespReloadCode")),
        ]
        merchant = ENTITY_NAMES.get(entity) or company_name or "Operator"
        return _receipt(
            "RECHARGE RECEIPT", merchant, rows, amount, "Mobile recharge", result,
            note="The recharge was credited successfully",
        )

    if message_type == "10":
        rows = [
            _row("Original reference", _field(result, "merchantRespMerchantRef")),
            _row("Original transaction", _field(result, "merchantRespTid")),
            _row("Refund date", timestamp),
            _row("Card credited", mask_pan(data.get("merchantRespPan"))),
            _row("Clearing period", _field(result, "merchantRespCP")),
        ]
        return _receipt(
            "REFUND RECEIPT", company_name or "Merchant", rows, f"-{amount.lstrip('-')}",
            "Payment refund", result, note="The amount will be credited within 2-3 business days",
        )

    return render_unavailable_receipt("Receipt unavailable for this transaction type.")
