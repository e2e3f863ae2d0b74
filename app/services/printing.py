"""Kitchen receipt printing"""

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, Optional

import structlog

from app.config import settings
from app.models.order import Order

logger = structlog.get_logger()

ESC_INIT = b"\x1b@"
ESC_BOLD_ON = b"\x1bE\x01"
ESC_BOLD_OFF = b"\x1bE\x00"
GS_CUT = b"\x1dV\x41\x03"
LINE_WIDTH = 42


@dataclass
class PrintResult:
    success: bool
    message: str


def receipt_payload(order: Order) -> Dict[str, Any]:
    """Snapshot of the order as it should appear on the kitchen ticket"""
    return {
        "order_number": order.order_number,
        "order_type": order.order_type,
        "customer_name": order.customer_name,
        "customer_phone": order.customer_phone,
        "delivery_address": order.delivery_address,
        "delivery_instructions": order.delivery_instructions,
        "items": [
            {
                "name": item.get("item_name", ""),
                "quantity": item.get("quantity", 1),
                "subtotal": str(item.get("subtotal", "")),
                "special_instructions": item.get("special_instructions"),
            }
            for item in (order.items_json or [])
        ],
        "subtotal": str(order.subtotal),
        "delivery_fee": str(order.delivery_fee),
        "discount": str(order.discount),
        "total": str(order.total),
        "payment_method": order.payment_method,
        "created_at": order.created_at.isoformat() if order.created_at else None,
    }


def render_escpos(payload: Dict[str, Any]) -> bytes:
    header = f"ORDER {payload['order_number']}\n".encode("ascii", errors="replace")
    lines = [
        (payload.get("order_type") or "").upper(),
        "-" * LINE_WIDTH,
    ]
    for item in payload.get("items", []):
        lines.append(f"{item['quantity']} x {item['name']}")
        if item.get("special_instructions"):
            lines.append(f"   * {item['special_instructions']}")
    lines.append("-" * LINE_WIDTH)
    lines.append(f"TOTAL: {payload['total']} ({payload.get('payment_method', '').upper()})")
    lines.append(f"{payload['customer_name']} {payload['customer_phone']}")
    if payload.get("delivery_address"):
        lines.append(payload["delivery_address"])
    if payload.get("delivery_instructions"):
        lines.append(f"Note: {payload['delivery_instructions']}")

    body = "\n".join(lines).encode("ascii", errors="replace")
    return ESC_INIT + ESC_BOLD_ON + header + ESC_BOLD_OFF + body + b"\n\n\n" + GS_CUT


class PrintTransport:
    """Sends a receipt to the kitchen printer"""

    async def print_now(self, payload: Dict[str, Any]) -> PrintResult:
        raise NotImplementedError


class NetworkPrintTransport(PrintTransport):
    """Raw ESC/POS over TCP (port 9100 printers)"""

    def __init__(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        timeout: Optional[float] = None,
    ):
        self.host = host or settings.printer_host
        self.port = port or settings.printer_port
        self.timeout = timeout or settings.printer_timeout_seconds

    async def print_now(self, payload: Dict[str, Any]) -> PrintResult:
        if not self.host:
            return PrintResult(False, "Printer not configured")

        data = render_escpos(payload)
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port), timeout=self.timeout
            )
            writer.write(data)
            await asyncio.wait_for(writer.drain(), timeout=self.timeout)
            writer.close()
            await writer.wait_closed()
        except (OSError, asyncio.TimeoutError) as e:
            logger.warning("Printer unreachable", host=self.host, port=self.port, error=str(e))
            return PrintResult(False, f"Printer unreachable: {e}")

        return PrintResult(True, f"Sent {len(data)} bytes to {self.host}:{self.port}")
