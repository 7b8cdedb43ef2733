# Models package: importing it registers every table on Base.metadata

from .user import User, Address
from .catalog import (
    CabinetType,
    CabinetPart,
    DoorStyle,
    Color,
    Finish,
    ProductionOption,
    GlobalSetting,
)
from .cart import Cart, CartItem
from .quote import Quote, QuoteItem, QuoteVersion
from .order import Order, OrderItem, PaymentSchedule, Invoice, InvoiceLine, Payment, Shipment
from .shipping import PostcodeZone, AssemblySurchargeZone, RateCard
from .files import File, FileAttachment, Message

__all__ = [
    "User",
    "Address",
    "CabinetType",
    "CabinetPart",
    "DoorStyle",
    "Color",
    "Finish",
    "ProductionOption",
    "GlobalSetting",
    "Cart",
    "CartItem",
    "Quote",
    "QuoteItem",
    "QuoteVersion",
    "Order",
    "OrderItem",
    "PaymentSchedule",
    "Invoice",
    "InvoiceLine",
    "Payment",
    "Shipment",
    "PostcodeZone",
    "AssemblySurchargeZone",
    "RateCard",
    "File",
    "FileAttachment",
    "Message",
]
