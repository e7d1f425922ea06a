"""
Delivery contact validation.

Checked locally before checkout so an obviously broken contact never costs a
round trip to the order service (which applies the same rules).
"""
import re

from exceptions import InvalidDeliveryContactException
from models.order import DeliveryContactDTO

# Philippine mobile number in international format: +639XXXXXXXXX
PH_MOBILE_PATTERN = re.compile(r"^\+639\d{9}$")


def normalize_contact_number(value: str) -> str:
    """
    Bring a typed number into +63 format.

    Examples:
        09171234567 → +639171234567
        9171234567 → +639171234567
        +63 917 123 4567 → +639171234567
    """
    digits = re.sub(r"\D", "", value or "")
    if digits.startswith("63"):
        digits = digits[2:]
    digits = digits.lstrip("0")
    return f"+63{digits}"


def validate_delivery_contact(contact: DeliveryContactDTO | None) -> DeliveryContactDTO:
    """
    Validate the buyer contact used for checkout.

    Args:
        contact: Contact entered by the buyer

    Returns:
        Contact with a normalized contact number

    Raises:
        InvalidDeliveryContactException: A required field is missing or malformed
    """
    if contact is None:
        raise InvalidDeliveryContactException("contact", "missing")

    if not contact.full_name or not contact.full_name.strip():
        raise InvalidDeliveryContactException("full_name", "missing")

    contact_number = normalize_contact_number(contact.contact_number)
    if not PH_MOBILE_PATTERN.match(contact_number):
        raise InvalidDeliveryContactException("contact_number", "expected format +639XXXXXXXXX")

    if not contact.barangay_id:
        raise InvalidDeliveryContactException("barangay_id", "missing")

    return contact.model_copy(update={
        'full_name': contact.full_name.strip(),
        'contact_number': contact_number,
    })
