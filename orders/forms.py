from dataclasses import dataclass, field
from decimal import Decimal

from django import forms
from django.core.exceptions import ValidationError
from django.core.validators import RegexValidator

from .pricing import CartLine

phone_validator = RegexValidator(r"^\+?[0-9][0-9 -]{7,14}[0-9]$", "Valid phone number is required")
pincode_validator = RegexValidator(r"^[1-9][0-9]{5}$", "Valid pincode is required")


class ShippingForm(forms.Form):
    """Shipping snapshot copied onto the order."""

    name = forms.CharField(min_length=2, max_length=100)
    email = forms.EmailField()
    phone = forms.CharField(max_length=20, validators=[phone_validator])
    address = forms.CharField(min_length=10, max_length=500)
    city = forms.CharField(max_length=100)
    state = forms.CharField(max_length=100)
    pincode = forms.CharField(max_length=10, validators=[pincode_validator])

    def clean_email(self):
        return self.cleaned_data["email"].strip().lower()

    def clean_phone(self):
        return "".join(ch for ch in self.cleaned_data["phone"] if ch.isdigit() or ch == "+")


class CartItemForm(forms.Form):
    productId = forms.IntegerField(min_value=1)
    variantId = forms.IntegerField(min_value=1, required=False)
    quantity = forms.IntegerField(min_value=1, error_messages={"min_value": "Quantity must be at least 1"})

    def to_line(self) -> CartLine:
        d = self.cleaned_data
        return CartLine(product_id=d["productId"], variant_id=d.get("variantId"), quantity=d["quantity"])


class RazorpayConfirmForm(forms.Form):
    razorpay_order_id = forms.CharField(max_length=64)
    razorpay_payment_id = forms.CharField(max_length=64)
    razorpay_signature = forms.CharField(max_length=128)


class StatusUpdateForm(forms.Form):
    status = forms.CharField(max_length=16)
    notes = forms.CharField(required=False)


class TrackingForm(forms.Form):
    carrier = forms.CharField(max_length=100)
    trackingNumber = forms.CharField(max_length=100)
    trackingUrl = forms.URLField(required=False)
    estimatedDelivery = forms.DateTimeField(required=False)


class RefundForm(forms.Form):
    amount = forms.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal("0.01"), required=False)
    reason = forms.CharField(max_length=255, required=False)


@dataclass
class ImageGroup:
    color: str
    files: list[str] = field(default_factory=list)


@dataclass
class Checkout:
    shipping: dict
    lines: list[CartLine]
    coupon_code: str | None = None
    image_groups: list[ImageGroup] = field(default_factory=list)


def form_errors(form) -> ValidationError:
    data = form.errors.get_json_data()
    return ValidationError({name: [e["message"] for e in errs] for name, errs in data.items()})


def clean_form(form_class, data):
    form = form_class(data=data or {})
    if not form.is_valid():
        raise form_errors(form)
    return form


def parse_items(raw) -> list[CartLine]:
    if not isinstance(raw, list) or not raw:
        raise ValidationError({"items": ["At least one order item is required"]})
    lines = []
    for idx, item in enumerate(raw):
        if not isinstance(item, dict):
            raise ValidationError({"items": [f"Item {idx + 1} must be an object"]})
        form = CartItemForm(data=item)
        if not form.is_valid():
            data = form.errors.get_json_data()
            messages = [f"Item {idx + 1} {name}: {e['message']}" for name, errs in data.items() for e in errs]
            raise ValidationError({"items": messages})
        lines.append(form.to_line())
    return lines


def parse_image_groups(raw) -> list[ImageGroup]:
    if raw in (None, ""):
        return []
    if not isinstance(raw, list):
        raise ValidationError({"customImages": ["customImages must be a list"]})
    groups = []
    for entry in raw:
        files = entry.get("files") if isinstance(entry, dict) else None
        if not isinstance(files, list) or not all(isinstance(f, str) and f for f in files):
            raise ValidationError({"customImages": ['Each entry needs a "files" list of upload field names']})
        groups.append(ImageGroup(color=str(entry.get("color") or "")[:64], files=files))
    return groups


def parse_checkout(payload) -> Checkout:
    """Validate a checkout body ``{"shipping", "items", "couponCode", "customImages"}``."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON body")
    shipping = clean_form(ShippingForm, payload.get("shipping")).cleaned_data
    lines = parse_items(payload.get("items"))
    code = payload.get("couponCode")
    return Checkout(
        shipping=dict(shipping),
        lines=lines,
        coupon_code=str(code).strip() if code else None,
        image_groups=parse_image_groups(payload.get("customImages")),
    )
